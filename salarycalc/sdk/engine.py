"""Gross-to-net salary computation.

compute_salary runs the pipeline over a resolved TaxContext:

1. Validate the context (present, tax class set where mandatory, CalcMode matches)
2. Annualize gross; split regular/special income when the year pays
   more than 12 salaries (13th/14th month)
3. Social contributions (per portion when split, then merged)
4. Allowances
5. Taxable income (generic, or net-before-tax less a professional
   expense deduction where the year defines one)
6. Income tax (special-payment, dual-schedule or single schedule)
7. Tax credits
8. Other levies
9. Net and total cost to employer
10. Row tables for rendering

compute_salary_with_context resolves the context and computes in one call.
"""

import dataclasses
import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from .errors import (
    CalcModeMismatch,
    EngineError,
    InvalidSalary,
    InvalidTaxClass,
    MissingIncomeTaxRules,
    MissingTaxContext,
    NoSalary,
)
from .rules.context import Diagnostics, TaxContext, build_tax_context
from .rules.repository import RuleRepository
from .tables import build_output_tables
from .taxes.contributions import (
    ContributionTotals,
    cap_ceilings,
    compute_contributions,
    merge_contributions,
)
from .taxes.credits import compute_tax_credits
from .taxes.formulas import FormulaContext, FormulaRegistry
from .taxes.income_tax import (
    IncomeTaxOutcome,
    compute_by_rules,
    compute_dual_schedule,
    compute_special_payment_tax,
    describe,
)
from .taxes.other_taxes import OtherTaxTotals, compute_other_taxes
from .taxes.rounding import RoundingPolicy

logger = logging.getLogger(__name__)

SALARY_PERIODS = ("monthly", "yearly")


@dataclass(frozen=True)
class Breakdown:
    """Rounded figures for one granularity (annual or monthly)."""

    gross: float
    benefits: float
    allowances: float
    taxable_income: float
    income_tax_total: float
    other_taxes_total: float
    employee_other_taxes_total: float
    employer_other_taxes_total: float
    taxes_total: float
    employee_contrib_total: float
    employer_contrib_total: float
    net: float
    tco: float
    employee_contrib_by_id: dict = field(default_factory=dict)
    employer_contrib_by_id: dict = field(default_factory=dict)
    employee_other_taxes_by_id: dict = field(default_factory=dict)
    employer_other_taxes_by_id: dict = field(default_factory=dict)


@dataclass(frozen=True)
class SalaryResult:
    """Outcome of one compute_salary call."""

    meta: dict
    annual: Breakdown
    monthly: Breakdown
    income_tax: IncomeTaxOutcome
    other_taxes: OtherTaxTotals
    contribution_labels: dict
    tables: dict
    tax_context: TaxContext

    def to_dict(self) -> dict[str, Any]:
        """JSON-serialisable view (without the raw rule blocks)."""
        return {
            "meta": dict(self.meta),
            "calc_mode": dataclasses.asdict(self.tax_context.calc_mode),
            "annual": dataclasses.asdict(self.annual),
            "monthly": dataclasses.asdict(self.monthly),
            "income_tax": describe(self.income_tax),
            "other_taxes": {
                "total": self.other_taxes.total,
                "by_id": dict(self.other_taxes.by_id),
            },
            "contribution_labels": dict(self.contribution_labels),
            "tables": self.tables,
        }


@dataclass(frozen=True)
class GrossSplit:
    """Annualized gross, split into regular and special portions when applicable."""

    annual: float
    monthly: float
    regular: Optional[float] = None
    special: Optional[float] = None
    salary_months: Optional[int] = None

    @property
    def is_split(self) -> bool:
        return self.regular is not None and self.special is not None


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def validate_context(tax_context: Optional[TaxContext]) -> None:
    """Reject missing, incomplete or inconsistent contexts.

    Raises:
        MissingTaxContext: No context
        InvalidTaxClass: Year defines tax classes but none is selected
        CalcModeMismatch: CalcMode missing, or country/year/class differ
    """
    if tax_context is None:
        raise MissingTaxContext(details={"cause": "missing_tax_context"})

    if tax_context.tax_classes and not tax_context.tax_class:
        raise InvalidTaxClass(details={
            "country": tax_context.country_code,
            "year": tax_context.year,
            "cause": "missing_tax_class_required",
        })

    mode = tax_context.calc_mode
    if mode is None:
        raise CalcModeMismatch(details={"cause": "missing_calc_mode"})

    if (
        mode.country_code != tax_context.country_code
        or str(mode.year) != str(tax_context.year)
        or (mode.tax_class or "") != (tax_context.tax_class or "")
    ):
        raise CalcModeMismatch(details={
            "cause": "calc_mode_mismatch",
            "calcMode": dataclasses.asdict(mode),
            "country": tax_context.country_code,
            "year": tax_context.year,
            "taxClass": tax_context.tax_class,
        })


def parse_salary(amount: Any, period: Any) -> float:
    """Validate the salary input and return it as a float.

    Raises:
        NoSalary: amount is None or blank
        InvalidSalary: amount not a finite non-negative number
        EngineError: cause=invalid_period for periods other than monthly/yearly
    """
    if amount is None or (isinstance(amount, str) and not amount.strip()):
        raise NoSalary()
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise InvalidSalary(details={"amount": repr(amount), "period": period}) from None
    if not math.isfinite(value) or value < 0:
        raise InvalidSalary(details={"amount": repr(amount), "period": period})
    if period not in SALARY_PERIODS:
        raise EngineError(details={"cause": "invalid_period", "period": period})
    return value


def parse_benefits(amount: Any) -> float:
    """Annual benefits as a finite float (blank means 0, negatives clamp to 0).

    Raises:
        EngineError: cause=invalid_benefits for non-numeric or non-finite input
    """
    if amount is None or (isinstance(amount, str) and not amount.strip()):
        return 0.0
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise EngineError(details={"cause": "invalid_benefits", "benefits": repr(amount)}) from None
    if not math.isfinite(value):
        raise EngineError(details={"cause": "invalid_benefits", "benefits": repr(amount)})
    return max(0.0, value)


def special_payments_config(year_rules: Mapping) -> Optional[Mapping]:
    """The year's special_payments block, if enabled."""
    sp = year_rules.get("special_payments")
    if isinstance(sp, Mapping) and sp.get("enabled"):
        return sp
    return None


def annualize(amount: float, period: str, sp: Optional[Mapping], salary_months: Any = None) -> GrossSplit:
    """Convert the input salary to annual gross, splitting off special payments.

    With special payments, N = max(regular_months, round(salary_months or
    default_salary_months)). For N > regular_months:
    - monthly input m: regular = m * regular_months, special = m * (N - regular_months)
    - yearly input A: monthly base A / N, regular = base * regular_months,
      special = A - regular

    Monthly gross stays the entered amount for monthly input, else annual / 12.
    """
    annual = amount * 12 if period == "monthly" else amount
    monthly = amount if period == "monthly" else annual / 12

    if sp is None:
        return GrossSplit(annual=annual, monthly=monthly)

    regular_months = int(sp.get("regular_months") or 12)
    requested = salary_months if salary_months not in (None, "") else sp.get("default_salary_months", regular_months)
    try:
        requested = float(requested)
    except (TypeError, ValueError):
        raise EngineError(details={"cause": "invalid_salary_months", "salaryMonths": repr(salary_months)}) from None
    if not math.isfinite(requested):
        raise EngineError(details={"cause": "invalid_salary_months", "salaryMonths": repr(salary_months)})

    months = max(regular_months, _round_half_up(requested))
    if months <= regular_months:
        return GrossSplit(annual=annual, monthly=monthly, salary_months=months)

    if period == "monthly":
        regular = amount * regular_months
        special = amount * (months - regular_months)
        monthly = amount
    else:
        regular = (annual / months) * regular_months
        special = annual - regular

    annual = regular + special
    if period == "yearly":
        monthly = annual / 12

    logger.debug(f"special payments split: months={months} regular={regular:.2f} special={special:.2f}")
    return GrossSplit(annual=annual, monthly=monthly, regular=regular, special=special, salary_months=months)


def annual_allowances(tax_context: TaxContext) -> float:
    """Fixed annual allowances.

    Dual-schedule years keep allowances on the top-level income_tax block;
    otherwise they sit on the resolved income tax rules.
    """
    if tax_context.is_dual_schedule:
        source = tax_context.year_rules.get("income_tax")
    else:
        source = tax_context.income_tax
    allowances = (source or {}).get("allowances") if isinstance(source, Mapping) else None
    if not isinstance(allowances, Mapping):
        return 0.0

    total = sum(
        float(allowances.get(key) or 0)
        for key in ("basic_tax_free", "employment_expense_flat", "other_fixed")
    )
    return total if total > 0 else 0.0


def taxable_income(
    gross_annual: float,
    contributions: ContributionTotals,
    allowances: float,
    year_rules: Mapping,
) -> float:
    """Annual taxable income.

    Generic: gross - deductible employee contributions - allowances.
    With ``income_tax.professional_deduction``: net-before-tax (gross - all
    employee contributions) less rate * net-before-tax clamped to [min, max];
    ``enabled: false`` taxes net-before-tax as is.
    """
    taxable = max(0.0, gross_annual - contributions.deductible_employee_total - allowances)

    deduction = (year_rules.get("income_tax") or {}).get("professional_deduction")
    if not isinstance(deduction, Mapping):
        return taxable

    net_before_tax = max(0.0, gross_annual - contributions.employee_total)
    if deduction.get("enabled") is False:
        return net_before_tax

    rate = float(deduction.get("rate") if deduction.get("rate") is not None else 0.10)
    low = float(deduction.get("min") or 0)
    high = float(deduction["max"]) if deduction.get("max") is not None else float("inf")
    professional = min(high, max(low, net_before_tax * rate))
    return max(0.0, net_before_tax - professional)


def _split_contributions(split: GrossSplit, schemes: Mapping, sp: Mapping):
    caps = sp.get("social_contributions") or {}
    regular_cap = caps.get("regular_ceiling_annual")
    special_cap = caps.get("special_ceiling_annual")

    regular = compute_contributions(
        split.regular,
        cap_ceilings(schemes, float(regular_cap) if regular_cap is not None else None),
        portion="regular",
    )
    special = compute_contributions(
        split.special,
        cap_ceilings(schemes, float(special_cap) if special_cap is not None else None),
        portion="special",
    )
    return regular, special


def _apply_credits(outcome: IncomeTaxOutcome, gross_annual: float, year_rules: Mapping) -> IncomeTaxOutcome:
    credit_rules = (year_rules.get("income_tax") or {}).get("tax_credits")
    if not credit_rules:
        return outcome

    credits = compute_tax_credits(gross_annual, credit_rules)
    main = outcome.main
    if main is not None:
        main = dataclasses.replace(main, amount=max(0.0, main.amount - credits.total))

    return dataclasses.replace(
        outcome,
        total=max(0.0, outcome.total - credits.total),
        main=main,
        credits_total=credits.total,
        credits_by_id=dict(credits.by_id),
    )


def compute_salary(
    tax_context: Optional[TaxContext],
    salary_amount: Any,
    salary_period: str,
    benefits_annual: Any = 0,
    salary_months: Any = None,
    registry: Optional[FormulaRegistry] = None,
) -> SalaryResult:
    """Compute the annual and monthly gross-to-net breakdown.

    Args:
        tax_context: Context from build_tax_context
        salary_amount: Gross salary as entered
        salary_period: "monthly" or "yearly"
        benefits_annual: Non-cash benefits, reported only
        salary_months: Number of salaries per year where special payments exist
        registry: Formula implementations (defaults to the built-ins)

    Raises:
        EngineError / RulesError subclasses, see validate_context and parse_salary
    """
    validate_context(tax_context)
    year_rules = tax_context.year_rules
    policy = RoundingPolicy.from_flags(tax_context.calculation_flags)

    amount = parse_salary(salary_amount, salary_period)
    benefits = parse_benefits(benefits_annual)

    # 1) Annualize
    sp = special_payments_config(year_rules)
    split = annualize(amount, salary_period, sp, salary_months)
    gross_annual = split.annual

    # 2) Contributions
    schemes = tax_context.social_contributions
    contrib_regular = contrib_special = None
    if split.is_split:
        contrib_regular, contrib_special = _split_contributions(split, schemes, sp)
        contrib = merge_contributions(contrib_regular, contrib_special)
    else:
        contrib = compute_contributions(gross_annual, schemes)

    # 3) Allowances, 4) taxable income
    allowances = annual_allowances(tax_context)
    taxable = taxable_income(gross_annual, contrib, allowances, year_rules)

    # 5) Income tax
    extra = FormulaContext(
        country_code=tax_context.country_code,
        tax_class=tax_context.tax_class,
        children_count=tax_context.children_count,
        year_rules=year_rules,
    )

    if split.is_split:
        income_tax = compute_special_payment_tax(
            regular_gross=split.regular,
            special_gross=split.special,
            regular_deductible=contrib_regular.deductible_employee_total,
            special_deductible=contrib_special.deductible_employee_total,
            allowances=allowances,
            special_allowance=float(sp.get("allowance_annual") or 0),
            main_rules=tax_context.income_tax,
            special_rules=sp.get("income_tax"),
            policy=policy,
            extra=extra,
            registry=registry,
        )
    elif tax_context.is_dual_schedule:
        dual = compute_dual_schedule(
            taxable,
            tax_context.region_tax.national,
            tax_context.region_tax.regional,
            policy,
            extra,
            registry,
        )
        income_tax = IncomeTaxOutcome(total=dual.total, national=dual.national, regional=dual.regional)
    else:
        if not tax_context.income_tax:
            raise MissingIncomeTaxRules(details={"cause": "missing_income_tax_rules"})
        main = compute_by_rules(taxable, tax_context.income_tax, policy, extra, registry)
        income_tax = IncomeTaxOutcome(total=main.amount, main=main)

    # 6) Credits
    income_tax = _apply_credits(income_tax, gross_annual, year_rules)
    income_tax_annual = income_tax.total

    # 7) Other levies
    other = compute_other_taxes(gross_annual, taxable, income_tax_annual, tax_context.other_taxes, policy)

    # 8) Net and TCO
    taxes_annual = income_tax_annual + other.employee_total
    net_annual = gross_annual - contrib.employee_total - taxes_annual
    tco_annual = gross_annual + contrib.employer_total + other.employer_total

    r = policy.round

    annual = Breakdown(
        gross=r(gross_annual),
        benefits=r(benefits),
        allowances=r(allowances),
        taxable_income=r(taxable),
        income_tax_total=r(income_tax_annual),
        other_taxes_total=r(other.total),
        employee_other_taxes_total=r(other.employee_total),
        employer_other_taxes_total=r(other.employer_total),
        taxes_total=r(taxes_annual),
        employee_contrib_total=r(contrib.employee_total),
        employer_contrib_total=r(contrib.employer_total),
        net=r(net_annual),
        tco=r(tco_annual),
        employee_contrib_by_id={k: r(v) for k, v in contrib.employee_by_id.items()},
        employer_contrib_by_id={k: r(v) for k, v in contrib.employer_by_id.items()},
        employee_other_taxes_by_id=dict(other.employee_by_id),
        employer_other_taxes_by_id=dict(other.employer_by_id),
    )

    monthly = Breakdown(
        gross=r(split.monthly),
        benefits=r(benefits / 12),
        allowances=r(allowances / 12),
        taxable_income=r(taxable / 12),
        income_tax_total=r(income_tax_annual / 12),
        other_taxes_total=r(other.total / 12),
        employee_other_taxes_total=r(other.employee_total / 12),
        employer_other_taxes_total=r(other.employer_total / 12),
        taxes_total=r(taxes_annual / 12),
        employee_contrib_total=r(contrib.employee_total / 12),
        employer_contrib_total=r(contrib.employer_total / 12),
        net=r(net_annual / 12),
        tco=r(tco_annual / 12),
        employee_contrib_by_id={k: r(v / 12) for k, v in contrib.employee_by_id.items()},
        employer_contrib_by_id={k: r(v / 12) for k, v in contrib.employer_by_id.items()},
        employee_other_taxes_by_id={k: r(v / 12) for k, v in other.employee_by_id.items()},
        employer_other_taxes_by_id={k: r(v / 12) for k, v in other.employer_by_id.items()},
    )

    # 9) Tables
    tables = build_output_tables(annual, monthly, contrib.labels_by_id)

    meta = {
        "country_code": tax_context.country_code,
        "country_name": tax_context.country_name,
        "year": tax_context.year,
        "currency": tax_context.currency,
        "region": tax_context.region,
        "tax_class": tax_context.tax_class,
        "input_period": salary_period,
        "salary_months": split.salary_months,
        "rounding_mode": policy.mode,
        "currency_decimals": policy.decimals,
        "disclaimers": list(tax_context.disclaimers),
        "notes": list(tax_context.notes),
    }

    return SalaryResult(
        meta=meta,
        annual=annual,
        monthly=monthly,
        income_tax=income_tax,
        other_taxes=other,
        contribution_labels=dict(contrib.labels_by_id),
        tables=tables,
        tax_context=tax_context,
    )


async def compute_salary_with_context(
    repository: RuleRepository,
    *,
    country_code: str,
    year: Any,
    salary_amount: Any,
    salary_period: str,
    region: Optional[str] = None,
    tax_class: Optional[str] = None,
    children_count: Any = 0,
    benefits_annual: Any = 0,
    salary_months: Any = None,
    registry: Optional[FormulaRegistry] = None,
    diagnostics: Diagnostics = "runtime",
    strict: bool = False,
) -> SalaryResult:
    """Build the tax context and compute in one call."""
    tax_context = await build_tax_context(
        repository,
        country_code=country_code,
        year=year,
        region=region,
        tax_class=tax_class,
        children_count=children_count,
        diagnostics=diagnostics,
        strict=strict,
    )
    return compute_salary(
        tax_context,
        salary_amount,
        salary_period,
        benefits_annual=benefits_annual,
        salary_months=salary_months,
        registry=registry,
    )
