"""Income tax calculations.

compute_by_rules dispatches one IncomeTaxRules block by ``type``:
- progressive: ordered brackets [{up_to, rate}], last may be unbounded
- flat: flat_rate * taxable
- formula: closed-form implementation from the FormulaRegistry

On top of it:
- compute_dual_schedule: national + regional schedules summed
- compute_special_payment_tax: 13th/14th salary preferential taxation,
  limited to one sixth of regular annual gross
"""

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from ..errors import (
    EngineError,
    FormulaExecutionError,
    FormulaInvalidResult,
    FormulaMissing,
    MissingIncomeTaxRules,
)
from .brackets import bracket_terms
from .formulas import FormulaContext, FormulaRegistry, default_registry
from .rounding import RoundingPolicy

logger = logging.getLogger(__name__)


_DEFAULT_REGISTRY = default_registry()


@dataclass(frozen=True)
class TaxAmount:
    """Result of one schedule: rounded amount, rule type and explain-why details."""

    amount: float
    type: str
    details: dict = field(default_factory=dict)


@dataclass(frozen=True)
class DualScheduleTax:
    """National + regional tax for dual-schedule jurisdictions."""

    total: float
    national: TaxAmount
    regional: TaxAmount


@dataclass(frozen=True)
class SpecialPaymentTax:
    """Explain-why figures for preferential taxation of special payments."""

    amount: float
    taxable_preferential: float
    taxable_base: float
    cap_base: float
    sixth: float
    allowance: float
    overflow_to_regular: float


@dataclass(frozen=True)
class IncomeTaxOutcome:
    """Income tax for one computation, after credits.

    ``main`` is the regular (or only) schedule; ``national``/``regional``
    are set for dual-schedule jurisdictions and ``special`` for the
    special-payment model.
    """

    total: float
    main: Optional[TaxAmount] = None
    national: Optional[TaxAmount] = None
    regional: Optional[TaxAmount] = None
    special: Optional[SpecialPaymentTax] = None
    credits_total: float = 0.0
    credits_by_id: dict = field(default_factory=dict)


def progressive_tax(taxable: float, brackets: list) -> float:
    """Unrounded progressive tax over contiguous brackets, in ascending up_to order."""
    remaining = taxable
    previous_limit = 0.0
    tax = 0.0

    ordered = sorted(bracket_terms(b) for b in brackets if isinstance(b, Mapping))
    for upper, rate in ordered:
        span = max(0.0, upper - previous_limit)

        if remaining <= 0 or span <= 0:
            previous_limit = upper
            continue

        in_bracket = min(remaining, span)
        tax += in_bracket * rate
        remaining -= in_bracket
        previous_limit = upper

        if remaining <= 0:
            break

    return tax


def _run_formula(
    taxable: float,
    rules: Mapping,
    policy: RoundingPolicy,
    extra: FormulaContext,
    registry: FormulaRegistry,
) -> TaxAmount:
    formula = rules.get("formula") or {}
    method = formula.get("method")
    parameters = formula.get("parameters") or {}

    if not formula.get("use_formula") or not method:
        raise FormulaMissing(details={"cause": "formula_not_configured", "method": method, "taxable": taxable})

    impl = registry.get(method)
    if impl is None:
        raise FormulaMissing(details={"cause": "formula_not_registered", "method": method, "taxable": taxable})

    try:
        raw = impl(taxable, parameters, policy, extra)
    except Exception as e:
        raise FormulaExecutionError(details={
            "cause": "formula_execution_error",
            "method": method,
            "taxable": taxable,
            "originalError": str(e),
        }) from e

    if isinstance(raw, bool) or not isinstance(raw, (int, float)) or not math.isfinite(raw) or raw < 0:
        raise FormulaInvalidResult(details={
            "cause": "formula_invalid_result",
            "method": method,
            "taxable": taxable,
            "taxRaw": repr(raw),
        })

    return TaxAmount(
        amount=policy.round(raw),
        type="formula",
        details={"taxable": taxable, "method": method, "used_parameters": dict(parameters)},
    )


def compute_by_rules(
    taxable_annual: float,
    rules: Optional[Mapping],
    policy: RoundingPolicy,
    extra: Optional[FormulaContext] = None,
    registry: Optional[FormulaRegistry] = None,
) -> TaxAmount:
    """Compute annual income tax for one IncomeTaxRules block.

    Args:
        taxable_annual: Annual taxable income (negatives are treated as 0)
        rules: IncomeTaxRules mapping
        policy: Rounding applied to the final amount
        extra: Context forwarded to formula implementations
        registry: Formula implementations (defaults to the built-ins)

    Raises:
        MissingIncomeTaxRules: If rules is empty
        FormulaMissing, FormulaExecutionError, FormulaInvalidResult: formula path
        EngineError: cause=unsupported_income_tax_type for unknown types
    """
    if not isinstance(rules, Mapping) or not rules:
        raise MissingIncomeTaxRules(details={"cause": "missing_income_tax_rules"})

    taxable = max(0.0, float(taxable_annual or 0))
    rule_type = rules.get("type") or "progressive"

    if rule_type == "progressive":
        brackets = rules.get("brackets") if isinstance(rules.get("brackets"), list) else []
        return TaxAmount(
            amount=policy.round(progressive_tax(taxable, brackets)),
            type="progressive",
            details={"taxable": taxable, "brackets_used": len(brackets)},
        )

    if rule_type == "flat":
        rate = float(rules.get("flat_rate", rules.get("rate")) or 0)
        return TaxAmount(
            amount=policy.round(taxable * rate),
            type="flat",
            details={"taxable": taxable, "rate": rate},
        )

    if rule_type == "formula":
        return _run_formula(taxable, rules, policy, extra or FormulaContext(), registry or _DEFAULT_REGISTRY)

    raise EngineError(details={"cause": "unsupported_income_tax_type", "type": rule_type})


def compute_dual_schedule(
    taxable_annual: float,
    national_rules: Optional[Mapping],
    regional_rules: Optional[Mapping],
    policy: RoundingPolicy,
    extra: Optional[FormulaContext] = None,
    registry: Optional[FormulaRegistry] = None,
) -> DualScheduleTax:
    """Compute national and regional schedules independently and sum them."""
    national = compute_by_rules(taxable_annual, national_rules, policy, extra, registry)
    regional = compute_by_rules(taxable_annual, regional_rules, policy, extra, registry)
    return DualScheduleTax(
        total=policy.round(national.amount + regional.amount),
        national=national,
        regional=regional,
    )


def compute_special_payment_tax(
    *,
    regular_gross: float,
    special_gross: float,
    regular_deductible: float,
    special_deductible: float,
    allowances: float,
    special_allowance: float,
    main_rules: Optional[Mapping],
    special_rules: Optional[Mapping],
    policy: RoundingPolicy,
    extra: FormulaContext,
    registry: Optional[FormulaRegistry] = None,
) -> IncomeTaxOutcome:
    """Tax regular and special (13th/14th salary) income separately.

    The special portion is taxed under ``special_rules`` only up to one
    sixth of regular annual gross, less ``special_allowance``. Anything
    above the sixth is added back to the regular base. Allowances apply
    once, to the regular base.
    """
    if not main_rules:
        raise MissingIncomeTaxRules(details={"cause": "missing_income_tax_rules"})

    regular_base = max(0.0, regular_gross - regular_deductible - allowances)
    special_base = max(0.0, special_gross - special_deductible)

    sixth = max(0.0, regular_gross / 6)
    cap_base = min(special_base, sixth)
    overflow = max(0.0, special_base - cap_base)
    preferential = max(0.0, cap_base - special_allowance)

    logger.debug(
        f"special payments: regular_base={regular_base:.2f} special_base={special_base:.2f} "
        f"sixth={sixth:.2f} overflow={overflow:.2f} preferential={preferential:.2f}"
    )

    regular_tax = compute_by_rules(regular_base + overflow, main_rules, policy, extra, registry)
    special_extra = FormulaContext(
        country_code=extra.country_code,
        tax_class=extra.tax_class,
        children_count=extra.children_count,
        year_rules=extra.year_rules,
        special_pay=True,
    )
    special_tax = compute_by_rules(preferential, special_rules, policy, special_extra, registry)

    return IncomeTaxOutcome(
        total=regular_tax.amount + special_tax.amount,
        main=regular_tax,
        special=SpecialPaymentTax(
            amount=special_tax.amount,
            taxable_preferential=preferential,
            taxable_base=special_base,
            cap_base=cap_base,
            sixth=sixth,
            allowance=special_allowance,
            overflow_to_regular=overflow,
        ),
    )


def describe(outcome: IncomeTaxOutcome) -> dict[str, Any]:
    """JSON-friendly view of an IncomeTaxOutcome."""
    def amount(t: Optional[TaxAmount]):
        if t is None:
            return None
        return {"amount": t.amount, "type": t.type, "details": t.details}

    view = {
        "total": outcome.total,
        "main": amount(outcome.main),
        "national": amount(outcome.national),
        "regional": amount(outcome.regional),
        "credits": {"total": outcome.credits_total, "by_id": dict(outcome.credits_by_id)},
    }
    if outcome.special is not None:
        s = outcome.special
        view["special"] = {
            "amount": s.amount,
            "taxable_preferential": s.taxable_preferential,
            "taxable_base": s.taxable_base,
            "cap_base": s.cap_base,
            "sixth": s.sixth,
            "allowance": s.allowance,
            "overflow_to_regular": s.overflow_to_regular,
        }
    return view
