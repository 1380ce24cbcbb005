"""Other levies (solidarity surcharge, payroll taxes, ...).

Each entry in ``other_taxes`` picks a basis (gross, taxable_income or
income_tax), a rate, an optional taper and cap, and an incidence:
employee levies reduce net pay, employer levies only raise the total cost
to the employer.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Optional

from ..errors import EngineError
from .rounding import RoundingPolicy

BASES = ("gross", "taxable_income", "income_tax")


@dataclass(frozen=True)
class OtherTaxTotals:
    total: float = 0.0
    employee_total: float = 0.0
    employer_total: float = 0.0
    by_id: dict = field(default_factory=dict)
    employee_by_id: dict = field(default_factory=dict)
    employer_by_id: dict = field(default_factory=dict)
    labels_by_id: dict = field(default_factory=dict)


def _number(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def levy_amount(base_amount: float, rule: Mapping) -> float:
    """Unrounded levy for one rule over its basis amount.

    Tapered rules (free_threshold, taper_rate, standard_rate on an income_tax
    basis) charge nothing up to the threshold, then the smaller of the taper
    and the standard charge. A ``cap`` (or ``max``) limits the result.
    """
    amount = 0.0
    rate = _number(rule.get("rate"))
    if rate is not None:
        amount = base_amount * rate

    free_threshold = _number(rule.get("free_threshold"))
    taper_rate = _number(rule.get("taper_rate"))
    standard_rate = _number(rule.get("standard_rate"))
    if (free_threshold is not None and taper_rate is not None and standard_rate is not None
            and rule.get("basis") == "income_tax"):
        if base_amount <= free_threshold:
            amount = 0.0
        else:
            amount = min((base_amount - free_threshold) * taper_rate, base_amount * standard_rate)

    cap = _number(rule.get("cap"))
    if cap is None:
        cap = _number(rule.get("max"))
    if cap is not None and cap >= 0 and amount > cap:
        amount = cap

    return amount


def compute_other_taxes(
    gross_annual: float,
    taxable_annual: float,
    income_tax_annual: float,
    rules: Optional[Mapping],
    policy: RoundingPolicy,
) -> OtherTaxTotals:
    """Compute every levy in an other_taxes block.

    Each levy is rounded on its own (a rule may override the year's mode
    with ``rounding_mode``); totals are rounded again with the year policy.

    Raises:
        EngineError: cause=invalid_other_tax_basis for an unknown basis,
            cause=invalid_other_tax_incidence for an unknown incidence
    """
    if not isinstance(rules, Mapping):
        return OtherTaxTotals()

    bases = {
        "gross": gross_annual,
        "taxable_income": taxable_annual,
        "income_tax": income_tax_annual,
    }

    by_id, employee_by_id, employer_by_id, labels = {}, {}, {}, {}
    employee_total = employer_total = 0.0

    for tax_id, rule in rules.items():
        by_id[tax_id] = employee_by_id[tax_id] = employer_by_id[tax_id] = 0.0
        if not isinstance(rule, Mapping):
            continue
        labels[tax_id] = rule.get("label") or tax_id
        if rule.get("applies") is False:
            continue

        basis = rule.get("basis") or "gross"
        if basis not in BASES:
            raise EngineError(details={"cause": "invalid_other_tax_basis", "tax": tax_id, "basis": basis})

        incidence = str(rule.get("incidence") or "employee").lower()
        if incidence not in ("employee", "employer"):
            raise EngineError(details={"cause": "invalid_other_tax_incidence", "tax": tax_id, "incidence": incidence})

        rounded = policy.with_mode(rule.get("rounding_mode")).round(levy_amount(bases[basis], rule))
        by_id[tax_id] = rounded
        if incidence == "employer":
            employer_by_id[tax_id] = rounded
            employer_total += rounded
        else:
            employee_by_id[tax_id] = rounded
            employee_total += rounded

    return OtherTaxTotals(
        total=policy.round(employee_total + employer_total),
        employee_total=policy.round(employee_total),
        employer_total=policy.round(employer_total),
        by_id=by_id,
        employee_by_id=employee_by_id,
        employer_by_id=employer_by_id,
        labels_by_id=labels,
    )
