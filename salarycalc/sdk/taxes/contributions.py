"""Social contribution calculations.

Schemes come from a year's ``social_contributions`` block: named entries
(health, pension, unemployment, ...) plus an ``other`` list whose entries
get ids ``other_0``, ``other_1``, ...

Per scheme:
- base = gross clamped to [floor, ceiling], never negative
- employee: bracket ladder (``employee.brackets``) or base * employee_rate,
  with optional low-income tiers overriding the rate on the regular portion
- employer: max(0, base - employer.threshold) * employer.rate, or
  base * employer_rate
- deductible_for_tax: employee amount also reduces taxable income

Schemes with ``applies: false`` report zero but keep their id, so output
tables have the same rows for every salary.
"""

import copy
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Iterable, Literal, Optional

from .brackets import bracket_terms

Portion = Literal["regular", "special"]

INFINITY = float("inf")


@dataclass
class ContributionTotals:
    """Per-scheme and total contribution amounts (annual, unrounded)."""

    employee_by_id: dict[str, float] = field(default_factory=dict)
    employer_by_id: dict[str, float] = field(default_factory=dict)
    labels_by_id: dict[str, str] = field(default_factory=dict)
    employee_total: float = 0.0
    employer_total: float = 0.0
    deductible_employee_total: float = 0.0


def _to_float(value, default: float = 0.0) -> float:
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def effective_base(gross_annual: float, floor: Optional[float] = None, ceiling: Optional[float] = None) -> float:
    """Clamp gross to [floor, ceiling] and to >= 0."""
    base = float(gross_annual)
    low = floor if floor is not None else 0.0
    if base < low:
        base = low
    if ceiling is not None and base > ceiling:
        base = ceiling
    return max(0.0, base)


def bracketed_amount(base_annual: float, brackets: Iterable[Mapping]) -> float:
    """Progressive span-sum of a bracket ladder ({up_to, rate}, up_to None = unbounded)."""
    remaining = max(0.0, float(base_annual or 0))
    previous_limit = 0.0
    total = 0.0

    for bracket in brackets:
        if remaining <= 0:
            break
        upper, rate = bracket_terms(bracket)
        span = max(0.0, upper - previous_limit)
        taxed = min(remaining, span)
        total += taxed * rate
        remaining -= taxed
        previous_limit = upper

    return total


def low_income_rate(gross_annual: float, entry: Mapping, default_rate: float) -> float:
    """Employee rate from ``low_income_employee_rate_tiers``.

    Tiers are closed intervals [from, up_to] (from defaults to 0, up_to to
    unbounded) over monthly gross (gross / 12) unless
    ``low_income_employee_rate_basis`` is "annual". The first tier containing
    the amount wins; a tier without ``employee_rate`` keeps ``default_rate``.
    No matching tier also keeps ``default_rate``.
    """
    tiers = entry.get("low_income_employee_rate_tiers") or []
    basis = entry.get("low_income_employee_rate_basis") or "monthly"
    amount = gross_annual / 12 if basis == "monthly" else gross_annual

    for tier in tiers:
        lower = _to_float(tier.get("from"), 0.0)
        upper = _to_float(tier.get("up_to"), INFINITY)
        if lower <= amount <= upper:
            if "employee_rate" in tier:
                return _to_float(tier["employee_rate"])
            return default_rate
    return default_rate


def iter_schemes(schemes: Optional[Mapping]) -> Iterable[tuple[str, Mapping]]:
    """Yield (id, entry) for named schemes then ``other`` entries."""
    if not isinstance(schemes, Mapping):
        return
    for key, entry in schemes.items():
        if key == "other":
            continue
        yield key, entry
    other = schemes.get("other")
    if isinstance(other, list):
        for index, entry in enumerate(other):
            yield f"other_{index}", entry


def compute_contributions(
    gross_annual: float,
    schemes: Optional[Mapping],
    portion: Portion = "regular",
) -> ContributionTotals:
    """Compute employee and employer contributions for an annual gross.

    Args:
        gross_annual: Annual gross income the schemes apply to
        schemes: social_contributions block
        portion: "special" for 13th/14th salary portions, which never get
            low-income tier rates

    Returns:
        ContributionTotals (unrounded)
    """
    totals = ContributionTotals()
    gross = float(gross_annual)

    for scheme_id, entry in iter_schemes(schemes):
        if not isinstance(entry, Mapping):
            continue

        totals.labels_by_id[scheme_id] = entry.get("label") or scheme_id

        if not entry.get("applies"):
            totals.employee_by_id[scheme_id] = 0.0
            totals.employer_by_id[scheme_id] = 0.0
            continue

        employee_rate = _to_float(entry.get("employee_rate"))
        if portion != "special" and entry.get("low_income_employee_rate_tiers"):
            employee_rate = low_income_rate(gross, entry, employee_rate)

        floor = entry.get("floor")
        ceiling = entry.get("ceiling")
        base = effective_base(
            gross,
            floor=_to_float(floor) if floor is not None else None,
            ceiling=_to_float(ceiling) if ceiling is not None else None,
        )

        employee_rules = entry.get("employee")
        if isinstance(employee_rules, Mapping) and isinstance(employee_rules.get("brackets"), list):
            employee_amount = bracketed_amount(base, employee_rules["brackets"])
        else:
            employee_amount = base * employee_rate

        employer_rules = entry.get("employer")
        threshold = employer_rules.get("threshold") if isinstance(employer_rules, Mapping) else None
        if threshold is not None and math.isfinite(_to_float(threshold, float("nan"))):
            employer_amount = max(0.0, base - _to_float(threshold)) * _to_float(employer_rules.get("rate"))
        else:
            employer_amount = base * _to_float(entry.get("employer_rate"))

        totals.employee_by_id[scheme_id] = employee_amount
        totals.employer_by_id[scheme_id] = employer_amount
        totals.employee_total += employee_amount
        totals.employer_total += employer_amount
        if entry.get("deductible_for_tax"):
            totals.deductible_employee_total += employee_amount

    return totals


def merge_contributions(*parts: ContributionTotals) -> ContributionTotals:
    """Sum several ContributionTotals per scheme id."""
    merged = ContributionTotals()
    for part in parts:
        for scheme_id, amount in part.employee_by_id.items():
            merged.employee_by_id[scheme_id] = merged.employee_by_id.get(scheme_id, 0.0) + amount
        for scheme_id, amount in part.employer_by_id.items():
            merged.employer_by_id[scheme_id] = merged.employer_by_id.get(scheme_id, 0.0) + amount
        merged.labels_by_id.update(part.labels_by_id)
        merged.employee_total += part.employee_total
        merged.employer_total += part.employer_total
        merged.deductible_employee_total += part.deductible_employee_total
    return merged


def cap_ceilings(schemes: Optional[Mapping], cap_annual: Optional[float]) -> Optional[Mapping]:
    """Copy of ``schemes`` with every ceiling lowered to ``cap_annual``.

    Uncapped schemes get ``cap_annual`` as their ceiling. A None/non-finite
    cap returns the schemes unchanged. The input is not modified.
    """
    if not isinstance(schemes, Mapping):
        return schemes
    if cap_annual is None or not math.isfinite(float(cap_annual)):
        return schemes

    capped = copy.deepcopy(dict(schemes))
    cap = float(cap_annual)

    def apply(entry):
        if not isinstance(entry, dict):
            return
        if entry.get("ceiling") is None:
            entry["ceiling"] = cap
        else:
            entry["ceiling"] = min(float(entry["ceiling"]), cap)

    for key, entry in capped.items():
        if key == "other":
            continue
        apply(entry)
    if isinstance(capped.get("other"), list):
        for entry in capped["other"]:
            apply(entry)
    return capped
