"""Non-refundable tax credits.

Credits live in ``income_tax.tax_credits`` as a map of id -> rule, each in
one of two shapes:

Phase-out:
    {max, phaseout_start, phaseout_end?, phaseout_rate_per_eur | phaseout_rate | rate}
    Full ``max`` up to phaseout_start, reduced by rate per unit above it,
    zero from phaseout_end.

Segments:
    {segments: [{up_to, base, rate, over}, ...]}
    First segment whose up_to covers the income gives
    base + rate * (income - over); the last segment may omit up_to.
    Segments take precedence when both shapes are present.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class CreditTotals:
    total: float = 0.0
    by_id: dict = field(default_factory=dict)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def phaseout_credit(income: float, rule: Mapping) -> float:
    maximum = rule["max"]
    start = rule["phaseout_start"]
    end = rule.get("phaseout_end") if _is_number(rule.get("phaseout_end")) else None

    rate = 0.0
    for key in ("phaseout_rate_per_eur", "phaseout_rate", "rate"):
        if _is_number(rule.get(key)):
            rate = rule[key]
            break

    if income <= start:
        return maximum
    if end is not None and income >= end:
        return 0.0
    return max(0.0, maximum - (income - start) * rate)


def segment_credit(income: float, segments: list) -> float:
    value = 0.0
    for segment in segments:
        if not isinstance(segment, Mapping):
            continue
        up_to = segment.get("up_to") if _is_number(segment.get("up_to")) else None
        base = segment.get("base") if _is_number(segment.get("base")) else 0.0
        rate = segment.get("rate") if _is_number(segment.get("rate")) else 0.0
        over = segment.get("over") if _is_number(segment.get("over")) else 0.0

        if up_to is None or income <= up_to:
            return base + rate * max(0.0, income - over)
        value = base + rate * max(0.0, up_to - over)
    return value


def compute_tax_credits(income_annual: float, credit_rules: Optional[Mapping]) -> CreditTotals:
    """Evaluate every credit rule against annual income.

    Returns:
        CreditTotals with per-credit amounts (each >= 0) and their sum
    """
    if not isinstance(credit_rules, Mapping):
        return CreditTotals()

    by_id = {}
    total = 0.0
    for credit_id, rule in credit_rules.items():
        if not isinstance(rule, Mapping):
            continue

        value = 0.0
        if _is_number(rule.get("max")) and _is_number(rule.get("phaseout_start")):
            value = phaseout_credit(income_annual, rule)
        if isinstance(rule.get("segments"), list):
            value = segment_credit(income_annual, rule["segments"])

        value = max(0.0, value)
        by_id[credit_id] = value
        total += value

    return CreditTotals(total=total, by_id=by_id)
