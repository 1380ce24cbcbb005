"""Closed-form income tax formulas.

Some jurisdictions define income tax as a function of parameters rather
than a bracket table. Rule documents select one by name
(``income_tax.formula.method``); the names form a closed set, FormulaMethod.

Every implementation has the same signature:

    fn(taxable, parameters, policy, extra) -> float

- taxable: annual taxable income (finite, >= 0)
- parameters: the rule document's ``formula.parameters`` mapping
- policy: RoundingPolicy of the year block (most formulas ignore it; the
  engine rounds the returned amount)
- extra: FormulaContext with country, tax class, dependents and year rules

Implementations are pure, never raise for finite non-negative input, and
return a finite amount >= 0. Malformed parameters raise FormulaParameterError.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Union

from ..errors import FormulaParameterError
from .rounding import RoundingPolicy


class FormulaMethod(str, Enum):
    """Formula identifiers rule documents may reference."""

    DE_ESTG_2026 = "de_estg_2026"
    SE_JOB_CREDIT_2026 = "se_job_credit_2026"


@dataclass(frozen=True)
class FormulaContext:
    """Auxiliary inputs passed to formula implementations."""

    country_code: Optional[str] = None
    tax_class: Optional[str] = None
    children_count: int = 0
    year_rules: Optional[Mapping] = None
    special_pay: bool = False


FormulaFn = Callable[[float, Mapping, RoundingPolicy, FormulaContext], float]


def _num(value: Any, default: float = 0.0) -> float:
    """Coerce a parameter to a finite float, else ``default``."""
    try:
        n = float(value)
    except (TypeError, ValueError):
        return default
    return n if math.isfinite(n) else default


class FormulaRegistry:
    """Name -> implementation lookup for formula-based income tax.

    Registration is additive and last-write-wins; there is no removal.
    """

    def __init__(self):
        self._impls: dict[FormulaMethod, FormulaFn] = {}

    def register(self, method: Union[FormulaMethod, str], fn: FormulaFn) -> None:
        """Register an implementation.

        Raises:
            ValueError: If ``method`` is not a FormulaMethod identifier or
                ``fn`` is not callable
        """
        try:
            key = FormulaMethod(method)
        except ValueError:
            raise ValueError(f"Unknown formula method: {method!r}") from None
        if not callable(fn):
            raise ValueError(f"Formula implementation for {key.value} is not callable")
        self._impls[key] = fn

    def get(self, method: Optional[str]) -> Optional[FormulaFn]:
        """Look up an implementation; None for unknown or unregistered names."""
        if not method:
            return None
        try:
            return self._impls.get(FormulaMethod(method))
        except ValueError:
            return None

    def methods(self) -> list[str]:
        """Registered method names."""
        return sorted(m.value for m in self._impls)


# =============================================================================
# Germany: zoned income tariff
# =============================================================================


def _child_relief(taxable: float, parameters: Mapping, children: int) -> float:
    """Reduce taxable income by single-parent relief and child allowances.

    Controlled by ``child_behavior`` (set per tax class):
    - apply_entlastungsbetrag: base + per additional child
    - apply_kfb: per-child allowance, kfb_mode full|half|none, times
      per_child_multiplier
    """
    if children <= 0:
        return taxable

    behavior = parameters.get("child_behavior") or {}
    allowances = parameters.get("allowances") or {}
    child = parameters.get("child") or {}

    if behavior.get("apply_entlastungsbetrag"):
        base = _num(behavior.get("entlast_base"), _num(allowances.get("entlastungsbetrag_base")))
        per_extra = _num(
            behavior.get("entlast_per_additional_child"),
            _num(allowances.get("entlastungsbetrag_per_additional_child")),
        )
        relief = base + max(0, children - 1) * per_extra
        if relief > 0:
            taxable = max(0.0, taxable - relief)

    if behavior.get("apply_kfb"):
        kfb_full = _num(parameters.get("kfb_full_per_child"),
                        _num(allowances.get("kfb_full_per_child"), _num(child.get("kfb_per_child"))))
        kfb_half = _num(parameters.get("kfb_half_per_child"),
                        _num(allowances.get("kfb_half_per_child"), _num(child.get("kfb_half_per_child"))))
        mode = str(behavior.get("kfb_mode") or "half")
        per_child = kfb_full if mode == "full" else (0.0 if mode == "none" else kfb_half)
        multiplier = max(0.0, _num(behavior.get("per_child_multiplier"), 1.0))
        kfb = max(0.0, per_child) * children * multiplier
        if kfb > 0:
            taxable = max(0.0, taxable - kfb)

    return taxable


def de_estg_2026(taxable: float, parameters: Mapping, policy: RoundingPolicy, extra: FormulaContext) -> float:
    """German income tariff (section 32a EStG shape) for 2026.

    Zones on whole-euro income x:
    - x <= basic_allowance: 0
    - zone 1: (a*y + b)*y, y = (x - basic_allowance) / 10,000
    - zone 2: (a*z + b)*z + c, z = (x - zone2_start) / 10,000
    - zone 3/4: rate*x - offset
    The zoned tax is floored to whole euros. For the tax classes listed in
    ``mst5_6.classes`` (default V, VI) a minimum tax of floor_rate * x
    applies, floor_rate rising linearly from min_rate at w1 to the top
    rate at w3.
    """
    tariff = parameters.get("tariff")
    if not isinstance(tariff, Mapping):
        raise FormulaParameterError("de_estg_2026: missing or invalid 'tariff' parameters")

    income = max(0.0, _num(taxable))
    if income <= 0:
        return 0.0

    adjustment = parameters.get("taxable_income_adjustment")
    if adjustment is not None:
        income = max(0.0, income + _num(adjustment))

    income = _child_relief(income, parameters, extra.children_count)
    x = math.floor(income)

    basic_allowance = _num(tariff.get("basic_allowance"))
    zone2_start = _num(tariff.get("zone2_start"), basic_allowance)
    zone3_start = _num(tariff.get("zone3_start"), zone2_start)
    zone4_start = _num(tariff.get("zone4_start"), zone3_start)
    z1 = tariff.get("zone1") or {}
    z2 = tariff.get("zone2") or {}
    z3 = tariff.get("zone3") or {}
    z4 = tariff.get("zone4") or {}

    if x <= basic_allowance:
        zoned = 0.0
    elif x < zone2_start:
        y = (x - basic_allowance) / 10000
        zoned = (_num(z1.get("coeff_y")) * y + _num(z1.get("offset"))) * y
    elif x < zone3_start:
        z = (x - zone2_start) / 10000
        zoned = (_num(z2.get("coeff_y")) * z + _num(z2.get("offset"))) * z + _num(z2.get("constant"))
    elif x < zone4_start:
        zoned = _num(z3.get("rate")) * x - _num(z3.get("offset"))
    else:
        zoned = _num(z4.get("rate")) * x - _num(z4.get("offset"))

    tax = float(math.floor(zoned)) if math.isfinite(zoned) else 0.0
    tax = max(0.0, tax)

    overlay = parameters.get("mst5_6")
    if isinstance(overlay, Mapping):
        classes = overlay.get("classes") or ["V", "VI"]
        if extra.tax_class and extra.tax_class in classes:
            w1 = _num(overlay.get("w1"))
            w3 = _num(overlay.get("w3"))
            min_rate = _num(overlay.get("min_rate"))
            top_rate = _num(z4.get("rate"), 0.45)

            if x > w1 and w3 > w1:
                if x >= w3:
                    floor_rate = top_rate
                else:
                    t = (x - w1) / (w3 - w1)
                    floor_rate = (1 - t) * min_rate + t * top_rate
                tax_floor = floor_rate * x
                if math.isfinite(tax_floor) and tax_floor > tax:
                    tax = tax_floor

    return tax


# =============================================================================
# Sweden: municipal + state tax less earned-income credit
# =============================================================================


def _job_credit(gross_annual: float, parameters: Mapping) -> float:
    """Piecewise-linear earned-income credit over gross annual income.

    Anchors: flat at seg1_start_credit up to seg1_start_gross_annual, linear
    to seg1_end_credit at seg1_end_gross_annual, linear to seg2_end_credit at
    seg2_end_gross_annual, then seg2_end_credit.
    """
    start_ga = _num(parameters.get("seg1_start_gross_annual"))
    start_credit = _num(parameters.get("seg1_start_credit"))
    end_ga = _num(parameters.get("seg1_end_gross_annual"), start_ga)
    end_credit = _num(parameters.get("seg1_end_credit"), start_credit)
    fade_ga = _num(parameters.get("seg2_end_gross_annual"), end_ga)
    fade_credit = _num(parameters.get("seg2_end_credit"))

    if gross_annual <= 0 or start_ga <= 0 or end_ga <= start_ga:
        credit = 0.0
    elif gross_annual <= start_ga:
        credit = start_credit
    elif gross_annual <= end_ga:
        t = (gross_annual - start_ga) / (end_ga - start_ga)
        credit = start_credit + (end_credit - start_credit) * t
    elif gross_annual <= fade_ga and fade_ga > end_ga:
        t = (gross_annual - end_ga) / (fade_ga - end_ga)
        credit = end_credit + (fade_credit - end_credit) * t
    else:
        credit = fade_credit

    return credit if math.isfinite(credit) and credit > 0 else 0.0


def se_job_credit_2026(taxable: float, parameters: Mapping, policy: RoundingPolicy, extra: FormulaContext) -> float:
    """Swedish municipal + state income tax with the job tax credit.

    Taxable income is assumed to be gross less the basic allowance, so
    gross is reconstructed as taxable + basic_allowance for the municipal
    charge and the credit.
    """
    income = max(0.0, _num(taxable))

    basic_allowance = _num(parameters.get("basic_allowance"))
    municipal_rate = _num(parameters.get("municipal_rate"))
    state_threshold = _num(parameters.get("state_threshold"))
    state_rate = _num(parameters.get("state_rate"))

    gross_annual = max(0.0, income + basic_allowance)

    municipal = gross_annual * municipal_rate if municipal_rate > 0 else 0.0
    state = 0.0
    if state_rate > 0 and state_threshold > 0 and income > state_threshold:
        state = (income - state_threshold) * state_rate

    total = municipal + state - _job_credit(gross_annual, parameters)
    return total if math.isfinite(total) and total > 0 else 0.0


def default_registry() -> FormulaRegistry:
    """A registry holding every built-in formula."""
    registry = FormulaRegistry()
    registry.register(FormulaMethod.DE_ESTG_2026, de_estg_2026)
    registry.register(FormulaMethod.SE_JOB_CREDIT_2026, se_job_credit_2026)
    return registry
