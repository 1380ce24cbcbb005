"""Currency rounding.

One rounding mode per year block, applied when an amount is finalised
(a schedule's tax, a levy, a reported total), never on intermediate sums.

Modes:
- nearest_cent: half-up at the currency's decimals (default)
- up: toward +infinity
- down: toward -infinity
"""

import math
from dataclasses import dataclass
from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Mapping, Optional

from pydantic import ValidationError

from ..errors import EngineError
from ..rules.schemas import CalculationFlags


ROUNDING_MODES = {
    "nearest_cent": ROUND_HALF_UP,
    "up": ROUND_CEILING,
    "down": ROUND_FLOOR,
}


@dataclass(frozen=True)
class RoundingPolicy:
    """Decimals + mode for finalising currency amounts."""

    decimals: int = 2
    mode: str = "nearest_cent"

    @classmethod
    def from_flags(cls, flags: Optional[Mapping]) -> "RoundingPolicy":
        """Build a policy from a calculation_flags block.

        Raises:
            EngineError: If the flags name an unknown mode or bad decimals
        """
        try:
            parsed = CalculationFlags.model_validate(dict(flags or {}))
        except ValidationError as e:
            raise EngineError(details={
                "cause": "invalid_calculation_flags",
                "flags": dict(flags or {}),
                "originalError": str(e),
            }) from e
        return cls(decimals=parsed.currency_decimals, mode=parsed.rounding_mode)

    def with_mode(self, mode: Optional[str]) -> "RoundingPolicy":
        """Same decimals, different mode (None keeps this policy)."""
        if not mode or mode == self.mode:
            return self
        return RoundingPolicy(decimals=self.decimals, mode=mode)

    def round(self, value: float) -> float:
        """Round a finished amount.

        Raises:
            EngineError: For non-finite values or an unknown mode
        """
        return round_currency(value, self.decimals, self.mode)


def round_currency(value: float, decimals: int = 2, mode: str = "nearest_cent") -> float:
    """Round ``value`` to ``decimals`` places using ``mode``.

    Goes through the shortest decimal repr of the float, so 2.675 rounds to
    2.68 under nearest_cent (binary floats would give 2.67).

    Raises:
        EngineError: cause=invalid_numeric_result for NaN/inf, or
            cause=invalid_rounding_mode for an unknown mode
    """
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise EngineError(details={"cause": "invalid_numeric_result", "value": repr(value)}) from e
    if not math.isfinite(number):
        raise EngineError(details={"cause": "invalid_numeric_result", "value": repr(value)})

    rounding = ROUNDING_MODES.get(mode)
    if rounding is None:
        raise EngineError(details={"cause": "invalid_rounding_mode", "mode": mode})

    quantum = Decimal(1).scaleb(-int(decimals))
    rounded = Decimal(repr(number)).quantize(quantum, rounding=rounding)
    result = float(rounded)
    return 0.0 if result == 0 else result  # no -0.0
