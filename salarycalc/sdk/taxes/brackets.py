"""Bracket ladder parsing shared by income tax and contribution schedules."""

import math
from collections.abc import Mapping

from ..errors import EngineError

INFINITY = float("inf")


def bracket_terms(bracket: Mapping) -> tuple[float, float]:
    """(upper limit, rate) of one bracket; ``up_to`` None means unbounded.

    Raises:
        EngineError: cause=invalid_brackets when either value is not a number
    """
    up_to = bracket.get("up_to")
    rate = bracket.get("rate")
    try:
        upper = INFINITY if up_to is None else float(up_to)
        value = 0.0 if rate is None else float(rate)
    except (TypeError, ValueError):
        raise EngineError(details={"cause": "invalid_brackets", "bracket": dict(bracket)}) from None
    if math.isnan(upper) or not math.isfinite(value):
        raise EngineError(details={"cause": "invalid_brackets", "bracket": dict(bracket)})
    return upper, value
