"""Recursive merge of rule fragments."""

from collections.abc import Mapping
from typing import Any


def _is_mergeable(value: Any) -> bool:
    return isinstance(value, Mapping)


def deep_merge(base: Any, override: Any) -> Any:
    """Merge ``override`` onto ``base`` and return a new value.

    - Mappings on both sides merge key by key, recursively.
    - Lists and scalars on the override side replace the base value.
    - ``base`` is never mutated; untouched nested values are shared.
    - A None or empty-mapping override returns ``base``; a None base
      returns ``override``. Falsy scalars and empty lists still replace.

    Example:
        >>> deep_merge({"a": {"x": 1, "y": 2}}, {"a": {"y": 3}})
        {'a': {'x': 1, 'y': 3}}
    """
    if override is None or (_is_mergeable(override) and not override):
        return base
    if base is None:
        return override
    if not (_is_mergeable(base) and _is_mergeable(override)):
        return override

    result = dict(base)
    for key, ov in override.items():
        bv = result.get(key)
        if _is_mergeable(bv) and _is_mergeable(ov):
            result[key] = deep_merge(bv, ov)
        else:
            result[key] = ov
    return result


def apply_tax_class(year_rules: Mapping, class_overrides: Mapping) -> dict[str, Any]:
    """Merge one tax class's overrides onto a year's base blocks.

    Returns a dict with the effective ``income_tax``, ``social_contributions``
    and ``other_taxes`` blocks. A numeric ``taxable_income_adjustment`` on the
    class is injected into ``income_tax.formula.parameters`` for formula rules.
    """
    class_overrides = class_overrides or {}

    income_tax = deep_merge(year_rules.get("income_tax") or {}, class_overrides.get("income_tax") or {})

    formula = income_tax.get("formula") if income_tax.get("type") == "formula" else None
    if isinstance(formula, Mapping):
        if formula.get("parameters") is None:
            income_tax = deep_merge(income_tax, {"formula": {"parameters": {}}})
        adjustment = class_overrides.get("taxable_income_adjustment")
        if isinstance(adjustment, (int, float)) and not isinstance(adjustment, bool):
            income_tax = deep_merge(
                income_tax,
                {"formula": {"parameters": {"taxable_income_adjustment": adjustment}}},
            )

    return {
        "income_tax": income_tax,
        "social_contributions": deep_merge(
            year_rules.get("social_contributions") or {},
            class_overrides.get("social_contributions") or {},
        ),
        "other_taxes": deep_merge(
            year_rules.get("other_taxes") or {},
            class_overrides.get("other_taxes") or {},
        ),
    }
