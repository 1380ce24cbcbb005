"""Error types for rule resolution and salary computation.

Every error carries a symbolic ``i18n_key`` (the translatable message key a
UI looks up) and a ``details`` dict for diagnostics. The message text of the
exception is the key itself; callers should never parse it.

Two families:
- RulesError: loading rule documents and resolving a tax context
- EngineError: running the numeric pipeline over a resolved context
"""

from typing import Any, Optional


GENERIC_ERROR_KEY = "app.error.generic"


class SalaryCalcError(Exception):
    """Base class for all salary-calc failures."""

    default_key = GENERIC_ERROR_KEY

    def __init__(self, i18n_key: Optional[str] = None, details: Optional[dict] = None):
        self.i18n_key = i18n_key or self.default_key
        self.details = dict(details or {})
        super().__init__(self.i18n_key)

    @property
    def cause(self) -> Optional[str]:
        """Machine-readable cause, if the raiser recorded one."""
        return self.details.get("cause")

    def __str__(self) -> str:
        if self.details:
            return f"{self.i18n_key} {self.details}"
        return self.i18n_key


# =============================================================================
# Rule resolution
# =============================================================================


class RulesError(SalaryCalcError):
    """Raised when rules cannot be loaded or resolved."""
    pass


class RuleNotFound(RulesError):
    """Unsupported country, or its rule document could not be fetched/parsed."""

    default_key = "error.noCountryRules"


class YearRulesNotFound(RulesError):
    """The country document has no block for the requested year."""

    default_key = "error.noYearRules"


class InvalidTaxClass(RulesError):
    """Tax class missing where mandatory, or not defined for the year."""

    default_key = "error.invalidTaxClass"


class NoRegionSelected(RulesError):
    """Dual-schedule jurisdiction without a usable region selection."""

    default_key = "error.noRegionSelected"


class TaxClassNoEffect(RulesError):
    """A tax class override left the income tax rules unchanged (strict mode)."""
    pass


# =============================================================================
# Computation
# =============================================================================


class EngineError(SalaryCalcError):
    """Raised when the numeric pipeline cannot produce a result."""
    pass


class MissingTaxContext(EngineError):
    """compute_salary was called without a tax context."""
    pass


class CalcModeMismatch(EngineError):
    """The context's CalcMode does not match its own country/year/class."""
    pass


class MissingIncomeTaxRules(EngineError):
    """No income tax rules available for a schedule that must be computed."""
    pass


class FormulaMissing(EngineError):
    """Formula rules without a method, or a method with no implementation."""
    pass


class FormulaExecutionError(EngineError):
    """A formula implementation raised."""
    pass


class FormulaInvalidResult(EngineError):
    """A formula implementation returned a non-finite or negative amount."""
    pass


class NoSalary(EngineError):
    """No salary amount supplied."""

    default_key = "error.noSalary"


class InvalidSalary(EngineError):
    """Salary amount is not a finite, non-negative number."""

    default_key = "error.invalidSalary"


class FormulaParameterError(ValueError):
    """Raised by formula implementations for malformed parameters.

    Not a SalaryCalcError: the income tax engine wraps it (like any other
    exception from a formula) into FormulaExecutionError.
    """
    pass


def error_summary(error: SalaryCalcError) -> dict[str, Any]:
    """Flatten an error into a JSON-friendly dict for CLI/log output."""
    return {
        "error": type(error).__name__,
        "key": error.i18n_key,
        "details": {k: (v if isinstance(v, (str, int, float, bool, type(None))) else str(v))
                    for k, v in error.details.items()},
    }
