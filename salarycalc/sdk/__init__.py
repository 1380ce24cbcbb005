"""Salary Calc SDK - Rule resolution and gross-to-net computation."""

from .config import (
    get_config_dir,
    get_settings_path,
    get_profile_path,
    load_settings,
    save_settings,
    get_setting,
    set_setting,
    clear_setting,
    load_profile,
    save_profile,
    set_profile_value,
    ProfileDefaults,
    ProfileValidationError,
    get_rules_base,
    get_diagnostics,
    make_repository,
)

from .errors import (
    SalaryCalcError,
    RulesError,
    RuleNotFound,
    YearRulesNotFound,
    InvalidTaxClass,
    NoRegionSelected,
    TaxClassNoEffect,
    EngineError,
    MissingTaxContext,
    CalcModeMismatch,
    MissingIncomeTaxRules,
    FormulaMissing,
    FormulaExecutionError,
    FormulaInvalidResult,
    NoSalary,
    InvalidSalary,
    FormulaParameterError,
    error_summary,
)

from .rules import (
    RuleRepository,
    CalcMode,
    TaxContext,
    build_tax_context,
    lint_tax_classes,
)

from .engine import (
    Breakdown,
    SalaryResult,
    compute_salary,
    compute_salary_with_context,
)

__all__ = [
    # Config
    "get_config_dir",
    "get_settings_path",
    "get_profile_path",
    "load_settings",
    "save_settings",
    "get_setting",
    "set_setting",
    "clear_setting",
    "load_profile",
    "save_profile",
    "set_profile_value",
    "ProfileDefaults",
    "ProfileValidationError",
    "get_rules_base",
    "get_diagnostics",
    "make_repository",
    # Errors
    "SalaryCalcError",
    "RulesError",
    "RuleNotFound",
    "YearRulesNotFound",
    "InvalidTaxClass",
    "NoRegionSelected",
    "TaxClassNoEffect",
    "EngineError",
    "MissingTaxContext",
    "CalcModeMismatch",
    "MissingIncomeTaxRules",
    "FormulaMissing",
    "FormulaExecutionError",
    "FormulaInvalidResult",
    "NoSalary",
    "InvalidSalary",
    "FormulaParameterError",
    "error_summary",
    # Rules
    "RuleRepository",
    "CalcMode",
    "TaxContext",
    "build_tax_context",
    "lint_tax_classes",
    # Engine
    "Breakdown",
    "SalaryResult",
    "compute_salary",
    "compute_salary_with_context",
]
