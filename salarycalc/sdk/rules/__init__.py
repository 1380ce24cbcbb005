"""rules - Rule document loading and tax context resolution.

Scope:
- Fetch and cache one JSON rule document per country (RuleRepository)
- Pick a year block, apply tax class overrides, resolve regional schedules
- Build the immutable TaxContext + CalcMode consumed by the engine
- Tax class diagnostics (lint)

Usage:
    from salarycalc.sdk.rules import RuleRepository, build_tax_context

    repo = RuleRepository()
    ctx = await build_tax_context(repo, country_code="DE", year=2026, tax_class="I")
"""

from .merge import deep_merge, apply_tax_class

from .repository import (
    COUNTRY_FILE_MAP,
    RuleRepository,
    fetch_location,
    get_tax_rules_dir,
)

from .context import (
    CalcMode,
    RegionIncomeTax,
    TaxContext,
    build_tax_context,
    resolve_year_rules,
    resolve_region_income_tax,
)

from .lint import TaxClassFinding, lint_tax_classes, report_findings

__all__ = [
    "deep_merge",
    "apply_tax_class",
    "COUNTRY_FILE_MAP",
    "RuleRepository",
    "fetch_location",
    "get_tax_rules_dir",
    "CalcMode",
    "RegionIncomeTax",
    "TaxContext",
    "build_tax_context",
    "resolve_year_rules",
    "resolve_region_income_tax",
    "TaxClassFinding",
    "lint_tax_classes",
    "report_findings",
]
