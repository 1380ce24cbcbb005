"""Tax context resolution.

Turns (country, year, modifiers) into a TaxContext: the read-only snapshot
of every rule block the engine needs for one computation.

Resolution order:
1. Load the country document and pick the year block
2. Apply tax class overrides (years that define ``tax_classes``)
3. Resolve the national + regional schedule pair (years that define ``regions``)
4. Derive the CalcMode fingerprint
"""

import copy
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, Optional

from ..errors import InvalidTaxClass, NoRegionSelected, RulesError, YearRulesNotFound
from .lint import TaxClassFinding, income_tax_unchanged, report_findings
from .merge import apply_tax_class
from .repository import RuleRepository

logger = logging.getLogger(__name__)


DUAL_SCHEDULE_METHOD = "dual_schedule"

Diagnostics = Literal["runtime", "load", "off"]


@dataclass(frozen=True)
class CalcMode:
    """Fingerprint of the resolved computation path.

    Checked by compute_salary against the context it travels with, so a
    context whose country/year/class were swapped after resolution is
    rejected instead of computed.
    """

    country_code: str
    year: str
    tax_class: Optional[str]
    method: str


@dataclass(frozen=True)
class RegionIncomeTax:
    """National and regional income tax schedules for one region."""

    region: str
    national: Optional[dict]
    regional: Optional[dict]


@dataclass(frozen=True)
class TaxContext:
    """Fully resolved rules and user modifiers for one computation."""

    country_code: str
    year: str
    year_rules: dict
    calc_mode: Optional[CalcMode]
    country_name: Optional[str] = None
    currency: Optional[str] = None
    region: Optional[str] = None
    tax_class: Optional[str] = None
    income_tax: Optional[dict] = None
    region_tax: Optional[RegionIncomeTax] = None
    social_contributions: dict = field(default_factory=dict)
    other_taxes: dict = field(default_factory=dict)
    calculation_flags: dict = field(default_factory=dict)
    children_count: int = 0
    disclaimers: tuple = ()
    notes: tuple = ()

    @property
    def is_dual_schedule(self) -> bool:
        return self.region_tax is not None

    @property
    def tax_classes(self) -> Mapping:
        """The year's tax class map (empty when the year has none)."""
        classes = self.year_rules.get("tax_classes")
        return classes if isinstance(classes, Mapping) else {}


def resolve_year_rules(document: Mapping, year: Any) -> dict:
    """Pick the YearRules block for a year from a country document.

    Raises:
        YearRulesNotFound: If the document has no block for str(year)
    """
    year_key = str(year)
    year_rules = (document.get("years") or {}).get(year_key)
    if not year_rules:
        raise YearRulesNotFound(details={
            "country": document.get("country"),
            "year": year_key,
        })
    return year_rules


def resolve_region_income_tax(year_rules: Mapping, region: Optional[str]) -> RegionIncomeTax:
    """Resolve the national + regional schedules for a region.

    Falls back to the year's ``default_region`` when no region is given.

    Raises:
        NoRegionSelected: If neither is set, or the key is not a known region
    """
    regions = year_rules.get("regions") or {}
    region_key = region or year_rules.get("default_region")

    if not region_key or region_key not in regions:
        raise NoRegionSelected(details={"region": region})

    income_tax = (regions[region_key] or {}).get("income_tax") or {}
    return RegionIncomeTax(
        region=region_key,
        national=income_tax.get("national"),
        regional=income_tax.get("regional"),
    )


def derive_method(income_tax: Optional[Mapping], dual_schedule: bool) -> str:
    """Name the computation method recorded in CalcMode."""
    if income_tax:
        formula = income_tax.get("formula") or {}
        if income_tax.get("type") == "formula" and formula.get("method"):
            return str(formula["method"])
        return str(income_tax.get("type") or "unknown")
    if dual_schedule:
        return DUAL_SCHEDULE_METHOD
    return "none"


def _normalise_class(tax_class: Any) -> Optional[str]:
    if tax_class is None:
        return None
    raw = str(tax_class).strip().upper()
    return raw or None


def parse_children_count(value: Any) -> int:
    """Children count as a non-negative int (blank means 0).

    Raises:
        RulesError: cause=invalid_children_count for non-integer input
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0
    try:
        count = int(value)
    except (TypeError, ValueError, OverflowError):
        raise RulesError(details={"cause": "invalid_children_count", "childrenCount": repr(value)}) from None
    return max(0, count)


async def build_tax_context(
    repository: RuleRepository,
    *,
    country_code: str,
    year: Any,
    region: Optional[str] = None,
    tax_class: Optional[str] = None,
    children_count: Any = 0,
    diagnostics: Diagnostics = "runtime",
    strict: bool = False,
) -> TaxContext:
    """Load rules and resolve a TaxContext.

    Args:
        repository: Source of country rule documents
        country_code: Country code (case-insensitive)
        year: Tax year (int or str)
        region: Region key for dual-schedule jurisdictions
        tax_class: Tax class selector for jurisdictions with class overrides
        children_count: Number of dependent children
        diagnostics: "runtime" checks that the selected tax class changes
            income tax; "load"/"off" skip the per-request check
        strict: Raise TaxClassNoEffect instead of logging a warning

    Raises:
        RulesError subclasses: see RuleRepository.load, resolve_year_rules,
            InvalidTaxClass, NoRegionSelected, TaxClassNoEffect
    """
    code = str(country_code or "").upper()
    year_key = str(year)
    children = parse_children_count(children_count)

    document = await repository.load(code)
    year_rules = resolve_year_rules(document, year_key)

    base_income_tax = year_rules.get("income_tax")
    income_tax = base_income_tax
    social_contributions = year_rules.get("social_contributions") or {}
    other_taxes = year_rules.get("other_taxes") or {}

    selected_class = _normalise_class(tax_class)
    tax_classes = year_rules.get("tax_classes")

    if isinstance(tax_classes, Mapping) and tax_classes:
        if not selected_class:
            raise InvalidTaxClass(details={
                "country": code,
                "year": year_key,
                "taxClass": None,
                "cause": "missing_tax_class_required",
            })
        if selected_class not in tax_classes:
            raise InvalidTaxClass(details={
                "country": code,
                "year": year_key,
                "taxClass": selected_class,
            })

        effective = apply_tax_class(year_rules, tax_classes[selected_class] or {})
        income_tax = effective["income_tax"]
        social_contributions = effective["social_contributions"]
        other_taxes = effective["other_taxes"]

        if diagnostics == "runtime" and income_tax_unchanged(base_income_tax, income_tax):
            report_findings(
                [TaxClassFinding(country=code, year=year_key, tax_class=selected_class)],
                strict=strict,
            )
    elif selected_class:
        logger.debug(f"{code} {year_key} has no tax classes; ignoring tax class {selected_class}")
        selected_class = None

    region_tax = None
    if year_rules.get("regions"):
        region_tax = resolve_region_income_tax(year_rules, region)
        # Top-level income_tax only carries allowances/credits here
        income_tax = None

    calc_mode = CalcMode(
        country_code=code,
        year=year_key,
        tax_class=selected_class,
        method=derive_method(income_tax, dual_schedule=region_tax is not None),
    )
    logger.debug(f"resolved {calc_mode}")

    flags = year_rules.get("calculation_flags") or {}
    disclaimers = year_rules.get("disclaimers")
    notes = year_rules.get("notes")

    return TaxContext(
        country_code=code,
        country_name=document.get("name"),
        currency=document.get("currency"),
        year=year_key,
        region=region_tax.region if region_tax else None,
        tax_class=selected_class,
        year_rules=copy.deepcopy(year_rules),
        income_tax=copy.deepcopy(income_tax),
        region_tax=copy.deepcopy(region_tax),
        social_contributions=copy.deepcopy(social_contributions),
        other_taxes=copy.deepcopy(other_taxes),
        calculation_flags=dict(flags),
        children_count=children,
        disclaimers=tuple(disclaimers) if isinstance(disclaimers, list) else (),
        notes=tuple(notes) if isinstance(notes, list) else (),
        calc_mode=calc_mode,
    )
