"""Tax class diagnostics.

A tax class is expected to change the income tax rules it is merged onto.
When the merged rules are structurally identical to the base, selecting the
class has no observable effect on income tax, which almost always means the
override was misspelled or placed in the wrong block.

The check can run once per document (repository load, ``rules lint``) or on
every context build; see build_tax_context's ``diagnostics`` argument.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ..errors import TaxClassNoEffect
from .merge import apply_tax_class

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaxClassFinding:
    """A tax class whose overrides leave income tax unchanged."""

    country: Optional[str]
    year: str
    tax_class: str

    @property
    def message(self) -> str:
        return f"[{self.country or '?'} {self.year}] tax class {self.tax_class} did not change income tax rules"


def _signature(value: Any) -> str:
    return json.dumps(value or {}, sort_keys=True, default=str)


def income_tax_unchanged(base_income_tax: Optional[Mapping], effective_income_tax: Optional[Mapping]) -> bool:
    """True when the effective income tax rules equal the base rules."""
    return _signature(base_income_tax) == _signature(effective_income_tax)


def lint_tax_classes(document: Mapping, country_code: Optional[str] = None) -> list[TaxClassFinding]:
    """Check every year and tax class in a rule document.

    Args:
        document: Parsed country rule document
        country_code: Code to report findings under (defaults to document["country"])

    Returns:
        One finding per class with no income tax effect (empty when clean)
    """
    country = country_code or document.get("country")
    findings = []

    for year_key, year_rules in (document.get("years") or {}).items():
        tax_classes = year_rules.get("tax_classes") if isinstance(year_rules, Mapping) else None
        if not isinstance(tax_classes, Mapping):
            continue
        for class_key, overrides in tax_classes.items():
            effective = apply_tax_class(year_rules, overrides or {})
            if income_tax_unchanged(year_rules.get("income_tax"), effective["income_tax"]):
                findings.append(TaxClassFinding(country=country, year=str(year_key), tax_class=str(class_key)))

    return findings


def report_findings(findings: list[TaxClassFinding], strict: bool = False) -> None:
    """Log findings as warnings, or raise on the first one when strict.

    Raises:
        TaxClassNoEffect: If strict and there is at least one finding
    """
    for finding in findings:
        if strict:
            raise TaxClassNoEffect(details={
                "cause": "tax_class_no_effect",
                "country": finding.country,
                "year": finding.year,
                "taxClass": finding.tax_class,
            })
        logger.warning(finding.message)
