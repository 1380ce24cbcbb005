"""Rules CLI commands for Salary Calc.

Inspect and lint the country rule documents.
"""

import asyncio

import click
import yaml

from salarycalc.sdk import (
    SalaryCalcError,
    get_rules_base,
    lint_tax_classes,
    make_repository,
)
from salarycalc.sdk.rules import COUNTRY_FILE_MAP, report_findings
from .compute_commands import describe_error


def _load(country: str) -> dict:
    try:
        return asyncio.run(make_repository().load(country))
    except SalaryCalcError as e:
        raise click.ClickException(describe_error(e))


@click.group()
def rules():
    """Inspect country rule documents.

    Rule documents are read from (in order):

    \b
    1. SALARY_CALC_RULES_BASE environment variable
    2. settings.json 'rules_base' key
    3. Documents shipped with the package
    """
    pass


@rules.command("list")
def rules_list():
    """List supported countries and their rule files."""
    click.echo(f"Rules base: {get_rules_base()}")
    click.echo()
    for code in sorted(COUNTRY_FILE_MAP):
        click.echo(f"  {code}  {COUNTRY_FILE_MAP[code]}")


@rules.command("show")
@click.argument("country")
@click.option("--year", help="Only show this year")
def rules_show(country, year):
    """Show years, tax classes, regions and flags for COUNTRY."""
    document = _load(country)
    years = document.get("years") or {}

    if year is not None and str(year) not in years:
        raise click.ClickException(f"No rules for {country.upper()} {year}. Available: {', '.join(sorted(years))}")

    summary = {
        "country": document.get("country", country.upper()),
        "name": document.get("name"),
        "currency": document.get("currency"),
        "years": {},
    }
    for year_key, year_rules in years.items():
        if year is not None and year_key != str(year):
            continue
        income_tax = year_rules.get("income_tax") or {}
        summary["years"][year_key] = {
            "income_tax_type": income_tax.get("type", "regional" if year_rules.get("regions") else None),
            "tax_classes": sorted(year_rules.get("tax_classes") or {}),
            "regions": sorted(year_rules.get("regions") or {}),
            "default_region": year_rules.get("default_region"),
            "special_payments": bool((year_rules.get("special_payments") or {}).get("enabled")),
            "social_contributions": sorted(year_rules.get("social_contributions") or {}),
            "other_taxes": sorted(year_rules.get("other_taxes") or {}),
            "calculation_flags": year_rules.get("calculation_flags") or {},
        }

    click.echo(yaml.dump(summary, default_flow_style=False, sort_keys=False, allow_unicode=True))


@rules.command("lint")
@click.argument("country")
@click.option("--strict", is_flag=True, help="Exit with an error on the first finding")
def rules_lint(country, strict):
    """Check that every tax class of COUNTRY changes income tax."""
    document = _load(country)
    findings = lint_tax_classes(document, country_code=country.upper())

    if not findings:
        click.echo(click.style(f"{country.upper()}: no tax class findings.", fg="green"))
        return

    for finding in findings:
        click.echo(click.style(f"WARNING: {finding.message}", fg="yellow"))

    if strict:
        try:
            report_findings(findings, strict=True)
        except SalaryCalcError as e:
            raise click.ClickException(describe_error(e))
