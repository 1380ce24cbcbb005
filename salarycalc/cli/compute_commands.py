"""Compute CLI command for Salary Calc.

Runs the gross-to-net pipeline for one salary and renders the result.
"""

import asyncio
import datetime
import json

import click
from rich.console import Console

from salarycalc.sdk import (
    ProfileValidationError,
    SalaryCalcError,
    compute_salary_with_context,
    get_diagnostics,
    load_profile,
    make_repository,
)
from .renderers.result_renderer import render_result

# Global sanity cap on salary and benefits input
MAX_INPUT_AMOUNT = 1_000_000


def describe_error(error: SalaryCalcError) -> str:
    """One-line message for an SDK error: key plus cause and identifying details."""
    parts = [error.i18n_key]
    if error.cause:
        parts.append(f"cause={error.cause}")
    for key in ("countryCode", "country", "year", "taxClass", "region", "status", "method"):
        if error.details.get(key) is not None:
            parts.append(f"{key}={error.details[key]}")
    return " ".join(parts)


@click.command("compute")
@click.argument("country")
@click.argument("amount", type=float)
@click.option("--year", type=int, help="Tax year (default: profile year, else current year)")
@click.option("--period", type=click.Choice(["monthly", "yearly"]), help="Whether AMOUNT is monthly or yearly gross")
@click.option("--tax-class", help="Tax class (required for countries with tax classes, e.g. DE)")
@click.option("--region", help="Region (for countries with regional schedules, e.g. ES)")
@click.option("--children", type=click.IntRange(min=0), help="Number of dependent children")
@click.option("--months", type=float, help="Salaries per year (countries with 13th/14th salary)")
@click.option("--benefits", type=float, default=0.0, help="Annual non-cash benefits (reported only)")
@click.option("--format", "output_format", type=click.Choice(["table", "json"]), default="table",
              help="Output format (default: table)")
def compute(country, amount, year, period, tax_class, region, children, months, benefits, output_format):
    """Compute net salary and employer cost for COUNTRY and gross AMOUNT.

    Options not given on the command line fall back to profile.yaml.

    Examples:
        salary-calc compute DE 4500 --tax-class I
        salary-calc compute ES 42000 --period yearly --region catalonia
        salary-calc compute AT 3000 --months 14 --format json
    """
    try:
        profile = load_profile()
    except ProfileValidationError as e:
        raise click.ClickException(str(e))

    if amount < 0 or amount > MAX_INPUT_AMOUNT:
        raise click.BadParameter(f"must be between 0 and {MAX_INPUT_AMOUNT:,}", param_hint="AMOUNT")
    if benefits < 0 or benefits > MAX_INPUT_AMOUNT:
        raise click.BadParameter(f"must be between 0 and {MAX_INPUT_AMOUNT:,}", param_hint="--benefits")

    mode, strict = get_diagnostics()

    try:
        result = asyncio.run(compute_salary_with_context(
            make_repository(),
            country_code=country,
            year=year or profile.year or datetime.date.today().year,
            salary_amount=amount,
            salary_period=period or profile.salary_period,
            region=region or profile.region,
            tax_class=tax_class or profile.tax_class,
            children_count=children if children is not None else profile.children_count,
            benefits_annual=benefits,
            salary_months=months if months is not None else profile.salary_months,
            diagnostics=mode,
            strict=strict,
        ))
    except SalaryCalcError as e:
        raise click.ClickException(describe_error(e))

    if output_format == "json":
        click.echo(json.dumps(result.to_dict(), indent=2, default=str))
        return

    render_result(Console(), result)
