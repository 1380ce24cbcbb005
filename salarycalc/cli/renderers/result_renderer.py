"""Rich renderer for salary results.

Transforms SalaryResult tables into formatted Rich tables.
"""

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table


LABELS = {
    "output.gross.label": "Gross salary",
    "output.benefits.label": "Benefits in kind",
    "output.taxes.income": "Income tax",
    "output.taxes.other": "Other taxes",
    "output.taxes.total": "Taxes total",
    "output.contrib.totalEmployee": "Employee contributions total",
    "output.contrib.totalEmployer": "Employer contributions total",
    "output.net.label": "Net salary",
    "output.tco.label": "Total cost to employer",
}


def _fmt(amount: float | None, currency: str | None = None, decimals: int = 2) -> str:
    """Format currency amount with the document's decimals."""
    if amount is None:
        return "-"
    text = f"{amount:,.{decimals}f}"
    if currency:
        return f"{text} {currency}"
    return text


def _label(row: dict) -> str:
    if "label" in row:
        return row["label"]
    return LABELS.get(row.get("label_key"), row.get("key", ""))


def render_result(console: Console, result) -> None:
    """Render a SalaryResult as Rich tables.

    Args:
        console: Rich Console instance
        result: SalaryResult from compute_salary()
    """
    meta = result.meta
    currency = meta.get("currency")
    decimals = meta.get("currency_decimals", 2)

    _render_header(console, meta, result.tax_context.calc_mode)
    _render_breakdown(console, result.tables, currency, decimals)

    for disclaimer in meta.get("disclaimers") or []:
        console.print(Panel(f"[yellow]{disclaimer}[/yellow]", title="Note", border_style="yellow"))


def _render_header(console: Console, meta: dict, calc_mode) -> None:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("key", style="dim")
    table.add_column("value")

    table.add_row("Country", f"{meta.get('country_name') or meta['country_code']} ({meta['country_code']})")
    table.add_row("Year", str(meta.get("year")))
    if meta.get("region"):
        table.add_row("Region", meta["region"])
    if meta.get("tax_class"):
        table.add_row("Tax class", meta["tax_class"])
    if meta.get("salary_months"):
        table.add_row("Salaries per year", str(meta["salary_months"]))
    table.add_row("Method", calc_mode.method)
    table.add_row("Rounding", f"{meta.get('rounding_mode')} ({meta.get('currency_decimals')} decimals)")

    console.print(Panel(table, title="Calculation", border_style="dim"))


def _render_breakdown(console: Console, tables: dict, currency: str | None, decimals: int = 2) -> None:
    table = Table(title="Gross to net", box=box.ROUNDED)
    table.add_column("", style="bold", min_width=30)
    table.add_column("Month", justify="right", min_width=14)
    table.add_column("Year", justify="right", min_width=14)

    def add(rows, indent=""):
        for row in rows:
            table.add_row(
                f"{indent}{_label(row)}",
                _fmt(row["month"], currency, decimals),
                _fmt(row["year"], currency, decimals),
            )

    add(tables["summary"])
    table.add_row("", "", "")

    table.add_row("[bold]EMPLOYEE CONTRIBUTIONS[/bold]", "", "")
    add(tables["employee_contributions"]["rows"], "  ")
    add(tables["employee_contributions"]["totals"])
    table.add_row("", "", "")

    table.add_row("[bold]TAXES[/bold]", "", "")
    add(tables["taxes"], "  ")
    table.add_row("", "", "")

    table.add_row("[bold]EMPLOYER CONTRIBUTIONS[/bold]", "", "")
    add(tables["employer_contributions"]["rows"], "  ")
    add(tables["employer_contributions"]["totals"])
    table.add_row("", "", "")

    for row in tables["net_and_tco"]:
        amount_month = _fmt(row["month"], currency, decimals)
        amount_year = _fmt(row["year"], currency, decimals)
        if row["key"] == "net":
            amount_month = f"[green]{amount_month}[/green]"
            amount_year = f"[green]{amount_year}[/green]"
        table.add_row(_label(row), amount_month, amount_year)

    console.print(table)
