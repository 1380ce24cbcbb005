"""Row tables for rendering a SalaryResult.

Pure restructuring of already-rounded figures: every row has a ``key``, a
translatable ``label_key`` (fixed rows) or a document ``label``
(contribution rows), and ``month``/``year`` amounts.
"""

from typing import Any


def _row(key: str, label_key: str, month: float, year: float) -> dict[str, Any]:
    return {"key": key, "label_key": label_key, "month": month, "year": year}


def build_output_tables(annual, monthly, contribution_labels: dict) -> dict[str, Any]:
    """Build summary, taxes, contribution and net/TCO tables.

    Args:
        annual: Breakdown of annual figures
        monthly: Breakdown of monthly figures
        contribution_labels: scheme id -> label from the rule document
    """
    summary = [
        _row("gross", "output.gross.label", monthly.gross, annual.gross),
        _row("benefits", "output.benefits.label", monthly.benefits, annual.benefits),
    ]

    taxes = [
        _row("income_tax", "output.taxes.income", monthly.income_tax_total, annual.income_tax_total),
        _row("other_taxes", "output.taxes.other", monthly.other_taxes_total, annual.other_taxes_total),
        _row("taxes_total", "output.taxes.total", monthly.taxes_total, annual.taxes_total),
    ]

    employee_rows = [
        {
            "key": scheme_id,
            "label": contribution_labels.get(scheme_id, scheme_id),
            "month": monthly.employee_contrib_by_id.get(scheme_id, 0.0),
            "year": amount,
        }
        for scheme_id, amount in annual.employee_contrib_by_id.items()
    ]
    employer_rows = [
        {
            "key": scheme_id,
            "label": contribution_labels.get(scheme_id, scheme_id),
            "month": monthly.employer_contrib_by_id.get(scheme_id, 0.0),
            "year": amount,
        }
        for scheme_id, amount in annual.employer_contrib_by_id.items()
    ]

    net_and_tco = [
        _row("net", "output.net.label", monthly.net, annual.net),
        _row("tco", "output.tco.label", monthly.tco, annual.tco),
    ]

    return {
        "summary": summary,
        "taxes": taxes,
        "employee_contributions": {
            "rows": employee_rows,
            "totals": [_row("employee_total", "output.contrib.totalEmployee",
                            monthly.employee_contrib_total, annual.employee_contrib_total)],
        },
        "employer_contributions": {
            "rows": employer_rows,
            "totals": [_row("employer_total", "output.contrib.totalEmployer",
                            monthly.employer_contrib_total, annual.employer_contrib_total)],
        },
        "net_and_tco": net_and_tco,
    }
