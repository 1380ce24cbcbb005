"""taxes - Numeric engines for income tax, contributions, credits and levies.

Scope:
- Income tax by rule type (progressive, flat, formula), dual national +
  regional schedules, special-payment preferential taxation
- Social contributions (flat, bracketed, tiered, capped, thresholded)
- Non-refundable tax credits, other levies
- Currency rounding policy

Constraints:
- Pure calculation - no rule loading, no I/O
- Receives rule blocks (plain dicts from rule documents), returns results
- Amounts are annual; monthly figures are derived by the orchestrator

Usage:
    from salarycalc.sdk.taxes import compute_by_rules, RoundingPolicy

    tax = compute_by_rules(42363, rules, RoundingPolicy())
"""

from .rounding import RoundingPolicy, round_currency

from .formulas import (
    FormulaContext,
    FormulaMethod,
    FormulaRegistry,
    default_registry,
)

from .contributions import (
    ContributionTotals,
    compute_contributions,
    merge_contributions,
    cap_ceilings,
    effective_base,
)

from .income_tax import (
    TaxAmount,
    DualScheduleTax,
    SpecialPaymentTax,
    IncomeTaxOutcome,
    compute_by_rules,
    compute_dual_schedule,
    compute_special_payment_tax,
)

from .credits import CreditTotals, compute_tax_credits

from .other_taxes import OtherTaxTotals, compute_other_taxes

__all__ = [
    # Rounding
    "RoundingPolicy",
    "round_currency",
    # Formulas
    "FormulaContext",
    "FormulaMethod",
    "FormulaRegistry",
    "default_registry",
    # Contributions
    "ContributionTotals",
    "compute_contributions",
    "merge_contributions",
    "cap_ceilings",
    "effective_base",
    # Income tax
    "TaxAmount",
    "DualScheduleTax",
    "SpecialPaymentTax",
    "IncomeTaxOutcome",
    "compute_by_rules",
    "compute_dual_schedule",
    "compute_special_payment_tax",
    # Credits and levies
    "CreditTotals",
    "compute_tax_credits",
    "OtherTaxTotals",
    "compute_other_taxes",
]
