"""Pydantic schemas for rule document validation.

Only the outer shape of a country document is checked on load (it must be
an object with a ``years`` mapping). Year blocks stay raw dicts: their
shape varies per jurisdiction and the engines read them defensively.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class CountryRuleDocument(BaseModel):
    """Top-level rule document for one country."""
    model_config = ConfigDict(extra="allow")  # Unknown top-level keys are kept

    country: Optional[str] = Field(default=None, description="Country code, if the document states it")
    name: Optional[str] = Field(default=None, description="Display name")
    currency: Optional[str] = Field(default=None, description="ISO currency code")
    years: dict[str, dict[str, Any]] = Field(..., description="YearRules keyed by year string")


class CalculationFlags(BaseModel):
    """calculation_flags block of a YearRules entry."""
    model_config = ConfigDict(extra="ignore")

    rounding_mode: Literal["nearest_cent", "up", "down"] = "nearest_cent"
    currency_decimals: int = Field(default=2, ge=0, le=6)
