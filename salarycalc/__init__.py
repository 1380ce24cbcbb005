"""Salary Calc - Gross-to-net salary and employer cost estimates."""

__version__ = "0.1.0"
