# SMB Ledger - Accounting Dashboard & Reporting engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.


"""
Zero-safe ratios and KPIs for SMB Ledger.

This module complements the aggregation engine (engine.py) by providing:

1. Safe arithmetic
   ---------------
   Every ratio computed by the application goes through one of:
       safe_divide(numerator, denominator)
       safe_percentage(part, whole)
       growth_rate(current, previous)
   A zero (or non-finite) denominator yields 0.0, and results are always
   finite: degenerate ratios are never an error.

2. KPIs
   ----
   The analytics report exposes a fixed list of key indicators (total
   income, total expenses, net profit, profit margin, transaction count,
   average transaction value, income growth). They are built by:
       build_kpis(totals, income_growth)
   which returns a list of KpiResult objects carrying a unit hint
   ('amount', 'percent', 'count') so that the presentation layer can format
   them without knowing each key.
"""

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .engine import Totals


@dataclass(frozen=True)
class KpiResult:
    """
    Computed KPI as returned by this module.

    Attributes:
        key: Internal identifier (e.g. 'profit_margin').
        label: Human-readable label for display (e.g. 'Profit Margin').
        value: Numeric value (always finite).
        unit: Unit hint ('amount', 'percent', 'count').
    """

    key: str
    label: str
    value: float
    unit: str


def _finite(value: float) -> float:
    return value if math.isfinite(value) else 0.0


def safe_divide(numerator: float, denominator: float) -> float:
    """Return numerator / denominator, or 0.0 when the denominator is 0."""
    if denominator == 0 or not math.isfinite(denominator):
        return 0.0
    return _finite(numerator / denominator)


def safe_percentage(part: float, whole: float) -> float:
    """Return part / whole * 100, or 0.0 when `whole` is 0."""
    return _finite(safe_divide(part, whole) * 100.0)


def growth_rate(current: float, previous: float) -> float:
    """
    Return the growth of `current` over `previous` in percent.

    0.0 when there is no previous base to compare with.
    """
    return safe_percentage(current - previous, previous)


def build_kpis(totals: "Totals", income_growth: float) -> list[KpiResult]:
    """Build the list of analytics KPIs from period totals and growth."""
    return [
        KpiResult("total_income", "Total Income", totals.total_income, "amount"),
        KpiResult("total_expenses", "Total Expenses", totals.total_expenses, "amount"),
        KpiResult("net_profit", "Net Profit", totals.net_profit, "amount"),
        KpiResult("profit_margin", "Profit Margin", totals.profit_margin, "percent"),
        KpiResult(
            "transaction_count",
            "Transaction Count",
            float(totals.transaction_count),
            "count",
        ),
        KpiResult(
            "average_transaction_value",
            "Average Transaction Value",
            totals.average_transaction_value,
            "amount",
        ),
        KpiResult("income_growth", "Income Growth", income_growth, "percent"),
    ]
