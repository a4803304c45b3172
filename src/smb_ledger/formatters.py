# SMB Ledger - Accounting Dashboard & Reporting engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Display formatting helpers for SMB Ledger.

Currency rounding is decided here and only here: report builders pass
amounts through `format_currency` for printable output and keep raw
numbers for spreadsheets.
"""

import re
from datetime import date, datetime
from typing import Union

import pandas as pd


def format_currency(amount: float, currency: str = "KES") -> str:
    """
    Format an amount with 2 decimals and comma grouping.

    Examples:
        1234.5   -> "KES 1,234.50"
        -500     -> "-KES 500.00"
    """
    value = round(float(amount), 2)
    sign = "-" if value < 0 else ""
    return f"{sign}{currency} {abs(value):,.2f}"


def format_percentage(value: float, decimals: int = 2) -> str:
    """66.6666 -> '66.67%'."""
    return f"{value:.{decimals}f}%"


def format_date(value: Union[date, datetime, pd.Timestamp, str]) -> str:
    """Format a date as '15 Jan 2024'. ISO strings are accepted."""
    if isinstance(value, str):
        value = date.fromisoformat(value)
    if isinstance(value, (datetime, pd.Timestamp)):
        value = value.date()
    return f"{value.day} {value.strftime('%b %Y')}"


def slugify_title(title: str) -> str:
    """'Petty Cash Report' -> 'petty_cash_report' (used for file names)."""
    slug = re.sub(r"\s+", "_", title.strip()).lower()
    return re.sub(r"[^a-z0-9_\-]", "", slug)
