# SMB Ledger - Accounting Dashboard & Reporting engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Period helpers for SMB Ledger.

This module defines a Period value object and helpers to derive
reporting periods (current/last month, current quarter, current/last year,
custom range) from a symbolic token and a reference "now".
"""

from calendar import monthrange
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Union

import pandas as pd

PERIOD_TOKENS: tuple[str, ...] = (
    "current-month",
    "last-month",
    "current-quarter",
    "current-year",
    "last-year",
    "custom",
)


@dataclass(frozen=True)
class Period:
    """Represents a reporting period with a human-readable label."""

    start: date
    end: date
    label: str


def _today() -> date:
    """Return today's date as a date object (isolated for easier testing)."""
    return datetime.today().date()


def _as_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def period_current_month(now: date) -> Period:
    """From the first day of the current month up to `now`."""
    return Period(start=now.replace(day=1), end=now, label="Current Month")


def period_last_month(now: date) -> Period:
    """Full previous calendar month."""
    if now.month == 1:
        year = now.year - 1
        month = 12
    else:
        year = now.year
        month = now.month - 1

    start = date(year, month, 1)
    end = date(year, month, monthrange(year, month)[1])
    return Period(start=start, end=end, label="Last Month")


def period_current_quarter(now: date) -> Period:
    """From the first day of the quarter containing `now` up to `now`."""
    quarter = (now.month - 1) // 3
    start = date(now.year, quarter * 3 + 1, 1)
    return Period(start=start, end=now, label="Current Quarter")


def period_current_year(now: date) -> Period:
    """Year-to-date: from 1 Jan up to `now`."""
    return Period(start=date(now.year, 1, 1), end=now, label="Current Year")


def period_last_year(now: date) -> Period:
    """Full previous calendar year."""
    prev_year = now.year - 1
    return Period(
        start=date(prev_year, 1, 1),
        end=date(prev_year, 12, 31),
        label="Last Year",
    )


def resolve_period(
    token: str,
    now: Union[date, datetime, None] = None,
    custom_start: Optional[date] = None,
    custom_end: Optional[date] = None,
) -> Period:
    """
    Map a period token and a reference "now" to a concrete Period.

    Supported tokens:

        current-month, last-month, current-quarter,
        current-year, last-year, custom

    Notes
    -----
    - `now` defaults to today; a datetime is reduced to its date part.
    - For `custom`, both bounds are used verbatim. No ordering check is
      made: an inverted range simply selects no records.

    Raises
    ------
    ValueError
        If the token is unknown, or a custom bound is missing.
    """
    today = _as_date(now) if now is not None else _today()

    if token == "current-month":
        return period_current_month(today)
    if token == "last-month":
        return period_last_month(today)
    if token == "current-quarter":
        return period_current_quarter(today)
    if token == "current-year":
        return period_current_year(today)
    if token == "last-year":
        return period_last_year(today)
    if token == "custom":
        if custom_start is None or custom_end is None:
            raise ValueError("A custom period requires both a start and an end date.")
        return Period(
            start=custom_start,
            end=custom_end,
            label=f"{custom_start.isoformat()} to {custom_end.isoformat()}",
        )
    raise ValueError(f"Unknown period: {token!r}")


def determine_period_from_args(args, default_token: str = "current-month") -> Period:
    """
    Determine the reporting period to use based on CLI args.

    Priority (highest to lowest):

        1. args.from_date / args.to_date (custom period, both required)
        2. args.period
        3. `default_token`
    """
    from_raw: Optional[str] = getattr(args, "from_date", None)
    to_raw: Optional[str] = getattr(args, "to_date", None)

    if from_raw or to_raw:
        if not (from_raw and to_raw):
            raise ValueError("Both --from-date and --to-date are required.")
        return resolve_period(
            "custom",
            custom_start=date.fromisoformat(from_raw),
            custom_end=date.fromisoformat(to_raw),
        )

    token = getattr(args, "period", None) or default_token
    return resolve_period(token)


def previous_interval(period: Period) -> Optional[Period]:
    """
    Return the interval of the same inclusive length ending the day before
    `period.start`.

    Returns None when the base interval is inverted (end before start).
    """
    if period.end < period.start:
        return None

    length = (period.end - period.start).days + 1
    prev_end = period.start - timedelta(days=1)
    prev_start = prev_end - timedelta(days=length - 1)
    return Period(
        start=prev_start,
        end=prev_end,
        label=f"{prev_start.isoformat()} to {prev_end.isoformat()}",
    )


def filter_frame_by_period(frame: pd.DataFrame, period: Period) -> pd.DataFrame:
    """
    Filter a records DataFrame to keep only rows within the period.

    The `frame` DataFrame is expected to contain a 'date' column of type
    datetime64[ns] (as produced by `models.transactions_to_frame`).

    Parameters
    ----------
    frame:
        DataFrame with at least a 'date' column.
    period:
        Period defining the [start, end] boundaries (inclusive).

    Returns
    -------
    pandas.DataFrame
        Filtered DataFrame containing only rows within the period.
    """
    mask = (frame["date"] >= pd.Timestamp(period.start)) & (
        frame["date"] <= pd.Timestamp(period.end)
    )
    return frame.loc[mask].copy()
