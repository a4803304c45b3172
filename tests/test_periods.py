from datetime import date, datetime
from types import SimpleNamespace

import pandas as pd
import pytest

import smb_ledger.periods as periods


def test_filter_frame_by_period_inclusive_bounds() -> None:
    """filter_frame_by_period should keep records with dates in [start, end]."""
    df = pd.DataFrame(
        {
            "date": pd.to_datetime(
                ["2025-01-01", "2025-02-15", "2025-03-10", "2025-04-01", "2025-05-01"]
            ),
            "type": ["income", "income", "expense", "expense", "income"],
            "amount": [10.0, 20.0, 5.0, 15.0, 30.0],
        }
    )

    p = periods.Period(
        start=date(2025, 2, 1),
        end=date(2025, 4, 1),
        label="Test period",
    )

    filtered = periods.filter_frame_by_period(df, p)

    assert len(filtered) == 3
    assert filtered["date"].min() == pd.Timestamp("2025-02-15")
    assert filtered["date"].max() == pd.Timestamp("2025-04-01")


@pytest.mark.parametrize(
    "token, expected_start, expected_end",
    [
        ("current-month", date(2024, 5, 1), date(2024, 5, 20)),
        ("last-month", date(2024, 4, 1), date(2024, 4, 30)),
        ("current-quarter", date(2024, 4, 1), date(2024, 5, 20)),
        ("current-year", date(2024, 1, 1), date(2024, 5, 20)),
        ("last-year", date(2023, 1, 1), date(2023, 12, 31)),
    ],
)
def test_resolve_period_named_tokens(token, expected_start, expected_end) -> None:
    p = periods.resolve_period(token, now=date(2024, 5, 20))
    assert (p.start, p.end) == (expected_start, expected_end)


def test_last_month_in_january_wraps_to_previous_december() -> None:
    p = periods.resolve_period("last-month", now=date(2024, 1, 10))
    assert p.start == date(2023, 12, 1)
    assert p.end == date(2023, 12, 31)


def test_last_month_handles_leap_february() -> None:
    p = periods.resolve_period("last-month", now=date(2024, 3, 5))
    assert p.end == date(2024, 2, 29)


def test_current_quarter_boundaries() -> None:
    """Quarters start in January, April, July and October."""
    assert periods.resolve_period("current-quarter", now=date(2024, 3, 31)).start == (
        date(2024, 1, 1)
    )
    assert periods.resolve_period("current-quarter", now=date(2024, 7, 1)).start == (
        date(2024, 7, 1)
    )
    assert periods.resolve_period("current-quarter", now=date(2024, 12, 31)).start == (
        date(2024, 10, 1)
    )


def test_resolve_period_accepts_datetime_now() -> None:
    p = periods.resolve_period("current-month", now=datetime(2024, 5, 20, 15, 30))
    assert p.end == date(2024, 5, 20)


def test_custom_period_uses_bounds_verbatim() -> None:
    p = periods.resolve_period(
        "custom", custom_start=date(2024, 1, 1), custom_end=date(2024, 3, 31)
    )
    assert p.start == date(2024, 1, 1)
    assert p.end == date(2024, 3, 31)
    assert p.label == "2024-01-01 to 2024-03-31"


def test_custom_period_requires_both_bounds() -> None:
    with pytest.raises(ValueError):
        periods.resolve_period("custom", custom_start=date(2024, 1, 1))


def test_unknown_token_raises() -> None:
    with pytest.raises(ValueError):
        periods.resolve_period("next-decade", now=date(2024, 1, 1))


def test_determine_period_prefers_explicit_dates() -> None:
    args = SimpleNamespace(
        period="last-year", from_date="2024-02-01", to_date="2024-02-29"
    )
    p = periods.determine_period_from_args(args)
    assert p.start == date(2024, 2, 1)
    assert p.end == date(2024, 2, 29)


def test_determine_period_requires_both_dates() -> None:
    args = SimpleNamespace(period=None, from_date="2024-02-01", to_date=None)
    with pytest.raises(ValueError):
        periods.determine_period_from_args(args)


def test_determine_period_falls_back_to_default(monkeypatch) -> None:
    monkeypatch.setattr(periods, "_today", lambda: date(2024, 5, 20))
    args = SimpleNamespace(period=None, from_date=None, to_date=None)
    p = periods.determine_period_from_args(args, default_token="last-year")
    assert p.start == date(2023, 1, 1)


def test_previous_interval_has_same_inclusive_length() -> None:
    p = periods.Period(date(2024, 3, 1), date(2024, 3, 31), "March")
    prev = periods.previous_interval(p)
    assert prev is not None
    assert prev.end == date(2024, 2, 29)
    assert prev.start == date(2024, 1, 30)
    assert (prev.end - prev.start).days == (p.end - p.start).days


def test_previous_interval_of_single_day() -> None:
    p = periods.Period(date(2024, 3, 1), date(2024, 3, 1), "One day")
    prev = periods.previous_interval(p)
    assert prev is not None
    assert prev.start == prev.end == date(2024, 2, 29)


def test_previous_interval_of_inverted_period_is_none() -> None:
    p = periods.Period(date(2024, 3, 31), date(2024, 3, 1), "Inverted")
    assert periods.previous_interval(p) is None
