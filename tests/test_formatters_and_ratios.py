from datetime import date, datetime

import pandas as pd

from smb_ledger.engine import Totals
from smb_ledger.formatters import (
    format_currency,
    format_date,
    format_percentage,
    slugify_title,
)
from smb_ledger.ratios import build_kpis, growth_rate, safe_divide, safe_percentage


def test_format_currency_groups_thousands_and_rounds() -> None:
    assert format_currency(1234.5) == "KES 1,234.50"
    assert format_currency(0) == "KES 0.00"
    assert format_currency(1_000_000.005, "USD").startswith("USD 1,000,000.0")


def test_format_currency_negative_amount() -> None:
    assert format_currency(-500) == "-KES 500.00"


def test_format_percentage() -> None:
    assert format_percentage(66.6666) == "66.67%"
    assert format_percentage(50, 1) == "50.0%"


def test_format_date_accepts_several_inputs() -> None:
    assert format_date(date(2024, 1, 15)) == "15 Jan 2024"
    assert format_date("2024-01-05") == "5 Jan 2024"
    assert format_date(datetime(2024, 12, 31, 10, 0)) == "31 Dec 2024"
    assert format_date(pd.Timestamp("2024-02-29")) == "29 Feb 2024"


def test_slugify_title() -> None:
    assert slugify_title("Petty Cash Report") == "petty_cash_report"
    assert slugify_title("Profit & Loss Statement") == "profit__loss_statement"


def test_safe_divide_and_percentage_never_fail_on_zero() -> None:
    assert safe_divide(10, 0) == 0.0
    assert safe_percentage(10, 0) == 0.0
    assert safe_percentage(25, 200) == 12.5


def test_growth_rate() -> None:
    assert growth_rate(150, 100) == 50.0
    assert growth_rate(50, 100) == -50.0
    assert growth_rate(100, 0) == 0.0


def test_build_kpis_keys_and_units() -> None:
    totals = Totals(
        total_income=1000.0,
        total_expenses=400.0,
        net_profit=600.0,
        profit_margin=60.0,
        transaction_count=4,
        average_transaction_value=350.0,
    )

    kpis = build_kpis(totals, income_growth=12.5)

    assert [k.key for k in kpis] == [
        "total_income",
        "total_expenses",
        "net_profit",
        "profit_margin",
        "transaction_count",
        "average_transaction_value",
        "income_growth",
    ]
    by_key = {k.key: k for k in kpis}
    assert by_key["profit_margin"].unit == "percent"
    assert by_key["transaction_count"].value == 4.0
    assert by_key["transaction_count"].unit == "count"
    assert by_key["income_growth"].value == 12.5
