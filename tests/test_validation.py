from datetime import date

import pytest

from smb_ledger.models import BalanceSheetItem, Budget, PettyCashEntry, Transaction
from smb_ledger.validation import (
    IMPORT_SCHEMAS,
    get_schema,
    import_tabular_text,
    normalize_rows,
    parse_date,
    parse_number,
    validate_for_schema,
    validate_rows,
)

TODAY = date(2024, 6, 1)


def test_parse_number_rejects_non_finite_and_garbage() -> None:
    assert parse_number("12.5") == 12.5
    assert parse_number("-3") == -3.0
    assert parse_number("abc") is None
    assert parse_number("nan") is None
    assert parse_number("inf") is None


def test_parse_date_accepts_iso_and_rejects_garbage() -> None:
    assert parse_date("2024-01-15") == date(2024, 1, 15)
    assert parse_date("not a date") is None
    assert parse_date("2024-02-30") is None


def test_validate_rows_collects_every_error() -> None:
    rows = [
        {"date": "2024-01-15", "category": "Events", "description": "a", "amount": "1"},
        {"date": "2024-01-16", "category": "", "description": "x", "amount": "abc"},
        {"date": "soon", "category": "Events", "description": "", "amount": "5"},
    ]

    result = validate_rows(
        rows,
        ("date", "category", "description", "amount"),
        non_negative_columns=("amount",),
    )

    assert not result.ok
    assert result.rows == []
    assert result.errors == [
        "Row 2: Missing category",
        "Row 2: Amount must be a valid number",
        "Row 3: Missing description",
        "Row 3: Invalid date format",
    ]


def test_validate_rows_rejects_negative_amount() -> None:
    result = validate_for_schema(
        IMPORT_SCHEMAS["expense"],
        [{"date": "2024-01-15", "category": "IT", "description": "x", "amount": "-5"}],
    )
    assert result.errors == ["Row 1: Amount must not be negative"]


def test_validate_rows_clean_batch_returns_rows() -> None:
    rows = [{"date": "2024-01-15", "amount": "10"}]
    result = validate_rows(rows, ("date", "amount"))
    assert result.ok
    assert result.rows == rows


def test_budget_schema_checks_period_and_dates() -> None:
    rows = [
        {
            "category": "IT Department",
            "budgeted_amount": "100",
            "period": "weekly",
            "start_date": "2024-01-40",
            "end_date": "2024-01-31",
        }
    ]

    result = validate_for_schema(get_schema("budget"), rows)

    assert result.errors == [
        "Row 1: Invalid start date format",
        "Row 1: Period must be one of monthly, quarterly, yearly",
    ]


def test_balance_sheet_schema_checks_category() -> None:
    rows = [
        {
            "category": "revenue",
            "subcategory": "Sales",
            "amount": "10",
            "date": "2024-01-01",
        }
    ]
    result = validate_for_schema(get_schema("balance-sheet"), rows)
    assert result.errors == [
        "Row 1: Category must be one of assets, liabilities, equity"
    ]


def test_get_schema_unknown_kind() -> None:
    with pytest.raises(ValueError):
        get_schema("payroll")


def test_normalize_income_rows_canonicalizes_category() -> None:
    rows = [
        {
            "date": "2024-01-15",
            "category": "advertisements",
            "description": "Ads",
            "amount": "15000",
        },
        {
            "date": "2024-01-16",
            "category": "Sponsorship",
            "description": "",
            "amount": "1",
        },
    ]

    records = normalize_rows("income", rows, user_id="u1", today=TODAY)

    assert records[0] == Transaction(
        id=None,
        user_id="u1",
        amount=15000.0,
        description="Ads",
        category="Advertisements",
        type="income",
        date=date(2024, 1, 15),
    )
    # Unknown categories are kept as typed.
    assert records[1].category == "Sponsorship"


def test_normalize_applies_defaults_for_blank_fields() -> None:
    expense = normalize_rows(
        "expense",
        [{"date": "", "category": "", "amount": "10"}],
        user_id=None,
        today=TODAY,
    )[0]
    assert expense.category == "Miscellaneous"
    assert expense.date == TODAY
    assert expense.description == ""

    income = normalize_rows("income", [{"amount": "10"}], user_id=None, today=TODAY)[0]
    assert income.category == "Other"


def test_normalize_petty_cash_type() -> None:
    rows = [
        {"date": "2024-01-15", "type": "WITHDRAW", "description": "x", "amount": "5"},
        {"date": "2024-01-15", "type": "top-up", "description": "y", "amount": "5"},
    ]

    records = normalize_rows("petty-cash", rows, user_id=None, today=TODAY)

    assert all(isinstance(r, PettyCashEntry) for r in records)
    assert [r.type for r in records] == ["withdraw", "add"]


def test_normalize_budget_derives_end_date() -> None:
    rows = [
        {
            "category": "IT Department",
            "budgeted_amount": "3000",
            "period": "Quarterly",
            "start_date": "2024-01-31",
            "end_date": "",
        }
    ]

    (budget,) = normalize_rows("budget", rows, user_id="u1", today=TODAY)

    assert isinstance(budget, Budget)
    assert budget.period == "quarterly"
    assert budget.end_date == date(2024, 4, 30)


def test_normalize_balance_sheet_lowercases_category() -> None:
    rows = [
        {
            "category": "Assets",
            "subcategory": "Equipment",
            "amount": "250000",
            "date": "2024-01-01",
        }
    ]
    (item,) = normalize_rows("balance-sheet", rows, user_id=None, today=TODAY)
    assert isinstance(item, BalanceSheetItem)
    assert item.category == "assets"


def test_import_tabular_text_happy_path() -> None:
    text = (
        "date;category;description;amount\n"
        "2024-01-15;Operations Department;Office supplies;5000\n"
        "2024-01-16;IT Department;Software licenses;12000\n"
    )

    preview = import_tabular_text("expense", text, user_id="u1", today=TODAY)

    assert preview.ok
    assert [r.amount for r in preview.records] == [5000.0, 12000.0]
    assert all(r.type == "expense" for r in preview.records)


def test_import_tabular_text_is_all_or_nothing() -> None:
    text = (
        "date,category,description,amount\n"
        "2024-01-15,Events,Good row,100\n"
        "2024-01-16,Events,Bad row,oops\n"
    )

    preview = import_tabular_text("income", text, user_id="u1", today=TODAY)

    assert not preview.ok
    assert preview.records == []
    assert preview.errors == ["Row 2: Amount must be a valid number"]


def test_import_tabular_text_without_data_rows() -> None:
    preview = import_tabular_text(
        "income", "date,category,description,amount\n", user_id=None, today=TODAY
    )
    assert preview.errors == ["No data rows found"]


def test_import_tabular_text_without_header_reports_missing_columns() -> None:
    preview = import_tabular_text(
        "income",
        "2024-01-15,Events,Row,100\n",
        user_id=None,
        today=TODAY,
        has_header_row=False,
    )
    assert "Row 1: Missing date" in preview.errors


def test_three_row_batch_with_missing_field_in_row_two() -> None:
    text = (
        "date,category,description,amount\n"
        "2024-01-15,IT Department,Cloud,100\n"
        "2024-01-16,IT Department,Laptop,\n"
        "2024-01-17,IT Department,Licenses,300\n"
    )

    preview = import_tabular_text("expense", text, user_id="u1", today=TODAY)

    assert preview.records == []
    assert preview.errors == ["Row 2: Missing amount"]


def test_budget_import_rejects_end_before_start() -> None:
    text = (
        "category,budgeted_amount,period,start_date,end_date\n"
        "IT Department,5000,monthly,2024-01-01,2024-01-31\n"
        "IT Department,5000,monthly,2024-03-31,2024-01-01\n"
    )

    preview = import_tabular_text("budget", text, user_id="u1", today=TODAY)

    assert preview.records == []
    assert preview.errors == ["Row 2: End date cannot be before start date"]


def test_budget_import_accepts_camel_case_headers() -> None:
    text = (
        "category,budgetedAmount,period,startDate,endDate\n"
        "Operations Department,50000,monthly,2024-01-01,2024-01-31\n"
    )

    preview = import_tabular_text("budget", text, user_id="u1", today=TODAY)

    assert preview.errors == []
    (budget,) = preview.records
    assert budget.budgeted_amount == 50000.0
    assert budget.start_date == date(2024, 1, 1)
    assert budget.end_date == date(2024, 1, 31)
