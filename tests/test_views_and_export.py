from datetime import date, datetime

import openpyxl
import pytest

from smb_ledger.config import CompanyInfo
from smb_ledger.engine import (
    balance_sheet_analysis,
    budget_analysis,
    cash_flow_statement,
    profit_and_loss,
)
from smb_ledger.export import (
    BACKUP_VERSION,
    build_import_template,
    export_report,
    read_backup,
    template_file_name,
    write_backup,
    write_import_template,
    write_pdf,
    write_xlsx,
)
from smb_ledger.models import (
    BalanceSheetItem,
    Budget,
    PettyCashEntry,
    Transaction,
    balance_sheet_to_frame,
    petty_cash_to_frame,
    transactions_to_frame,
)
from smb_ledger.periods import Period
from smb_ledger.views import (
    balance_sheet_rows,
    budget_rows,
    cash_flow_rows,
    document_to_frame,
    petty_cash_rows,
    profit_and_loss_rows,
    to_tabular_document,
    transaction_rows,
)

COMPANY = CompanyInfo(
    name="Charge24 Kenya Limited",
    banner_lines=("Nairobi, Kenya", "info@charge24.co.ke"),
)
JAN = Period(date(2024, 1, 1), date(2024, 1, 31), "Jan 2024")
GENERATED = datetime(2024, 2, 1, 9, 30)


@pytest.fixture
def transactions() -> list[Transaction]:
    return [
        Transaction(
            "t1", "u1", 15000.0, "Ads", "Advertisements", "income", date(2024, 1, 15)
        ),
        Transaction(
            "t2", "u1", 4000.0, "Cloud", "IT Department", "expense", date(2024, 1, 20)
        ),
    ]


@pytest.fixture
def pnl_report(transactions):
    pnl = profit_and_loss(transactions_to_frame(transactions), JAN)
    return profit_and_loss_rows(pnl)


def _it_budget() -> Budget:
    return Budget(
        id="b1",
        user_id="u1",
        category="IT Department",
        budgeted_amount=3000.0,
        period="monthly",
        start_date=date(2024, 1, 1),
        end_date=date(2024, 1, 31),
    )


# ---------------------------------------------------------------------------
# Tabular document
# ---------------------------------------------------------------------------


def test_to_tabular_document_keeps_order_and_blanks_missing_values() -> None:
    rows = [{"a": 1, "b": None}, {"a": "x"}]

    doc = to_tabular_document("T", rows, ("a", "b"), ("A", "B"), generated_at=GENERATED)

    assert doc.headers == ["A", "B"]
    assert doc.body == [["1", ""], ["x", ""]]
    assert doc.generated_at == GENERATED


def test_to_tabular_document_rejects_header_mismatch() -> None:
    with pytest.raises(ValueError):
        to_tabular_document("T", [], ("a", "b"), ("A",))


def test_profit_and_loss_rows(transactions) -> None:
    pnl = profit_and_loss(transactions_to_frame(transactions), JAN)

    report = profit_and_loss_rows(pnl)

    assert report.title == "Profit & Loss Statement - Jan 2024"
    assert report.file_stem == "profit_loss_statement"
    labels = [row["category"] for row in report.pdf_rows]
    assert labels[0] == "Revenue - Advertisements"
    assert report.pdf_rows[-1] == {
        "category": "Net Profit (Loss)",
        "amount": "KES 11,000.00",
    }
    assert report.sheet_rows[-1] == {"Category": "Net Profit (Loss)", "Amount": 11000.0}


def test_cash_flow_rows_show_outflows_in_parentheses(transactions) -> None:
    petty = petty_cash_to_frame(
        [PettyCashEntry("p1", "u1", 300.0, "Fuel", "withdraw", date(2024, 1, 5))]
    )
    statement = cash_flow_statement(transactions_to_frame(transactions), petty, JAN)

    report = cash_flow_rows(statement)

    by_label = {row["category"]: row["amount"] for row in report.pdf_rows}
    assert by_label["Cash for IT Department"] == "(KES 4,000.00)"
    assert by_label["Petty Cash Withdrawn"] == "(KES 300.00)"
    assert by_label["NET CASH FLOW"] == "KES 10,700.00"
    sheet = {row["Category"]: row["Amount"] for row in report.sheet_rows}
    assert sheet["Cash for IT Department"] == -4000.0
    assert "INVESTING ACTIVITIES" in by_label


def test_balance_sheet_rows_end_with_status() -> None:
    items = [
        BalanceSheetItem(None, "u1", "assets", "Equipment", 1000.0, date(2024, 1, 1)),
        BalanceSheetItem(None, "u1", "equity", "Capital", 1000.0, date(2024, 1, 1)),
    ]
    report = balance_sheet_rows(balance_sheet_analysis(balance_sheet_to_frame(items)))

    assert report.title == "Balance Sheet"
    assert report.pdf_rows[-1]["amount"] == "Balanced"


def test_budget_rows_pdf_and_sheet_columns(transactions) -> None:
    budget = _it_budget()
    statuses = budget_analysis([budget], transactions_to_frame(transactions))

    report = budget_rows(statuses)

    assert report.pdf_rows[0]["status"] == "Over Budget"
    assert report.pdf_rows[0]["variance"] == "-KES 1,000.00"
    sheet = report.sheet_rows[0]
    assert sheet["Start Date"] == "1 Jan 2024"
    assert sheet["Percentage Used"] == "133.3%"
    assert sheet["Actual Expenses"] == 4000.0


def test_petty_cash_and_transaction_listings() -> None:
    entries = [PettyCashEntry("p1", "u1", 10000.0, "Fund", "add", date(2024, 1, 15))]
    petty = petty_cash_rows(entries)
    assert petty.title == "Petty Cash Report"
    assert petty.pdf_rows[0]["type"] == "Add Money"

    report = transaction_rows([], "Income Report - Jan 2024")
    assert report.pdf_rows == []
    assert report.file_stem == "income_report_-_jan_2024"


def test_document_to_frame(pnl_report) -> None:
    report = pnl_report
    frame = document_to_frame(report.document(GENERATED))
    assert list(frame.columns) == ["Category", "Amount"]
    assert len(frame) == len(report.pdf_rows)


# ---------------------------------------------------------------------------
# Encoders
# ---------------------------------------------------------------------------


def test_write_pdf_creates_file(tmp_path, pnl_report) -> None:
    target = tmp_path / "out" / "pnl.pdf"
    path = write_pdf(pnl_report.document(GENERATED), target, COMPANY)

    assert path.exists()
    assert path.read_bytes().startswith(b"%PDF")


def test_write_pdf_paginates_long_documents(tmp_path) -> None:
    rows = [{"n": str(i)} for i in range(200)]
    doc = to_tabular_document("Long", rows, ("n",), ("N",), generated_at=GENERATED)

    path = write_pdf(doc, tmp_path / "long.pdf", COMPANY)

    assert path.stat().st_size > 0


def test_write_xlsx_layout(tmp_path) -> None:
    rows = [
        {"Category": "Revenue - Advertisements", "Amount": 15000.0},
        {"Category": "Net Profit (Loss)", "Amount": 11000.0},
    ]

    path = write_xlsx("Profit & Loss Statement", rows, tmp_path / "pnl.xlsx", COMPANY)

    wb = openpyxl.load_workbook(path)
    ws = wb.active
    assert ws["A1"].value == "Charge24 Kenya Limited"
    assert ws["A2"].value == "Nairobi, Kenya"
    # banner (name + 2 lines), blank, title, generated-on, blank, header
    assert ws["A5"].value == "Profit & Loss Statement"
    assert ws["A8"].value == "Category"
    assert ws["B9"].value == 15000.0
    assert ws.column_dimensions["A"].width == len("Revenue - Advertisements") + 2


def test_write_xlsx_sheet_title_is_sanitized(tmp_path) -> None:
    title = "Business Analytics Report - 2024-01-01 to 2024-03-31"
    rows = [{"Metric": "x", "Value": 1}]
    path = write_xlsx(title, rows, tmp_path / "a.xlsx", COMPANY)
    ws = openpyxl.load_workbook(path).active
    assert len(ws.title) <= 31


def test_export_report_writes_requested_formats(tmp_path, pnl_report) -> None:
    report = pnl_report

    paths = export_report(report, tmp_path, COMPANY, ["pdf", "xlsx"], GENERATED)

    assert [p.name for p in paths] == [
        "profit_loss_statement.pdf",
        "profit_loss_statement.xlsx",
    ]
    with pytest.raises(ValueError):
        export_report(report, tmp_path, COMPANY, ["docx"])


# ---------------------------------------------------------------------------
# Templates and backups
# ---------------------------------------------------------------------------


def test_import_template_header_is_required_columns() -> None:
    text = build_import_template("budget")
    lines = text.splitlines()
    assert lines[0] == "category,budgeted_amount,period,start_date,end_date"
    assert lines[1].startswith("Operations Department,50000,monthly")


def test_template_file_names(tmp_path) -> None:
    assert template_file_name("income") == "income_data_template.csv"
    assert template_file_name("petty-cash") == "petty_cash_data_template.csv"

    path = write_import_template("expense", tmp_path / "expense.csv")
    header = path.read_text(encoding="utf-8").splitlines()[0]
    assert header == "date,category,description,amount"


def test_backup_round_trip(tmp_path, transactions) -> None:
    budget = _it_budget()
    path = write_backup(
        tmp_path / "backup.json",
        {"transactions": transactions, "budgets": [budget]},
        exported_at=GENERATED,
    )

    restored = read_backup(path)

    assert restored["transactions"] == transactions
    assert restored["budgets"] == [budget]
    assert restored["petty_cash"] == []
    assert restored["balance_sheet"] == []
    assert f'"version": "{BACKUP_VERSION}"' in path.read_text(encoding="utf-8")
    assert '"pettyCashEntries": []' in path.read_text(encoding="utf-8")


def test_read_backup_rejects_invalid_files(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        read_backup(tmp_path / "missing.json")

    not_json = tmp_path / "bad.json"
    not_json.write_text("{nope", encoding="utf-8")
    with pytest.raises(ValueError):
        read_backup(not_json)

    no_version = tmp_path / "old.json"
    no_version.write_text('{"transactions": []}', encoding="utf-8")
    with pytest.raises(ValueError, match="Invalid backup file format"):
        read_backup(no_version)
