from pathlib import Path

import openpyxl
import pytest

from smb_ledger import __version__
from smb_ledger.cli import main


@pytest.fixture
def config_path(tmp_path) -> str:
    path = tmp_path / "smb_ledger_config.toml"
    path.write_text(
        """
[company]
name = "Charge24 Kenya Limited"
banner_lines = ["Nairobi, Kenya"]

[database]
path = "db/ledger.sqlite"

[local]
buffer_path = "local/buffer.json"

[reports]
output_dir = "out"
""",
        encoding="utf-8",
    )
    return str(path)


def run(config_path: str, *args: str) -> None:
    main(["--config", config_path, *args])


def test_version(capsys):
    main(["--version"])
    assert capsys.readouterr().out.strip() == f"smb_ledger version {__version__}"


def test_template_is_printed(capsys, config_path):
    run(config_path, "template", "petty-cash")
    out = capsys.readouterr().out
    assert out.splitlines()[0] == "date,type,description,amount"


def test_import_then_report_profit_and_loss(tmp_path, capsys, config_path):
    csv_path = tmp_path / "income.csv"
    csv_path.write_text(
        "date,category,description,amount\n"
        "2024-01-15,Advertisements,Digital ads,15000\n"
        "2024-01-16,Powerbank Sales,Units,8500\n",
        encoding="utf-8",
    )

    run(config_path, "--user", "alice", "import", "income", str(csv_path))
    assert "Imported 2 income record(s) into the store backend." in (
        capsys.readouterr().out
    )

    run(
        config_path,
        "--user",
        "alice",
        "report",
        "profit-loss",
        "--from-date",
        "2024-01-01",
        "--to-date",
        "2024-01-31",
    )
    out = capsys.readouterr().out
    assert "Profit & Loss Statement - 2024-01-01 to 2024-01-31" in out
    assert "KES 23,500.00" in out


def test_import_with_errors_saves_nothing(tmp_path, capsys, config_path):
    csv_path = tmp_path / "expense.csv"
    csv_path.write_text(
        "date,category,description,amount\n2024-01-15,IT Department,Cloud,abc\n",
        encoding="utf-8",
    )

    with pytest.raises(SystemExit):
        run(config_path, "import", "expense", str(csv_path))

    assert "Row 1: Amount must be a valid number" in capsys.readouterr().out
    run(config_path, "list", "transactions")
    assert "0 transactions record(s)" in capsys.readouterr().out


def test_local_records_then_migrate(capsys, config_path):
    run(
        config_path,
        "add",
        "petty-cash",
        "--type",
        "add",
        "--amount",
        "1000",
        "--date",
        "2024-01-10",
    )
    run(config_path, "list", "petty-cash")
    assert "1 petty-cash record(s)" in capsys.readouterr().out

    run(config_path, "--user", "alice", "migrate")
    assert "Migrated 1 local record(s)" in capsys.readouterr().out

    run(config_path, "--user", "alice", "migrate")
    assert "Nothing to migrate." in capsys.readouterr().out


def test_migrate_requires_a_user(config_path):
    with pytest.raises(SystemExit):
        run(config_path, "migrate")


def test_add_warns_about_unknown_category(capsys, config_path):
    run(
        config_path,
        "add",
        "expense",
        "--amount",
        "50",
        "--category",
        "Snacks",
        "--date",
        "2024-01-10",
    )
    out = capsys.readouterr().out
    assert "'Snacks' is not a suggested expense category" in out
    assert "Added expense record" in out


def test_store_errors_become_exit_messages(config_path):
    with pytest.raises(SystemExit) as excinfo:
        run(config_path, "--user", "alice", "delete", "transactions", "missing-id")
    assert str(excinfo.value).startswith("Error: ")


def test_report_export_writes_files(tmp_path, capsys, config_path):
    run(
        config_path,
        "add",
        "balance-sheet",
        "--category",
        "assets",
        "--subcategory",
        "Equipment",
        "--amount",
        "1000",
    )
    capsys.readouterr()

    run(config_path, "report", "balance-sheet", "--format", "all")

    out_dir = Path(tmp_path) / "out"
    assert (out_dir / "balance_sheet.pdf").exists()
    wb = openpyxl.load_workbook(out_dir / "balance_sheet.xlsx")
    assert wb.active["A1"].value == "Charge24 Kenya Limited"


def test_backup_export_and_restore(tmp_path, capsys, config_path):
    run(
        config_path,
        "add",
        "income",
        "--amount",
        "100",
        "--category",
        "events",
        "--date",
        "2024-01-10",
    )
    backup = str(tmp_path / "backup.json")
    run(config_path, "backup", "export", backup)

    run(config_path, "--user", "bob", "backup", "restore", backup)
    assert "Restored 1 record(s)" in capsys.readouterr().out

    run(config_path, "--user", "bob", "list", "transactions")
    out = capsys.readouterr().out
    assert "1 transactions record(s)" in out
    assert "Events" in out


def test_corrupt_local_buffer_is_reported_as_error(tmp_path, config_path):
    buffer_path = tmp_path / "local" / "buffer.json"
    buffer_path.parent.mkdir(parents=True)
    buffer_path.write_text("{not json", encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        run(config_path, "list", "transactions")
    assert str(excinfo.value).startswith("Error: ")


def test_invalid_config_is_reported_as_error(tmp_path):
    bad = tmp_path / "bad.toml"
    bad.write_text("[company\nname = ", encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(bad), "list", "transactions"])
    assert str(excinfo.value).startswith("Error: ")


def test_non_finite_amount_is_rejected(capsys, config_path):
    with pytest.raises(SystemExit) as excinfo:
        run(
            config_path,
            "add",
            "income",
            "--amount",
            "nan",
            "--category",
            "Events",
            "--date",
            "2024-01-10",
        )
    assert str(excinfo.value).startswith("Error: ")

    run(config_path, "list", "transactions")
    assert "0 transactions record(s)" in capsys.readouterr().out


def test_three_row_import_with_missing_field_saves_nothing(
    tmp_path, capsys, config_path
):
    csv_path = tmp_path / "expense.csv"
    csv_path.write_text(
        "date,category,description,amount\n"
        "2024-01-15,IT Department,Cloud,100\n"
        "2024-01-16,,Laptop,200\n"
        "2024-01-17,IT Department,Licenses,300\n",
        encoding="utf-8",
    )

    with pytest.raises(SystemExit):
        run(config_path, "import", "expense", str(csv_path))

    out = capsys.readouterr().out
    assert "Import rejected (1 error(s))" in out
    assert "Row 2: Missing category" in out
    assert "Row 1" not in out and "Row 3" not in out

    run(config_path, "list", "transactions")
    assert "0 transactions record(s)" in capsys.readouterr().out


def test_january_analytics_report(capsys, config_path):
    for kind, category, amount, day in (
        ("income", "Advertisements", "15000", "2024-01-10"),
        ("expense", "IT Department", "5000", "2024-01-20"),
    ):
        run(
            config_path,
            "add",
            kind,
            "--amount",
            amount,
            "--category",
            category,
            "--date",
            day,
        )
    capsys.readouterr()

    run(
        config_path,
        "report",
        "analytics",
        "--from-date",
        "2024-01-01",
        "--to-date",
        "2024-01-31",
    )

    out = capsys.readouterr().out
    assert "66.67%" in out
    assert "KES 10,000.00" in out
    assert "Top income categories:\n  Advertisements: KES 15,000.00" in out
