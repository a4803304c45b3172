# SMB Ledger - Accounting Dashboard & Reporting engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Command-Line Interface (CLI) for SMB Ledger.

This module wires together the main building blocks of SMB Ledger:

- application configuration (company banner, currency, database, identity),
- the record session (durable store or local buffer),
- the import pipeline (parser, validator, normalization),
- the aggregation engine and report builders,
- the PDF / Excel encoders.

The CLI is intentionally thin: it does not implement accounting logic
itself. It orchestrates the underlying modules based on command-line
arguments and configuration files.


Commands
--------

    import KIND SOURCE        Import a CSV file (or '-' for pasted text on
                              stdin). KIND: income, expense, petty-cash,
                              budget, balance-sheet. All-or-nothing.
    template KIND             Print or write the CSV import template.
    add KIND ...              Add a single record.
    expenditure BUDGET_ID     Record spending against a budget.
    list KIND                 List records (transactions, petty-cash,
                              budgets, balance-sheet).
    delete KIND ID            Delete a record.
    receipt KIND ID URL       Attach a receipt reference.
    report NAME               Render a report as a console table and/or
                              export it to PDF / Excel.
    migrate                   Copy local records into the store (once).
    backup export|restore     JSON backup of all records.


Identity
--------
``--user`` (or ``[identity].user_id`` in the TOML config) selects the
owner whose records live in the SQLite store. Without a user, commands
work on the local buffer file.


Examples
--------
    python -m smb_ledger.cli import income data/income.csv
    python -m smb_ledger.cli --user alice report profit-loss --period last-month
    python -m smb_ledger.cli report cash-flow --from-date 2024-01-01 \\
        --to-date 2024-03-31 --format all
"""

import argparse
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Optional

import pandas as pd

from . import __version__
from .categories import (
    BALANCE_SHEET_SUBCATEGORIES,
    categories_for,
    find_category,
    is_suggested_subcategory,
)
from .config import AppConfig, load_app_config
from .db import RecordStore, StoreError
from .engine import (
    ALL_CATEGORIES,
    analytics_report,
    balance_sheet_analysis,
    budget_analysis,
    budget_summary,
    cash_flow_statement,
    dashboard_metrics,
    profit_and_loss,
)
from .export import (
    build_import_template,
    export_report,
    template_file_name,
    write_import_template,
)
from .formatters import format_currency, format_percentage
from .io import TabularParseError
from .models import BALANCE_SHEET_CATEGORIES, BUDGET_PERIODS, record_to_dict
from .periods import PERIOD_TOKENS, Period, determine_period_from_args
from .records_service import (
    BulkInsertError,
    DataSession,
    DataSnapshot,
    LocalBuffer,
    Principal,
    StaticIdentityProvider,
)
from .validation import IMPORT_SCHEMAS, import_tabular_text
from .views import (
    ReportRows,
    analytics_rows,
    balance_sheet_rows,
    budget_rows,
    cash_flow_rows,
    dashboard_rows,
    document_to_frame,
    petty_cash_rows,
    profit_and_loss_rows,
    transaction_rows,
)

logger = logging.getLogger(__name__)

# CLI spelling -> record kind
LIST_KINDS: dict[str, str] = {
    "transactions": "transactions",
    "petty-cash": "petty_cash",
    "budgets": "budgets",
    "balance-sheet": "balance_sheet",
}

REPORT_NAMES: tuple[str, ...] = (
    "dashboard",
    "profit-loss",
    "cash-flow",
    "balance-sheet",
    "budgets",
    "analytics",
    "petty-cash",
    "income",
    "expenses",
)

OUTPUT_FORMATS: tuple[str, ...] = ("table", "pdf", "xlsx", "all")


def _parse_date_arg(value: str) -> date:
    """argparse type for YYYY-MM-DD dates."""
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"Invalid date format: {value!r}. Expected YYYY-MM-DD."
        ) from exc


def _add_period_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--period",
        choices=[t for t in PERIOD_TOKENS if t != "custom"],
        help=(
            "Named reporting period. If omitted, falls back to the default "
            "period from the configuration (current-month by default)."
        ),
    )
    p.add_argument(
        "--from-date",
        dest="from_date",
        help="Custom period start date (YYYY-MM-DD). Requires --to-date.",
    )
    p.add_argument(
        "--to-date",
        dest="to_date",
        help="Custom period end date (YYYY-MM-DD). Requires --from-date.",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the CLI."""
    ap = argparse.ArgumentParser(
        prog="python -m smb_ledger.cli",
        description=(
            "SMB Ledger - Accounting Dashboard & Reporting engine for SMBs. "
            "Records income, expenses, petty cash, budgets and balance-sheet "
            "items, and renders financial reports."
        ),
    )

    # Generic options
    ap.add_argument(
        "--version",
        action="store_true",
        help="Show the installed version of smb_ledger and exit.",
    )
    ap.add_argument(
        "--config",
        dest="config_path",
        help=(
            "Path to the main TOML configuration file. "
            "If omitted, 'smb_ledger_config.toml' in the current directory is used."
        ),
    )
    ap.add_argument(
        "--user",
        dest="user_id",
        help="Owner id for the record store (overrides [identity].user_id).",
    )
    ap.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log progress information to stderr.",
    )

    subparsers = ap.add_subparsers(dest="command", metavar="command")

    # ------------------------------------------------------------------
    # import / template
    # ------------------------------------------------------------------
    p_import = subparsers.add_parser(
        "import",
        help="Import records from a CSV file or pasted text ('-' reads stdin).",
    )
    p_import.add_argument("kind", choices=list(IMPORT_SCHEMAS))
    p_import.add_argument("source", help="Path to a delimited text file, or '-'.")
    p_import.add_argument(
        "--no-header",
        dest="has_header_row",
        action="store_false",
        help="The first line is data, not column names.",
    )

    p_template = subparsers.add_parser(
        "template", help="Print the CSV import template."
    )
    p_template.add_argument("kind", choices=list(IMPORT_SCHEMAS))
    p_template.add_argument(
        "--output",
        help=(
            "Write the template to this file (a directory gets the default "
            "template file name)."
        ),
    )

    # ------------------------------------------------------------------
    # add
    # ------------------------------------------------------------------
    p_add = subparsers.add_parser("add", help="Add a single record.")
    add_sub = p_add.add_subparsers(dest="add_kind", metavar="kind", required=True)

    for tx_type in ("income", "expense"):
        p_tx = add_sub.add_parser(tx_type, help=f"Add an {tx_type} transaction.")
        p_tx.add_argument("--amount", type=float, required=True)
        p_tx.add_argument("--category", required=True)
        p_tx.add_argument("--description", default="")
        p_tx.add_argument("--date", type=_parse_date_arg, default=None)
        p_tx.add_argument("--receipt", dest="receipt_url")

    p_petty = add_sub.add_parser("petty-cash", help="Add a petty-cash movement.")
    p_petty.add_argument("--type", choices=["add", "withdraw"], required=True)
    p_petty.add_argument("--amount", type=float, required=True)
    p_petty.add_argument("--description", default="")
    p_petty.add_argument("--date", type=_parse_date_arg, default=None)
    p_petty.add_argument("--receipt", dest="receipt_url")

    p_budget = add_sub.add_parser("budget", help="Add a budget.")
    p_budget.add_argument("--category", required=True)
    p_budget.add_argument("--amount", type=float, required=True)
    p_budget.add_argument("--period", choices=list(BUDGET_PERIODS), default="monthly")
    p_budget.add_argument("--start-date", type=_parse_date_arg, default=None)
    p_budget.add_argument(
        "--end-date",
        type=_parse_date_arg,
        default=None,
        help="Defaults to start date + 1, 3 or 12 months.",
    )

    p_bs = add_sub.add_parser("balance-sheet", help="Add a balance-sheet item.")
    p_bs.add_argument(
        "--category", choices=list(BALANCE_SHEET_CATEGORIES), required=True
    )
    p_bs.add_argument("--subcategory", required=True)
    p_bs.add_argument("--amount", type=float, required=True)
    p_bs.add_argument("--date", type=_parse_date_arg, default=None)

    p_exp = subparsers.add_parser(
        "expenditure",
        help="Record an expense against a budget (tagged with its category).",
    )
    p_exp.add_argument("budget_id")
    p_exp.add_argument("--amount", type=float, required=True)
    p_exp.add_argument("--description", required=True)
    p_exp.add_argument("--date", type=_parse_date_arg, default=None)
    p_exp.add_argument("--receipt", dest="receipt_url")

    # ------------------------------------------------------------------
    # list / delete / receipt
    # ------------------------------------------------------------------
    p_list = subparsers.add_parser("list", help="List records, most recent first.")
    p_list.add_argument("kind", choices=list(LIST_KINDS))

    p_delete = subparsers.add_parser("delete", help="Delete a record.")
    p_delete.add_argument("kind", choices=list(LIST_KINDS))
    p_delete.add_argument("record_id")

    p_receipt = subparsers.add_parser("receipt", help="Attach a receipt reference.")
    p_receipt.add_argument("kind", choices=["transactions", "petty-cash"])
    p_receipt.add_argument("record_id")
    p_receipt.add_argument("receipt_url")

    # ------------------------------------------------------------------
    # report
    # ------------------------------------------------------------------
    p_report = subparsers.add_parser("report", help="Render or export a report.")
    p_report.add_argument("name", choices=list(REPORT_NAMES))
    _add_period_arguments(p_report)
    p_report.add_argument(
        "--category",
        default=ALL_CATEGORIES,
        help="Category filter for the analytics report ('all' by default).",
    )
    p_report.add_argument(
        "--format",
        dest="output_format",
        choices=list(OUTPUT_FORMATS),
        default="table",
        help="table (console), pdf, xlsx or all. Default: table.",
    )
    p_report.add_argument(
        "--output",
        dest="output_dir",
        help="Directory for exported files (default: [reports].output_dir).",
    )

    # ------------------------------------------------------------------
    # migrate / backup
    # ------------------------------------------------------------------
    subparsers.add_parser(
        "migrate",
        help="Copy local records into the record store of --user (once per user).",
    )

    p_backup = subparsers.add_parser("backup", help="Export or restore a JSON backup.")
    backup_sub = p_backup.add_subparsers(dest="backup_command", required=True)
    p_backup_export = backup_sub.add_parser("export", help="Write a JSON backup.")
    p_backup_export.add_argument("path")
    p_backup_restore = backup_sub.add_parser(
        "restore", help="Insert the records of a JSON backup."
    )
    p_backup_restore.add_argument("path")

    return ap


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_session(config: AppConfig, user_id: Optional[str]) -> DataSession:
    """
    Build the record session for the CLI.

    The SQLite store is only opened when a user is selected.
    """
    owner = user_id or config.identity.user_id
    principal = Principal(id=owner, email=config.identity.email) if owner else None
    store = RecordStore(config.database) if principal else None
    return DataSession(
        identity=StaticIdentityProvider(principal),
        store=store,
        local_buffer=LocalBuffer(config.local_buffer_path),
    )


def _print_frame(df: pd.DataFrame) -> None:
    if df.empty:
        print("(no rows)")
    else:
        print(df.to_string(index=False))


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _handle_import(args: argparse.Namespace, session: DataSession) -> None:
    schema = IMPORT_SCHEMAS[args.kind]

    if args.source == "-":
        text = sys.stdin.read()
    else:
        path = Path(args.source)
        if not path.is_file():
            raise SystemExit(f"Import file not found: {path}")
        try:
            text = path.read_text(encoding="utf-8-sig")
        except UnicodeDecodeError as exc:
            raise TabularParseError(f"File is not valid UTF-8 text: {path}") from exc

    preview = import_tabular_text(
        args.kind,
        text,
        user_id=session.cache_key,
        today=date.today(),
        has_header_row=args.has_header_row,
    )
    if not preview.ok:
        print(f"Import rejected ({len(preview.errors)} error(s)); nothing was saved:")
        for message in preview.errors:
            print(f"  {message}")
        raise SystemExit(1)

    try:
        stats = session.bulk_insert(schema.record_kind, preview.records)
    except BulkInsertError as exc:
        print(f"Import stopped: {exc}")
        print(f"{len(exc.inserted)} record(s) were saved before the failure.")
        raise SystemExit(1) from exc

    print(
        f"Imported {stats.rows_inserted} {args.kind} record(s) "
        f"into the {stats.backend} backend."
    )


def _handle_template(args: argparse.Namespace) -> None:
    if not args.output:
        print(build_import_template(args.kind), end="")
        return

    target = Path(args.output)
    if target.is_dir():
        target = target / template_file_name(args.kind)
    write_import_template(args.kind, target)
    print(f"Wrote {target}")


def _warn_unknown_category(category: str, tx_type: str) -> None:
    if find_category(category, categories_for(tx_type)) is None:
        suggested = ", ".join(categories_for(tx_type))
        print(
            f"Note: {category!r} is not a suggested {tx_type} category "
            f"({suggested})."
        )


def _handle_add(args: argparse.Namespace, session: DataSession) -> None:
    today = date.today()
    kind = args.add_kind

    if kind in ("income", "expense"):
        _warn_unknown_category(args.category, kind)
        category = find_category(args.category, categories_for(kind)) or args.category
        record = session.add_transaction(
            amount=args.amount,
            description=args.description,
            category=category,
            type=kind,
            date=args.date or today,
            receipt_url=args.receipt_url,
        )
    elif kind == "petty-cash":
        record = session.add_petty_cash_entry(
            amount=args.amount,
            description=args.description,
            type=args.type,
            date=args.date or today,
            receipt_url=args.receipt_url,
        )
    elif kind == "budget":
        _warn_unknown_category(args.category, "expense")
        record = session.add_budget(
            category=find_category(args.category, categories_for("expense"))
            or args.category,
            budgeted_amount=args.amount,
            period=args.period,
            start_date=args.start_date or today,
            end_date=args.end_date,
        )
    else:
        if not is_suggested_subcategory(args.category, args.subcategory):
            suggested = ", ".join(BALANCE_SHEET_SUBCATEGORIES[args.category])
            print(
                f"Note: {args.subcategory!r} is not a suggested {args.category} "
                f"subcategory ({suggested})."
            )
        record = session.add_balance_sheet_item(
            category=args.category,
            subcategory=args.subcategory,
            amount=args.amount,
            date=args.date or today,
        )

    print(f"Added {kind} record {record.id}")


def _handle_expenditure(args: argparse.Namespace, session: DataSession) -> None:
    tx = session.record_budget_expenditure(
        args.budget_id,
        amount=args.amount,
        description=args.description,
        date=args.date or date.today(),
        receipt_url=args.receipt_url,
    )
    print(f"Recorded expenditure {tx.id}: {tx.description} ({tx.amount:.2f})")


def _handle_list(args: argparse.Namespace, session: DataSession) -> None:
    records = session.records(LIST_KINDS[args.kind])
    rows = [record_to_dict(r) for r in records]
    df = pd.DataFrame(rows).drop(columns=["user_id"], errors="ignore")
    print(f"{len(rows)} {args.kind} record(s):")
    _print_frame(df)


def _handle_delete(args: argparse.Namespace, session: DataSession) -> None:
    session.delete_record(LIST_KINDS[args.kind], args.record_id)
    print(f"Deleted {args.kind} record {args.record_id}")


def _handle_receipt(args: argparse.Namespace, session: DataSession) -> None:
    session.attach_receipt(LIST_KINDS[args.kind], args.record_id, args.receipt_url)
    print(f"Attached receipt to {args.kind} record {args.record_id}")


def _build_report(
    name: str,
    snapshot: DataSnapshot,
    period: Period,
    category: str,
    config: AppConfig,
) -> ReportRows:
    """Compute the named report and return its rows."""
    currency = config.currency
    tx = snapshot.transactions_frame()

    if name == "dashboard":
        metrics = dashboard_metrics(tx, snapshot.petty_cash_frame())
        return dashboard_rows(metrics, currency)
    if name == "profit-loss":
        return profit_and_loss_rows(profit_and_loss(tx, period), currency)
    if name == "cash-flow":
        statement = cash_flow_statement(tx, snapshot.petty_cash_frame(), period)
        return cash_flow_rows(statement, currency)
    if name == "balance-sheet":
        return balance_sheet_rows(
            balance_sheet_analysis(snapshot.balance_sheet_frame()), currency
        )
    if name == "budgets":
        return budget_rows(budget_analysis(snapshot.budgets, tx), currency)
    if name == "analytics":
        report = analytics_report(
            tx, period, category, top_n=config.reports.top_categories
        )
        return analytics_rows(report, currency)
    if name == "petty-cash":
        return petty_cash_rows(list(snapshot.petty_cash), currency)

    tx_type = "income" if name == "income" else "expense"
    title = "Income Report" if tx_type == "income" else "Expense Report"
    selected = [
        t
        for t in snapshot.transactions
        if t.type == tx_type and period.start <= t.date <= period.end
    ]
    return transaction_rows(selected, f"{title} - {period.label}", currency)


def _print_report_extras(
    name: str, snapshot: DataSnapshot, period: Period, category: str, config: AppConfig
) -> None:
    """Console-only details printed below some report tables."""
    currency = config.currency
    tx = snapshot.transactions_frame()

    if name == "budgets":
        summary = budget_summary(budget_analysis(snapshot.budgets, tx))
        print()
        print(f"Total budgeted: {format_currency(summary.total_budgeted, currency)}")
        print(f"Total actual:   {format_currency(summary.total_actual, currency)}")
        print(f"Total variance: {format_currency(summary.total_variance, currency)}")
        print(f"Over budget:    {summary.over_budget_count}")
    elif name == "analytics":
        report = analytics_report(
            tx, period, category, top_n=config.reports.top_categories
        )
        print()
        print("Top income categories:")
        for cat, amount in report.top_income:
            print(f"  {cat}: {format_currency(amount, currency)}")
        print("Top expense categories:")
        for cat, amount in report.top_expenses:
            print(f"  {cat}: {format_currency(amount, currency)}")
        print("Monthly trend:")
        for bucket in report.monthly:
            print(
                f"  {bucket.month}: income {format_currency(bucket.income, currency)}, "
                f"expenses {format_currency(bucket.expenses, currency)}"
            )
        print(f"Profit margin: {format_percentage(report.totals.profit_margin)}")
    elif name == "dashboard":
        metrics = dashboard_metrics(tx, snapshot.petty_cash_frame())
        print()
        print("Recent transactions:")
        for row in metrics.recent_transactions:
            print(
                f"  {row['date'].isoformat()}  {row['type']:<7}  {row['category']}: "
                f"{format_currency(row['amount'], currency)}"
            )


def _handle_report(
    args: argparse.Namespace, config: AppConfig, session: DataSession
) -> None:
    period = determine_period_from_args(args, config.reports.default_period)
    snapshot = session.snapshot()
    report = _build_report(args.name, snapshot, period, args.category, config)

    fmt = args.output_format
    if fmt == "table":
        print(report.title)
        print("=" * len(report.title))
        _print_frame(document_to_frame(report.document()))
        _print_report_extras(args.name, snapshot, period, args.category, config)
        return

    formats = ["pdf", "xlsx"] if fmt == "all" else [fmt]
    output_dir = Path(args.output_dir) if args.output_dir else config.reports.output_dir
    for path in export_report(report, output_dir, config.company, formats):
        print(f"Wrote {path}")


def _handle_migrate(session: DataSession) -> None:
    if session.is_local:
        raise SystemExit("migrate requires a user (--user or [identity].user_id).")
    count = session.migrate_local_records()
    if count:
        print(f"Migrated {count} local record(s) into the record store.")
    else:
        print("Nothing to migrate.")


def _handle_backup(args: argparse.Namespace, session: DataSession) -> None:
    path = Path(args.path)
    if args.backup_command == "export":
        session.export_backup(path)
        print(f"Wrote backup {path}")
        return

    restored = session.restore_backup(path)
    total = sum(restored.values())
    details = ", ".join(f"{kind}: {count}" for kind, count in restored.items())
    print(f"Restored {total} record(s) ({details}).")


def main(argv: Optional[list[str]] = None) -> None:
    """Entry point for the SMB Ledger CLI.

    This function parses command-line arguments, loads the application
    configuration, builds the record session for the selected identity and
    dispatches to the requested command. Store and validation failures are
    reported as a one-line error and a non-zero exit status.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    # --version: short-circuit and exit early.
    if args.version:
        print(f"smb_ledger version {__version__}")
        return

    if not args.command:
        parser.print_help()
        return

    _configure_logging(args.verbose)

    try:
        # Load application configuration (company, currency, database, identity)
        config = load_app_config(args.config_path)

        if args.command == "template":
            _handle_template(args)
            return

        session = _build_session(config, args.user_id)
        logger.info(
            "Using %s backend",
            "local" if session.is_local else f"store ({session.cache_key})",
        )

        if args.command == "import":
            _handle_import(args, session)
        elif args.command == "add":
            _handle_add(args, session)
        elif args.command == "expenditure":
            _handle_expenditure(args, session)
        elif args.command == "list":
            _handle_list(args, session)
        elif args.command == "delete":
            _handle_delete(args, session)
        elif args.command == "receipt":
            _handle_receipt(args, session)
        elif args.command == "report":
            _handle_report(args, config, session)
        elif args.command == "migrate":
            _handle_migrate(session)
        elif args.command == "backup":
            _handle_backup(args, session)
    except (StoreError, ValueError, FileNotFoundError) as exc:
        raise SystemExit(f"Error: {exc}") from exc


if __name__ == "__main__":
    main()
