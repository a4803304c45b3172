# SMB Ledger - Accounting Dashboard & Reporting engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Report views for SMB Ledger.

This module turns aggregation results (engine.py) into two encodings that
are independent of any on-screen presentation:

- a tabular document (title, header row, body rows of strings) used by
  the PDF encoder and by the CLI table output,
- flat spreadsheet rows (column name -> raw value) used by the Excel
  encoder.

The formatter never re-sorts rows and never decides currency rounding:
builders pass pre-formatted strings (`formatters.format_currency`) for
the printable path and raw numbers for the spreadsheet path.

Report builders
---------------
Each builder returns a `ReportRows` bundle:

- profit_and_loss_rows()   "Profit & Loss Statement - <period>"
- cash_flow_rows()         "Cash Flow Statement - <period>"
- balance_sheet_rows()     "Balance Sheet"
- budget_rows()            "Budget Analysis Report"
- analytics_rows()         "Business Analytics Report - <period>"
- dashboard_rows()         "Dashboard Summary"
- petty_cash_rows()        "Petty Cash Report"
- transaction_rows()       "Income Report" / "Expense Report"
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import pandas as pd

from .engine import (
    AnalyticsReport,
    BalanceSheetSummary,
    BudgetStatus,
    CashFlowStatement,
    DashboardMetrics,
    ProfitAndLoss,
)
from .formatters import format_currency, format_date, format_percentage, slugify_title
from .models import PettyCashEntry, Transaction


@dataclass(frozen=True)
class TabularDocument:
    """A printable table: title banner, generation time, header and body rows."""

    title: str
    headers: list[str]
    body: list[list[str]]
    generated_at: datetime


def _cell(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def to_tabular_document(
    title: str,
    rows: Sequence[Mapping[str, Any]],
    column_keys: Sequence[str],
    column_headers: Sequence[str],
    generated_at: Optional[datetime] = None,
) -> TabularDocument:
    """
    Build a tabular document from row mappings.

    Body rows keep the caller's order. Missing keys and None values render
    as an empty string.

    Raises
    ------
    ValueError
        If the number of headers does not match the number of keys.
    """
    if len(column_keys) != len(column_headers):
        raise ValueError(
            f"Got {len(column_headers)} header(s) for {len(column_keys)} column key(s)."
        )

    body = [[_cell(row.get(key)) for key in column_keys] for row in rows]
    return TabularDocument(
        title=title,
        headers=list(column_headers),
        body=body,
        generated_at=generated_at or datetime.now(),
    )


def to_spreadsheet_rows(rows: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Return flat copies of the rows, in order, with raw values untouched."""
    return [dict(row) for row in rows]


def document_to_frame(document: TabularDocument) -> pd.DataFrame:
    """Tabular document as a DataFrame (used for console output)."""
    return pd.DataFrame(document.body, columns=document.headers)


@dataclass(frozen=True)
class ReportRows:
    """
    Rows of one report, ready for both encodings.

    `pdf_rows` hold display strings keyed by `column_keys`; `sheet_rows`
    hold raw values keyed by spreadsheet column names.
    """

    title: str
    pdf_rows: list[dict[str, Any]]
    sheet_rows: list[dict[str, Any]]
    column_keys: tuple[str, ...]
    column_headers: tuple[str, ...]
    file_stem: str

    def document(self, generated_at: Optional[datetime] = None) -> TabularDocument:
        return to_tabular_document(
            self.title,
            self.pdf_rows,
            self.column_keys,
            self.column_headers,
            generated_at=generated_at,
        )

    def spreadsheet(self) -> list[dict[str, Any]]:
        return to_spreadsheet_rows(self.sheet_rows)


_BLANK_PDF = {"category": "", "amount": ""}


def _category_amount_rows(
    lines: Sequence[tuple[str, str, Any]],
) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """(label, display, raw) triples -> (pdf rows, sheet rows)."""
    pdf_rows = [{"category": label, "amount": display} for label, display, _ in lines]
    sheet_rows = [{"Category": label, "Amount": raw} for label, _, raw in lines]
    return pdf_rows, sheet_rows


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------


def profit_and_loss_rows(pnl: ProfitAndLoss, currency: str = "KES") -> ReportRows:
    def money(x: float) -> str:
        return format_currency(x, currency)

    lines: list[tuple[str, str, Any]] = []
    for category, amount in pnl.revenue.items():
        lines.append((f"Revenue - {category}", money(amount), amount))
    lines.append(("Total Revenue", money(pnl.total_revenue), pnl.total_revenue))
    lines.append(("", "", ""))
    for category, amount in pnl.expenses.items():
        lines.append((f"Expense - {category}", money(amount), amount))
    lines.append(("Total Expenses", money(pnl.total_expenses), pnl.total_expenses))
    lines.append(("", "", ""))
    lines.append(("Net Profit (Loss)", money(pnl.net_profit), pnl.net_profit))

    pdf_rows, sheet_rows = _category_amount_rows(lines)
    return ReportRows(
        title=f"Profit & Loss Statement - {pnl.period.label}",
        pdf_rows=pdf_rows,
        sheet_rows=sheet_rows,
        column_keys=("category", "amount"),
        column_headers=("Category", "Amount"),
        file_stem="profit_loss_statement",
    )


def cash_flow_rows(statement: CashFlowStatement, currency: str = "KES") -> ReportRows:
    """
    Cash-flow statement rows.

    Outflows are shown in parentheses in the printable form and as
    negative numbers in the spreadsheet form.
    """

    def inflow(label: str, amount: float) -> tuple[str, str, Any]:
        return (label, format_currency(amount, currency), amount)

    def outflow(label: str, amount: float) -> tuple[str, str, Any]:
        return (label, f"({format_currency(amount, currency)})", -amount)

    def heading(label: str) -> tuple[str, str, Any]:
        return (label, "", "")

    blank = heading("")

    lines: list[tuple[str, str, Any]] = [heading("OPERATING ACTIVITIES")]
    for category, amount in statement.inflows_by_category.items():
        lines.append(inflow(f"Cash from {category}", amount))
    lines.append(inflow("Total Operating Inflows", statement.operating_inflow))
    lines.append(blank)
    for category, amount in statement.outflows_by_category.items():
        lines.append(outflow(f"Cash for {category}", amount))
    lines.append(outflow("Total Operating Outflows", statement.operating_outflow))
    lines.append(inflow("Net Operating Cash Flow", statement.operating_net))
    lines += [blank, heading("INVESTING ACTIVITIES")]
    lines.append(inflow("Net Investing Cash Flow", statement.investing_net))
    lines += [blank, heading("FINANCING ACTIVITIES")]
    lines.append(inflow("Net Financing Cash Flow", statement.financing_net))
    lines += [blank, heading("PETTY CASH")]
    lines.append(inflow("Petty Cash Added", statement.petty_cash_inflow))
    lines.append(outflow("Petty Cash Withdrawn", statement.petty_cash_outflow))
    lines.append(inflow("Net Petty Cash Flow", statement.petty_cash_net))
    lines.append(blank)
    lines.append(inflow("NET CASH FLOW", statement.net_cash_flow))

    pdf_rows, sheet_rows = _category_amount_rows(lines)
    return ReportRows(
        title=f"Cash Flow Statement - {statement.period.label}",
        pdf_rows=pdf_rows,
        sheet_rows=sheet_rows,
        column_keys=("category", "amount"),
        column_headers=("Category", "Amount"),
        file_stem="cash_flow_statement",
    )


def balance_sheet_rows(
    summary: BalanceSheetSummary, currency: str = "KES"
) -> ReportRows:
    """
    Balance sheet grouped by category then subcategory, with the balance
    status as the last line.
    """

    def money(x: float) -> str:
        return format_currency(x, currency)

    totals = {
        "assets": summary.total_assets,
        "liabilities": summary.total_liabilities,
        "equity": summary.total_equity,
    }

    pdf_rows: list[dict[str, Any]] = []
    sheet_rows: list[dict[str, Any]] = []
    for category in ("assets", "liabilities", "equity"):
        pdf_rows.append({"category": category.upper(), "amount": ""})
        for subcategory, amount in summary.groups.get(category, {}).items():
            pdf_rows.append({"category": f"  {subcategory}", "amount": money(amount)})
            sheet_rows.append(
                {"Category": category, "Subcategory": subcategory, "Amount": amount}
            )
        pdf_rows.append(
            {"category": f"Total {category}", "amount": money(totals[category])}
        )
        pdf_rows.append(dict(_BLANK_PDF))

    pdf_rows.append(
        {
            "category": "Total Liabilities & Equity",
            "amount": money(summary.total_liabilities_and_equity),
        }
    )
    if summary.balanced:
        status = "Balanced"
    else:
        status = f"Unbalanced (difference {money(summary.difference)})"
    pdf_rows.append({"category": "Status", "amount": status})

    return ReportRows(
        title="Balance Sheet",
        pdf_rows=pdf_rows,
        sheet_rows=sheet_rows,
        column_keys=("category", "amount"),
        column_headers=("Category", "Amount"),
        file_stem="balance_sheet",
    )


# ---------------------------------------------------------------------------
# Budgets, analytics, dashboard
# ---------------------------------------------------------------------------


def _status_label(status: str) -> str:
    return "Within Budget" if status == "within" else "Over Budget"


def budget_rows(statuses: Sequence[BudgetStatus], currency: str = "KES") -> ReportRows:
    pdf_rows = []
    sheet_rows = []
    for s in statuses:
        b = s.budget
        pdf_rows.append(
            {
                "category": b.category,
                "period": b.period,
                "budgeted": format_currency(b.budgeted_amount, currency),
                "actual": format_currency(s.actual, currency),
                "variance": format_currency(s.variance, currency),
                "status": _status_label(s.status),
            }
        )
        sheet_rows.append(
            {
                "Category": b.category,
                "Period": b.period,
                "Start Date": format_date(b.start_date),
                "End Date": format_date(b.end_date),
                "Budgeted Amount": b.budgeted_amount,
                "Actual Expenses": s.actual,
                "Variance": s.variance,
                "Percentage Used": format_percentage(s.percentage_used, 1),
                "Status": _status_label(s.status),
            }
        )

    return ReportRows(
        title="Budget Analysis Report",
        pdf_rows=pdf_rows,
        sheet_rows=sheet_rows,
        column_keys=("category", "period", "budgeted", "actual", "variance", "status"),
        column_headers=(
            "Category", "Period", "Budgeted", "Actual", "Variance", "Status"
        ),
        file_stem="budget_analysis",
    )


def _kpi_display(value: float, unit: str, currency: str) -> str:
    if unit == "amount":
        return format_currency(value, currency)
    if unit == "percent":
        return format_percentage(value)
    return str(int(value))


def analytics_rows(report: AnalyticsReport, currency: str = "KES") -> ReportRows:
    pdf_rows = [
        {"metric": kpi.label, "value": _kpi_display(kpi.value, kpi.unit, currency)}
        for kpi in report.kpis
    ]
    sheet_rows = []
    for kpi in report.kpis:
        label = f"{kpi.label} (%)" if kpi.unit == "percent" else kpi.label
        value: Any = int(kpi.value) if kpi.unit == "count" else kpi.value
        sheet_rows.append({"Metric": label, "Value": value})

    return ReportRows(
        title=f"Business Analytics Report - {report.period.label}",
        pdf_rows=pdf_rows,
        sheet_rows=sheet_rows,
        column_keys=("metric", "value"),
        column_headers=("Metric", "Value"),
        file_stem="business_analytics",
    )


def dashboard_rows(metrics: DashboardMetrics, currency: str = "KES") -> ReportRows:
    figures = [
        ("Total Income", metrics.total_income),
        ("Total Expenses", metrics.total_expenses),
        ("Net Profit", metrics.net_profit),
        ("Petty Cash Balance", metrics.petty_cash_balance),
    ]
    figures.extend(
        (f"Income - {category}", amount)
        for category, amount in metrics.income_by_category.items()
    )

    return ReportRows(
        title="Dashboard Summary",
        pdf_rows=[
            {"metric": label, "value": format_currency(amount, currency)}
            for label, amount in figures
        ],
        sheet_rows=[{"Metric": label, "Value": amount} for label, amount in figures],
        column_keys=("metric", "value"),
        column_headers=("Metric", "Value"),
        file_stem="dashboard_summary",
    )


# ---------------------------------------------------------------------------
# Record listings
# ---------------------------------------------------------------------------


def petty_cash_rows(
    entries: Sequence[PettyCashEntry], currency: str = "KES"
) -> ReportRows:
    def type_label(kind: str) -> str:
        return "Add Money" if kind == "add" else "Withdraw Money"

    pdf_rows = [
        {
            "date": format_date(e.date),
            "type": type_label(e.type),
            "description": e.description,
            "amount": format_currency(e.amount, currency),
        }
        for e in entries
    ]
    sheet_rows = [
        {
            "Date": format_date(e.date),
            "Type": type_label(e.type),
            "Description": e.description,
            "Amount": e.amount,
        }
        for e in entries
    ]
    return ReportRows(
        title="Petty Cash Report",
        pdf_rows=pdf_rows,
        sheet_rows=sheet_rows,
        column_keys=("date", "type", "description", "amount"),
        column_headers=("Date", "Type", "Description", "Amount"),
        file_stem="petty_cash_report",
    )


def transaction_rows(
    transactions: Sequence[Transaction],
    title: str,
    currency: str = "KES",
) -> ReportRows:
    pdf_rows = [
        {
            "date": format_date(t.date),
            "category": t.category,
            "description": t.description,
            "amount": format_currency(t.amount, currency),
        }
        for t in transactions
    ]
    sheet_rows = [
        {
            "Date": format_date(t.date),
            "Category": t.category,
            "Description": t.description,
            "Amount": t.amount,
        }
        for t in transactions
    ]
    return ReportRows(
        title=title,
        pdf_rows=pdf_rows,
        sheet_rows=sheet_rows,
        column_keys=("date", "category", "description", "amount"),
        column_headers=("Date", "Category", "Description", "Amount"),
        file_stem=slugify_title(title),
    )
