# SMB Ledger - Accounting Dashboard & Reporting engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
File encoders for SMB Ledger.

This module writes the encodings produced by views.py to disk:

- PDF documents (reportlab canvas, A4),
- Excel workbooks (openpyxl),
- CSV import templates,
- JSON data backups (export and restore).

Every PDF and workbook starts with the company banner configured in
``[company]`` followed by the report title and the generation time.
"""

import csv
import io
import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import openpyxl
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from .config import CompanyInfo
from .formatters import slugify_title
from .models import Record, record_from_dict, record_to_dict
from .validation import get_schema
from .views import ReportRows, TabularDocument

logger = logging.getLogger(__name__)

BACKUP_VERSION = "1.0"

# Record kind -> key of the collection in the backup JSON.
BACKUP_KEYS: dict[str, str] = {
    "transactions": "transactions",
    "petty_cash": "pettyCashEntries",
    "budgets": "budgets",
    "balance_sheet": "balanceSheetItems",
}

EXPORT_FORMATS: tuple[str, ...] = ("pdf", "xlsx")

_MARGIN = 40
_BOTTOM = 60
_LINE_HEIGHT = 14
_MAX_XLSX_TITLE = 31


# ---------------------------------------------------------------------------
# PDF
# ---------------------------------------------------------------------------


def _truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[: max(max_chars - 3, 0)] + "..."


def write_pdf(
    document: TabularDocument,
    path: Path,
    company: CompanyInfo,
) -> Path:
    """
    Render a tabular document as an A4 PDF.

    Layout: company banner, title, generation timestamp, header row, then
    body rows. A new page is started (with the header repeated) when the
    bottom margin is reached.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    p = canvas.Canvas(str(path), pagesize=A4)
    width, height = A4
    column_width = (width - 2 * _MARGIN) / max(len(document.headers), 1)
    max_chars = max(int(column_width / 5), 4)

    y = height - 50
    p.setFont("Helvetica-Bold", 16)
    p.drawString(_MARGIN, y, company.name)
    p.setFont("Helvetica", 10)
    for line in company.banner_lines:
        y -= _LINE_HEIGHT
        p.drawString(_MARGIN, y, line)

    y -= 2 * _LINE_HEIGHT
    p.setFont("Helvetica-Bold", 13)
    p.drawString(_MARGIN, y, document.title)
    y -= _LINE_HEIGHT
    p.setFont("Helvetica", 9)
    p.drawString(
        _MARGIN,
        y,
        f"Generated on: {document.generated_at.strftime('%Y-%m-%d %H:%M:%S')}",
    )
    y -= 2 * _LINE_HEIGHT

    def draw_header(y_pos: float) -> float:
        p.setFont("Helvetica-Bold", 9)
        for i, header in enumerate(document.headers):
            x = _MARGIN + i * column_width
            p.drawString(x, y_pos, _truncate(header, max_chars))
        p.line(_MARGIN - 5, y_pos - 3, width - _MARGIN + 5, y_pos - 3)
        p.setFont("Helvetica", 9)
        return y_pos - _LINE_HEIGHT

    y = draw_header(y)
    for row in document.body:
        if y < _BOTTOM:
            p.showPage()
            y = draw_header(height - 50)
        for i, value in enumerate(row):
            p.drawString(_MARGIN + i * column_width, y, _truncate(value, max_chars))
        y -= _LINE_HEIGHT - 2

    p.showPage()
    p.save()
    logger.info("Wrote PDF report %s (%d row(s))", path, len(document.body))
    return path


# ---------------------------------------------------------------------------
# Excel
# ---------------------------------------------------------------------------


def write_xlsx(
    title: str,
    rows: Sequence[Mapping[str, Any]],
    path: Path,
    company: CompanyInfo,
    generated_at: Optional[datetime] = None,
) -> Path:
    """
    Write spreadsheet rows to an .xlsx workbook.

    The sheet starts with the company banner, the title and the generation
    date, followed by a blank line, the header row (keys of the first row)
    and one line per row. Raw values are written as-is.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    generated_at = generated_at or datetime.now()

    wb = openpyxl.Workbook()
    ws = wb.active
    # Excel limits sheet titles to 31 characters and forbids a few symbols.
    sheet_title = "".join(c for c in title if c not in "[]:*?/\\")
    ws.title = sheet_title[:_MAX_XLSX_TITLE] or "Report"

    banner = [company.name, *company.banner_lines, "", title]
    banner.append(f"Generated on: {generated_at.strftime('%Y-%m-%d')}")
    banner.append("")
    for row_idx, line in enumerate(banner, start=1):
        ws.cell(row=row_idx, column=1, value=line)
    ws.cell(row=1, column=1).font = Font(bold=True, size=14)

    headers = list(rows[0].keys()) if rows else []
    header_row = len(banner) + 1
    for col, h in enumerate(headers, 1):
        ws.cell(row=header_row, column=col, value=h).font = Font(bold=True)

    for idx, row in enumerate(rows, start=header_row + 1):
        for col, key in enumerate(headers, 1):
            ws.cell(row=idx, column=col, value=row.get(key))

    # Autosize data columns
    for col in range(1, len(headers) + 1):
        col_letter = get_column_letter(col)
        values = [headers[col - 1]] + [row.get(headers[col - 1]) for row in rows]
        max_length = max(len(str(v)) for v in values if v is not None)
        ws.column_dimensions[col_letter].width = max_length + 2

    wb.save(str(path))
    logger.info("Wrote Excel report %s (%d row(s))", path, len(rows))
    return path


def export_report(
    report: ReportRows,
    output_dir: Path,
    company: CompanyInfo,
    formats: Iterable[str] = EXPORT_FORMATS,
    generated_at: Optional[datetime] = None,
) -> list[Path]:
    """
    Export a report in the requested formats ("pdf", "xlsx").

    Files are named after the report's file stem, e.g.
    ``profit_loss_statement.pdf``.

    Raises
    ------
    ValueError
        If a format is not supported.
    """
    generated_at = generated_at or datetime.now()
    written: list[Path] = []
    for fmt in formats:
        target = output_dir / f"{report.file_stem}.{fmt}"
        if fmt == "pdf":
            written.append(write_pdf(report.document(generated_at), target, company))
        elif fmt == "xlsx":
            written.append(
                write_xlsx(
                    report.title, report.spreadsheet(), target, company, generated_at
                )
            )
        else:
            raise ValueError(f"Unsupported export format: {fmt!r}")
    return written


# ---------------------------------------------------------------------------
# Import templates
# ---------------------------------------------------------------------------


def build_import_template(kind: str) -> str:
    """
    Return the CSV import template for an import kind.

    The first row is exactly the kind's required columns; sample rows
    follow.
    """
    schema = get_schema(kind)
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(schema.required_columns)
    for sample in schema.sample_rows:
        writer.writerow([sample.get(col, "") for col in schema.required_columns])
    return buffer.getvalue()


def template_file_name(kind: str) -> str:
    """'income' -> 'income_data_template.csv'."""
    return f"{slugify_title(get_schema(kind).title)}_template.csv"


def write_import_template(kind: str, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(build_import_template(kind), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# JSON backup
# ---------------------------------------------------------------------------


def write_backup(
    path: Path,
    collections: Mapping[str, Sequence[Record]],
    exported_at: Optional[datetime] = None,
) -> Path:
    """
    Write a JSON backup of the given record collections.

    `collections` maps record kinds ("transactions", "petty_cash",
    "budgets", "balance_sheet") to records; missing kinds are written as
    empty lists.
    """
    data: dict[str, Any] = {
        "exportDate": (exported_at or datetime.now()).isoformat(),
        "version": BACKUP_VERSION,
    }
    for kind, key in BACKUP_KEYS.items():
        data[key] = [record_to_dict(r) for r in collections.get(kind, ())]

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    logger.info("Wrote backup %s", path)
    return path


def read_backup(path: Path) -> dict[str, list[Record]]:
    """
    Read a JSON backup written by `write_backup`.

    Returns
    -------
    dict[str, list[Record]]
        Records per kind (every kind present, possibly empty).

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the file is not valid JSON, lacks ``exportDate``/``version``,
        or contains malformed records.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Backup file not found: {path}")

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Backup file is not valid JSON: {path}") from exc

    if not isinstance(data, dict):
        raise ValueError("Invalid backup file format")
    if not data.get("exportDate") or not data.get("version"):
        raise ValueError("Invalid backup file format")

    collections: dict[str, list[Record]] = {}
    for kind, key in BACKUP_KEYS.items():
        items = data.get(key) or []
        if not isinstance(items, list):
            raise ValueError(f"Invalid backup file format: '{key}' must be a list.")
        collections[kind] = [record_from_dict(kind, item) for item in items]
    return collections
