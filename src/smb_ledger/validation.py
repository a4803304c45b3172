# SMB Ledger - Accounting Dashboard & Reporting engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Import validation and normalization for SMB Ledger.

This module sits between the tabular parser (io.py) and the record store.
It takes the loosely-typed rows produced by the parser and either:

- returns a list of row-addressed error messages (nothing is imported), or
- returns the clean rows, which `normalize_rows` turns into typed records.

Validation is all-or-nothing: every row is checked before anything is
reported, and a single error withholds the whole batch. Untyped rows never
reach the store.

Error messages
--------------
Messages are numbered from 1 and are meant to be shown to the user as-is:

    Row 2: Missing category
    Row 3: Amount must be a valid number
    Row 4: Invalid date format
    Row 4: Invalid start date format
    Row 5: Amount must not be negative
    Row 6: Category must be one of assets, liabilities, equity
    Row 7: Period must be one of monthly, quarterly, yearly
    Row 8: End date cannot be before start date

Entity schemas
--------------
Each importable kind (income, expense, petty-cash, budget, balance-sheet)
is described by an `ImportSchema`. The schema's required columns are also
the columns of the downloadable import template.
"""

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

import pandas as pd

from .categories import (
    BUDGET_CATEGORIES,
    categories_for,
    default_category_for,
    find_category,
)
from .io import TabularParseError, parse_tabular_text
from .models import (
    BALANCE_SHEET_CATEGORIES,
    BUDGET_PERIODS,
    BalanceSheetItem,
    Budget,
    PettyCashEntry,
    Record,
    Transaction,
    budget_end_date,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationResult:
    """
    Outcome of `validate_rows`.

    `rows` is empty whenever `errors` is not: a batch is either fully clean
    or fully rejected.
    """

    rows: list[dict[str, str]]
    errors: list[str]

    @property
    def ok(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class ImportSchema:
    """
    Import rules for one record kind.

    Attributes
    ----------
    kind :
        Import kind ("income", "expense", "petty-cash", "budget",
        "balance-sheet").
    title :
        Human-readable name, used for template file names.
    record_kind :
        Store collection receiving the imported records.
    required_columns :
        Columns that must be present and non-empty. Also the template header.
    numeric_columns / date_columns :
        Columns checked for number / calendar-date well-formedness when
        present and non-empty.
    non_negative_columns :
        Numeric columns that must not be negative.
    choices :
        Column -> allowed values (compared case-insensitively).
    date_ranges :
        (start column, end column) pairs; when both dates parse, the end
        must not be before the start.
    column_aliases :
        Alternative header -> canonical column, applied before validation.
    sample_rows :
        Example rows written below the template header.
    """

    kind: str
    title: str
    record_kind: str
    required_columns: tuple[str, ...]
    numeric_columns: tuple[str, ...] = ("amount",)
    date_columns: tuple[str, ...] = ("date",)
    non_negative_columns: tuple[str, ...] = ("amount",)
    choices: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    date_ranges: tuple[tuple[str, str], ...] = ()
    column_aliases: Mapping[str, str] = field(default_factory=dict)
    sample_rows: tuple[Mapping[str, str], ...] = ()


IMPORT_SCHEMAS: dict[str, ImportSchema] = {
    "income": ImportSchema(
        kind="income",
        title="Income Data",
        record_kind="transactions",
        required_columns=("date", "category", "description", "amount"),
        sample_rows=(
            {
                "date": "2024-01-15",
                "category": "Advertisements",
                "description": "Digital advertising revenue",
                "amount": "15000",
            },
            {
                "date": "2024-01-16",
                "category": "Powerbank Sales",
                "description": "Powerbank unit sales",
                "amount": "8500",
            },
        ),
    ),
    "expense": ImportSchema(
        kind="expense",
        title="Expense Data",
        record_kind="transactions",
        required_columns=("date", "category", "description", "amount"),
        sample_rows=(
            {
                "date": "2024-01-15",
                "category": "Operations Department",
                "description": "Office supplies and equipment",
                "amount": "5000",
            },
            {
                "date": "2024-01-16",
                "category": "IT Department",
                "description": "Software licenses",
                "amount": "12000",
            },
        ),
    ),
    "petty-cash": ImportSchema(
        kind="petty-cash",
        title="Petty Cash Data",
        record_kind="petty_cash",
        required_columns=("date", "type", "description", "amount"),
        sample_rows=(
            {
                "date": "2024-01-15",
                "type": "add",
                "description": "Initial petty cash fund",
                "amount": "10000",
            },
            {
                "date": "2024-01-16",
                "type": "withdraw",
                "description": "Office supplies purchase",
                "amount": "1500",
            },
        ),
    ),
    "budget": ImportSchema(
        kind="budget",
        title="Budget Data",
        record_kind="budgets",
        required_columns=(
            "category",
            "budgeted_amount",
            "period",
            "start_date",
            "end_date",
        ),
        numeric_columns=("budgeted_amount",),
        date_columns=("start_date", "end_date"),
        non_negative_columns=("budgeted_amount",),
        choices={"period": BUDGET_PERIODS},
        date_ranges=(("start_date", "end_date"),),
        column_aliases={
            "budgetedAmount": "budgeted_amount",
            "startDate": "start_date",
            "endDate": "end_date",
        },
        sample_rows=(
            {
                "category": "Operations Department",
                "budgeted_amount": "50000",
                "period": "monthly",
                "start_date": "2024-01-01",
                "end_date": "2024-01-31",
            },
            {
                "category": "IT Department",
                "budgeted_amount": "30000",
                "period": "monthly",
                "start_date": "2024-01-01",
                "end_date": "2024-01-31",
            },
        ),
    ),
    "balance-sheet": ImportSchema(
        kind="balance-sheet",
        title="Balance Sheet Data",
        record_kind="balance_sheet",
        required_columns=("category", "subcategory", "amount", "date"),
        non_negative_columns=(),
        choices={"category": BALANCE_SHEET_CATEGORIES},
        sample_rows=(
            {
                "category": "assets",
                "subcategory": "Cash and Cash Equivalents",
                "amount": "100000",
                "date": "2024-01-01",
            },
            {
                "category": "assets",
                "subcategory": "Equipment",
                "amount": "250000",
                "date": "2024-01-01",
            },
        ),
    ),
}


def get_schema(kind: str) -> ImportSchema:
    """Return the import schema for `kind` or raise ValueError."""
    try:
        return IMPORT_SCHEMAS[kind]
    except KeyError as exc:
        known = ", ".join(IMPORT_SCHEMAS)
        raise ValueError(
            f"Unknown import kind {kind!r}. Expected one of: {known}."
        ) from exc


# ---------------------------------------------------------------------------
# Field parsing helpers
# ---------------------------------------------------------------------------


def _humanize(column: str) -> str:
    """'budgeted_amount' -> 'Budgeted amount'."""
    text = column.replace("_", " ").strip()
    return text[:1].upper() + text[1:]


def parse_number(value: str) -> Optional[float]:
    """Return `value` as a finite float, or None if it is not one."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def parse_date(value: str) -> Optional[date]:
    """
    Parse a calendar date.

    ISO ``YYYY-MM-DD`` is tried first, then pandas date parsing for other
    unambiguous spellings. Returns None when the value is not a date.
    """
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        pass

    try:
        parsed = pd.to_datetime(value, errors="raise")
    except (TypeError, ValueError, OverflowError):
        return None
    if pd.isna(parsed):
        return None
    return parsed.date()


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_rows(
    rows: Sequence[Mapping[str, str]],
    required_columns: Iterable[str],
    *,
    numeric_columns: Iterable[str] = ("amount",),
    date_columns: Iterable[str] = ("date",),
    non_negative_columns: Iterable[str] = (),
    choices: Optional[Mapping[str, tuple[str, ...]]] = None,
    date_ranges: Iterable[tuple[str, str]] = (),
) -> ValidationResult:
    """
    Validate every row and collect all errors.

    Checks, per row (numbered from 1):
    - each required column is present and non-empty,
    - each numeric column, when present and non-empty, is a finite number
      (and non-negative for `non_negative_columns`),
    - each date column, when present and non-empty, is a calendar date,
    - each column listed in `choices`, when non-empty, holds an allowed
      value,
    - for each `date_ranges` pair whose two dates parse, the end date is
      not before the start date.

    Returns
    -------
    ValidationResult
        Clean rows when there is no error, otherwise no rows and the full
        list of messages.
    """
    required = tuple(required_columns)
    numeric = tuple(numeric_columns)
    dates = tuple(date_columns)
    non_negative = set(non_negative_columns)
    choices = choices or {}
    ranges = tuple(date_ranges)

    errors: list[str] = []
    for index, row in enumerate(rows, start=1):
        for column in required:
            if not row.get(column):
                errors.append(f"Row {index}: Missing {column}")

        for column in numeric:
            raw = row.get(column)
            if not raw:
                continue
            number = parse_number(raw)
            if number is None:
                errors.append(
                    f"Row {index}: {_humanize(column)} must be a valid number"
                )
            elif column in non_negative and number < 0:
                errors.append(f"Row {index}: {_humanize(column)} must not be negative")

        for column in dates:
            raw = row.get(column)
            if raw and parse_date(raw) is None:
                label = "date" if column == "date" else column.replace("_", " ")
                errors.append(f"Row {index}: Invalid {label} format")

        for column, allowed in choices.items():
            raw = row.get(column)
            if raw and raw.lower() not in allowed:
                errors.append(
                    f"Row {index}: {_humanize(column)} must be one of "
                    f"{', '.join(allowed)}"
                )

        for start_column, end_column in ranges:
            raw_start, raw_end = row.get(start_column), row.get(end_column)
            if not (raw_start and raw_end):
                continue
            start, end = parse_date(raw_start), parse_date(raw_end)
            if start is not None and end is not None and end < start:
                errors.append(f"Row {index}: End date cannot be before start date")

    if errors:
        logger.info(
            "Validation rejected %d row(s) with %d error(s)", len(rows), len(errors)
        )
        return ValidationResult(rows=[], errors=errors)

    return ValidationResult(rows=[dict(r) for r in rows], errors=[])


def validate_for_schema(
    schema: ImportSchema, rows: Sequence[Mapping[str, str]]
) -> ValidationResult:
    """Validate rows against an entity schema."""
    return validate_rows(
        rows,
        schema.required_columns,
        numeric_columns=schema.numeric_columns,
        date_columns=schema.date_columns,
        non_negative_columns=schema.non_negative_columns,
        choices=schema.choices,
        date_ranges=schema.date_ranges,
    )


def apply_column_aliases(
    rows: Sequence[Mapping[str, str]], aliases: Mapping[str, str]
) -> list[dict[str, str]]:
    """
    Rename alternative headers to their canonical column.

    A non-empty canonical cell is kept when a row carries both spellings.
    """
    if not aliases:
        return [dict(r) for r in rows]

    renamed: list[dict[str, str]] = []
    for row in rows:
        out: dict[str, str] = {}
        for column, value in row.items():
            target = aliases.get(column, column)
            if target in out and out[target]:
                continue
            out[target] = value
        renamed.append(out)
    return renamed


# ---------------------------------------------------------------------------
# Normalization (clean rows -> typed records)
# ---------------------------------------------------------------------------


def _date_or(value: Optional[str], fallback: date) -> date:
    if not value:
        return fallback
    parsed = parse_date(value)
    if parsed is None:
        raise ValueError(f"Invalid date: {value!r}")
    return parsed


def _amount(value: Optional[str]) -> float:
    number = parse_number(value or "")
    if number is None:
        raise ValueError(f"Invalid amount: {value!r}")
    return number


def _category(value: Optional[str], kind: str) -> str:
    if not value:
        return default_category_for(kind)
    candidates = BUDGET_CATEGORIES if kind == "budget" else categories_for(kind)
    return find_category(value, candidates) or value


def normalize_rows(
    kind: str,
    rows: Iterable[Mapping[str, str]],
    *,
    user_id: Optional[str],
    today: date,
) -> list[Record]:
    """
    Convert validated rows into typed records of the given import kind.

    Defaults applied to blank optional fields:
    - category: "Other" for income, "Miscellaneous" for expenses and budgets,
    - date / budget start: `today`,
    - description / balance-sheet subcategory: "",
    - budget period: "monthly"; budget end: start + period length,
    - petty-cash type: "withdraw" only when the cell says so, else "add".

    Category labels matching a suggested category (case-insensitively) are
    replaced by its canonical spelling.

    Records are returned without an id; the store assigns one on insert.

    Raises
    ------
    ValueError
        If `kind` is unknown or a row was not validated beforehand.
    """
    get_schema(kind)
    records: list[Record] = []

    for row in rows:
        if kind in ("income", "expense"):
            records.append(
                Transaction(
                    id=None,
                    user_id=user_id,
                    amount=_amount(row.get("amount")),
                    description=row.get("description", ""),
                    category=_category(row.get("category"), kind),
                    type=kind,
                    date=_date_or(row.get("date"), today),
                )
            )
        elif kind == "petty-cash":
            is_withdrawal = row.get("type", "").lower() == "withdraw"
            cash_type = "withdraw" if is_withdrawal else "add"
            records.append(
                PettyCashEntry(
                    id=None,
                    user_id=user_id,
                    amount=_amount(row.get("amount")),
                    description=row.get("description", ""),
                    type=cash_type,
                    date=_date_or(row.get("date"), today),
                )
            )
        elif kind == "budget":
            period = (row.get("period") or "monthly").lower()
            start = _date_or(row.get("start_date"), today)
            end_raw = row.get("end_date")
            if end_raw:
                end = _date_or(end_raw, start)
            else:
                end = budget_end_date(start, period)
            records.append(
                Budget(
                    id=None,
                    user_id=user_id,
                    category=_category(row.get("category"), kind),
                    budgeted_amount=_amount(row.get("budgeted_amount")),
                    period=period,
                    start_date=start,
                    end_date=end,
                )
            )
        else:
            records.append(
                BalanceSheetItem(
                    id=None,
                    user_id=user_id,
                    category=row.get("category", "").lower(),
                    subcategory=row.get("subcategory", ""),
                    amount=_amount(row.get("amount")),
                    date=_date_or(row.get("date"), today),
                )
            )

    return records


@dataclass(frozen=True)
class ImportPreview:
    """Typed records ready for insertion, or the errors blocking the import."""

    records: list[Record]
    errors: list[str]

    @property
    def ok(self) -> bool:
        return not self.errors


def import_tabular_text(
    kind: str,
    text: str,
    *,
    user_id: Optional[str],
    today: date,
    has_header_row: bool = True,
) -> ImportPreview:
    """
    Parse, validate and normalize delimited text for one import kind.

    A parse failure is reported as a single "File parsing error: ..."
    message. Nothing is written: inserting the records is the caller's job
    (see `records_service.DataSession.bulk_insert`).
    """
    schema = get_schema(kind)

    try:
        rows = parse_tabular_text(text, has_header_row=has_header_row)
    except TabularParseError as exc:
        return ImportPreview(records=[], errors=[f"File parsing error: {exc}"])

    if not rows:
        return ImportPreview(records=[], errors=["No data rows found"])

    rows = apply_column_aliases(rows, schema.column_aliases)
    result = validate_for_schema(schema, rows)
    if not result.ok:
        return ImportPreview(records=[], errors=result.errors)

    records = normalize_rows(kind, result.rows, user_id=user_id, today=today)
    logger.info("Prepared %d %s record(s) for import", len(records), kind)
    return ImportPreview(records=records, errors=[])
