# SMB Ledger - Accounting Dashboard & Reporting engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Data model for SMB Ledger.

This module defines the four record types handled by the application and
the helpers that move them between representations:

- ``Transaction``       one income or expense event,
- ``PettyCashEntry``    one cash-drawer movement (add / withdraw),
- ``Budget``            a planned spending ceiling for a category,
- ``BalanceSheetItem``  one dated balance contribution.

All records are immutable (frozen dataclasses). Collections of records are
flat, owner-scoped and insertion-order irrelevant; sorting is a read-time
concern (see ``sort_by_date_desc``).

Representations
---------------
1) Dataclasses: the typed, validated form used by services and exports.

2) Plain dictionaries (``record_to_dict`` / ``record_from_dict``): used by
   the record store, the local buffer and the JSON backup. Dates are ISO
   strings in that form.

3) pandas DataFrames (``transactions_to_frame`` and friends): the input
   format of the aggregation engine. Every frame has a ``date`` column of
   dtype datetime64[ns] and a float ``amount`` column, even when empty.
"""

from calendar import monthrange
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass, fields, replace
from datetime import date
from typing import Any, Literal, Optional, Union

import pandas as pd

TransactionType = Literal["income", "expense"]
PettyCashType = Literal["add", "withdraw"]
BudgetPeriod = Literal["monthly", "quarterly", "yearly"]
BalanceSheetCategory = Literal["assets", "liabilities", "equity"]

TRANSACTION_TYPES: tuple[str, ...] = ("income", "expense")
PETTY_CASH_TYPES: tuple[str, ...] = ("add", "withdraw")
BUDGET_PERIODS: tuple[str, ...] = ("monthly", "quarterly", "yearly")
BALANCE_SHEET_CATEGORIES: tuple[str, ...] = ("assets", "liabilities", "equity")

# Number of months covered by each budget period kind.
PERIOD_MONTHS: dict[str, int] = {"monthly": 1, "quarterly": 3, "yearly": 12}


@dataclass(frozen=True)
class Transaction:
    """
    A single income or expense event.

    The type is fixed at creation: changing the direction of a transaction
    is modeled as delete + recreate. After creation, only the receipt
    reference may change.
    """

    id: Optional[str]
    user_id: Optional[str]
    amount: float
    description: str
    category: str
    type: TransactionType
    date: date
    receipt_url: Optional[str] = None


@dataclass(frozen=True)
class PettyCashEntry:
    """A cash-drawer movement: money added to or withdrawn from petty cash."""

    id: Optional[str]
    user_id: Optional[str]
    amount: float
    description: str
    type: PettyCashType
    date: date
    receipt_url: Optional[str] = None


@dataclass(frozen=True)
class Budget:
    """
    A planned spending ceiling for a category over [start_date, end_date].

    Expenditure against a budget is recorded as an ordinary expense
    Transaction carrying the budget's category: the association is made at
    read time by category and date range.
    """

    id: Optional[str]
    user_id: Optional[str]
    category: str
    budgeted_amount: float
    period: BudgetPeriod
    start_date: date
    end_date: date


@dataclass(frozen=True)
class BalanceSheetItem:
    """One dated contribution to the assets, liabilities or equity side."""

    id: Optional[str]
    user_id: Optional[str]
    category: BalanceSheetCategory
    subcategory: str
    amount: float
    date: date


Record = Union[Transaction, PettyCashEntry, Budget, BalanceSheetItem]

# Entity kinds as used by the record store and the backup format.
RecordKind = Literal["transactions", "petty_cash", "budgets", "balance_sheet"]

RECORD_TYPES: dict[str, type] = {
    "transactions": Transaction,
    "petty_cash": PettyCashEntry,
    "budgets": Budget,
    "balance_sheet": BalanceSheetItem,
}

_DATE_FIELDS = ("date", "start_date", "end_date")


def kind_of(record: Record) -> str:
    """Return the record kind ('transactions', 'petty_cash', ...) of a record."""
    for kind, cls in RECORD_TYPES.items():
        if isinstance(record, cls):
            return kind
    raise TypeError(f"Unsupported record type: {type(record).__name__}")


def add_months(start: date, months: int) -> date:
    """
    Return `start` shifted by `months` calendar months.

    The day is clamped to the last day of the target month
    (e.g. 2024-01-31 + 1 month -> 2024-02-29).
    """
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, monthrange(year, month)[1])
    return date(year, month, day)


def budget_end_date(start: date, period: str) -> date:
    """Derive a budget end date as start + 1, 3 or 12 months."""
    try:
        months = PERIOD_MONTHS[period]
    except KeyError as exc:
        raise ValueError(f"Unknown budget period: {period!r}") from exc
    return add_months(start, months)


def with_identity(record: Record, record_id: str, user_id: Optional[str]) -> Record:
    """Return a copy of `record` carrying the given id and owner."""
    return replace(record, id=record_id, user_id=user_id)


def record_to_dict(record: Record) -> dict[str, Any]:
    """Convert a record into a plain dictionary with ISO-formatted dates."""
    data = asdict(record)
    for key in _DATE_FIELDS:
        if key in data and isinstance(data[key], date):
            data[key] = data[key].isoformat()
    return data


def record_from_dict(kind: str, data: Mapping[str, Any]) -> Record:
    """
    Build a record of the given kind from a plain dictionary.

    Unknown keys are ignored, ISO date strings are parsed and amounts are
    converted to float.

    Raises:
        ValueError: if the kind is unknown or a field cannot be converted.
    """
    try:
        cls = RECORD_TYPES[kind]
    except KeyError as exc:
        raise ValueError(f"Unknown record kind: {kind!r}") from exc

    values: dict[str, Any] = {}
    for f in fields(cls):
        if f.name not in data:
            continue
        value = data[f.name]
        if f.name in _DATE_FIELDS and isinstance(value, str):
            value = date.fromisoformat(value)
        elif f.name in ("amount", "budgeted_amount") and value is not None:
            value = float(value)
        values[f.name] = value

    values.setdefault("id", None)
    values.setdefault("user_id", None)
    try:
        return cls(**values)
    except TypeError as exc:
        raise ValueError(f"Incomplete {kind} record: {dict(data)!r}") from exc


def _record_date(record: Record) -> date:
    if isinstance(record, Budget):
        return record.start_date
    return record.date


def sort_by_date_desc(records: Iterable[Record]) -> list[Record]:
    """Return records sorted by date, most recent first (budgets by start date)."""
    return sorted(records, key=_record_date, reverse=True)


# ---------------------------------------------------------------------------
# DataFrame conversion (engine input)
# ---------------------------------------------------------------------------


def _to_frame(rows: list[dict[str, Any]], columns: list[str]) -> pd.DataFrame:
    df = pd.DataFrame(rows, columns=columns)
    for col in ("date", "start_date", "end_date"):
        if col in df.columns:
            df[col] = pd.to_datetime(df[col])
    for col in ("amount", "budgeted_amount"):
        if col in df.columns:
            df[col] = df[col].astype(float)
    return df


def transactions_to_frame(transactions: Iterable[Transaction]) -> pd.DataFrame:
    """
    Convert transactions into the engine's DataFrame format.

    Columns: id, date (datetime64[ns]), type, category, description,
    amount (float).
    """
    rows = [
        {
            "id": t.id,
            "date": t.date,
            "type": t.type,
            "category": t.category,
            "description": t.description,
            "amount": t.amount,
        }
        for t in transactions
    ]
    return _to_frame(rows, ["id", "date", "type", "category", "description", "amount"])


def petty_cash_to_frame(entries: Iterable[PettyCashEntry]) -> pd.DataFrame:
    """Convert petty-cash entries into a DataFrame."""
    rows = [
        {
            "id": e.id,
            "date": e.date,
            "type": e.type,
            "description": e.description,
            "amount": e.amount,
        }
        for e in entries
    ]
    return _to_frame(rows, ["id", "date", "type", "description", "amount"])


def balance_sheet_to_frame(items: Iterable[BalanceSheetItem]) -> pd.DataFrame:
    """Convert balance-sheet items into a DataFrame."""
    rows = [
        {
            "id": i.id,
            "date": i.date,
            "category": i.category,
            "subcategory": i.subcategory,
            "amount": i.amount,
        }
        for i in items
    ]
    return _to_frame(rows, ["id", "date", "category", "subcategory", "amount"])
