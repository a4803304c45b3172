# SMB Ledger - Accounting Dashboard & Reporting engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.


"""
Database layer for SMB Ledger.

This module provides the durable record store used when a user is
identified. It is responsible for:

- Initializing the SQLite schema (idempotent).
- Exposing owner-scoped CRUD operations over the four record kinds.
- Recording the per-owner "local records migrated" marker.

------------------------------------------------------------------------------
Schema Overview
------------------------------------------------------------------------------

1) transactions
   - id            TEXT PRIMARY KEY      -- UUID4
   - user_id       TEXT NOT NULL
   - date          TEXT NOT NULL         -- ISO date 'YYYY-MM-DD'
   - type          TEXT NOT NULL         -- 'income' | 'expense'
   - category      TEXT NOT NULL
   - description   TEXT NOT NULL
   - amount_cents  INTEGER NOT NULL
   - receipt_url   TEXT
   - created_at    TEXT NOT NULL         -- UTC timestamp

2) petty_cash_entries
   Same layout as transactions, with type 'add' | 'withdraw' and no
   category.

3) budgets
   - id, user_id, category, budgeted_amount_cents, period,
     start_date, end_date, created_at

4) balance_sheet_items
   - id, user_id, category ('assets' | 'liabilities' | 'equity'),
     subcategory, amount_cents, date, created_at

5) migrations
   - owner_id          TEXT PRIMARY KEY
   - migrated_at       TEXT NOT NULL
   - records_migrated  INTEGER NOT NULL

Amounts are stored as integer cents and converted back to floats when
records are loaded.

------------------------------------------------------------------------------
Error handling
------------------------------------------------------------------------------

Every operation is scoped by an owner id. A missing owner id, an unknown
record, a forbidden update or any ``sqlite3.Error`` is raised as
``StoreError``. Nothing is retried here.
"""

import logging
import sqlite3
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Optional

from .models import (
    Record,
    kind_of,
    record_from_dict,
    record_to_dict,
    with_identity,
)

logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    """Raised when the record store cannot complete an operation."""


@dataclass(frozen=True)
class DatabaseConfig:
    """
    Database configuration for SMB Ledger.

    Attributes
    ----------
    engine:
        Database engine identifier. Only "sqlite" is supported.
    path:
        Path to the SQLite database file.
    """

    engine: str
    path: Path


@dataclass(frozen=True)
class _TableSpec:
    table: str
    columns: tuple[str, ...]
    # record field -> column holding its value in cents
    cents: Mapping[str, str]
    # fields that `update` may change
    updatable: frozenset[str]
    order_by: str


_TABLES: dict[str, _TableSpec] = {
    "transactions": _TableSpec(
        table="transactions",
        columns=(
            "id",
            "user_id",
            "date",
            "type",
            "category",
            "description",
            "amount_cents",
            "receipt_url",
        ),
        cents={"amount": "amount_cents"},
        updatable=frozenset({"receipt_url"}),
        order_by="date DESC, created_at DESC",
    ),
    "petty_cash": _TableSpec(
        table="petty_cash_entries",
        columns=(
            "id",
            "user_id",
            "date",
            "type",
            "description",
            "amount_cents",
            "receipt_url",
        ),
        cents={"amount": "amount_cents"},
        updatable=frozenset({"receipt_url"}),
        order_by="date DESC, created_at DESC",
    ),
    "budgets": _TableSpec(
        table="budgets",
        columns=(
            "id",
            "user_id",
            "category",
            "budgeted_amount_cents",
            "period",
            "start_date",
            "end_date",
        ),
        cents={"budgeted_amount": "budgeted_amount_cents"},
        updatable=frozenset(
            {"category", "budgeted_amount", "period", "start_date", "end_date"}
        ),
        order_by="start_date DESC, created_at DESC",
    ),
    "balance_sheet": _TableSpec(
        table="balance_sheet_items",
        columns=("id", "user_id", "category", "subcategory", "amount_cents", "date"),
        cents={"amount": "amount_cents"},
        updatable=frozenset(),
        order_by="date DESC, created_at DESC",
    ),
}


# Internal helpers
# ---------------------------------------------------------------------------


def _ensure_sqlite(cfg: DatabaseConfig) -> None:
    """Raise if the configuration does not refer to a supported engine."""
    if cfg.engine.lower() != "sqlite":
        msg = (
            f"Unsupported database engine: {cfg.engine!r}. "
            "Only 'sqlite' is supported for now."
        )
        raise ValueError(msg)


def _connect(cfg: DatabaseConfig) -> sqlite3.Connection:
    """
    Open a SQLite connection.

    The caller is responsible for closing the connection.
    """
    _ensure_sqlite(cfg)
    return sqlite3.connect(cfg.path)


def _create_schema_if_needed(conn: sqlite3.Connection) -> None:
    """
    Create tables and indexes if they do not exist yet.

    This function is idempotent and can be called multiple times safely.
    """
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS transactions (
            id            TEXT    PRIMARY KEY,
            user_id       TEXT    NOT NULL,
            date          TEXT    NOT NULL,  -- ISO date 'YYYY-MM-DD'
            type          TEXT    NOT NULL CHECK (type IN ('income', 'expense')),
            category      TEXT    NOT NULL,
            description   TEXT    NOT NULL DEFAULT '',
            amount_cents  INTEGER NOT NULL,
            receipt_url   TEXT,
            created_at    TEXT    NOT NULL
        );
        """
    )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS petty_cash_entries (
            id            TEXT    PRIMARY KEY,
            user_id       TEXT    NOT NULL,
            date          TEXT    NOT NULL,
            type          TEXT    NOT NULL CHECK (type IN ('add', 'withdraw')),
            description   TEXT    NOT NULL DEFAULT '',
            amount_cents  INTEGER NOT NULL,
            receipt_url   TEXT,
            created_at    TEXT    NOT NULL
        );
        """
    )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS budgets (
            id                     TEXT    PRIMARY KEY,
            user_id                TEXT    NOT NULL,
            category               TEXT    NOT NULL,
            budgeted_amount_cents  INTEGER NOT NULL,
            period                 TEXT    NOT NULL,
            -- 'monthly' | 'quarterly' | 'yearly'
            start_date             TEXT    NOT NULL,
            end_date               TEXT    NOT NULL,
            created_at             TEXT    NOT NULL
        );
        """
    )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS balance_sheet_items (
            id            TEXT    PRIMARY KEY,
            user_id       TEXT    NOT NULL,
            category      TEXT    NOT NULL,
            subcategory   TEXT    NOT NULL DEFAULT '',
            amount_cents  INTEGER NOT NULL,
            date          TEXT    NOT NULL,
            created_at    TEXT    NOT NULL
        );
        """
    )

    # One row per owner whose local records were copied into this store.
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS migrations (
            owner_id          TEXT    PRIMARY KEY,
            migrated_at       TEXT    NOT NULL,
            records_migrated  INTEGER NOT NULL
        );
        """
    )

    # Indexes
    for spec in _TABLES.values():
        conn.execute(
            f"CREATE INDEX IF NOT EXISTS idx_{spec.table}_user "
            f"ON {spec.table}(user_id);"
        )

    conn.commit()


def _now_utc_iso() -> str:
    """Return the current UTC datetime as ISO string."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _to_cents(amount: float) -> int:
    return int(round(float(amount) * 100))


def _to_db_value(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    return value


def _get_spec(kind: str) -> _TableSpec:
    try:
        return _TABLES[kind]
    except KeyError as exc:
        raise StoreError(f"Unknown record kind: {kind!r}") from exc


def updatable_fields(kind: str) -> frozenset[str]:
    """Return the record fields that `RecordStore.update` may change for `kind`."""
    return _get_spec(kind).updatable


def _as_date(value: Any) -> date:
    return value if isinstance(value, date) else date.fromisoformat(str(value))


def check_budget_dates(start_date: Any, end_date: Any) -> None:
    """Raise StoreError when a budget would end before it starts."""
    if _as_date(end_date) < _as_date(start_date):
        raise StoreError("End date cannot be before start date.")


def _require_owner(owner_id: Optional[str]) -> str:
    if not owner_id:
        raise StoreError(
            "No authenticated user: the record store requires an owner id."
        )
    return owner_id


def _record_to_row(spec: _TableSpec, record: Record) -> dict[str, Any]:
    data = record_to_dict(record)
    for field_name, column in spec.cents.items():
        data[column] = _to_cents(data.pop(field_name))
    return {col: data.get(col) for col in spec.columns}


def _row_to_record(kind: str, spec: _TableSpec, row: tuple) -> Record:
    data = dict(zip(spec.columns, row))
    for field_name, column in spec.cents.items():
        data[field_name] = data.pop(column) / 100
    return record_from_dict(kind, data)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def init_database(cfg: DatabaseConfig) -> None:
    """
    Initialize the database schema if needed.

    - Creates the SQLite file (and its parent directory) if it does not exist.
    - Creates tables and indexes if they are missing.
    - This function is idempotent: calling it multiple times is safe.

    Raises
    ------
    ValueError
        If cfg.engine is not supported.
    StoreError
        If schema creation fails.
    """
    cfg.path.parent.mkdir(parents=True, exist_ok=True)

    conn = _connect(cfg)
    try:
        _create_schema_if_needed(conn)
    except sqlite3.Error as exc:
        raise StoreError(f"Failed to initialize database {cfg.path}: {exc}") from exc
    finally:
        conn.close()


@dataclass(frozen=True)
class _Result:
    rows: list[tuple]
    rowcount: int


class RecordStore:
    """
    Owner-scoped SQLite record store.

    Operations
    ----------
    list(kind, owner_id)               -> records, most recent first
    insert(kind, record)               -> stored record (id assigned)
    update(kind, id, fields, owner_id) -> None
    delete(kind, id, owner_id)         -> None

    `kind` is one of "transactions", "petty_cash", "budgets",
    "balance_sheet". A connection is opened and closed per call.
    """

    def __init__(self, cfg: DatabaseConfig) -> None:
        self.cfg = cfg
        init_database(cfg)

    def _execute(self, sql: str, params: tuple = ()) -> _Result:
        conn = _connect(self.cfg)
        try:
            cur = conn.execute(sql, params)
            result = _Result(rows=cur.fetchall(), rowcount=cur.rowcount)
            conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Database operation failed: {exc}") from exc
        finally:
            conn.close()
        return result

    def list(self, kind: str, owner_id: Optional[str]) -> list[Record]:
        spec = _get_spec(kind)
        owner = _require_owner(owner_id)
        result = self._execute(
            f"SELECT {', '.join(spec.columns)} FROM {spec.table} "
            f"WHERE user_id = ? ORDER BY {spec.order_by};",
            (owner,),
        )
        return [_row_to_record(kind, spec, row) for row in result.rows]

    def insert(self, kind: str, record: Record) -> Record:
        """
        Insert a record and return it with its id.

        The record's `user_id` is the owner; a record without an id gets a
        fresh UUID4.
        """
        spec = _get_spec(kind)
        if kind_of(record) != kind:
            raise StoreError(
                f"Cannot insert a {type(record).__name__} into {kind!r}."
            )
        owner = _require_owner(record.user_id)
        stored = with_identity(record, record.id or str(uuid.uuid4()), owner)

        row = _record_to_row(spec, stored)
        columns = list(spec.columns) + ["created_at"]
        values = [row[c] for c in spec.columns] + [_now_utc_iso()]
        placeholders = ", ".join("?" for _ in columns)
        self._execute(
            f"INSERT INTO {spec.table} ({', '.join(columns)}) VALUES ({placeholders});",
            tuple(values),
        )
        logger.debug("Inserted %s record %s for %s", kind, stored.id, owner)
        return stored

    def update(
        self,
        kind: str,
        record_id: str,
        fields: Mapping[str, Any],
        owner_id: Optional[str],
    ) -> None:
        """
        Update some fields of a record.

        Raises
        ------
        StoreError
            If no field is given, a field cannot be changed (e.g. the type
            of a transaction), or the record does not exist for this owner.
        """
        spec = _get_spec(kind)
        owner = _require_owner(owner_id)
        if not fields:
            raise StoreError("No fields to update.")

        forbidden = sorted(set(fields) - updatable_fields(kind))
        if forbidden:
            raise StoreError(
                f"Field(s) cannot be updated on {kind}: {', '.join(forbidden)}"
            )

        if kind == "budgets" and {"start_date", "end_date"} & set(fields):
            self._check_budget_range(record_id, owner, fields)

        assignments: list[str] = []
        params: list[Any] = []
        for name, value in fields.items():
            if name in spec.cents:
                assignments.append(f"{spec.cents[name]} = ?")
                params.append(_to_cents(value))
            else:
                assignments.append(f"{name} = ?")
                params.append(_to_db_value(value))

        result = self._execute(
            f"UPDATE {spec.table} SET {', '.join(assignments)} "
            "WHERE id = ? AND user_id = ?;",
            tuple(params) + (record_id, owner),
        )
        if result.rowcount == 0:
            raise StoreError(f"{kind} record {record_id!r} not found.")
        logger.debug("Updated %s record %s (%s)", kind, record_id, ", ".join(fields))

    def _check_budget_range(
        self, record_id: str, owner: str, fields: Mapping[str, Any]
    ) -> None:
        result = self._execute(
            "SELECT start_date, end_date FROM budgets WHERE id = ? AND user_id = ?;",
            (record_id, owner),
        )
        if not result.rows:
            raise StoreError(f"budgets record {record_id!r} not found.")
        stored_start, stored_end = result.rows[0]
        check_budget_dates(
            fields.get("start_date", stored_start),
            fields.get("end_date", stored_end),
        )

    def delete(self, kind: str, record_id: str, owner_id: Optional[str]) -> None:
        spec = _get_spec(kind)
        owner = _require_owner(owner_id)
        result = self._execute(
            f"DELETE FROM {spec.table} WHERE id = ? AND user_id = ?;",
            (record_id, owner),
        )
        if result.rowcount == 0:
            raise StoreError(f"{kind} record {record_id!r} not found.")
        logger.debug("Deleted %s record %s", kind, record_id)

    # Migration marker ---------------------------------------------------

    def is_migrated(self, owner_id: Optional[str]) -> bool:
        """Return True if local records were already migrated for this owner."""
        owner = _require_owner(owner_id)
        result = self._execute(
            "SELECT 1 FROM migrations WHERE owner_id = ?;",
            (owner,),
        )
        return bool(result.rows)

    def mark_migrated(self, owner_id: Optional[str], records_migrated: int) -> None:
        owner = _require_owner(owner_id)
        self._execute(
            "INSERT OR IGNORE INTO migrations "
            "(owner_id, migrated_at, records_migrated) "
            "VALUES (?, ?, ?);",
            (owner, _now_utc_iso(), int(records_migrated)),
        )
