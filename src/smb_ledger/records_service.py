# SMB Ledger - Accounting Dashboard & Reporting engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.


"""
High-level record services for SMB Ledger.

This module sits between:
- the storage backends (the SQLite `RecordStore` in `db.py` and the
  `LocalBuffer` defined here), and
- user-facing layers such as the CLI.

Responsibilities
----------------
1) Identity
   - `Principal` and the `IdentityProvider` protocol yield the current user,
     or None when nobody is signed in.

2) Backend selection
   - With a principal, records live in the durable `RecordStore`.
   - Without one, records live in the `LocalBuffer` (in memory, optionally
     persisted to a JSON file). No principal is never an error.

3) Session cache
   - `DataSession` keeps the records of exactly one owner in memory. The
     cache is keyed by owner id and reloaded whenever the identity changes,
     so records never leak from one user to another.

4) CRUD helpers
   - add / delete helpers per record kind, receipt attachment and budget
     expenditure. Writes go through the backend first, then update the
     cache.

5) Batch operations
   - `bulk_insert` inserts records one by one. It is NOT transactional: a
     failure raises `BulkInsertError` carrying the records already
     committed.
   - `migrate_local_records` copies buffered records into the durable store
     once per owner, using the `migrations` table as idempotency marker.

6) Backups
   - JSON export of the session's records and restore into the current
     backend.
"""

import json
import logging
import math
import uuid
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from datetime import date
from pathlib import Path
from typing import Any, Optional, Protocol

import pandas as pd

from .db import RecordStore, StoreError, check_budget_dates, updatable_fields
from .export import read_backup, write_backup
from .models import (
    BALANCE_SHEET_CATEGORIES,
    BUDGET_PERIODS,
    PETTY_CASH_TYPES,
    RECORD_TYPES,
    TRANSACTION_TYPES,
    BalanceSheetItem,
    Budget,
    PettyCashEntry,
    Record,
    Transaction,
    balance_sheet_to_frame,
    budget_end_date,
    kind_of,
    petty_cash_to_frame,
    record_from_dict,
    record_to_dict,
    sort_by_date_desc,
    transactions_to_frame,
)

logger = logging.getLogger(__name__)

RECORD_KINDS: tuple[str, ...] = tuple(RECORD_TYPES)


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Principal:
    """An authenticated user."""

    id: str
    email: Optional[str] = None


class IdentityProvider(Protocol):
    def current(self) -> Optional[Principal]:
        """Return the signed-in principal, or None."""
        ...


class StaticIdentityProvider:
    """
    Identity provider holding a fixed principal (CLI use).

    `sign_in` / `sign_out` change the identity; a `DataSession` notices
    the change on its next access.
    """

    def __init__(self, principal: Optional[Principal] = None) -> None:
        self._principal = principal

    def current(self) -> Optional[Principal]:
        return self._principal

    def sign_in(self, principal: Principal) -> None:
        self._principal = principal

    def sign_out(self) -> None:
        self._principal = None


# ---------------------------------------------------------------------------
# Local buffer
# ---------------------------------------------------------------------------


class LocalBuffer:
    """
    Local-only record storage used when nobody is signed in.

    Offers the same list/insert/update/delete contract as `RecordStore`
    but ignores owner ids. When `path` is given, the buffer is loaded from
    and saved to that JSON file after every write.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = path
        self._records: dict[str, list[Record]] = {kind: [] for kind in RECORD_KINDS}
        if path is not None and path.is_file():
            self._load(path)

    def _load(self, path: Path) -> None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise StoreError(f"Local buffer file is not valid JSON: {path}") from exc
        try:
            for kind in RECORD_KINDS:
                self._records[kind] = [
                    record_from_dict(kind, item) for item in data.get(kind, [])
                ]
        except (AttributeError, ValueError) as exc:
            raise StoreError(f"Local buffer file is malformed: {path}") from exc
        logger.debug("Loaded local buffer from %s", path)

    def _save(self) -> None:
        if self.path is None:
            return
        data = {
            kind: [record_to_dict(r) for r in records]
            for kind, records in self._records.items()
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def _index_of(self, kind: str, record_id: str) -> int:
        for index, record in enumerate(self._records[kind]):
            if record.id == record_id:
                return index
        raise StoreError(f"{kind} record {record_id!r} not found.")

    def list(self, kind: str, owner_id: Optional[str] = None) -> list[Record]:
        return sort_by_date_desc(self._records[kind])

    def insert(self, kind: str, record: Record) -> Record:
        if kind_of(record) != kind:
            raise StoreError(f"Cannot insert a {type(record).__name__} into {kind!r}.")
        stored = replace(record, id=record.id or str(uuid.uuid4()), user_id=None)
        self._records[kind].append(stored)
        self._save()
        return stored

    def update(
        self,
        kind: str,
        record_id: str,
        fields: Mapping[str, Any],
        owner_id: Optional[str] = None,
    ) -> None:
        forbidden = sorted(set(fields) - updatable_fields(kind))
        if forbidden:
            raise StoreError(
                f"Field(s) cannot be updated on {kind}: {', '.join(forbidden)}"
            )
        index = self._index_of(kind, record_id)
        updated = replace(self._records[kind][index], **fields)
        if isinstance(updated, Budget):
            check_budget_dates(updated.start_date, updated.end_date)
        self._records[kind][index] = updated
        self._save()

    def delete(self, kind: str, record_id: str, owner_id: Optional[str] = None) -> None:
        index = self._index_of(kind, record_id)
        del self._records[kind][index]
        self._save()

    def count(self) -> int:
        return sum(len(records) for records in self._records.values())

    def clear(self) -> None:
        self._records = {kind: [] for kind in RECORD_KINDS}
        self._save()


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ImportStats:
    """
    Summary of a bulk insert.

    Attributes
    ----------
    kind:
        Record kind that was inserted.
    rows_inserted:
        Number of records written.
    backend:
        "store" or "local".
    """

    kind: str
    rows_inserted: int
    backend: str


class BulkInsertError(StoreError):
    """
    Raised when a bulk insert fails part-way.

    Records inserted before the failure stay committed: `inserted` lists
    them and `failed_index` is the 0-based position of the failing record.
    """

    def __init__(
        self, message: str, inserted: Sequence[Record], failed_index: int
    ) -> None:
        super().__init__(message)
        self.inserted = list(inserted)
        self.failed_index = failed_index


@dataclass(frozen=True)
class DataSnapshot:
    """Immutable copy of one owner's records, ready for the engine."""

    transactions: tuple[Transaction, ...] = ()
    petty_cash: tuple[PettyCashEntry, ...] = ()
    budgets: tuple[Budget, ...] = ()
    balance_sheet: tuple[BalanceSheetItem, ...] = ()

    def collections(self) -> dict[str, tuple[Record, ...]]:
        return {
            "transactions": self.transactions,
            "petty_cash": self.petty_cash,
            "budgets": self.budgets,
            "balance_sheet": self.balance_sheet,
        }

    def transactions_frame(self) -> pd.DataFrame:
        return transactions_to_frame(self.transactions)

    def petty_cash_frame(self) -> pd.DataFrame:
        return petty_cash_to_frame(self.petty_cash)

    def balance_sheet_frame(self) -> pd.DataFrame:
        return balance_sheet_to_frame(self.balance_sheet)


_UNSET = object()


@dataclass
class DataSession:
    """
    Session-scoped access to the records of the current identity.

    The cache holds the records of one owner (`cache_key`: the principal id,
    or None for the local-only dataset). Any access after an identity change
    reloads it from the matching backend.
    """

    identity: IdentityProvider
    store: Optional[RecordStore] = None
    local_buffer: LocalBuffer = field(default_factory=LocalBuffer)
    _cache_owner: Any = field(default=_UNSET, init=False, repr=False)
    _cache: dict[str, list[Record]] = field(
        default_factory=dict, init=False, repr=False
    )

    # Backend selection ----------------------------------------------------

    @property
    def cache_key(self) -> Optional[str]:
        principal = self.identity.current()
        return principal.id if principal is not None else None

    @property
    def is_local(self) -> bool:
        return self.cache_key is None

    def _backend(self):
        if self.is_local:
            return self.local_buffer
        if self.store is None:
            raise StoreError("A user is signed in but no record store is configured.")
        return self.store

    def _backend_name(self) -> str:
        return "local" if self.is_local else "store"

    # Cache ----------------------------------------------------------------

    def refresh(self) -> None:
        """Reload the cache for the current identity."""
        owner = self.cache_key
        backend = self._backend()
        self._cache = {kind: list(backend.list(kind, owner)) for kind in RECORD_KINDS}
        self._cache_owner = owner
        logger.info(
            "Loaded records for %s from %s backend",
            owner or "local user",
            self._backend_name(),
        )

    def _records(self, kind: str) -> list[Record]:
        if self._cache_owner is _UNSET or self._cache_owner != self.cache_key:
            self.refresh()
        return self._cache[kind]

    def records(self, kind: str) -> list[Record]:
        """Records of one kind for the current identity, most recent first."""
        if kind not in RECORD_KINDS:
            raise ValueError(f"Unknown record kind: {kind!r}")
        return sort_by_date_desc(self._records(kind))

    def snapshot(self) -> DataSnapshot:
        return DataSnapshot(
            transactions=tuple(self._records("transactions")),
            petty_cash=tuple(self._records("petty_cash")),
            budgets=tuple(self._records("budgets")),
            balance_sheet=tuple(self._records("balance_sheet")),
        )

    # Generic writes -------------------------------------------------------

    def add_record(self, record: Record) -> Record:
        """Insert a record for the current identity and cache it."""
        kind = kind_of(record)
        cached = self._records(kind)
        stored = self._backend().insert(kind, replace(record, user_id=self.cache_key))
        cached.append(stored)
        return stored

    def delete_record(self, kind: str, record_id: str) -> None:
        cached = self._records(kind)
        self._backend().delete(kind, record_id, self.cache_key)
        self._cache[kind] = [r for r in cached if r.id != record_id]

    def attach_receipt(self, kind: str, record_id: str, receipt_url: str) -> Record:
        """Attach or replace the receipt of a transaction or petty-cash entry."""
        if kind not in ("transactions", "petty_cash"):
            raise ValueError(f"Receipts cannot be attached to {kind} records.")
        cached = self._records(kind)
        self._backend().update(
            kind, record_id, {"receipt_url": receipt_url}, self.cache_key
        )
        for index, record in enumerate(cached):
            if record.id == record_id:
                cached[index] = replace(record, receipt_url=receipt_url)
                return cached[index]
        raise StoreError(f"{kind} record {record_id!r} not found.")

    # Typed helpers --------------------------------------------------------

    def add_transaction(
        self,
        *,
        amount: float,
        description: str,
        category: str,
        type: str,
        date: date,
        receipt_url: Optional[str] = None,
    ) -> Transaction:
        if type not in TRANSACTION_TYPES:
            raise ValueError(
                f"Transaction type must be one of {', '.join(TRANSACTION_TYPES)}."
            )
        _check_amount(amount)
        return self.add_record(
            Transaction(
                id=None,
                user_id=None,
                amount=float(amount),
                description=description,
                category=category,
                type=type,
                date=date,
                receipt_url=receipt_url,
            )
        )

    def delete_transaction(self, record_id: str) -> None:
        self.delete_record("transactions", record_id)

    def add_petty_cash_entry(
        self,
        *,
        amount: float,
        description: str,
        type: str,
        date: date,
        receipt_url: Optional[str] = None,
    ) -> PettyCashEntry:
        if type not in PETTY_CASH_TYPES:
            raise ValueError(
                f"Petty cash type must be one of {', '.join(PETTY_CASH_TYPES)}."
            )
        _check_amount(amount)
        return self.add_record(
            PettyCashEntry(
                id=None,
                user_id=None,
                amount=float(amount),
                description=description,
                type=type,
                date=date,
                receipt_url=receipt_url,
            )
        )

    def delete_petty_cash_entry(self, record_id: str) -> None:
        self.delete_record("petty_cash", record_id)

    def add_budget(
        self,
        *,
        category: str,
        budgeted_amount: float,
        period: str,
        start_date: date,
        end_date: Optional[date] = None,
    ) -> Budget:
        """Create a budget; `end_date` defaults to start + 1/3/12 months."""
        if period not in BUDGET_PERIODS:
            raise ValueError(
                f"Budget period must be one of {', '.join(BUDGET_PERIODS)}."
            )
        _check_amount(budgeted_amount)
        end = end_date or budget_end_date(start_date, period)
        if end < start_date:
            raise ValueError("Budget end date cannot be before its start date.")
        return self.add_record(
            Budget(
                id=None,
                user_id=None,
                category=category,
                budgeted_amount=float(budgeted_amount),
                period=period,
                start_date=start_date,
                end_date=end,
            )
        )

    def delete_budget(self, record_id: str) -> None:
        self.delete_record("budgets", record_id)

    def add_balance_sheet_item(
        self,
        *,
        category: str,
        subcategory: str,
        amount: float,
        date: date,
    ) -> BalanceSheetItem:
        if category not in BALANCE_SHEET_CATEGORIES:
            raise ValueError(
                "Balance sheet category must be one of "
                f"{', '.join(BALANCE_SHEET_CATEGORIES)}."
            )
        _check_finite(amount)
        return self.add_record(
            BalanceSheetItem(
                id=None,
                user_id=None,
                category=category,
                subcategory=subcategory,
                amount=float(amount),
                date=date,
            )
        )

    def record_budget_expenditure(
        self,
        budget_id: str,
        *,
        amount: float,
        description: str,
        date: date,
        receipt_url: Optional[str] = None,
    ) -> Transaction:
        """
        Record spending against a budget.

        The expenditure is an ordinary expense transaction carrying the
        budget's category; budget analysis matches it by category and date.
        """
        budget = next((b for b in self._records("budgets") if b.id == budget_id), None)
        if budget is None:
            raise StoreError(f"budgets record {budget_id!r} not found.")
        return self.add_transaction(
            amount=amount,
            description=f"{description} (Budget: {budget.category})",
            category=budget.category,
            type="expense",
            date=date,
            receipt_url=receipt_url,
        )

    # Batch operations -----------------------------------------------------

    def bulk_insert(self, kind: str, records: Iterable[Record]) -> ImportStats:
        """
        Insert records one by one into the current backend.

        Raises
        ------
        BulkInsertError
            On the first failing record. Records inserted before it remain
            committed and are listed in the error.
        """
        inserted: list[Record] = []
        for index, record in enumerate(records):
            try:
                if kind_of(record) != kind:
                    raise StoreError(
                        f"Expected {kind} records, got {type(record).__name__}."
                    )
                inserted.append(self.add_record(record))
            except StoreError as exc:
                logger.error(
                    "Bulk insert of %s stopped at record %d: %s", kind, index + 1, exc
                )
                raise BulkInsertError(
                    f"Row {index + 1}: {exc} ({len(inserted)} record(s) already saved)",
                    inserted=inserted,
                    failed_index=index,
                ) from exc
            logger.debug("Inserted %s record %d", kind, index + 1)

        logger.info(
            "Inserted %d %s record(s) into %s backend",
            len(inserted),
            kind,
            self._backend_name(),
        )
        return ImportStats(
            kind=kind, rows_inserted=len(inserted), backend=self._backend_name()
        )

    def migrate_local_records(self) -> int:
        """
        Copy local buffer records into the durable store, once per owner.

        Each record is removed from the buffer as soon as it is stored, so a
        failed migration can be resumed without duplicates. The owner is
        marked as migrated when the buffer is empty.

        Returns
        -------
        int
            Number of records migrated (0 without a principal, or when this
            owner was already migrated).
        """
        owner = self.cache_key
        if owner is None:
            return 0
        store = self._backend()
        if store.is_migrated(owner):
            logger.info("Local records already migrated for %s", owner)
            return 0

        migrated = 0
        for kind in RECORD_KINDS:
            for record in list(self.local_buffer.list(kind)):
                store.insert(kind, replace(record, id=None, user_id=owner))
                self.local_buffer.delete(kind, record.id)
                migrated += 1

        store.mark_migrated(owner, migrated)
        self.local_buffer.clear()
        logger.info("Migrated %d local record(s) for %s", migrated, owner)
        self.refresh()
        return migrated

    # Backups --------------------------------------------------------------

    def export_backup(self, path: Path) -> Path:
        """Write every record of the current identity to a JSON backup."""
        return write_backup(path, self.snapshot().collections())

    def restore_backup(self, path: Path) -> dict[str, int]:
        """
        Insert the records of a JSON backup into the current backend.

        Records get fresh ids and the current owner. Returns the number of
        records restored per kind.
        """
        collections = read_backup(path)
        restored: dict[str, int] = {}
        for kind in RECORD_KINDS:
            records = [replace(r, id=None) for r in collections.get(kind, [])]
            restored[kind] = self.bulk_insert(kind, records).rows_inserted
        return restored


def _check_finite(amount: float) -> None:
    if not math.isfinite(amount):
        raise ValueError("Amount must be a finite number.")


def _check_amount(amount: float) -> None:
    _check_finite(amount)
    if amount < 0:
        raise ValueError("Amount must not be negative.")
