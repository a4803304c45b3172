import sqlite3
from datetime import date

import pytest

from smb_ledger.db import (
    DatabaseConfig,
    RecordStore,
    StoreError,
    init_database,
    updatable_fields,
)
from smb_ledger.models import BalanceSheetItem, Budget, PettyCashEntry, Transaction


def make_tmp_db_cfg(tmp_path) -> DatabaseConfig:
    """Helper to build a DatabaseConfig pointing to a temporary SQLite file."""
    db_path = tmp_path / "db" / "test_db.sqlite"
    return DatabaseConfig(engine="sqlite", path=db_path)


def _income(amount: float, day: date, user_id: str = "alice") -> Transaction:
    return Transaction(
        id=None,
        user_id=user_id,
        amount=amount,
        description="Sale",
        category="Powerbank Sales",
        type="income",
        date=day,
    )


def test_init_database_creates_file_and_schema(tmp_path):
    """init_database should create the SQLite file and every table."""
    cfg = make_tmp_db_cfg(tmp_path)

    assert not cfg.path.exists()
    init_database(cfg)
    init_database(cfg)  # idempotent
    assert cfg.path.exists()

    conn = sqlite3.connect(cfg.path)
    try:
        tables = {
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }
    finally:
        conn.close()
    assert {
        "transactions",
        "petty_cash_entries",
        "budgets",
        "balance_sheet_items",
        "migrations",
    } <= tables


def test_unsupported_engine_is_rejected(tmp_path):
    cfg = DatabaseConfig(engine="postgres", path=tmp_path / "x.sqlite")
    with pytest.raises(ValueError):
        init_database(cfg)


def test_insert_assigns_id_and_list_round_trips_amounts(tmp_path):
    """Amounts are stored as integer cents and reconstructed exactly."""
    store = RecordStore(make_tmp_db_cfg(tmp_path))

    stored = store.insert("transactions", _income(1234.56, date(2024, 1, 15)))

    assert stored.id
    assert stored.user_id == "alice"
    loaded = store.list("transactions", "alice")
    assert loaded == [stored]
    assert loaded[0].amount == 1234.56

    conn = sqlite3.connect(store.cfg.path)
    try:
        cents = conn.execute("SELECT amount_cents FROM transactions").fetchone()[0]
    finally:
        conn.close()
    assert cents == 123456


def test_list_is_owner_scoped_and_most_recent_first(tmp_path):
    store = RecordStore(make_tmp_db_cfg(tmp_path))
    store.insert("transactions", _income(1, date(2024, 1, 1)))
    store.insert("transactions", _income(2, date(2024, 3, 1)))
    store.insert("transactions", _income(3, date(2024, 2, 1)))
    store.insert("transactions", _income(99, date(2024, 2, 1), user_id="bob"))

    alice = store.list("transactions", "alice")

    assert [t.amount for t in alice] == [2.0, 3.0, 1.0]
    assert [t.amount for t in store.list("transactions", "bob")] == [99.0]


def test_every_record_kind_round_trips(tmp_path):
    store = RecordStore(make_tmp_db_cfg(tmp_path))
    petty = store.insert(
        "petty_cash",
        PettyCashEntry(None, "alice", 10000.0, "Fund", "add", date(2024, 1, 15)),
    )
    budget = store.insert(
        "budgets",
        Budget(
            None,
            "alice",
            "IT Department",
            30000.0,
            "monthly",
            date(2024, 1, 1),
            date(2024, 1, 31),
        ),
    )
    item = store.insert(
        "balance_sheet",
        BalanceSheetItem(None, "alice", "assets", "Equipment", 25.0, date(2024, 1, 1)),
    )

    assert store.list("petty_cash", "alice") == [petty]
    assert store.list("budgets", "alice") == [budget]
    assert store.list("balance_sheet", "alice") == [item]


def test_operations_require_an_owner(tmp_path):
    store = RecordStore(make_tmp_db_cfg(tmp_path))
    with pytest.raises(StoreError):
        store.list("transactions", None)
    with pytest.raises(StoreError):
        store.insert("transactions", _income(1, date(2024, 1, 1), user_id=None))


def test_insert_rejects_mismatched_kind(tmp_path):
    store = RecordStore(make_tmp_db_cfg(tmp_path))
    with pytest.raises(StoreError):
        store.insert("budgets", _income(1, date(2024, 1, 1)))


def test_update_receipt_only(tmp_path):
    store = RecordStore(make_tmp_db_cfg(tmp_path))
    stored = store.insert("transactions", _income(10, date(2024, 1, 1)))

    store.update("transactions", stored.id, {"receipt_url": "receipts/1.pdf"}, "alice")

    (loaded,) = store.list("transactions", "alice")
    assert loaded.receipt_url == "receipts/1.pdf"

    with pytest.raises(StoreError):
        store.update("transactions", stored.id, {"type": "expense"}, "alice")
    with pytest.raises(StoreError):
        store.update("transactions", stored.id, {"receipt_url": "x"}, "bob")


def test_budget_fields_are_updatable(tmp_path):
    assert "budgeted_amount" in updatable_fields("budgets")
    assert updatable_fields("balance_sheet") == frozenset()

    store = RecordStore(make_tmp_db_cfg(tmp_path))
    budget = store.insert(
        "budgets",
        Budget(
            None,
            "alice",
            "IT Department",
            100.0,
            "monthly",
            date(2024, 1, 1),
            date(2024, 1, 31),
        ),
    )

    store.update(
        "budgets",
        budget.id,
        {"budgeted_amount": 250.5, "end_date": date(2024, 2, 29)},
        "alice",
    )

    (loaded,) = store.list("budgets", "alice")
    assert loaded.budgeted_amount == 250.5
    assert loaded.end_date == date(2024, 2, 29)


def test_delete_is_owner_scoped(tmp_path):
    store = RecordStore(make_tmp_db_cfg(tmp_path))
    stored = store.insert("transactions", _income(10, date(2024, 1, 1)))

    with pytest.raises(StoreError):
        store.delete("transactions", stored.id, "bob")

    store.delete("transactions", stored.id, "alice")
    assert store.list("transactions", "alice") == []

    with pytest.raises(StoreError):
        store.delete("transactions", stored.id, "alice")


def test_migration_marker(tmp_path):
    store = RecordStore(make_tmp_db_cfg(tmp_path))

    assert store.is_migrated("alice") is False
    store.mark_migrated("alice", 3)
    store.mark_migrated("alice", 5)  # no error on repeat
    assert store.is_migrated("alice") is True
    assert store.is_migrated("bob") is False


def test_budget_update_cannot_invert_date_range(tmp_path):
    store = RecordStore(make_tmp_db_cfg(tmp_path))
    budget = store.insert(
        "budgets",
        Budget(
            None,
            "alice",
            "IT Department",
            100.0,
            "monthly",
            date(2024, 3, 1),
            date(2024, 3, 31),
        ),
    )

    with pytest.raises(StoreError, match="End date cannot be before start date"):
        store.update("budgets", budget.id, {"end_date": date(2024, 2, 1)}, "alice")
    with pytest.raises(StoreError):
        store.update("budgets", budget.id, {"start_date": date(2024, 4, 1)}, "alice")

    (loaded,) = store.list("budgets", "alice")
    assert loaded == budget
