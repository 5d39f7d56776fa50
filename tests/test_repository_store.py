import sqlite3

import pytest

from cibulb.errors import StoreConnectionError, StoreOperationError
from cibulb.storage import RepositoryStore


def make_store(tmp_path):
    store = RepositoryStore(db_path=tmp_path / "repositories.sqlite3")
    store.initialize()
    return store


def test_upsert_inserts_new_record(tmp_path):
    store = make_store(tmp_path)

    with store.connect() as conn:
        conn.upsert("test", "success")
        records = conn.fetch_all()

    assert [(r.name, r.status) for r in records] == [("test", "success")]
    assert records[0].first_seen_at is not None
    assert records[0].last_seen_at is not None


def test_upsert_twice_keeps_one_record(tmp_path):
    store = make_store(tmp_path)

    with store.connect() as conn:
        conn.upsert("test", "success")
        conn.upsert("test", "success")
        records = conn.fetch_all()

    assert [(r.name, r.status) for r in records] == [("test", "success")]


def test_upsert_overwrites_status_only(tmp_path):
    store = make_store(tmp_path)

    with store.connect() as conn:
        conn.upsert("test", "pending")
        first = conn.fetch_all()[0]
        conn.upsert("test", "success")
        second = conn.fetch_all()[0]

    assert second.name == "test"
    assert second.status == "success"
    assert second.first_seen_at == first.first_seen_at
    assert second.last_seen_at >= first.last_seen_at


def test_upsert_leaves_other_records_alone(tmp_path):
    store = make_store(tmp_path)

    with store.connect() as conn:
        conn.upsert("a", "failed")
        conn.upsert("b", "pending")
        conn.upsert("b", "success")
        records = {r.name: r.status for r in conn.fetch_all()}

    assert records == {"a": "failed", "b": "success"}


def test_records_persist_across_connections(tmp_path):
    store = make_store(tmp_path)

    with store.connect() as conn:
        conn.upsert("test", "running")

    with store.connect() as conn:
        records = conn.fetch_all()

    assert [(r.name, r.status) for r in records] == [("test", "running")]


def test_connection_is_closed_on_error(tmp_path):
    store = make_store(tmp_path)

    with pytest.raises(RuntimeError):
        with store.connect() as conn:
            raise RuntimeError("boom")

    assert conn.closed
    with pytest.raises(sqlite3.ProgrammingError):
        conn._conn.execute("SELECT 1")


def test_unreachable_store_raises_connection_error(tmp_path):
    store = RepositoryStore(db_path=tmp_path / "missing" / "dir" / "db.sqlite3")

    with pytest.raises(StoreConnectionError):
        store.connect()


def test_missing_schema_raises_operation_error(tmp_path):
    store = RepositoryStore(db_path=tmp_path / "empty.sqlite3")

    with store.connect() as conn:
        with pytest.raises(StoreOperationError):
            conn.upsert("test", "success")
        with pytest.raises(StoreOperationError):
            conn.fetch_all()
