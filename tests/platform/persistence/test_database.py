"""Tests for the platform SQLite primitives and schema constraints."""

import sqlite3
from datetime import datetime, timezone

import pytest

from coord_platform.errors import StoreBusyError
from coord_platform.persistence import (
    SCHEMA_VERSION,
    ActorStore,
    OfferingStore,
    RequestStore,
    get_connection,
    init_db,
    transaction,
)

START = datetime(2026, 3, 1, tzinfo=timezone.utc)
END = datetime(2026, 3, 31, tzinfo=timezone.utc)


def _seed(conn):
    sponsor_id = ActorStore.create(conn, "sponsor", "S", capacity=2)
    applicant_id = ActorStore.create(conn, "applicant", "A")
    offering_id = OfferingStore.create(conn, sponsor_id, "T", "", START, END, 3, "active")
    return sponsor_id, applicant_id, offering_id


class TestConnection:
    def test_get_connection_creates_schema(self, tmp_path):
        conn = get_connection(tmp_path / "new.db")
        try:
            version = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()[0]
            assert version == SCHEMA_VERSION
            mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
            assert mode.lower() == "wal"
            assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1
        finally:
            conn.close()

    def test_get_connection_honours_env_path(self, tmp_path, monkeypatch):
        target = tmp_path / "from-env.db"
        monkeypatch.setenv("COORD_DB_PATH", str(target))
        conn = get_connection()
        conn.close()
        assert target.exists()

    def test_init_db_is_idempotent(self, db_conn):
        init_db(db_conn)
        rows = db_conn.execute("SELECT version FROM schema_version").fetchall()
        assert [r[0] for r in rows] == [SCHEMA_VERSION]


class TestTransaction:
    def test_commits_on_success(self, db_conn):
        with transaction(db_conn):
            sponsor_id = ActorStore.create(db_conn, "sponsor", "S", capacity=1)
        assert db_conn.in_transaction is False
        assert ActorStore.get(db_conn, sponsor_id) is not None

    def test_rolls_back_on_error(self, db_conn):
        with pytest.raises(RuntimeError):
            with transaction(db_conn):
                sponsor_id = ActorStore.create(db_conn, "sponsor", "S", capacity=1)
                raise RuntimeError("boom")
        assert ActorStore.get(db_conn, sponsor_id) is None

    def test_nested_use_joins_outer_transaction(self, db_conn):
        with pytest.raises(RuntimeError):
            with transaction(db_conn):
                with transaction(db_conn):
                    sponsor_id = ActorStore.create(db_conn, "sponsor", "S", capacity=1)
                assert db_conn.in_transaction is True
                raise RuntimeError("outer fails")
        assert ActorStore.get(db_conn, sponsor_id) is None

    def test_lock_contention_surfaces_as_store_busy(self, db_path):
        holder = get_connection(db_path)
        waiter = get_connection(db_path, timeout=0.05)
        try:
            holder.execute("BEGIN IMMEDIATE")
            with pytest.raises(StoreBusyError):
                with transaction(waiter):
                    pass
        finally:
            holder.rollback()
            holder.close()
            waiter.close()


class TestSchemaConstraints:
    def test_committed_cannot_exceed_capacity(self, db_conn):
        sponsor_id = ActorStore.create(db_conn, "sponsor", "S", capacity=1)
        with pytest.raises(sqlite3.IntegrityError):
            db_conn.execute("UPDATE actor SET committed = 2 WHERE id = ?", (sponsor_id,))

    def test_available_slots_bounded_by_max(self, db_conn):
        _, _, offering_id = _seed(db_conn)
        with pytest.raises(sqlite3.IntegrityError):
            db_conn.execute("UPDATE offering SET available_slots = 4 WHERE id = ?", (offering_id,))
        with pytest.raises(sqlite3.IntegrityError):
            db_conn.execute("UPDATE offering SET available_slots = -1 WHERE id = ?", (offering_id,))

    def test_window_must_be_ordered(self, db_conn):
        sponsor_id = ActorStore.create(db_conn, "sponsor", "S", capacity=1)
        with pytest.raises(sqlite3.IntegrityError):
            OfferingStore.create(db_conn, sponsor_id, "T", "", END, START, 3, "active")

    def test_duplicate_request_rejected_by_storage(self, db_conn):
        sponsor_id, applicant_id, offering_id = _seed(db_conn)
        RequestStore.create(db_conn, applicant_id, sponsor_id, offering_id, "topic one here")
        with pytest.raises(sqlite3.IntegrityError):
            RequestStore.create(db_conn, applicant_id, sponsor_id, offering_id, "topic two here")

    def test_one_committed_request_per_applicant(self, db_conn):
        sponsor_id, applicant_id, offering_id = _seed(db_conn)
        second = OfferingStore.create(db_conn, sponsor_id, "T2", "",
                                      datetime(2026, 5, 1, tzinfo=timezone.utc),
                                      datetime(2026, 5, 31, tzinfo=timezone.utc), 3, "upcoming")
        r1 = RequestStore.create(db_conn, applicant_id, sponsor_id, offering_id, "first topic!!")
        r2 = RequestStore.create(db_conn, applicant_id, sponsor_id, second, "second topic!")
        assert RequestStore.set_status(db_conn, r1, "approved", expected_status="pending")
        with pytest.raises(sqlite3.IntegrityError):
            RequestStore.set_status(db_conn, r2, "approved", expected_status="pending")

    def test_deleting_offering_cascades_to_requests(self, db_conn):
        sponsor_id, applicant_id, offering_id = _seed(db_conn)
        request_id = RequestStore.create(db_conn, applicant_id, sponsor_id, offering_id, "a topic here")
        OfferingStore.delete(db_conn, offering_id)
        assert RequestStore.get(db_conn, request_id) is None
