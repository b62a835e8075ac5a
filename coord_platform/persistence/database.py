"""Platform-owned SQLite database primitives."""

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from coord_platform.errors import StoreBusyError
from coord_platform.runtime.config import busy_timeout_seconds, get_db_path

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


def get_connection(db_path: Path | str | None = None,
                   timeout: float | None = None) -> sqlite3.Connection:
    """Open (or create) the database and ensure the schema exists.

    Returns a ``sqlite3.Connection`` in autocommit mode with WAL and foreign
    keys enabled. Transactions are opened explicitly with :func:`transaction`.
    Connections must not be shared between threads; open one per worker.
    The caller is responsible for closing the connection.
    """
    path = str(db_path) if db_path is not None else str(get_db_path())
    conn = sqlite3.connect(
        path,
        timeout=timeout if timeout is not None else busy_timeout_seconds(),
        isolation_level=None,
    )
    conn.row_factory = sqlite3.Row
    if path != ":memory:":
        conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    init_db(conn)
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    """Create tables and indexes if they don't exist and record the schema version."""
    conn.executescript(_SCHEMA_SQL)

    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    current = row[0] if row[0] is not None else 0

    if current < SCHEMA_VERSION:
        logger.info("Initialising coordination schema at version %d", SCHEMA_VERSION)
        conn.execute(
            "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )


def _is_lock_error(error: sqlite3.OperationalError) -> bool:
    text = str(error).lower()
    return "locked" in text or "busy" in text


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run the enclosed block as one write transaction.

    ``BEGIN IMMEDIATE`` takes the database write lock before any guard row is
    read, so a concurrent writer either finished before we started or waits
    until we commit. Any exception rolls the whole block back. Nested use
    joins the transaction already open on *conn*.
    """
    if conn.in_transaction:
        yield conn
        return

    try:
        conn.execute("BEGIN IMMEDIATE")
    except sqlite3.OperationalError as e:
        if _is_lock_error(e):
            raise StoreBusyError("Database is busy; retry the operation") from e
        raise

    try:
        yield conn
    except sqlite3.OperationalError as e:
        conn.rollback()
        if _is_lock_error(e):
            raise StoreBusyError("Database is busy; retry the operation") from e
        raise
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()


_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS actor (
    id TEXT PRIMARY KEY,
    role TEXT NOT NULL CHECK (role IN ('sponsor', 'applicant')),
    display_name TEXT NOT NULL,
    department TEXT DEFAULT '',
    email TEXT DEFAULT '',
    accepted_by TEXT REFERENCES actor(id),
    capacity INTEGER,
    committed INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    CHECK (role = 'applicant' OR (capacity IS NOT NULL AND committed >= 0 AND committed <= capacity)),
    CHECK (role = 'sponsor' OR accepted_by IS NULL OR accepted_by <> id)
);

CREATE INDEX IF NOT EXISTS idx_actor_accepted_by ON actor(accepted_by);

CREATE TABLE IF NOT EXISTS offering (
    id TEXT PRIMARY KEY,
    sponsor_id TEXT NOT NULL REFERENCES actor(id),
    title TEXT NOT NULL,
    description TEXT DEFAULT '',
    window_start TEXT NOT NULL,
    window_end TEXT NOT NULL,
    max_slots INTEGER NOT NULL CHECK (max_slots >= 1),
    available_slots INTEGER NOT NULL,
    status TEXT NOT NULL DEFAULT 'upcoming'
        CHECK (status IN ('upcoming', 'active', 'closed')),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    CHECK (window_end > window_start),
    CHECK (available_slots >= 0 AND available_slots <= max_slots)
);

CREATE INDEX IF NOT EXISTS idx_offering_sponsor ON offering(sponsor_id, window_start);

CREATE TABLE IF NOT EXISTS coordination_request (
    id TEXT PRIMARY KEY,
    applicant_id TEXT NOT NULL REFERENCES actor(id),
    sponsor_id TEXT NOT NULL REFERENCES actor(id),
    offering_id TEXT NOT NULL REFERENCES offering(id) ON DELETE CASCADE,
    topic TEXT NOT NULL,
    message TEXT DEFAULT '',
    status TEXT NOT NULL DEFAULT 'pending'
        CHECK (status IN ('pending', 'approved', 'rejected', 'document_pending', 'completed')),
    rejection_reason TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    CONSTRAINT uq_request_applicant_offering UNIQUE (applicant_id, offering_id)
);

CREATE INDEX IF NOT EXISTS idx_request_applicant_status
    ON coordination_request(applicant_id, status);
CREATE INDEX IF NOT EXISTS idx_request_sponsor ON coordination_request(sponsor_id);
CREATE INDEX IF NOT EXISTS idx_request_offering ON coordination_request(offering_id);

-- At most one committed request per applicant
CREATE UNIQUE INDEX IF NOT EXISTS uq_request_committed_applicant
    ON coordination_request(applicant_id)
    WHERE status IN ('approved', 'document_pending', 'completed');

CREATE TABLE IF NOT EXISTS document_artifact (
    id TEXT PRIMARY KEY,
    request_id TEXT NOT NULL REFERENCES coordination_request(id) ON DELETE CASCADE,
    uploader_id TEXT NOT NULL REFERENCES actor(id),
    uploader_role TEXT NOT NULL CHECK (uploader_role IN ('applicant', 'sponsor')),
    file_name TEXT NOT NULL,
    original_name TEXT NOT NULL,
    content_type TEXT NOT NULL,
    size_bytes INTEGER NOT NULL CHECK (size_bytes > 0),
    storage_ref TEXT DEFAULT '',
    status TEXT NOT NULL DEFAULT 'pending_review'
        CHECK (status IN ('pending_review', 'accepted', 'rejected')),
    rejection_reason TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_document_request ON document_artifact(request_id);
"""


__all__ = ["SCHEMA_VERSION", "get_connection", "init_db", "transaction"]
