"""
Shared fixtures for coordination platform tests.
"""

import sqlite3
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from coord_platform.persistence import get_connection, init_db
from coord_platform.runtime.utils import utc_now
from coord_platform.services import (
    approve_request,
    create_offering,
    register_actor,
    submit_request,
    upload_document,
)


@pytest.fixture
def db_conn():
    """Create an in-memory SQLite connection with the coordination schema."""
    conn = sqlite3.connect(":memory:", isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON")
    init_db(conn)
    yield conn
    conn.close()


@pytest.fixture
def db_path(tmp_path):
    """Path of a file-backed database with the schema already created."""
    path = tmp_path / "coordination.db"
    conn = get_connection(path)
    conn.close()
    return path


@pytest.fixture
def notifier():
    """A notifier double recording every ``notify(event, payload)`` call."""
    return MagicMock()


@pytest.fixture
def sponsor(db_conn):
    return register_actor(db_conn, "sponsor", "Dr. Ada Byron", department="Computing",
                          email="ada@example.edu", capacity=3)


@pytest.fixture
def other_sponsor(db_conn):
    return register_actor(db_conn, "sponsor", "Prof. Alan Turing", department="Maths",
                          email="alan@example.edu")


@pytest.fixture
def applicant(db_conn):
    return register_actor(db_conn, "applicant", "Grace Hopper", email="grace@example.edu")


@pytest.fixture
def make_offering(db_conn):
    """Create an offering whose window is placed relative to the current time.

    Usage:
        offering = make_offering(sponsor.id, start_days=-1, end_days=10, max_slots=2)
    """
    def _make(sponsor_id, start_days=-1, end_days=30, max_slots=5, title="Thesis supervision"):
        now = utc_now()
        return create_offering(
            db_conn,
            sponsor_id,
            title=title,
            description="Supervision of final-year projects",
            window_start=now + timedelta(days=start_days),
            window_end=now + timedelta(days=end_days),
            max_slots=max_slots,
        )
    return _make


@pytest.fixture
def active_offering(make_offering, sponsor):
    return make_offering(sponsor.id)


@pytest.fixture
def other_offering(make_offering, other_sponsor):
    return make_offering(other_sponsor.id, title="Research internship")


@pytest.fixture
def pending_request(db_conn, applicant, active_offering):
    return submit_request(db_conn, applicant.id, active_offering.id,
                          topic="Distributed consensus in practice")


@pytest.fixture
def approved_request(db_conn, sponsor, pending_request):
    return approve_request(db_conn, pending_request.id, sponsor.id).request


@pytest.fixture
def sample_metadata():
    """Artifact metadata as supplied by the byte-storage collaborator."""
    return {
        "file_name": "3f2a-proposal.pdf",
        "original_name": "proposal.pdf",
        "content_type": "application/pdf",
        "size_bytes": 48213,
        "storage_ref": "uploads/3f2a-proposal.pdf",
    }


@pytest.fixture
def uploaded_document(db_conn, applicant, approved_request, sample_metadata):
    return upload_document(db_conn, approved_request.id, applicant.id, "applicant",
                           sample_metadata)
