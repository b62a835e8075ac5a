"""Platform-owned coordination request store."""

import sqlite3
from datetime import datetime
from typing import Iterable, Optional

from coord_platform.runtime.utils import new_id, to_storage, utc_now


class RequestStore:
    """CRUD and bulk status updates for coordination requests."""

    @staticmethod
    def create(conn: sqlite3.Connection, applicant_id: str, sponsor_id: str,
               offering_id: str, topic: str, message: str = "",
               now: datetime | None = None) -> str:
        """Insert a pending request. Returns the request id.

        Raises ``sqlite3.IntegrityError`` if the applicant already has a
        request for this offering.
        """
        request_id = new_id()
        stamp = to_storage(now or utc_now())
        conn.execute(
            """INSERT INTO coordination_request
               (id, applicant_id, sponsor_id, offering_id, topic, message,
                status, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, 'pending', ?, ?)""",
            (request_id, applicant_id, sponsor_id, offering_id, topic, message,
             stamp, stamp),
        )
        return request_id

    @staticmethod
    def get(conn: sqlite3.Connection, request_id: str) -> Optional[dict]:
        """Load a single request by id."""
        row = conn.execute(
            "SELECT * FROM coordination_request WHERE id = ?", (request_id,)
        ).fetchone()
        if row is None:
            return None
        return dict(row)

    @staticmethod
    def exists_for(conn: sqlite3.Connection, applicant_id: str,
                   offering_id: str) -> bool:
        """Check whether the applicant already asked for this offering."""
        row = conn.execute(
            """SELECT 1 FROM coordination_request
               WHERE applicant_id = ? AND offering_id = ? LIMIT 1""",
            (applicant_id, offering_id),
        ).fetchone()
        return row is not None

    @staticmethod
    def set_status(conn: sqlite3.Connection, request_id: str, status: str,
                   expected_status: str, rejection_reason: str | None = None,
                   now: datetime | None = None) -> bool:
        """Move a request from *expected_status* to *status*.

        Returns False (and changes nothing) if the stored status differs.
        The rejection reason is only overwritten when one is given.
        """
        cursor = conn.execute(
            """UPDATE coordination_request SET
                   status = ?,
                   rejection_reason = coalesce(?, rejection_reason),
                   updated_at = ?
               WHERE id = ? AND status = ?""",
            (status, rejection_reason, to_storage(now or utc_now()),
             request_id, expected_status),
        )
        return cursor.rowcount > 0

    @staticmethod
    def reject_pending_siblings(conn: sqlite3.Connection, applicant_id: str,
                                keep_request_id: str, reason: str,
                                now: datetime | None = None) -> list[str]:
        """Reject every other pending request of an applicant in one statement.

        Returns the ids that were rejected. Must run inside the caller's
        write transaction so the id listing and the update see the same rows.
        """
        rows = conn.execute(
            """SELECT id FROM coordination_request
               WHERE applicant_id = ? AND id <> ? AND status = 'pending'
               ORDER BY created_at, id""",
            (applicant_id, keep_request_id),
        ).fetchall()
        conn.execute(
            """UPDATE coordination_request SET
                   status = 'rejected', rejection_reason = ?, updated_at = ?
               WHERE applicant_id = ? AND id <> ? AND status = 'pending'""",
            (reason, to_storage(now or utc_now()), applicant_id, keep_request_id),
        )
        return [r["id"] for r in rows]

    @staticmethod
    def delete_pending(conn: sqlite3.Connection, request_id: str) -> bool:
        """Delete a request only while it is pending. Returns True if deleted."""
        cursor = conn.execute(
            "DELETE FROM coordination_request WHERE id = ? AND status = 'pending'",
            (request_id,),
        )
        return cursor.rowcount > 0

    @staticmethod
    def list_for_actor(conn: sqlite3.Connection, column: str, actor_id: str,
                       status: str | None = None) -> list[dict]:
        """List requests where *column* (applicant_id or sponsor_id) matches, newest first."""
        if column not in ("applicant_id", "sponsor_id"):
            raise ValueError(f"Unsupported actor column: {column}")
        sql = f"SELECT * FROM coordination_request WHERE {column} = ?"
        values: list = [actor_id]
        if status:
            sql += " AND status = ?"
            values.append(status)
        sql += " ORDER BY created_at DESC, id"
        rows = conn.execute(sql, values).fetchall()
        return [dict(r) for r in rows]

    @staticmethod
    def count_by_status(conn: sqlite3.Connection, column: str,
                        actor_id: str) -> dict[str, int]:
        """Count an actor's requests per status."""
        if column not in ("applicant_id", "sponsor_id"):
            raise ValueError(f"Unsupported actor column: {column}")
        rows = conn.execute(
            f"""SELECT status, COUNT(*) AS n FROM coordination_request
                WHERE {column} = ? GROUP BY status""",
            (actor_id,),
        ).fetchall()
        return {r["status"]: r["n"] for r in rows}

    @staticmethod
    def count_for_offering(conn: sqlite3.Connection, offering_id: str,
                           statuses: Iterable[str]) -> int:
        """Count requests of an offering whose status is in *statuses*."""
        statuses = list(statuses)
        placeholders = ", ".join("?" for _ in statuses)
        row = conn.execute(
            f"""SELECT COUNT(*) FROM coordination_request
                WHERE offering_id = ? AND status IN ({placeholders})""",
            (offering_id, *statuses),
        ).fetchone()
        return row[0]


__all__ = ["RequestStore"]
