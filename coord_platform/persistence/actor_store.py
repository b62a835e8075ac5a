"""Platform-owned actor store (the identity store seen by the workflow)."""

import sqlite3
from datetime import datetime
from typing import Optional

from coord_platform.runtime.utils import new_id, to_storage, utc_now


class ActorStore:
    """Reads and counter updates for sponsors and applicants.

    Methods never commit; they run inside whatever transaction the caller has
    open on *conn* (or autocommit when none is open).
    """

    @staticmethod
    def create(conn: sqlite3.Connection, role: str, display_name: str,
               department: str = "", email: str = "",
               capacity: int | None = None,
               created_at: datetime | None = None) -> str:
        """Insert an actor. Returns the actor id."""
        actor_id = new_id()
        conn.execute(
            """INSERT INTO actor
               (id, role, display_name, department, email, capacity, committed, created_at)
               VALUES (?, ?, ?, ?, ?, ?, 0, ?)""",
            (actor_id, role, display_name, department, email, capacity,
             to_storage(created_at or utc_now())),
        )
        return actor_id

    @staticmethod
    def get(conn: sqlite3.Connection, actor_id: str) -> Optional[dict]:
        """Load a single actor by id."""
        row = conn.execute(
            "SELECT * FROM actor WHERE id = ?", (actor_id,)
        ).fetchone()
        if row is None:
            return None
        return dict(row)

    @staticmethod
    def list_by_role(conn: sqlite3.Connection, role: str) -> list[dict]:
        rows = conn.execute(
            "SELECT * FROM actor WHERE role = ? ORDER BY display_name, id", (role,)
        ).fetchall()
        return [dict(r) for r in rows]

    @staticmethod
    def list_accepted_by(conn: sqlite3.Connection, sponsor_id: str) -> list[dict]:
        """List applicants whose accepted sponsor is *sponsor_id*."""
        rows = conn.execute(
            """SELECT * FROM actor
               WHERE role = 'applicant' AND accepted_by = ?
               ORDER BY display_name, id""",
            (sponsor_id,),
        ).fetchall()
        return [dict(r) for r in rows]

    @staticmethod
    def set_accepted_sponsor(conn: sqlite3.Connection, applicant_id: str,
                             sponsor_id: str | None) -> bool:
        """Point an applicant at its accepted sponsor (or clear it with None).

        Setting a sponsor is a compare-and-set: it only succeeds while the
        applicant has none. Returns True if the row changed.
        """
        if sponsor_id is None:
            cursor = conn.execute(
                "UPDATE actor SET accepted_by = NULL WHERE id = ? AND role = 'applicant'",
                (applicant_id,),
            )
        else:
            cursor = conn.execute(
                """UPDATE actor SET accepted_by = ?
                   WHERE id = ? AND role = 'applicant' AND accepted_by IS NULL""",
                (sponsor_id, applicant_id),
            )
        return cursor.rowcount > 0

    @staticmethod
    def increment_committed(conn: sqlite3.Connection, sponsor_id: str,
                            delta: int) -> bool:
        """Shift a sponsor's committed counter by *delta* within ``[0, capacity]``.

        Returns False (and changes nothing) when the result would leave bounds.
        """
        cursor = conn.execute(
            """UPDATE actor SET committed = committed + ?
               WHERE id = ? AND role = 'sponsor'
                 AND committed + ? >= 0 AND committed + ? <= capacity""",
            (delta, sponsor_id, delta, delta),
        )
        return cursor.rowcount > 0

    @staticmethod
    def update_capacity(conn: sqlite3.Connection, sponsor_id: str,
                        capacity: int) -> bool:
        """Change a sponsor's capacity; refused below the current committed count."""
        cursor = conn.execute(
            """UPDATE actor SET capacity = ?
               WHERE id = ? AND role = 'sponsor' AND committed <= ?""",
            (capacity, sponsor_id, capacity),
        )
        return cursor.rowcount > 0


__all__ = ["ActorStore"]
