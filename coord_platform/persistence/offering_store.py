"""Platform-owned offering store."""

import sqlite3
from datetime import datetime
from typing import Optional

from coord_platform.runtime.utils import new_id, to_storage, utc_now


_OFFERING_COLUMNS = "o.*, a.display_name AS sponsor_name"


class OfferingStore:
    """CRUD and slot accounting for offerings.

    Slot changes are single conditional UPDATE statements so the
    check-and-modify cannot interleave with another writer.
    """

    @staticmethod
    def create(conn: sqlite3.Connection, sponsor_id: str, title: str,
               description: str, window_start: datetime, window_end: datetime,
               max_slots: int, status: str,
               now: datetime | None = None) -> str:
        """Insert an offering with every slot available. Returns the offering id."""
        offering_id = new_id()
        stamp = to_storage(now or utc_now())
        conn.execute(
            """INSERT INTO offering
               (id, sponsor_id, title, description, window_start, window_end,
                max_slots, available_slots, status, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (offering_id, sponsor_id, title, description,
             to_storage(window_start), to_storage(window_end),
             max_slots, max_slots, status, stamp, stamp),
        )
        return offering_id

    @staticmethod
    def get(conn: sqlite3.Connection, offering_id: str) -> Optional[dict]:
        """Load a single offering by id."""
        row = conn.execute(
            f"""SELECT {_OFFERING_COLUMNS} FROM offering o
                JOIN actor a ON a.id = o.sponsor_id
                WHERE o.id = ?""",
            (offering_id,),
        ).fetchone()
        if row is None:
            return None
        return dict(row)

    @staticmethod
    def find_overlapping(conn: sqlite3.Connection, sponsor_id: str,
                         window_start: datetime, window_end: datetime,
                         exclude_id: str | None = None) -> Optional[dict]:
        """Return one offering of *sponsor_id* whose window overlaps, inclusively."""
        row = conn.execute(
            """SELECT * FROM offering
               WHERE sponsor_id = ?
                 AND id IS NOT ?
                 AND window_start <= ?
                 AND window_end >= ?
               ORDER BY window_start
               LIMIT 1""",
            (sponsor_id, exclude_id, to_storage(window_end), to_storage(window_start)),
        ).fetchone()
        if row is None:
            return None
        return dict(row)

    @staticmethod
    def update(conn: sqlite3.Connection, offering_id: str,
               now: datetime | None = None, **fields) -> None:
        """Update plain fields of an offering (title, description, window, status)."""
        if not fields:
            return

        datetime_fields = {"window_start", "window_end"}
        set_clauses = []
        values = []
        for key, value in fields.items():
            set_clauses.append(f"{key} = ?")
            if key in datetime_fields:
                values.append(to_storage(value))
            else:
                values.append(value)

        set_clauses.append("updated_at = ?")
        values.append(to_storage(now or utc_now()))
        values.append(offering_id)
        sql = f"UPDATE offering SET {', '.join(set_clauses)} WHERE id = ?"
        conn.execute(sql, values)

    @staticmethod
    def set_max_slots(conn: sqlite3.Connection, offering_id: str,
                      max_slots: int, now: datetime | None = None) -> None:
        """Change ``max_slots`` and shift ``available_slots`` by the same delta.

        The new availability is clamped to ``[0, max_slots]``. Right-hand
        sides of an UPDATE see the pre-update row, so ``max_slots`` below is
        the old value.
        """
        conn.execute(
            """UPDATE offering SET
                   available_slots = MAX(0, MIN(?, available_slots + (? - max_slots))),
                   max_slots = ?,
                   updated_at = ?
               WHERE id = ?""",
            (max_slots, max_slots, max_slots, to_storage(now or utc_now()), offering_id),
        )

    @staticmethod
    def reserve_slot(conn: sqlite3.Connection, offering_id: str) -> bool:
        """Take one slot. Returns False when none is left."""
        cursor = conn.execute(
            """UPDATE offering SET available_slots = available_slots - 1, updated_at = ?
               WHERE id = ? AND available_slots > 0""",
            (to_storage(utc_now()), offering_id),
        )
        return cursor.rowcount > 0

    @staticmethod
    def release_slot(conn: sqlite3.Connection, offering_id: str) -> bool:
        """Give one slot back. Returns False when the offering is already full."""
        cursor = conn.execute(
            """UPDATE offering SET available_slots = available_slots + 1, updated_at = ?
               WHERE id = ? AND available_slots < max_slots""",
            (to_storage(utc_now()), offering_id),
        )
        return cursor.rowcount > 0

    @staticmethod
    def refresh_statuses(conn: sqlite3.Connection, now: datetime) -> int:
        """Bring every stored status in line with *now*. Returns rows changed."""
        stamp = to_storage(now)
        changed = 0
        changed += conn.execute(
            """UPDATE offering SET status = 'upcoming'
               WHERE window_start > ? AND status <> 'upcoming'""",
            (stamp,),
        ).rowcount
        changed += conn.execute(
            """UPDATE offering SET status = 'active'
               WHERE window_start <= ? AND window_end >= ? AND status <> 'active'""",
            (stamp, stamp),
        ).rowcount
        changed += conn.execute(
            """UPDATE offering SET status = 'closed'
               WHERE window_end < ? AND status <> 'closed'""",
            (stamp,),
        ).rowcount
        return changed

    @staticmethod
    def delete(conn: sqlite3.Connection, offering_id: str) -> bool:
        """Delete an offering (its requests cascade). Returns True if a row was deleted."""
        cursor = conn.execute("DELETE FROM offering WHERE id = ?", (offering_id,))
        return cursor.rowcount > 0

    @staticmethod
    def list_all(conn: sqlite3.Connection, status: str | None = None,
                 sponsor_id: str | None = None,
                 search: str | None = None) -> list[dict]:
        """List offerings ordered by window start, optionally filtered."""
        clauses = []
        values: list = []
        if status:
            clauses.append("o.status = ?")
            values.append(status)
        if sponsor_id:
            clauses.append("o.sponsor_id = ?")
            values.append(sponsor_id)
        if search:
            pattern = f"%{search.lower()}%"
            clauses.append(
                "(lower(o.title) LIKE ? OR lower(coalesce(o.description, '')) LIKE ?"
                " OR lower(a.display_name) LIKE ?)"
            )
            values.extend([pattern, pattern, pattern])

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = conn.execute(
            f"""SELECT {_OFFERING_COLUMNS} FROM offering o
                JOIN actor a ON a.id = o.sponsor_id
                {where}
                ORDER BY o.window_start, o.id""",
            values,
        ).fetchall()
        return [dict(r) for r in rows]

    @staticmethod
    def list_open(conn: sqlite3.Connection) -> list[dict]:
        """List active offerings that still have a free slot, closing soonest first."""
        rows = conn.execute(
            f"""SELECT {_OFFERING_COLUMNS} FROM offering o
                JOIN actor a ON a.id = o.sponsor_id
                WHERE o.status = 'active' AND o.available_slots > 0
                ORDER BY o.window_end, o.id"""
        ).fetchall()
        return [dict(r) for r in rows]

    @staticmethod
    def list_by_sponsor(conn: sqlite3.Connection, sponsor_id: str) -> list[dict]:
        """List a sponsor's offerings, newest first."""
        rows = conn.execute(
            f"""SELECT {_OFFERING_COLUMNS} FROM offering o
                JOIN actor a ON a.id = o.sponsor_id
                WHERE o.sponsor_id = ?
                ORDER BY o.created_at DESC, o.id""",
            (sponsor_id,),
        ).fetchall()
        return [dict(r) for r in rows]


__all__ = ["OfferingStore"]
