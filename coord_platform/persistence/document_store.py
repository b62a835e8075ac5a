"""Platform-owned document artifact store."""

import sqlite3
from datetime import datetime
from typing import Optional

from coord_platform.runtime.utils import new_id, to_storage, utc_now


class DocumentStore:
    """CRUD for document artifact metadata attached to a request."""

    @staticmethod
    def create(conn: sqlite3.Connection, request_id: str, uploader_id: str,
               uploader_role: str, file_name: str, original_name: str,
               content_type: str, size_bytes: int, storage_ref: str = "",
               now: datetime | None = None) -> str:
        """Insert an artifact awaiting review. Returns the artifact id."""
        artifact_id = new_id()
        stamp = to_storage(now or utc_now())
        conn.execute(
            """INSERT INTO document_artifact
               (id, request_id, uploader_id, uploader_role, file_name,
                original_name, content_type, size_bytes, storage_ref,
                status, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 'pending_review', ?, ?)""",
            (artifact_id, request_id, uploader_id, uploader_role, file_name,
             original_name, content_type, size_bytes, storage_ref, stamp, stamp),
        )
        return artifact_id

    @staticmethod
    def get(conn: sqlite3.Connection, artifact_id: str) -> Optional[dict]:
        row = conn.execute(
            "SELECT * FROM document_artifact WHERE id = ?", (artifact_id,)
        ).fetchone()
        if row is None:
            return None
        return dict(row)

    @staticmethod
    def list_for_request(conn: sqlite3.Connection, request_id: str) -> list[dict]:
        """List a request's artifacts, newest first."""
        rows = conn.execute(
            """SELECT * FROM document_artifact WHERE request_id = ?
               ORDER BY created_at DESC, id""",
            (request_id,),
        ).fetchall()
        return [dict(r) for r in rows]

    @staticmethod
    def set_status(conn: sqlite3.Connection, artifact_id: str, status: str,
                   rejection_reason: str | None = None,
                   now: datetime | None = None) -> bool:
        """Close the review of an artifact still pending. Returns True if it changed."""
        cursor = conn.execute(
            """UPDATE document_artifact SET
                   status = ?, rejection_reason = ?, updated_at = ?
               WHERE id = ? AND status = 'pending_review'""",
            (status, rejection_reason, to_storage(now or utc_now()), artifact_id),
        )
        return cursor.rowcount > 0


__all__ = ["DocumentStore"]
