"""Platform-owned offering service: lifecycle and slot accounting."""

import logging
import sqlite3
from datetime import datetime
from typing import Optional

from contracts.v1 import OfferingDraft, OfferingPatch, parse_contract
from coord_platform.errors import (
    HasCommittedRequestsError,
    NoSlotsError,
    NotFoundError,
    NotOwnerError,
    OverlapError,
)
from coord_platform.models import Offering
from coord_platform.persistence import OfferingStore, RequestStore, transaction
from coord_platform.request_state_machine import (
    COMMITTED_STATUSES,
    recompute_status,
    validate_window,
)
from coord_platform.runtime.config import DEFAULT_MAX_SLOTS
from coord_platform.runtime.utils import ensure_utc, utc_now
from coord_platform.services.identity_service import require_role

logger = logging.getLogger(__name__)


def _load(conn: sqlite3.Connection, offering_id: str) -> dict:
    row = OfferingStore.get(conn, offering_id)
    if row is None:
        raise NotFoundError("Offering not found", offering_id=offering_id)
    return row


def _load_owned(conn: sqlite3.Connection, offering_id: str, sponsor_id: str) -> dict:
    row = _load(conn, offering_id)
    if row["sponsor_id"] != sponsor_id:
        raise NotOwnerError(
            "You can only manage your own offerings",
            offering_id=offering_id,
        )
    return row


def _raise_on_overlap(conn: sqlite3.Connection, sponsor_id: str,
                      window_start: datetime, window_end: datetime,
                      exclude_id: str | None = None) -> None:
    clash = OfferingStore.find_overlapping(
        conn, sponsor_id, window_start, window_end, exclude_id=exclude_id
    )
    if clash is not None:
        raise OverlapError(
            "Offering window overlaps an existing offering",
            conflicting_offering_id=clash["id"],
        )


def _with_current_status(conn: sqlite3.Connection, row: dict, now: datetime) -> Offering:
    """Recompute the derived status of *row*, persisting it if it drifted."""
    offering = Offering.from_dict(row)
    status = recompute_status(offering.window_start, offering.window_end, now)
    if status != offering.status:
        OfferingStore.update(conn, offering.id, now=now, status=status)
        offering.status = status
    return offering


def create_offering(conn: sqlite3.Connection, sponsor_id: str, title: str,
                    description: str, window_start: datetime,
                    window_end: datetime, max_slots: int = DEFAULT_MAX_SLOTS,
                    *, now: datetime | None = None) -> Offering:
    """Create an offering with every slot free and a status derived from *now*."""
    draft = parse_contract(
        OfferingDraft,
        {
            "title": title,
            "description": description or "",
            "window_start": window_start,
            "window_end": window_end,
            "max_slots": max_slots,
        },
    )
    start, end = ensure_utc(draft.window_start), ensure_utc(draft.window_end)
    validate_window(start, end)
    now = now or utc_now()

    with transaction(conn):
        require_role(conn, sponsor_id, "sponsor")
        _raise_on_overlap(conn, sponsor_id, start, end)
        offering_id = OfferingStore.create(
            conn,
            sponsor_id=sponsor_id,
            title=draft.title,
            description=draft.description,
            window_start=start,
            window_end=end,
            max_slots=draft.max_slots,
            status=recompute_status(start, end, now),
            now=now,
        )
        row = OfferingStore.get(conn, offering_id)

    logger.info("Created offering %s for sponsor %s (%d slots)",
                offering_id, sponsor_id, draft.max_slots)
    return Offering.from_dict(row)


def update_offering(conn: sqlite3.Connection, offering_id: str, sponsor_id: str,
                    patch: dict, *, now: datetime | None = None) -> Offering:
    """Apply a partial update to an offering owned by *sponsor_id*.

    A ``max_slots`` change shifts ``available_slots`` by the same delta,
    clamped to ``[0, max_slots]``. A window change is re-validated and
    re-checked for overlap against the sponsor's other offerings.
    """
    changes = parse_contract(OfferingPatch, patch).changes()
    now = now or utc_now()

    with transaction(conn):
        row = _load_owned(conn, offering_id, sponsor_id)
        current = Offering.from_dict(row)

        start = ensure_utc(changes.get("window_start", current.window_start))
        end = ensure_utc(changes.get("window_end", current.window_end))
        if "window_start" in changes or "window_end" in changes:
            validate_window(start, end)
            _raise_on_overlap(conn, sponsor_id, start, end, exclude_id=offering_id)

        fields = {
            key: changes[key] for key in ("title", "description") if key in changes
        }
        if "window_start" in changes:
            fields["window_start"] = start
        if "window_end" in changes:
            fields["window_end"] = end
        fields["status"] = recompute_status(start, end, now)

        if "max_slots" in changes and changes["max_slots"] != current.max_slots:
            OfferingStore.set_max_slots(conn, offering_id, changes["max_slots"], now=now)

        OfferingStore.update(conn, offering_id, now=now, **fields)
        row = OfferingStore.get(conn, offering_id)

    logger.info("Updated offering %s: %s", offering_id, ", ".join(sorted(changes)) or "no changes")
    return Offering.from_dict(row)


def delete_offering(conn: sqlite3.Connection, offering_id: str, sponsor_id: str) -> None:
    """Delete an offering unless a committed request still depends on it."""
    with transaction(conn):
        _load_owned(conn, offering_id, sponsor_id)
        committed = RequestStore.count_for_offering(conn, offering_id, COMMITTED_STATUSES)
        if committed:
            raise HasCommittedRequestsError(
                "Cannot delete an offering with approved requests",
                offering_id=offering_id,
                committed_requests=committed,
            )
        OfferingStore.delete(conn, offering_id)
    logger.info("Deleted offering %s", offering_id)


def reserve_slot(conn: sqlite3.Connection, offering_id: str) -> None:
    """Take one slot of an offering; joins the caller's transaction if one is open."""
    with transaction(conn):
        _load(conn, offering_id)
        if not OfferingStore.reserve_slot(conn, offering_id):
            raise NoSlotsError("This offering has no available slots", offering_id=offering_id)


def release_slot(conn: sqlite3.Connection, offering_id: str) -> bool:
    """Give one slot back. Returns False when the offering was already full."""
    with transaction(conn):
        _load(conn, offering_id)
        released = OfferingStore.release_slot(conn, offering_id)
    if not released:
        logger.warning("Slot release ignored for full offering %s", offering_id)
    return released


def refresh_statuses(conn: sqlite3.Connection, now: datetime | None = None) -> int:
    """Correct every stored offering status against *now*. Returns rows changed."""
    with transaction(conn):
        changed = OfferingStore.refresh_statuses(conn, now or utc_now())
    if changed:
        logger.info("Refreshed status of %d offering(s)", changed)
    return changed


def get_offering(conn: sqlite3.Connection, offering_id: str,
                 *, now: datetime | None = None) -> Offering:
    with transaction(conn):
        return _with_current_status(conn, _load(conn, offering_id), now or utc_now())


def list_offerings(conn: sqlite3.Connection, status: str | None = None,
                   sponsor_id: str | None = None, search: Optional[str] = None,
                   *, now: datetime | None = None) -> list[Offering]:
    """List offerings by window start, after bringing statuses up to date."""
    refresh_statuses(conn, now)
    rows = OfferingStore.list_all(conn, status=status, sponsor_id=sponsor_id, search=search)
    return [Offering.from_dict(r) for r in rows]


def list_open_offerings(conn: sqlite3.Connection,
                        *, now: datetime | None = None) -> list[Offering]:
    """List offerings an applicant can currently submit to."""
    refresh_statuses(conn, now)
    return [Offering.from_dict(r) for r in OfferingStore.list_open(conn)]


def list_sponsor_offerings(conn: sqlite3.Connection, sponsor_id: str,
                           *, now: datetime | None = None) -> list[Offering]:
    refresh_statuses(conn, now)
    return [Offering.from_dict(r) for r in OfferingStore.list_by_sponsor(conn, sponsor_id)]
