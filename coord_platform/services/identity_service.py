"""Platform-owned identity service (actors and their capacity counters)."""

import logging
import sqlite3

from contracts.v1 import ActorRegistration, parse_contract
from coord_platform.errors import (
    AlreadyCommittedError,
    CapacityExceededError,
    InvalidInputError,
    NotAuthorizedError,
    NotFoundError,
)
from coord_platform.models import Actor
from coord_platform.persistence import ActorStore, transaction
from coord_platform.runtime.config import MAX_SPONSOR_CAPACITY, MIN_SPONSOR_CAPACITY

logger = logging.getLogger(__name__)


def register_actor(conn: sqlite3.Connection, role: str, display_name: str,
                   department: str = "", email: str = "",
                   capacity: int | None = None) -> Actor:
    """Validate and persist a new sponsor or applicant.

    Sponsors default to the standard capacity; applicants carry none.
    """
    registration = parse_contract(
        ActorRegistration,
        {
            "role": role,
            "display_name": display_name,
            "department": department,
            "email": email,
            "capacity": capacity,
        },
    )
    with transaction(conn):
        actor_id = ActorStore.create(
            conn,
            role=registration.role,
            display_name=registration.display_name,
            department=registration.department,
            email=registration.email,
            capacity=registration.capacity,
        )
        row = ActorStore.get(conn, actor_id)
    logger.info("Registered %s %s (%s)", registration.role, actor_id, registration.display_name)
    return Actor.from_dict(row)


def get_actor(conn: sqlite3.Connection, actor_id: str) -> Actor:
    """Load an actor by id or raise ``NotFoundError``."""
    row = ActorStore.get(conn, actor_id)
    if row is None:
        raise NotFoundError("Actor not found", actor_id=actor_id)
    return Actor.from_dict(row)


def require_role(conn: sqlite3.Connection, actor_id: str, role: str) -> Actor:
    """Load an actor and check it plays *role*."""
    actor = get_actor(conn, actor_id)
    if actor.role != role:
        raise NotAuthorizedError(
            f"Only {role}s can perform this action",
            actor_id=actor_id,
            role=actor.role,
        )
    return actor


def set_accepted_sponsor(conn: sqlite3.Connection, applicant_id: str,
                         sponsor_id: str | None) -> None:
    """Record (or clear) the applicant's accepted sponsor.

    Setting is refused with ``AlreadyCommittedError`` when the applicant is
    already accepted; callers run this inside their own transaction.
    """
    if not ActorStore.set_accepted_sponsor(conn, applicant_id, sponsor_id):
        if sponsor_id is None:
            raise NotFoundError("Applicant not found", actor_id=applicant_id)
        raise AlreadyCommittedError(
            "Applicant already accepted by another sponsor",
            applicant_id=applicant_id,
        )


def increment_committed(conn: sqlite3.Connection, sponsor_id: str, delta: int) -> None:
    """Shift a sponsor's committed counter, refusing to leave ``[0, capacity]``."""
    if not ActorStore.increment_committed(conn, sponsor_id, delta):
        raise CapacityExceededError(
            "Sponsor has reached maximum applicant capacity",
            sponsor_id=sponsor_id,
            delta=delta,
        )


def update_sponsor_capacity(conn: sqlite3.Connection, sponsor_id: str,
                            capacity: int) -> Actor:
    """Change a sponsor's capacity; it may not drop below the committed count."""
    if not MIN_SPONSOR_CAPACITY <= capacity <= MAX_SPONSOR_CAPACITY:
        raise InvalidInputError(
            f"Capacity must be between {MIN_SPONSOR_CAPACITY} and {MAX_SPONSOR_CAPACITY}",
            capacity=capacity,
        )
    with transaction(conn):
        require_role(conn, sponsor_id, "sponsor")
        if not ActorStore.update_capacity(conn, sponsor_id, capacity):
            raise CapacityExceededError(
                "Capacity cannot be lower than the number of accepted applicants",
                sponsor_id=sponsor_id,
                capacity=capacity,
            )
        row = ActorStore.get(conn, sponsor_id)
    return Actor.from_dict(row)


def list_sponsors(conn: sqlite3.Connection) -> list[Actor]:
    return [Actor.from_dict(r) for r in ActorStore.list_by_role(conn, "sponsor")]


def list_sponsor_applicants(conn: sqlite3.Connection, sponsor_id: str) -> list[Actor]:
    """List the applicants a sponsor has accepted."""
    require_role(conn, sponsor_id, "sponsor")
    return [Actor.from_dict(r) for r in ActorStore.list_accepted_by(conn, sponsor_id)]
