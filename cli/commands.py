"""
CLI subcommand implementations for the coordination platform.

Subcommands::

    coord init-db            [--db PATH]
    coord refresh-statuses   [--db PATH]
    coord offerings list     [--status S] [--sponsor ID] [--search TEXT] [--db PATH]
    coord requests stats     --actor ID [--db PATH]
    coord actors add-sponsor   NAME [--department D] [--email E] [--capacity N] [--db PATH]
    coord actors add-applicant NAME [--department D] [--email E] [--db PATH]
"""

import argparse
import logging
import sys

from dotenv import load_dotenv

from coord_platform.errors import CoordinationError
from coord_platform.persistence import SCHEMA_VERSION, get_connection
from coord_platform.request_state_machine import OFFERING_STATUSES
from coord_platform.runtime.config import get_db_path
from coord_platform.services import (
    list_offerings,
    refresh_statuses,
    register_actor,
    request_stats,
)


def _open(args):
    return get_connection(args.db or get_db_path())


# ---------------------------------------------------------------------------
# Subcommand: init-db / refresh-statuses
# ---------------------------------------------------------------------------

def cmd_init_db(args):
    """Create the database schema if it is missing."""
    path = args.db or get_db_path()
    conn = get_connection(path)
    conn.close()
    print(f"✓ Database ready at {path} (schema v{SCHEMA_VERSION})")


def cmd_refresh_statuses(args):
    """Bring every stored offering status in line with the clock."""
    conn = _open(args)
    try:
        changed = refresh_statuses(conn)
    finally:
        conn.close()
    print(f"✓ Refreshed {changed} offering(s).")


# ---------------------------------------------------------------------------
# Subcommand: offerings
# ---------------------------------------------------------------------------

def cmd_offerings(args):
    """Inspect offerings."""
    conn = _open(args)
    try:
        offerings = list_offerings(
            conn, status=args.status, sponsor_id=args.sponsor, search=args.search
        )
    finally:
        conn.close()

    if not offerings:
        print("No offerings found.")
        return
    print(f"\n{'Title':<30}  {'Status':<9}  {'Slots':>7}  {'Window'}")
    print("-" * 80)
    for o in offerings:
        title = o.title if len(o.title) <= 30 else o.title[:27] + "..."
        slots = f"{o.available_slots}/{o.max_slots}"
        window = f"{o.window_start:%Y-%m-%d %H:%M} → {o.window_end:%Y-%m-%d %H:%M}"
        print(f"{title:<30}  {o.status:<9}  {slots:>7}  {window}")


# ---------------------------------------------------------------------------
# Subcommand: requests
# ---------------------------------------------------------------------------

def cmd_requests(args):
    """Summarise an actor's requests."""
    conn = _open(args)
    try:
        stats = request_stats(conn, args.actor)
    finally:
        conn.close()

    print(f"\nRequests for {args.actor}")
    for name, count in stats.model_dump().items():
        if name == "total":
            continue
        print(f"  {name:<17} {count:>4}")
    print(f"  {'total':<17} {stats.total:>4}")


# ---------------------------------------------------------------------------
# Subcommand: actors
# ---------------------------------------------------------------------------

def cmd_actors(args):
    """Register sponsors and applicants."""
    role = "sponsor" if args.actors_action == "add-sponsor" else "applicant"
    conn = _open(args)
    try:
        actor = register_actor(
            conn,
            role=role,
            display_name=args.name,
            department=args.department,
            email=args.email,
            capacity=getattr(args, "capacity", None),
        )
    finally:
        conn.close()

    print(f"✓ Registered {actor.role} {actor.display_name}: {actor.id}")
    if actor.is_sponsor:
        print(f"  Capacity: {actor.capacity}")


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def _add_db_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--db", default=None,
                        help="Database file (default: $COORD_DB_PATH or ./coordination.db)")


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="coord",
        description="Sponsor/applicant coordination platform",
    )
    parser.add_argument(
        "--log-level", default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- init-db ---
    p_init = subparsers.add_parser("init-db", help="Create the database schema")
    _add_db_argument(p_init)

    # --- refresh-statuses ---
    p_refresh = subparsers.add_parser("refresh-statuses",
                                      help="Recompute offering statuses from the clock")
    _add_db_argument(p_refresh)

    # --- offerings ---
    p_offerings = subparsers.add_parser("offerings", help="Inspect offerings")
    sp_offerings = p_offerings.add_subparsers(dest="offerings_action", required=True)

    sp_olist = sp_offerings.add_parser("list", help="List offerings")
    sp_olist.add_argument("--status", choices=list(OFFERING_STATUSES), default=None)
    sp_olist.add_argument("--sponsor", default=None, help="Only this sponsor's offerings")
    sp_olist.add_argument("--search", default=None,
                          help="Match title, description or sponsor name")
    _add_db_argument(sp_olist)

    # --- requests ---
    p_requests = subparsers.add_parser("requests", help="Inspect requests")
    sp_requests = p_requests.add_subparsers(dest="requests_action", required=True)

    sp_rstats = sp_requests.add_parser("stats", help="Count an actor's requests per status")
    sp_rstats.add_argument("--actor", required=True, help="Actor ID")
    _add_db_argument(sp_rstats)

    # --- actors ---
    p_actors = subparsers.add_parser("actors", help="Register actors")
    sp_actors = p_actors.add_subparsers(dest="actors_action", required=True)

    sp_sponsor = sp_actors.add_parser("add-sponsor", help="Register a sponsor")
    sp_sponsor.add_argument("name", help="Display name")
    sp_sponsor.add_argument("--department", default="")
    sp_sponsor.add_argument("--email", default="")
    sp_sponsor.add_argument("--capacity", type=int, default=None,
                            help="Maximum accepted applicants (default: 5)")
    _add_db_argument(sp_sponsor)

    sp_applicant = sp_actors.add_parser("add-applicant", help="Register an applicant")
    sp_applicant.add_argument("name", help="Display name")
    sp_applicant.add_argument("--department", default="")
    sp_applicant.add_argument("--email", default="")
    _add_db_argument(sp_applicant)

    return parser


_COMMANDS = {
    "init-db": cmd_init_db,
    "refresh-statuses": cmd_refresh_statuses,
    "offerings": cmd_offerings,
    "requests": cmd_requests,
    "actors": cmd_actors,
}


def main(argv=None):
    """Entry point for the CLI."""
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        _COMMANDS[args.command](args)
    except CoordinationError as e:
        print(f"Error: {e.message}")
        sys.exit(1)
