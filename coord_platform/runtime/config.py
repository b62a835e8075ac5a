"""
Configuration constants for the coordination platform.
"""

import os
from pathlib import Path

# Database file used when no explicit path is given
DB_FILE = "coordination.db"

_DB_PATH_ENV = "COORD_DB_PATH"
_BUSY_TIMEOUT_SECONDS_ENV = "COORD_BUSY_TIMEOUT_SECONDS"

_DEFAULT_BUSY_TIMEOUT_SECONDS = 5

# Offering defaults (a registration window opens 5 slots unless told otherwise)
DEFAULT_MAX_SLOTS = 5

# Sponsor capacity bounds
DEFAULT_SPONSOR_CAPACITY = 5
MIN_SPONSOR_CAPACITY = 1
MAX_SPONSOR_CAPACITY = 50

# Request text limits
TOPIC_MIN_LENGTH = 10
TOPIC_MAX_LENGTH = 500
MESSAGE_MAX_LENGTH = 2000

TITLE_MAX_LENGTH = 255
FILE_NAME_MAX_LENGTH = 255
CONTENT_TYPE_MAX_LENGTH = 100

# Reason recorded on sibling requests when an applicant is accepted elsewhere
AUTO_REJECT_REASON = "applicant accepted by another sponsor"


def _to_int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def get_db_path() -> Path:
    """Return the database path, honouring ``COORD_DB_PATH`` when set."""
    override = os.environ.get(_DB_PATH_ENV, "").strip()
    if override:
        return Path(override)
    return Path.cwd() / DB_FILE


def busy_timeout_seconds() -> int:
    """Seconds a writer waits for the database lock before giving up."""
    return _to_int_env(_BUSY_TIMEOUT_SECONDS_ENV, _DEFAULT_BUSY_TIMEOUT_SECONDS)
