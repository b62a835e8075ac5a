"""Platform-owned persistence layer (database and stores)."""

from .actor_store import ActorStore
from .database import SCHEMA_VERSION, get_connection, init_db, transaction
from .document_store import DocumentStore
from .offering_store import OfferingStore
from .request_store import RequestStore
