"""Platform-owned workflow services.

Every operation takes an open connection as its first argument and runs its
writes in a single transaction on it.
"""

from .identity_service import (
    get_actor,
    increment_committed,
    list_sponsor_applicants,
    list_sponsors,
    register_actor,
    require_role,
    set_accepted_sponsor,
    update_sponsor_capacity,
)
from .offering_service import (
    create_offering,
    delete_offering,
    get_offering,
    list_offerings,
    list_open_offerings,
    list_sponsor_offerings,
    refresh_statuses,
    release_slot,
    reserve_slot,
    update_offering,
)
from .request_service import (
    ApprovalResult,
    approve_request,
    cancel_request,
    get_request,
    list_requests_for_actor,
    reject_request,
    request_stats,
    submit_request,
)
from .document_service import (
    ReviewResult,
    accept_document,
    get_document,
    list_documents,
    reject_document,
    upload_document,
)
