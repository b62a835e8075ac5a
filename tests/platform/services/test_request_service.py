"""Tests for the platform request workflow service."""

from unittest.mock import call

import pytest

from coord_platform.errors import (
    AlreadyCommittedError,
    CapacityExceededError,
    DuplicateRequestError,
    InvalidInputError,
    InvalidStateError,
    NoSlotsError,
    NotAuthorizedError,
    NotFoundError,
    NotOwnerError,
    NotTargetSponsorError,
)
from coord_platform.notifier import REQUEST_APPROVED, REQUEST_REJECTED, REQUEST_SUBMITTED
from coord_platform.persistence import OfferingStore, RequestStore
from coord_platform.runtime.config import AUTO_REJECT_REASON
from coord_platform.services import (
    approve_request,
    cancel_request,
    get_actor,
    get_offering,
    get_request,
    list_requests_for_actor,
    register_actor,
    reject_request,
    request_stats,
    reserve_slot,
    submit_request,
)

TOPIC = "Distributed consensus in practice"


def _committed_count(conn, applicant_id):
    row = conn.execute(
        """SELECT COUNT(*) FROM coordination_request
           WHERE applicant_id = ? AND status IN ('approved', 'document_pending', 'completed')""",
        (applicant_id,),
    ).fetchone()
    return row[0]


class TestSubmitRequest:
    def test_creates_pending_without_reserving_slot(self, db_conn, applicant, active_offering, notifier):
        request = submit_request(db_conn, applicant.id, active_offering.id, TOPIC,
                                 "I'd like to work on Raft.", notifier=notifier)

        assert request.status == "pending"
        assert request.sponsor_id == active_offering.sponsor_id
        assert get_offering(db_conn, active_offering.id).available_slots == active_offering.max_slots
        event, payload = notifier.notify.call_args.args
        assert event == REQUEST_SUBMITTED
        assert payload["sponsor_email"] == "ada@example.edu"

    def test_topic_length_validated(self, db_conn, applicant, active_offering):
        with pytest.raises(InvalidInputError):
            submit_request(db_conn, applicant.id, active_offering.id, "too short")

    def test_sponsors_cannot_submit(self, db_conn, other_sponsor, active_offering):
        with pytest.raises(NotAuthorizedError):
            submit_request(db_conn, other_sponsor.id, active_offering.id, TOPIC)

    def test_missing_offering(self, db_conn, applicant):
        with pytest.raises(NotFoundError):
            submit_request(db_conn, applicant.id, "missing", TOPIC)

    def test_duplicate_rejected(self, db_conn, applicant, active_offering, pending_request):
        with pytest.raises(DuplicateRequestError):
            submit_request(db_conn, applicant.id, active_offering.id, TOPIC)

    def test_duplicate_after_rejection_still_rejected(self, db_conn, sponsor, applicant,
                                                      active_offering, pending_request):
        reject_request(db_conn, pending_request.id, sponsor.id, "Full this term")
        with pytest.raises(DuplicateRequestError):
            submit_request(db_conn, applicant.id, active_offering.id, TOPIC)

    def test_no_slots_fails_before_any_state(self, db_conn, sponsor, applicant, make_offering):
        offering = make_offering(sponsor.id, max_slots=1)
        reserve_slot(db_conn, offering.id)

        with pytest.raises(NoSlotsError):
            submit_request(db_conn, applicant.id, offering.id, TOPIC)
        assert RequestStore.exists_for(db_conn, applicant.id, offering.id) is False

    def test_committed_applicant_cannot_submit(self, db_conn, applicant, approved_request, other_offering):
        with pytest.raises(AlreadyCommittedError):
            submit_request(db_conn, applicant.id, other_offering.id, TOPIC)


class TestApproveRequest:
    def test_commits_applicant_and_consumes_slot(self, db_conn, sponsor, applicant,
                                                 active_offering, pending_request, notifier):
        result = approve_request(db_conn, pending_request.id, sponsor.id, notifier=notifier)

        assert result.request.status == "approved"
        assert result.auto_rejected_ids == []
        assert get_actor(db_conn, applicant.id).accepted_by == sponsor.id
        assert get_actor(db_conn, sponsor.id).committed == 1
        assert get_offering(db_conn, active_offering.id).available_slots == active_offering.max_slots - 1
        assert notifier.notify.call_args.args[0] == REQUEST_APPROVED

    def test_rejects_pending_siblings(self, db_conn, sponsor, applicant, pending_request,
                                      other_offering, notifier):
        sibling = submit_request(db_conn, applicant.id, other_offering.id, TOPIC)

        result = approve_request(db_conn, pending_request.id, sponsor.id, notifier=notifier)

        assert result.auto_rejected_ids == [sibling.id]
        row = RequestStore.get(db_conn, sibling.id)
        assert row["status"] == "rejected"
        assert row["rejection_reason"] == AUTO_REJECT_REASON
        events = [c.args[0] for c in notifier.notify.call_args_list]
        assert events == [REQUEST_APPROVED, REQUEST_REJECTED]
        assert _committed_count(db_conn, applicant.id) == 1

    def test_only_target_sponsor(self, db_conn, other_sponsor, pending_request):
        with pytest.raises(NotTargetSponsorError):
            approve_request(db_conn, pending_request.id, other_sponsor.id)

    def test_only_pending(self, db_conn, sponsor, pending_request):
        reject_request(db_conn, pending_request.id, sponsor.id, "No room")
        with pytest.raises(InvalidStateError):
            approve_request(db_conn, pending_request.id, sponsor.id)

    def test_approving_twice_is_a_state_error(self, db_conn, sponsor, approved_request):
        with pytest.raises(InvalidStateError):
            approve_request(db_conn, approved_request.id, sponsor.id)

    def test_capacity_one_scenario(self, db_conn, make_offering):
        solo = register_actor(db_conn, "sponsor", "Solo Sponsor", capacity=1)
        offering = make_offering(solo.id)
        first = register_actor(db_conn, "applicant", "First Applicant")
        second = register_actor(db_conn, "applicant", "Second Applicant")
        r1 = submit_request(db_conn, first.id, offering.id, TOPIC)
        r2 = submit_request(db_conn, second.id, offering.id, TOPIC)

        approve_request(db_conn, r1.id, solo.id)
        with pytest.raises(CapacityExceededError):
            approve_request(db_conn, r2.id, solo.id)

        assert get_actor(db_conn, solo.id).committed == 1
        assert RequestStore.get(db_conn, r2.id)["status"] == "pending"
        assert get_actor(db_conn, second.id).accepted_by is None

    def test_second_sponsor_sees_already_committed(self, db_conn, sponsor, other_sponsor,
                                                   applicant, pending_request, other_offering):
        competing = submit_request(db_conn, applicant.id, other_offering.id, TOPIC)
        approve_request(db_conn, pending_request.id, sponsor.id)

        with pytest.raises(AlreadyCommittedError):
            approve_request(db_conn, competing.id, other_sponsor.id)
        assert get_actor(db_conn, other_sponsor.id).committed == 0

    def test_failure_rolls_back_everything(self, db_conn, sponsor, applicant,
                                           active_offering, pending_request, other_offering):
        sibling = submit_request(db_conn, applicant.id, other_offering.id, TOPIC)
        for _ in range(active_offering.max_slots):
            reserve_slot(db_conn, active_offering.id)

        with pytest.raises(NoSlotsError):
            approve_request(db_conn, pending_request.id, sponsor.id)

        assert RequestStore.get(db_conn, pending_request.id)["status"] == "pending"
        assert RequestStore.get(db_conn, sibling.id)["status"] == "pending"
        assert get_actor(db_conn, applicant.id).accepted_by is None
        assert get_actor(db_conn, sponsor.id).committed == 0
        assert OfferingStore.get(db_conn, active_offering.id)["available_slots"] == 0

    def test_notifier_failure_does_not_undo_approval(self, db_conn, sponsor, pending_request, notifier):
        notifier.notify.side_effect = RuntimeError("smtp down")

        result = approve_request(db_conn, pending_request.id, sponsor.id, notifier=notifier)

        assert result.request.status == "approved"
        assert RequestStore.get(db_conn, pending_request.id)["status"] == "approved"


class TestRejectRequest:
    def test_records_reason_and_keeps_counters(self, db_conn, sponsor, active_offering,
                                               pending_request, notifier):
        request = reject_request(db_conn, pending_request.id, sponsor.id, "  Full this term ",
                                 notifier=notifier)

        assert request.status == "rejected"
        assert request.rejection_reason == "Full this term"
        assert get_actor(db_conn, sponsor.id).committed == 0
        assert get_offering(db_conn, active_offering.id).available_slots == active_offering.max_slots
        assert notifier.notify.call_args == call(REQUEST_REJECTED, {
            "request_id": request.id,
            "applicant_email": "grace@example.edu",
            "topic": TOPIC,
            "reason": "Full this term",
        })

    def test_reason_required(self, db_conn, sponsor, pending_request):
        with pytest.raises(InvalidInputError):
            reject_request(db_conn, pending_request.id, sponsor.id, "   ")

    def test_only_target_sponsor(self, db_conn, other_sponsor, pending_request):
        with pytest.raises(NotTargetSponsorError):
            reject_request(db_conn, pending_request.id, other_sponsor.id, "Not mine")

    def test_only_pending(self, db_conn, sponsor, approved_request):
        with pytest.raises(InvalidStateError):
            reject_request(db_conn, approved_request.id, sponsor.id, "Changed my mind")


class TestCancelRequest:
    def test_deletes_pending(self, db_conn, applicant, pending_request):
        cancel_request(db_conn, pending_request.id, applicant.id)
        assert RequestStore.get(db_conn, pending_request.id) is None

    def test_only_owner(self, db_conn, sponsor, pending_request):
        with pytest.raises(NotOwnerError):
            cancel_request(db_conn, pending_request.id, sponsor.id)

    def test_ownership_checked_before_status(self, db_conn, sponsor, approved_request):
        with pytest.raises(NotOwnerError):
            cancel_request(db_conn, approved_request.id, sponsor.id)

    def test_only_pending(self, db_conn, applicant, approved_request):
        with pytest.raises(InvalidStateError):
            cancel_request(db_conn, approved_request.id, applicant.id)
        assert RequestStore.get(db_conn, approved_request.id) is not None


class TestReads:
    def test_get_request_for_parties_only(self, db_conn, sponsor, other_sponsor, applicant, pending_request):
        assert get_request(db_conn, pending_request.id, applicant.id).id == pending_request.id
        assert get_request(db_conn, pending_request.id, sponsor.id).id == pending_request.id
        with pytest.raises(NotAuthorizedError):
            get_request(db_conn, pending_request.id, other_sponsor.id)

    def test_list_requests_for_actor(self, db_conn, sponsor, other_sponsor, applicant,
                                     pending_request, other_offering):
        sibling = submit_request(db_conn, applicant.id, other_offering.id, TOPIC)

        assert {r.id for r in list_requests_for_actor(db_conn, applicant.id)} == {
            pending_request.id, sibling.id,
        }
        assert [r.id for r in list_requests_for_actor(db_conn, sponsor.id)] == [pending_request.id]
        assert list_requests_for_actor(db_conn, other_sponsor.id, status="approved") == []

    def test_request_stats(self, db_conn, sponsor, applicant, pending_request, other_offering):
        submit_request(db_conn, applicant.id, other_offering.id, TOPIC)
        approve_request(db_conn, pending_request.id, sponsor.id)

        stats = request_stats(db_conn, applicant.id)
        assert (stats.approved, stats.rejected, stats.pending, stats.total) == (1, 1, 0, 2)
        assert request_stats(db_conn, sponsor.id).approved == 1
