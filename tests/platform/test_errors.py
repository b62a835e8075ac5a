"""Tests for the typed error taxonomy."""

import pytest

from coord_platform.errors import (
    AccessDeniedError,
    AlreadyCommittedError,
    CoordinationError,
    InvalidInputError,
    InvalidWindowError,
    NotFoundError,
    NotOwnerError,
    StateGuardError,
    StoreBusyError,
)


@pytest.mark.parametrize("error_cls, category", [
    (InvalidInputError, "validation"),
    (InvalidWindowError, "validation"),
    (NotFoundError, "not_found"),
    (AlreadyCommittedError, "state"),
    (NotOwnerError, "authorization"),
    (StoreBusyError, "consistency"),
])
def test_categories(error_cls, category):
    assert error_cls("x").category == category
    assert issubclass(error_cls, CoordinationError)


def test_hierarchy():
    assert issubclass(AlreadyCommittedError, StateGuardError)
    assert issubclass(NotOwnerError, AccessDeniedError)


def test_to_dict_includes_details():
    err = AlreadyCommittedError("Applicant already accepted", applicant_id="a1")
    assert err.to_dict() == {
        "error": "AlreadyCommittedError",
        "category": "state",
        "message": "Applicant already accepted",
        "details": {"applicant_id": "a1"},
    }
    assert str(err) == "Applicant already accepted"


def test_to_dict_omits_empty_details():
    assert "details" not in NotFoundError("gone").to_dict()
