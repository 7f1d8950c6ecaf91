"""Tests for the submission status state machine."""
import pytest
from fastapi import HTTPException

from fieldsync.models.submission import SubmissionStatus
from fieldsync.services import submission_workflow as workflow
from fieldsync.services.submission_service import _transition_failed


@pytest.mark.parametrize("requested", ["draft", "submitted", "reviewed", "rejected"])
def test_draft_can_move_anywhere(requested):
    assert workflow.check_update(SubmissionStatus.DRAFT, requested) == SubmissionStatus(requested)


def test_submitted_only_moves_to_review_outcomes():
    assert workflow.check_update(SubmissionStatus.SUBMITTED, " reviewed ") == SubmissionStatus.REVIEWED
    with pytest.raises(workflow.InvalidTransition) as exc_info:
        workflow.check_update(SubmissionStatus.SUBMITTED, "draft")
    assert exc_info.value.details == {
        "current": "submitted",
        "attempted": "draft",
        "allowed": ["reviewed", "rejected"],
    }


@pytest.mark.parametrize("terminal", [SubmissionStatus.REVIEWED, SubmissionStatus.REJECTED])
def test_review_outcomes_are_terminal(terminal):
    with pytest.raises(workflow.InvalidTransition) as exc_info:
        workflow.check_update(terminal, "draft")
    assert exc_info.value.details["allowed"] == []
    assert exc_info.value.conflict is False


def test_unknown_status_lists_allowed_values():
    with pytest.raises(workflow.InvalidTransition) as exc_info:
        workflow.check_update(SubmissionStatus.DRAFT, "archived")
    assert exc_info.value.message == "Invalid status update."
    assert exc_info.value.details == {"allowed": ["draft", "submitted", "reviewed", "rejected"]}


def test_check_submit():
    assert workflow.check_submit(SubmissionStatus.DRAFT) is True
    assert workflow.check_submit(SubmissionStatus.SUBMITTED) is False
    with pytest.raises(workflow.InvalidTransition) as exc_info:
        workflow.check_submit(SubmissionStatus.REJECTED)
    assert exc_info.value.conflict is True


def test_targets_and_unknown_transition():
    assert workflow.targets(SubmissionStatus.DRAFT, workflow.SUBMIT) == [SubmissionStatus.SUBMITTED]
    with pytest.raises(KeyError):
        workflow.get_transition(SubmissionStatus.REVIEWED, workflow.SUBMIT, SubmissionStatus.SUBMITTED)


def test_missing_for_submit():
    assert workflow.missing_for_submit({"prov_name": "Cebu", "city_name": "Cebu City"}) == ["brgy_name"]


@pytest.mark.parametrize("conflict,expected", [(True, 409), (False, 422)])
def test_rejected_transition_status_code(conflict, expected):
    error = workflow.InvalidTransition("Nope.", {"current": "reviewed"}, conflict=conflict)
    with pytest.raises(HTTPException) as exc_info:
        _transition_failed(error)
    assert exc_info.value.status_code == expected
    assert exc_info.value.detail == {"message": "Nope.", "current": "reviewed"}
