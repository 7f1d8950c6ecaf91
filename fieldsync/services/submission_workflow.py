"""Submission status state machine.

All status rules live here as a transition table::

    draft --submit--> submitted --update--> reviewed | rejected

``update`` is the administrative PATCH path; ``submit`` is the device path.
Submitting an already submitted submission is an idempotent no-op.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from fieldsync.forms.location import missing_location_fields
from fieldsync.models.submission import SubmissionStatus

Action = str  # "update" | "submit"

UPDATE = "update"
SUBMIT = "submit"

ALLOWED_STATUSES: Tuple[str, ...] = tuple(status.value for status in SubmissionStatus)


class InvalidTransition(ValueError):
    """A status change the workflow does not allow."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, conflict: bool = False):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        # state conflict (409) rather than an invalid request (422)
        self.conflict = conflict


@dataclass(frozen=True)
class Transition:
    """One edge of the state machine."""

    from_status: SubmissionStatus
    action: Action
    to_status: SubmissionStatus


TRANSITIONS: Tuple[Transition, ...] = (
    Transition(SubmissionStatus.DRAFT, UPDATE, SubmissionStatus.DRAFT),
    Transition(SubmissionStatus.DRAFT, UPDATE, SubmissionStatus.SUBMITTED),
    Transition(SubmissionStatus.DRAFT, UPDATE, SubmissionStatus.REVIEWED),
    Transition(SubmissionStatus.DRAFT, UPDATE, SubmissionStatus.REJECTED),
    Transition(SubmissionStatus.SUBMITTED, UPDATE, SubmissionStatus.REVIEWED),
    Transition(SubmissionStatus.SUBMITTED, UPDATE, SubmissionStatus.REJECTED),
    Transition(SubmissionStatus.DRAFT, SUBMIT, SubmissionStatus.SUBMITTED),
    Transition(SubmissionStatus.SUBMITTED, SUBMIT, SubmissionStatus.SUBMITTED),
)


def targets(status: SubmissionStatus, action: Action) -> List[SubmissionStatus]:
    """Statuses reachable from ``status`` through ``action``."""
    return [t.to_status for t in TRANSITIONS if t.from_status == status and t.action == action]


def get_transition(status: SubmissionStatus, action: Action, to_status: SubmissionStatus) -> Transition:
    for t in TRANSITIONS:
        if t.from_status == status and t.action == action and t.to_status == to_status:
            return t
    raise KeyError("unknown transition")


def parse_status(value: Any) -> SubmissionStatus:
    """
    Parse a requested status.

    Raises:
        InvalidTransition: If the value is not a known status
    """
    try:
        return SubmissionStatus(str(value).strip())
    except ValueError:
        raise InvalidTransition("Invalid status update.", {"allowed": list(ALLOWED_STATUSES)}) from None


def check_update(current: SubmissionStatus, requested: Any) -> SubmissionStatus:
    """
    Validate an administrative status change and return the new status.

    Raises:
        InvalidTransition: If the status is unknown or not reachable
    """
    next_status = parse_status(requested)
    try:
        get_transition(current, UPDATE, next_status)
    except KeyError:
        allowed = [status.value for status in targets(current, UPDATE)]
        raise InvalidTransition(
            f"Invalid transition from {current.value}.",
            {"current": current.value, "attempted": next_status.value, "allowed": allowed},
        ) from None
    return next_status


def check_submit(current: SubmissionStatus) -> bool:
    """
    Validate the submit action.

    Returns:
        True when the submission must transition, False when it is already submitted

    Raises:
        InvalidTransition: If the submission was already reviewed or rejected (conflict)
    """
    try:
        get_transition(current, SUBMIT, SubmissionStatus.SUBMITTED)
    except KeyError:
        raise InvalidTransition(
            "Submission can no longer be submitted.",
            {"current": current.value, "attempted": SubmissionStatus.SUBMITTED.value},
            conflict=True,
        ) from None
    return current != SubmissionStatus.SUBMITTED


def missing_for_submit(submission: Any) -> List[str]:
    """Location fields that block submitting."""
    return missing_location_fields(submission, strict=True)
