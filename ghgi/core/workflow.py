"""Workflow / State Machine for submissions.

All lifecycle rules for a Submission live here:
   - states and the transition edges between them
   - which actions are available in a state
   - whether answers may still be edited in a state

Lifecycle: draft -> submitted -> reviewed | rejected.

A submitted record stays editable until somebody reviews or rejects it
("submitted-but-editable"). That is a relaxation on answer edits only: the
status itself never moves back to draft.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class SubmissionStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    REVIEWED = "reviewed"
    REJECTED = "rejected"


Action = str  # "submit" | "review" | "reject"

# Statuses counted as received data by analytics.
COUNTED_STATUSES: tuple[SubmissionStatus, ...] = (SubmissionStatus.SUBMITTED, SubmissionStatus.REVIEWED)


@dataclass(frozen=True, slots=True)
class Transition:
    """One transition edge in the state machine."""

    from_status: SubmissionStatus
    action: Action
    to_status: SubmissionStatus
    # submit stamps submitted_at (again, when re-submitting)
    stamps_submitted_at: bool = False


TRANSITIONS: tuple[Transition, ...] = (
    Transition(
        from_status=SubmissionStatus.DRAFT,
        action="submit",
        to_status=SubmissionStatus.SUBMITTED,
        stamps_submitted_at=True,
    ),
    # re-submit is idempotent in effect; only the timestamp moves
    Transition(
        from_status=SubmissionStatus.SUBMITTED,
        action="submit",
        to_status=SubmissionStatus.SUBMITTED,
        stamps_submitted_at=True,
    ),
    Transition(
        from_status=SubmissionStatus.SUBMITTED,
        action="review",
        to_status=SubmissionStatus.REVIEWED,
    ),
    Transition(
        from_status=SubmissionStatus.SUBMITTED,
        action="reject",
        to_status=SubmissionStatus.REJECTED,
    ),
)

# Target status requested through PATCH -> action name.
REVIEW_ACTIONS: dict[SubmissionStatus, Action] = {
    SubmissionStatus.REVIEWED: "review",
    SubmissionStatus.REJECTED: "reject",
}

EDITABLE_STATUSES: tuple[SubmissionStatus, ...] = (SubmissionStatus.DRAFT, SubmissionStatus.SUBMITTED)


def parse_status(value: str | SubmissionStatus) -> SubmissionStatus:
    """Raises ValueError for unknown statuses."""
    if isinstance(value, SubmissionStatus):
        return value
    return SubmissionStatus((value or "").strip().lower())


def get_transition(status: SubmissionStatus | str, action: Action) -> Transition:
    status = parse_status(status)
    for t in TRANSITIONS:
        if t.from_status == status and t.action == action:
            return t
    raise KeyError(f"no transition for {action!r} from {status.value!r}")


def allowed_actions(status: SubmissionStatus | str) -> tuple[Action, ...]:
    status = parse_status(status)
    actions: list[Action] = []
    for t in TRANSITIONS:
        if t.from_status == status and t.action not in actions:
            actions.append(t.action)
    return tuple(actions)


def can_edit_answers(status: SubmissionStatus | str) -> bool:
    return parse_status(status) in EDITABLE_STATUSES
