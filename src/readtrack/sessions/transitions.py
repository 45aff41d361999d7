"""Session state machine.

One table decides which actions are legal from which statuses. Call sites
ask ``resolve_transition`` and never compare status strings themselves.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..errors import InvalidStateError, SessionTerminalError
from .schemas import SessionStatus


class SessionAction(str, Enum):
    """Actions a caller (or the system) can apply to a session."""

    PROGRESS = "update progress on"
    PAUSE = "pause"
    RESUME = "resume"
    COMPLETE = "complete"
    ABANDON = "abandon"
    ANNOTATE = "annotate"


@dataclass(frozen=True)
class Transition:
    """Legal source statuses and resulting status of an action.

    A target of None means the action leaves the status unchanged.
    """

    sources: frozenset[SessionStatus]
    target: Optional[SessionStatus]


TERMINAL_STATUSES = frozenset({SessionStatus.COMPLETED, SessionStatus.ABANDONED})

TRANSITIONS: dict[SessionAction, Transition] = {
    SessionAction.PROGRESS: Transition(
        frozenset({SessionStatus.ACTIVE}), SessionStatus.ACTIVE
    ),
    SessionAction.PAUSE: Transition(
        frozenset({SessionStatus.ACTIVE}), SessionStatus.PAUSED
    ),
    SessionAction.RESUME: Transition(
        frozenset({SessionStatus.PAUSED}), SessionStatus.ACTIVE
    ),
    SessionAction.COMPLETE: Transition(
        frozenset({SessionStatus.ACTIVE, SessionStatus.PAUSED}), SessionStatus.COMPLETED
    ),
    SessionAction.ABANDON: Transition(
        frozenset({SessionStatus.ACTIVE, SessionStatus.PAUSED, SessionStatus.VIEWED}),
        SessionStatus.ABANDONED,
    ),
    SessionAction.ANNOTATE: Transition(
        frozenset({SessionStatus.ACTIVE, SessionStatus.PAUSED}), None
    ),
}


def resolve_transition(
    session_id: str,
    status: SessionStatus,
    action: SessionAction,
) -> SessionStatus:
    """Check an action against the transition table.

    Args:
        session_id: Session being transitioned (for error messages)
        status: Current status
        action: Requested action

    Returns:
        Status the session ends up in

    Raises:
        SessionTerminalError: If the session is completed or abandoned
        InvalidStateError: If the action is not legal from the current status
    """
    status = SessionStatus(status)
    if status in TERMINAL_STATUSES:
        raise SessionTerminalError(session_id, status.value, action.value)

    transition = TRANSITIONS[action]
    if status not in transition.sources:
        raise InvalidStateError(session_id, status.value, action.value)

    return transition.target or status


def is_redelivery(last_request_id: Optional[str], request_id: Optional[str]) -> bool:
    """Whether a request was already applied to the session.

    A caller retrying the identical request (same request id) gets the
    session back unchanged instead of a transition error or a second
    application of its deltas.

    Only the most recent request id is remembered. An older request retried
    after a newer one is applied again and its `pages_read_delta` and
    `reading_time_delta` are added twice, so callers must not retry out of
    order. An absolute `current_page` repeats without changing the page.
    """
    return request_id is not None and last_request_id == request_id


def allowed_actions(status: SessionStatus) -> list[SessionAction]:
    """Actions legal from a status, in table order."""
    status = SessionStatus(status)
    if status in TERMINAL_STATUSES:
        return []
    return [action for action, t in TRANSITIONS.items() if status in t.sources]
