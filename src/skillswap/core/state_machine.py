"""Session state machine: transition table and guards.

Guards run in a fixed order for every action:

1. the actor must be a participant (AuthorizationError)
2. the action must be legal from the current status (InvalidStateError);
   terminal statuses admit nothing but feedback on ``completed``
3. the actor's role must be allowed to take the action (AuthorizationError)

Time policies (cancellation notice, completion eligibility) and payload
checks are separate functions called by the booking service afterwards.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from skillswap.core.errors import AuthorizationError, InvalidStateError, ValidationError
from skillswap.models.enums import ParticipantRole, SessionAction, SessionStatus
from skillswap.models.session_feedback import MAX_RATING, MIN_RATING
from skillswap.models.skill_session import (
    MAX_DURATION_MINUTES,
    MIN_DURATION_MINUTES,
    SkillSession,
)

CANCELLATION_NOTICE = timedelta(hours=2)

EITHER_PARTICIPANT = frozenset({ParticipantRole.REQUESTER, ParticipantRole.PROVIDER})
PROVIDER_ONLY = frozenset({ParticipantRole.PROVIDER})


@dataclass(frozen=True)
class Transition:
    action: SessionAction
    sources: frozenset[SessionStatus]
    target: SessionStatus
    allowed_roles: frozenset[ParticipantRole]


TRANSITIONS: dict[SessionAction, Transition] = {
    t.action: t
    for t in (
        Transition(
            SessionAction.ACCEPT,
            frozenset({SessionStatus.PENDING}),
            SessionStatus.ACCEPTED,
            PROVIDER_ONLY,
        ),
        Transition(
            SessionAction.REJECT,
            frozenset({SessionStatus.PENDING}),
            SessionStatus.REJECTED,
            PROVIDER_ONLY,
        ),
        Transition(
            SessionAction.PROPOSE_ALTERNATIVE,
            frozenset({SessionStatus.PENDING, SessionStatus.ACCEPTED}),
            SessionStatus.PENDING,
            EITHER_PARTICIPANT,
        ),
        Transition(
            SessionAction.CANCEL,
            frozenset({SessionStatus.PENDING, SessionStatus.ACCEPTED}),
            SessionStatus.CANCELLED,
            EITHER_PARTICIPANT,
        ),
        Transition(
            SessionAction.COMPLETE,
            frozenset({SessionStatus.ACCEPTED}),
            SessionStatus.COMPLETED,
            EITHER_PARTICIPANT,
        ),
        Transition(
            SessionAction.FEEDBACK,
            frozenset({SessionStatus.COMPLETED}),
            SessionStatus.COMPLETED,
            EITHER_PARTICIPANT,
        ),
    )
}


def participant_role(session: SkillSession, actor_id: str) -> ParticipantRole:
    """Role of ``actor_id`` in the session, NONE for outsiders."""
    if actor_id == session.requester_id:
        return ParticipantRole.REQUESTER
    if actor_id == session.provider_id:
        return ParticipantRole.PROVIDER
    return ParticipantRole.NONE


def require_participant(session: SkillSession, actor_id: str) -> ParticipantRole:
    role = participant_role(session, actor_id)
    if role is ParticipantRole.NONE:
        raise AuthorizationError(
            "You are not a participant of this session",
            details={"session_id": str(session.id)},
        )
    return role


def guard_transition(
    session: SkillSession, actor_id: str, action: SessionAction
) -> tuple[ParticipantRole, Transition]:
    """Check that ``actor_id`` may apply ``action`` to ``session`` now."""
    transition = TRANSITIONS[action]
    role = require_participant(session, actor_id)

    current = session.session_status
    if current not in transition.sources:
        raise InvalidStateError(
            f"Cannot {action.value.replace('_', ' ')} a {current.value} session",
            details={
                "session_id": str(session.id),
                "status": current.value,
                "action": action.value,
            },
        )

    if role not in transition.allowed_roles:
        allowed = ", ".join(sorted(r.value for r in transition.allowed_roles))
        raise AuthorizationError(
            f"Only the session {allowed} can {action.value.replace('_', ' ')} this session",
            details={"session_id": str(session.id), "role": role.value},
        )

    return role, transition


def check_cancellation_window(session: SkillSession, now: datetime) -> None:
    """Accepted sessions need at least CANCELLATION_NOTICE; pending ones never do."""
    if session.session_status is not SessionStatus.ACCEPTED:
        return

    notice = session.scheduled_start - now
    if notice < CANCELLATION_NOTICE:
        raise InvalidStateError(
            "Cannot cancel a confirmed session with less than 2 hours notice",
            details={
                "session_id": str(session.id),
                "notice_seconds": int(notice.total_seconds()),
                "required_seconds": int(CANCELLATION_NOTICE.total_seconds()),
            },
        )


def check_completion_eligible(session: SkillSession, now: datetime) -> None:
    if now < session.scheduled_start:
        raise InvalidStateError(
            "Only accepted sessions that have started can be marked as completed",
            details={
                "session_id": str(session.id),
                "scheduled_start": session.scheduled_start.isoformat(),
            },
        )


def validate_booking_request(
    requester_id: str,
    provider_id: str,
    start: datetime,
    duration_minutes: int,
    now: datetime,
) -> None:
    """Structural checks for a new booking (before any store access)."""
    if requester_id == provider_id:
        raise ValidationError(
            "You cannot book a session with yourself",
            details={"requester_id": requester_id},
        )
    validate_duration(duration_minutes)
    validate_future_start(start, now)


def validate_duration(duration_minutes: int) -> None:
    if (
        isinstance(duration_minutes, bool)
        or not isinstance(duration_minutes, int)
        or not MIN_DURATION_MINUTES <= duration_minutes <= MAX_DURATION_MINUTES
    ):
        raise ValidationError(
            f"Duration must be an integer between {MIN_DURATION_MINUTES} "
            f"and {MAX_DURATION_MINUTES} minutes",
            details={"duration_minutes": duration_minutes},
        )


def validate_future_start(start: datetime, now: datetime) -> None:
    if start <= now:
        raise ValidationError(
            "Session must be scheduled for a future date and time",
            details={"scheduled_start": start.isoformat(), "now": now.isoformat()},
        )


def validate_rating(rating: int) -> None:
    if (
        isinstance(rating, bool)
        or not isinstance(rating, int)
        or not MIN_RATING <= rating <= MAX_RATING
    ):
        raise ValidationError(
            f"Rating must be an integer between {MIN_RATING} and {MAX_RATING}",
            details={"rating": rating},
        )


def require_text(value: str | None, field_name: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field_name} is required", details={"field": field_name})
    return value.strip()
