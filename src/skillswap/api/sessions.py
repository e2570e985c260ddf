"""Skill session booking endpoints."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, status

from skillswap.api.deps import get_booking_service, get_current_user_id
from skillswap.core.state_machine import participant_role
from skillswap.models import (
    CancelRequest,
    CompleteRequest,
    ConflictCheckResult,
    FeedbackRequest,
    ProposeAlternativeRequest,
    RespondRequest,
    RoleFilter,
    SessionCreate,
    SessionFeedbackRead,
    SessionPage,
    SessionStats,
    SessionStatus,
    SkillSession,
    SkillSessionRead,
)
from skillswap.services.booking import BookingService

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _read(service: BookingService, session: SkillSession, user_id: str) -> SkillSessionRead:
    return SkillSessionRead.from_session(
        session, participant_role(session, user_id), now=service.clock.now()
    )


# ─────── BOOKING ────────


@router.post("", response_model=SkillSessionRead, status_code=status.HTTP_201_CREATED)
async def create_session(
    body: SessionCreate,
    user_id: str = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service),
):
    """Request a session with a provider. The caller is the requester."""
    session = await service.create_request(
        user_id,
        body.provider_id,
        body.skill,
        body.scheduled_start,
        body.duration_minutes,
        details=body.details(),
    )
    return _read(service, session, user_id)


@router.get("", response_model=SessionPage)
async def list_sessions(
    role_filter: RoleFilter = Query(RoleFilter.ALL, alias="type"),
    status_filter: SessionStatus | None = Query(None, alias="status"),
    upcoming: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service),
):
    """List the caller's sessions.

    type: all | requested (caller is requester) | received (caller is provider)
    upcoming: pending/accepted sessions that have not started (overrides status)
    """
    return await service.list_user_sessions(
        user_id,
        role_filter=role_filter,
        status=status_filter,
        upcoming=upcoming,
        page=page,
        limit=limit,
    )


@router.get("/upcoming", response_model=list[SkillSessionRead])
async def upcoming_sessions(
    limit: int = Query(50, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service),
):
    sessions = await service.get_upcoming_sessions(user_id, limit=limit)
    return [_read(service, s, user_id) for s in sessions]


@router.get("/stats", response_model=SessionStats)
async def session_stats(
    user_id: str = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service),
):
    return await service.get_session_stats(user_id)


@router.get("/conflicts", response_model=ConflictCheckResult)
async def check_conflicts(
    start: datetime,
    duration: int,
    exclude_session_id: str | None = None,
    participant_id: str | None = None,
    user_id: str = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service),
):
    """Advisory pre-check; booking re-checks atomically on write."""
    return await service.check_conflicts(
        user_id,
        start,
        duration,
        exclude_session_id=exclude_session_id,
        participant_id=participant_id,
    )


@router.get("/{session_id}", response_model=SkillSessionRead)
async def get_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service),
):
    session, role = await service.get_session(session_id, user_id)
    return SkillSessionRead.from_session(session, role, now=service.clock.now())


# ─────── TRANSITIONS ────────


@router.post("/{session_id}/respond", response_model=SkillSessionRead)
async def respond_to_session(
    session_id: str,
    body: RespondRequest,
    user_id: str = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service),
):
    """Accept, reject (reason required) or propose an alternative time."""
    session = await service.respond(session_id, user_id, body.action, body)
    return _read(service, session, user_id)


@router.post("/{session_id}/propose-alternative", response_model=SkillSessionRead)
async def propose_alternative(
    session_id: str,
    body: ProposeAlternativeRequest,
    user_id: str = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service),
):
    session = await service.propose_alternative(
        session_id, user_id, body.proposed_start, body.message
    )
    return _read(service, session, user_id)


@router.post("/{session_id}/cancel", response_model=SkillSessionRead)
async def cancel_session(
    session_id: str,
    body: CancelRequest | None = None,
    user_id: str = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service),
):
    session = await service.cancel(session_id, user_id, body.reason if body else None)
    return _read(service, session, user_id)


@router.post("/{session_id}/complete", response_model=SkillSessionRead)
async def complete_session(
    session_id: str,
    body: CompleteRequest | None = None,
    user_id: str = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service),
):
    session = await service.complete(session_id, user_id, body.notes if body else None)
    return _read(service, session, user_id)


@router.post(
    "/{session_id}/feedback",
    response_model=SessionFeedbackRead,
    status_code=status.HTTP_201_CREATED,
)
async def submit_feedback(
    session_id: str,
    body: FeedbackRequest,
    user_id: str = Depends(get_current_user_id),
    service: BookingService = Depends(get_booking_service),
):
    return await service.attach_feedback(session_id, user_id, body.rating, body.comment)
