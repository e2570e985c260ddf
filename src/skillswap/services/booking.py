"""Booking service: every session command and query.

Commands own their transaction: they load the session, apply the
state-machine guards, write inside a SAVEPOINT, commit, and only then
emit exactly one transition event. A refused command rolls back its
savepoint only, so instances the caller already holds stay loaded.

Time-altering commands (create, propose alternative, accept at a confirmed
start) run the conflict check and the write as one unit guarded by the
participants' calendar versions, retrying the whole unit when a concurrent
booking wins the race.
"""

import math
import uuid
from datetime import datetime
from typing import Any, Awaitable, Callable, TypeVar

from pydantic import BaseModel
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from skillswap.core.clock import Clock, SystemClock
from skillswap.core.conflicts import ConflictReport, find_conflicts_for_participants
from skillswap.core.errors import (
    AppError,
    ConcurrencyError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from skillswap.core.intervals import Interval
from skillswap.core.logging import get_logger
from skillswap.core.notifier import NotificationDispatcher, TransitionEvent
from skillswap.core.state_machine import (
    check_cancellation_window,
    check_completion_eligible,
    guard_transition,
    require_participant,
    require_text,
    validate_booking_request,
    validate_duration,
    validate_future_start,
    validate_rating,
)
from skillswap.models import (
    ConflictCheckResult,
    ConflictingSession,
    Pagination,
    ParticipantCalendar,
    ParticipantRole,
    RespondRequest,
    ResponseAction,
    RoleFilter,
    SessionAction,
    SessionDetails,
    SessionFeedback,
    SessionPage,
    SessionStats,
    SessionStatus,
    SkillPayload,
    SkillSession,
    SkillSessionRead,
)
from skillswap.utils.datetime import isoformat_utc, to_naive_utc

logger = get_logger(__name__)

BOOKING_RETRY_ATTEMPTS = 3
MAX_PAGE_SIZE = 100

T = TypeVar("T")


class BookingService:
    """Orchestrates session booking for one unit of work."""

    def __init__(
        self,
        db: AsyncSession,
        dispatcher: NotificationDispatcher,
        clock: Clock | None = None,
    ):
        self.db = db
        self.dispatcher = dispatcher
        self.clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def create_request(
        self,
        requester_id: str,
        provider_id: str,
        skill: SkillPayload | dict[str, Any],
        start: datetime,
        duration_minutes: int,
        *,
        details: SessionDetails | None = None,
    ) -> SkillSession:
        """Create a pending session after checking both calendars."""
        now = self.clock.now()
        start = to_naive_utc(start)
        validate_booking_request(requester_id, provider_id, start, duration_minutes, now)

        details = details or SessionDetails()
        skill_data = skill.model_dump(mode="json") if isinstance(skill, BaseModel) else dict(skill)
        interval = Interval.of(start, duration_minutes)

        async def unit() -> SkillSession:
            await self._claim_calendars((requester_id, provider_id), now)
            report = await find_conflicts_for_participants(
                self.db, (requester_id, provider_id), interval
            )
            if report.has_conflicts:
                raise self._conflict_error(report, requester_id, provider_id)

            session = SkillSession(
                id=uuid.uuid4(),
                requester_id=requester_id,
                provider_id=provider_id,
                skill=skill_data,
                scheduled_start=start,
                duration_minutes=duration_minutes,
                status=SessionStatus.PENDING.value,
                timezone=details.timezone,
                session_type=details.session_type.value,
                location=details.location,
                meeting_link=details.meeting_link,
                request_message=details.request_message,
                feedback=[],
            )
            self.db.add(session)
            await self.db.flush()
            return session

        session = await self._run_booking_unit("create", unit)

        logger.info(
            "session.requested",
            session_id=str(session.id),
            requester_id=requester_id,
            provider_id=provider_id,
            scheduled_start=session.scheduled_start.isoformat(),
            duration_minutes=duration_minutes,
        )
        self._emit(session, SessionAction.CREATE, None, requester_id, now)
        return session

    async def respond(
        self,
        session_id: uuid.UUID | str,
        acting_user_id: str,
        action: ResponseAction | str,
        payload: RespondRequest | None = None,
    ) -> SkillSession:
        """Accept, reject or propose an alternative time."""
        try:
            action = ResponseAction(action)
        except ValueError:
            raise ValidationError(
                "Invalid action. Must be one of: accept, reject, propose_alternative",
                details={"action": str(action)},
            )

        payload = payload or RespondRequest(action=action)

        if action is ResponseAction.ACCEPT:
            return await self.accept(
                session_id,
                acting_user_id,
                response_message=payload.response_message,
                meeting_link=payload.meeting_link,
                location=payload.location,
                confirmed_start=payload.confirmed_start,
            )
        if action is ResponseAction.REJECT:
            return await self.reject(session_id, acting_user_id, payload.reason)

        if payload.proposed_start is None:
            raise ValidationError(
                "proposed_start is required to propose an alternative time",
                details={"field": "proposed_start"},
            )
        return await self.propose_alternative(
            session_id, acting_user_id, payload.proposed_start, payload.message
        )

    async def accept(
        self,
        session_id: uuid.UUID | str,
        acting_user_id: str,
        response_message: str | None = None,
        meeting_link: str | None = None,
        location: str | None = None,
        confirmed_start: datetime | None = None,
    ) -> SkillSession:
        """Accept a pending session, optionally at a different start time.

        A ``confirmed_start`` that moves the session re-checks both calendars
        atomically, the same way proposing an alternative does.
        """
        now = self.clock.now()

        def record_acceptance(session: SkillSession) -> None:
            session.status = SessionStatus.ACCEPTED.value
            if session.responded_at is None:
                session.responded_at = now
            if response_message:
                session.response_message = response_message
            if meeting_link:
                session.meeting_link = meeting_link
            if location:
                session.location = location

        if confirmed_start is None:

            async def apply(session: SkillSession) -> None:
                guard_transition(session, acting_user_id, SessionAction.ACCEPT)
                record_acceptance(session)

            return await self._transition(session_id, acting_user_id, SessionAction.ACCEPT, apply, now)

        confirmed_start = to_naive_utc(confirmed_start)
        session_uuid = self._parse_id(session_id)

        async def unit() -> tuple[SkillSession, str]:
            session = await self._load(session_uuid)
            guard_transition(session, acting_user_id, SessionAction.ACCEPT)
            from_status = session.status
            if confirmed_start != session.scheduled_start:
                await self._claim_slot(session, confirmed_start, now)
                session.scheduled_start = confirmed_start
            record_acceptance(session)
            await self.db.flush()
            return session, from_status

        session, from_status = await self._run_booking_unit("accept", unit)

        logger.info(
            "session.accepted",
            session_id=str(session.id),
            actor_id=acting_user_id,
            from_status=from_status,
            scheduled_start=session.scheduled_start.isoformat(),
        )
        self._emit(session, SessionAction.ACCEPT, from_status, acting_user_id, now)
        return session

    async def reject(
        self,
        session_id: uuid.UUID | str,
        acting_user_id: str,
        reason: str | None,
    ) -> SkillSession:
        now = self.clock.now()

        async def apply(session: SkillSession) -> None:
            guard_transition(session, acting_user_id, SessionAction.REJECT)
            session.response_message = require_text(reason, "Rejection reason")
            session.status = SessionStatus.REJECTED.value
            if session.responded_at is None:
                session.responded_at = now

        return await self._transition(session_id, acting_user_id, SessionAction.REJECT, apply, now)

    async def propose_alternative(
        self,
        session_id: uuid.UUID | str,
        acting_user_id: str,
        proposed_start: datetime,
        message: str | None = None,
    ) -> SkillSession:
        """Move the session to a new start time and back to pending."""
        now = self.clock.now()
        proposed_start = to_naive_utc(proposed_start)
        session_uuid = self._parse_id(session_id)

        async def unit() -> tuple[SkillSession, str]:
            session = await self._load(session_uuid)
            role, _ = guard_transition(session, acting_user_id, SessionAction.PROPOSE_ALTERNATIVE)
            await self._claim_slot(session, proposed_start, now)

            from_status = session.status
            session.alternative_proposal = {
                "proposed_start": isoformat_utc(proposed_start),
                "previous_start": isoformat_utc(session.scheduled_start),
                "message": message,
                "proposed_by": acting_user_id,
                "proposed_by_role": role.value,
                "proposed_at": isoformat_utc(now),
            }
            session.scheduled_start = proposed_start
            session.status = SessionStatus.PENDING.value
            await self.db.flush()
            return session, from_status

        session, from_status = await self._run_booking_unit("propose_alternative", unit)

        logger.info(
            "session.alternative_proposed",
            session_id=str(session.id),
            proposed_by=acting_user_id,
            from_status=from_status,
            scheduled_start=session.scheduled_start.isoformat(),
        )
        self._emit(session, SessionAction.PROPOSE_ALTERNATIVE, from_status, acting_user_id, now)
        return session

    async def cancel(
        self,
        session_id: uuid.UUID | str,
        acting_user_id: str,
        reason: str | None = None,
    ) -> SkillSession:
        """Cancel a pending session, or an accepted one with 2h+ notice."""
        now = self.clock.now()

        async def apply(session: SkillSession) -> None:
            guard_transition(session, acting_user_id, SessionAction.CANCEL)
            try:
                check_cancellation_window(session, now)
            except InvalidStateError:
                logger.info(
                    "session.cancel_rejected",
                    session_id=str(session.id),
                    actor_id=acting_user_id,
                    scheduled_start=session.scheduled_start.isoformat(),
                )
                raise

            session.status = SessionStatus.CANCELLED.value
            session.cancelled_at = now
            session.cancelled_by = acting_user_id
            if reason and reason.strip():
                session.cancellation_reason = reason.strip()

        return await self._transition(session_id, acting_user_id, SessionAction.CANCEL, apply, now)

    async def complete(
        self,
        session_id: uuid.UUID | str,
        acting_user_id: str,
        notes: str | None = None,
    ) -> SkillSession:
        """Mark an accepted session completed once it has started."""
        now = self.clock.now()

        async def apply(session: SkillSession) -> None:
            role, _ = guard_transition(session, acting_user_id, SessionAction.COMPLETE)
            check_completion_eligible(session, now)

            session.status = SessionStatus.COMPLETED.value
            session.completed_at = now
            if notes:
                if role is ParticipantRole.REQUESTER:
                    session.requester_notes = notes
                else:
                    session.provider_notes = notes

        return await self._transition(session_id, acting_user_id, SessionAction.COMPLETE, apply, now)

    async def attach_feedback(
        self,
        session_id: uuid.UUID | str,
        reviewer_id: str,
        rating: int,
        comment: str | None = None,
    ) -> SessionFeedback:
        """Record one rating per reviewer on a completed session."""
        now = self.clock.now()
        session_uuid = self._parse_id(session_id)

        try:
            session = await self._load(session_uuid)
            async with self.db.begin_nested():
                guard_transition(session, reviewer_id, SessionAction.FEEDBACK)
                validate_rating(rating)

                if session.feedback_from(reviewer_id) is not None:
                    raise self._duplicate_feedback(session, reviewer_id)

                entry = SessionFeedback(
                    session_id=session.id,
                    reviewer_id=reviewer_id,
                    rating=rating,
                    comment=comment.strip() if comment and comment.strip() else None,
                    submitted_at=now,
                )
                self.db.add(entry)
                await self.db.flush()
        except IntegrityError:
            # Lost a race against the same reviewer's other submission
            await self._end_refused()
            raise self._duplicate_feedback(session, reviewer_id)
        except AppError:
            await self._end_refused()
            raise
        except Exception:
            await self.db.rollback()
            raise
        await self.db.commit()

        logger.info(
            "session.feedback_attached",
            session_id=str(session.id),
            reviewer_id=reviewer_id,
            rating=rating,
        )
        self._emit(session, SessionAction.FEEDBACK, session.status, reviewer_id, now)
        return entry

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def check_conflicts(
        self,
        user_id: str,
        start: datetime,
        duration_minutes: int,
        exclude_session_id: uuid.UUID | str | None = None,
        participant_id: str | None = None,
    ) -> ConflictCheckResult:
        """Best-effort pre-check; the authoritative check runs inside the write."""
        validate_duration(duration_minutes)
        interval = Interval.of(to_naive_utc(start), duration_minutes)
        exclude = self._parse_id(exclude_session_id) if exclude_session_id else None

        participants = [user_id] + ([participant_id] if participant_id else [])
        report = await find_conflicts_for_participants(self.db, participants, interval, exclude)

        user_conflicts = report.for_participant(user_id)
        participant_conflicts = report.for_participant(participant_id) if participant_id else []
        return ConflictCheckResult(
            has_conflicts=report.has_conflicts,
            user_conflicts=[ConflictingSession.model_validate(s) for s in user_conflicts],
            participant_conflicts=[
                ConflictingSession.model_validate(s) for s in participant_conflicts
            ],
        )

    async def get_session(
        self, session_id: uuid.UUID | str, user_id: str
    ) -> tuple[SkillSession, ParticipantRole]:
        session = await self._load(self._parse_id(session_id))
        role = require_participant(session, user_id)
        return session, role

    async def list_user_sessions(
        self,
        user_id: str,
        role_filter: RoleFilter | str = RoleFilter.ALL,
        status: SessionStatus | str | None = None,
        upcoming: bool = False,
        page: int = 1,
        limit: int = 20,
    ) -> SessionPage:
        """List a user's sessions, newest first, with pagination metadata."""
        now = self.clock.now()
        role_filter = RoleFilter(role_filter)
        page = max(page or 1, 1)
        limit = min(max(limit or 20, 1), MAX_PAGE_SIZE)

        stmt = select(SkillSession)
        if role_filter is RoleFilter.REQUESTED:
            stmt = stmt.where(SkillSession.requester_id == user_id)
        elif role_filter is RoleFilter.RECEIVED:
            stmt = stmt.where(SkillSession.provider_id == user_id)
        else:
            stmt = stmt.where(
                or_(SkillSession.requester_id == user_id, SkillSession.provider_id == user_id)
            )

        if upcoming:
            stmt = stmt.where(
                SkillSession.status.in_([SessionStatus.PENDING.value, SessionStatus.ACCEPTED.value]),
                SkillSession.scheduled_start >= now,
            )
        elif status is not None:
            stmt = stmt.where(SkillSession.status == SessionStatus(status).value)

        count_stmt = select(func.count()).select_from(stmt.subquery())
        total_count = (await self.db.execute(count_stmt)).scalar_one()

        page_stmt = (
            stmt.order_by(SkillSession.created_at.desc(), SkillSession.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        sessions = (await self.db.execute(page_stmt)).scalars().all()

        total_pages = math.ceil(total_count / limit) if total_count else 0
        return SessionPage(
            sessions=[
                SkillSessionRead.from_session(s, require_participant(s, user_id), now=now)
                for s in sessions
            ],
            pagination=Pagination(
                current_page=page,
                total_pages=total_pages,
                total_count=total_count,
                has_next_page=page < total_pages,
                has_prev_page=page > 1,
                limit=limit,
            ),
        )

    async def get_upcoming_sessions(self, user_id: str, limit: int = 50) -> list[SkillSession]:
        """Pending/accepted sessions starting from now, soonest first."""
        stmt = (
            select(SkillSession)
            .where(
                or_(SkillSession.requester_id == user_id, SkillSession.provider_id == user_id),
                SkillSession.status.in_([SessionStatus.PENDING.value, SessionStatus.ACCEPTED.value]),
                SkillSession.scheduled_start >= self.clock.now(),
            )
            .order_by(SkillSession.scheduled_start)
            .limit(min(max(limit, 1), MAX_PAGE_SIZE))
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_session_stats(self, user_id: str) -> SessionStats:
        stmt = (
            select(SkillSession.status, func.count())
            .where(or_(SkillSession.requester_id == user_id, SkillSession.provider_id == user_id))
            .group_by(SkillSession.status)
        )
        counts = {status: count for status, count in (await self.db.execute(stmt)).all()}
        return SessionStats(total=sum(counts.values()), **counts)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_id(session_id: uuid.UUID | str) -> uuid.UUID:
        if isinstance(session_id, uuid.UUID):
            return session_id
        try:
            return uuid.UUID(str(session_id))
        except (ValueError, TypeError):
            raise NotFoundError("Session", str(session_id))

    async def _load(self, session_id: uuid.UUID) -> SkillSession:
        stmt = (
            select(SkillSession)
            .where(SkillSession.id == session_id)
            .execution_options(populate_existing=True)
        )
        session = (await self.db.execute(stmt)).scalar_one_or_none()
        if session is None:
            raise NotFoundError("Session", str(session_id))
        return session

    async def _claim_calendars(self, participant_ids: tuple[str, ...], now: datetime) -> None:
        """Bump each participant's calendar version in this transaction.

        Sorted order keeps lock acquisition consistent across transactions.
        """
        ids = sorted(set(participant_ids))
        stmt = (
            select(ParticipantCalendar)
            .where(ParticipantCalendar.participant_id.in_(ids))
            .execution_options(populate_existing=True)
        )
        calendars = {c.participant_id: c for c in (await self.db.execute(stmt)).scalars()}

        for participant_id in ids:
            calendar = calendars.get(participant_id)
            if calendar is None:
                calendar = ParticipantCalendar(participant_id=participant_id, booking_count=0)
                self.db.add(calendar)
            calendar.booking_count = (calendar.booking_count or 0) + 1
            calendar.last_booked_at = now

    async def _claim_slot(self, session: SkillSession, start: datetime, now: datetime) -> None:
        """Claim both calendars and refuse ``start`` if it overlaps another booking."""
        validate_future_start(start, now)

        interval = Interval.of(start, session.duration_minutes)
        await self._claim_calendars(session.participants, now)
        report = await find_conflicts_for_participants(
            self.db, session.participants, interval, exclude_session_id=session.id
        )
        if report.has_conflicts:
            raise self._conflict_error(report, session.requester_id, session.provider_id)

    async def _run_booking_unit(self, operation: str, unit: Callable[[], Awaitable[T]]) -> T:
        """Run check-and-write ``unit`` atomically, retrying lost races."""
        for attempt in range(1, BOOKING_RETRY_ATTEMPTS + 1):
            try:
                async with self.db.begin_nested():
                    result = await unit()
            except (StaleDataError, IntegrityError) as exc:
                logger.warning(
                    "booking.retry",
                    operation=operation,
                    attempt=attempt,
                    error_type=type(exc).__name__,
                )
                continue
            except AppError:
                await self._end_refused()
                raise
            except Exception:
                await self.db.rollback()
                raise
            await self.db.commit()
            return result

        await self._end_refused()
        raise ConcurrencyError(
            "Calendar changed concurrently, please retry",
            details={"operation": operation, "attempts": BOOKING_RETRY_ATTEMPTS},
        )

    async def _transition(
        self,
        session_id: uuid.UUID | str,
        actor_id: str,
        action: SessionAction,
        apply: Callable[[SkillSession], Awaitable[None]],
        now: datetime,
    ) -> SkillSession:
        """Load, guard/apply, and commit a status change conditioned on version."""
        session_uuid = self._parse_id(session_id)
        try:
            session = await self._load(session_uuid)
            from_status = session.status
            async with self.db.begin_nested():
                await apply(session)
                await self.db.flush()
        except StaleDataError:
            await self._end_refused()
            logger.warning("session.concurrent_update", session_id=str(session_uuid), action=action.value)
            raise ConcurrencyError(
                "Session was modified concurrently, please reload and retry",
                details={"session_id": str(session_uuid), "action": action.value},
            )
        except AppError:
            await self._end_refused()
            raise
        except Exception:
            await self.db.rollback()
            raise
        await self.db.commit()

        logger.info(
            f"session.{session.status}",
            session_id=str(session.id),
            actor_id=actor_id,
            from_status=from_status,
        )
        self._emit(session, action, from_status, actor_id, now)
        return session

    async def _end_refused(self) -> None:
        # The savepoint already undid the command's writes. Committing the
        # outer transaction releases its locks without expiring instances.
        await self.db.commit()

    def _emit(
        self,
        session: SkillSession,
        action: SessionAction,
        from_status: str | None,
        actor_id: str,
        now: datetime,
    ) -> None:
        self.dispatcher.emit(
            TransitionEvent(
                session_id=session.id,
                action=action.value,
                from_status=from_status,
                to_status=session.status,
                actor_id=actor_id,
                timestamp=now,
            )
        )

    @staticmethod
    def _conflict_error(report: ConflictReport, requester_id: str, provider_id: str) -> ConflictError:
        if report.for_participant(requester_id):
            message = "The requester has a scheduling conflict at the proposed time"
        else:
            message = "The provider has a scheduling conflict at the proposed time"
        return ConflictError(
            message,
            conflicting_session_ids=report.session_ids,
            details={
                "conflicts": {
                    participant: [str(s.id) for s in sessions]
                    for participant, sessions in report.by_participant.items()
                    if sessions
                },
                "scheduled_start": report.interval.start.isoformat(),
                "end_time": report.interval.end.isoformat(),
            },
        )

    @staticmethod
    def _duplicate_feedback(session: SkillSession, reviewer_id: str) -> InvalidStateError:
        return InvalidStateError(
            "Feedback already submitted for this session",
            details={"session_id": str(session.id), "reviewer_id": reviewer_id},
        )
