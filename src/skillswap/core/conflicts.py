"""Conflict detection against a participant's existing sessions."""

import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Iterable

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.core.intervals import Interval, overlaps
from skillswap.models.enums import BLOCKING_STATUSES
from skillswap.models.skill_session import MAX_DURATION_MINUTES, SkillSession


@dataclass
class ConflictReport:
    """Conflicting sessions found for each checked participant."""

    interval: Interval
    by_participant: dict[str, list[SkillSession]] = field(default_factory=dict)

    @property
    def has_conflicts(self) -> bool:
        return any(self.by_participant.values())

    @property
    def session_ids(self) -> list[str]:
        """Unique conflicting session ids, in discovery order."""
        seen: dict[str, None] = {}
        for sessions in self.by_participant.values():
            for session in sessions:
                seen.setdefault(str(session.id), None)
        return list(seen)

    def for_participant(self, participant_id: str) -> list[SkillSession]:
        return self.by_participant.get(participant_id, [])


async def find_conflicting_sessions(
    db: AsyncSession,
    participant_id: str,
    interval: Interval,
    exclude_session_id: uuid.UUID | None = None,
) -> list[SkillSession]:
    """Find sessions of ``participant_id`` whose interval overlaps ``interval``.

    The participant may be requester or provider. Rejected and cancelled
    sessions never block. The query bounds ``scheduled_start`` on both
    sides (no session is longer than MAX_DURATION_MINUTES) so it stays on
    the calendar indexes; the half-open overlap is confirmed in Python.

    Args:
        db: Database session (run inside the writing transaction)
        participant_id: Requester or provider identity
        interval: Candidate half-open interval
        exclude_session_id: Session being rescheduled, never its own conflict

    Returns:
        Overlapping sessions ordered by start time
    """
    earliest_possible_start = interval.start - timedelta(minutes=MAX_DURATION_MINUTES)

    stmt = (
        select(SkillSession)
        .where(
            and_(
                or_(
                    SkillSession.requester_id == participant_id,
                    SkillSession.provider_id == participant_id,
                ),
                SkillSession.status.in_([s.value for s in BLOCKING_STATUSES]),
                SkillSession.scheduled_start < interval.end,
                SkillSession.scheduled_start > earliest_possible_start,
            )
        )
        .order_by(SkillSession.scheduled_start)
    )

    if exclude_session_id is not None:
        stmt = stmt.where(SkillSession.id != exclude_session_id)

    result = await db.execute(stmt)
    candidates = result.scalars().all()
    return [s for s in candidates if overlaps(s.interval, interval)]


async def find_conflicts_for_participants(
    db: AsyncSession,
    participant_ids: Iterable[str],
    interval: Interval,
    exclude_session_id: uuid.UUID | None = None,
) -> ConflictReport:
    """Run the conflict check independently for each participant."""
    report = ConflictReport(interval=interval)
    for participant_id in participant_ids:
        report.by_participant[participant_id] = await find_conflicting_sessions(
            db, participant_id, interval, exclude_session_id
        )
    return report
