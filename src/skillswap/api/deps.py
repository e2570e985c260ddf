"""Shared FastAPI dependencies: caller identity and the booking service."""

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from skillswap.core.clock import Clock
from skillswap.core.db import get_db
from skillswap.core.errors import UnauthorizedError
from skillswap.core.notifier import NotificationDispatcher
from skillswap.core.validators import validate_participant_id
from skillswap.services.booking import BookingService


async def get_current_user_id(x_user_id: str | None = Header(None)) -> str:
    """Identity of the caller, asserted by the upstream gateway.

    Authentication itself happens before requests reach this service.
    """
    if not x_user_id:
        raise UnauthorizedError("X-User-ID header is required")
    try:
        return validate_participant_id(x_user_id, "X-User-ID")
    except ValueError as exc:
        raise UnauthorizedError(str(exc))


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher


def get_clock(request: Request) -> Clock:
    return request.app.state.clock


async def get_booking_service(
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    clock: Clock = Depends(get_clock),
) -> BookingService:
    return BookingService(db, dispatcher, clock)
