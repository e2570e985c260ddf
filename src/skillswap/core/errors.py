"""Domain exceptions and the error response schema."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Standardized error response."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[dict[str, Any]] = Field(None, description="Additional context")


class AppError(Exception):
    """Base exception for all booking domain errors."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_response(self) -> ErrorDetail:
        """Convert to API response schema."""
        return ErrorDetail(
            code=self.code,
            message=self.message,
            details=self.details if self.details else None,
        )


class ValidationError(AppError):
    """Structurally invalid input (duration, dates, missing reason or rating)."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=422,
            details=details,
        )


class NotFoundError(AppError):
    """Raised when a referenced resource doesn't exist."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            code="NOT_FOUND",
            message=f"{resource} with ID {resource_id} not found",
            status_code=404,
            details={"resource": resource, "resource_id": resource_id},
        )


class ConflictError(AppError):
    """Candidate interval overlaps an existing session of a participant.

    Always carries ``conflicting_session_ids``; ``conflicts`` breaks them
    down per participant when known.
    """

    def __init__(
        self,
        message: str,
        conflicting_session_ids: list[str],
        details: Optional[dict] = None,
    ):
        self.conflicting_session_ids = list(conflicting_session_ids)
        super().__init__(
            code="CONFLICT",
            message=message,
            status_code=409,
            details={
                **(details or {}),
                "conflicting_session_ids": self.conflicting_session_ids,
            },
        )


class InvalidStateError(AppError):
    """Raised when the transition is not legal from the current status."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="INVALID_STATE",
            message=message,
            status_code=400,
            details=details,
        )


class AuthorizationError(AppError):
    """Acting identity is not a legitimate participant for the action."""

    def __init__(self, message: str = "Forbidden", details: Optional[dict] = None):
        super().__init__(
            code="FORBIDDEN",
            message=message,
            status_code=403,
            details=details,
        )


class UnauthorizedError(AppError):
    """Raised when no caller identity is supplied."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class ConcurrencyError(AppError):
    """A concurrent write changed the session or a participant calendar."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="CONCURRENT_MODIFICATION",
            message=message,
            status_code=409,
            details=details,
        )
