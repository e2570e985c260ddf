"""Tests for logging, error classes and global error handling."""

import pytest
import structlog
from structlog.testing import capture_logs

from skillswap.core.errors import (
    AppError,
    AuthorizationError,
    ConcurrencyError,
    ConflictError,
    ErrorDetail,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from skillswap.core.logging import configure_logging, get_logger, get_request_id, set_request_id
from skillswap.core.sentry import filter_sensitive_data
from tests.conftest import as_user


class TestErrorClasses:
    """Test custom exception classes."""

    def test_validation_error_creates_correct_response(self):
        exc = ValidationError("Duration out of range", details={"duration_minutes": 5})

        assert exc.code == "VALIDATION_ERROR"
        assert exc.status_code == 422

        response = exc.to_response()
        assert isinstance(response, ErrorDetail)
        assert response.details == {"duration_minutes": 5}

    def test_not_found_error_includes_resource_context(self):
        exc = NotFoundError(resource="Session", resource_id="123")

        assert exc.code == "NOT_FOUND"
        assert exc.status_code == 404
        assert exc.details == {"resource": "Session", "resource_id": "123"}

    def test_conflict_error_always_lists_sessions(self):
        exc = ConflictError("Provider is busy", conflicting_session_ids=["a", "b"])

        assert exc.code == "CONFLICT"
        assert exc.status_code == 409
        assert exc.conflicting_session_ids == ["a", "b"]
        assert exc.details == {"conflicting_session_ids": ["a", "b"]}

    @pytest.mark.parametrize(
        "exc,code,status_code",
        [
            (InvalidStateError("nope"), "INVALID_STATE", 400),
            (AuthorizationError(), "FORBIDDEN", 403),
            (UnauthorizedError(), "UNAUTHORIZED", 401),
            (ConcurrencyError("retry"), "CONCURRENT_MODIFICATION", 409),
        ],
    )
    def test_codes(self, exc: AppError, code, status_code):
        assert exc.code == code
        assert exc.status_code == status_code
        assert exc.to_response().details is None


class TestRequestIDContext:
    def test_set_and_get_request_id(self):
        set_request_id("test-request-123")

        assert get_request_id() == "test-request-123"
        assert structlog.contextvars.get_contextvars()["request_id"] == "test-request-123"

    def test_request_id_default(self):
        set_request_id("no-request-id")
        assert get_request_id() == "no-request-id"


class TestStructuredLogging:
    def test_dotted_event_names_with_context(self):
        configure_logging()

        with capture_logs() as logs:
            get_logger("skillswap.test").info("session.requested", session_id="s-1")

        assert logs[0]["event"] == "session.requested"
        assert logs[0]["log_level"] == "info"
        assert logs[0]["session_id"] == "s-1"

    def test_configure_is_idempotent(self):
        configure_logging()
        configure_logging()


class TestSentryFilter:
    def test_drops_free_text_and_sql(self):
        event = {
            "extra": {"cancellation_reason": "sick", "query_sql": "SELECT 1", "session_id": "s"},
            "breadcrumbs": {"values": [{"category": "query", "message": "SELECT * FROM x sql"}, {"message": "ok"}]},
            "request": {"data": {"notes": "private"}},
        }

        filtered = filter_sensitive_data(event, {})

        assert filtered["extra"] == {"session_id": "s"}
        assert filtered["breadcrumbs"]["values"] == [{"message": "ok"}]
        assert filtered["request"]["data"] == "[Filtered]"


class TestErrorHandling:
    """Domain errors map to the standard JSON error shape."""

    @pytest.mark.asyncio
    async def test_request_id_header_in_response(self, client):
        response = await client.get("/health", headers={"X-Request-ID": "external-123"})

        assert response.headers.get("X-Request-ID") == "external-123"

    @pytest.mark.asyncio
    async def test_request_id_generated_when_missing(self, client):
        response = await client.get("/health")

        assert len(response.headers["X-Request-ID"]) > 0

    @pytest.mark.asyncio
    async def test_not_found_shape(self, client):
        response = await client.get(
            "/sessions/00000000-0000-0000-0000-000000000000", headers=as_user("alice")
        )

        assert response.status_code == 404
        data = response.json()
        assert data["code"] == "NOT_FOUND"
        assert data["details"]["resource"] == "Session"

    @pytest.mark.asyncio
    async def test_missing_identity(self, client):
        response = await client.get("/sessions")

        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_malformed_body_uses_validation_shape(self, client):
        response = await client.post("/sessions", json={"provider_id": "bob"}, headers=as_user("alice"))

        assert response.status_code == 422
        data = response.json()
        assert data["code"] == "VALIDATION_ERROR"
        assert data["details"]["errors"]
