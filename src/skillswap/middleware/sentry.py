"""Sentry context middleware to capture request context in error reports."""

import sentry_sdk
from starlette.types import ASGIApp, Receive, Scope, Send

from skillswap.core.logging import get_request_id


def _header(scope: Scope, name: bytes) -> str | None:
    for key, value in scope.get("headers", []):
        if key.lower() == name:
            return value.decode("latin1")
    return None


class SentryContextMiddleware:
    """
    Tag Sentry events with the request id and the acting participant.

    Runs inside RequestIDMiddleware, so the request id is already set.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = _header(scope, b"x-request-id") or get_request_id()
        user_id = _header(scope, b"x-user-id")

        with sentry_sdk.isolation_scope() as sentry_scope:
            sentry_scope.set_tag("request_id", request_id)
            if user_id:
                sentry_scope.set_user({"id": user_id})
                sentry_scope.set_tag("user_id", user_id)
            sentry_scope.set_context(
                "request",
                {
                    "method": scope.get("method"),
                    "path": scope.get("path"),
                    "request_id": request_id,
                },
            )
            await self.app(scope, receive, send)
