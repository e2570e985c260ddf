"""Tests for the health check endpoint."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError

from skillswap.api.health import check_database, get_uptime_seconds, set_app_start_time
from skillswap.utils.datetime import now_utc


class TestHealthCheckEndpoint:
    """Test suite for /health endpoint."""

    @pytest.mark.asyncio
    async def test_health_endpoint_returns_200_when_db_ok(self, client: AsyncClient) -> None:
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["uptime_seconds"] >= 0
        assert data["checks"]["database"]["status"] == "ok"

    @pytest.mark.asyncio
    async def test_health_endpoint_includes_response_time(self, client: AsyncClient) -> None:
        response = await client.get("/health")

        db_check = response.json()["checks"]["database"]
        assert isinstance(db_check["response_time_ms"], int)
        assert db_check["response_time_ms"] >= 0

    @pytest.mark.asyncio
    async def test_health_does_not_need_identity(self, client: AsyncClient) -> None:
        response = await client.get("/health")

        assert response.status_code == 200
        assert "application/json" in response.headers["content-type"]

    def test_health_endpoint_uptime_tracking(self) -> None:
        set_app_start_time(now_utc() - timedelta(hours=1))

        uptime = get_uptime_seconds()

        assert 3590 <= uptime <= 3610, f"Expected ~3600 seconds, got {uptime}"

    @pytest.mark.asyncio
    async def test_database_down_is_reported(self) -> None:
        db = AsyncMock()
        db.execute.side_effect = OperationalError("SELECT 1", {}, Exception("connection refused"))

        result = await check_database(db)

        assert result["status"] == "down"
        assert result["error"] == "OperationalError"
