"""End-to-end tests for the session booking endpoints."""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from tests.conftest import NOW, OUTSIDER, PROVIDER, REQUESTER, as_user
from tests.factories import SkillSessionFactory

IN_TWO_DAYS = NOW + timedelta(days=2)


def booking_body(start=IN_TWO_DAYS, duration=60, provider=PROVIDER, **extra) -> dict:
    body = {
        "provider_id": provider,
        "skill": {"name": "Python", "category": "Programming", "level": "intermediate"},
        "scheduled_start": start.isoformat(),
        "duration_minutes": duration,
    }
    body.update(extra)
    return body


async def create(client: AsyncClient, requester=REQUESTER, **kwargs) -> dict:
    response = await client.post("/sessions", json=booking_body(**kwargs), headers=as_user(requester))
    assert response.status_code == 201, response.text
    return response.json()


class TestCreateSession:
    @pytest.mark.asyncio
    async def test_create_returns_pending_session(self, client: AsyncClient):
        data = await create(client, meeting_link="https://meet.example.com/py", session_type="online")

        assert data["status"] == "pending"
        assert data["requester_id"] == REQUESTER
        assert data["provider_id"] == PROVIDER
        assert data["user_role"] == "requester"
        assert data["duration_hours"] == 1.0
        assert data["end_time"].startswith((IN_TWO_DAYS + timedelta(hours=1)).isoformat())
        assert data["meeting_link"] == "https://meet.example.com/py"
        assert data["feedback"] == []
        assert data["version"] == 1

    @pytest.mark.asyncio
    async def test_bad_duration(self, client: AsyncClient):
        response = await client.post(
            "/sessions", json=booking_body(duration=10), headers=as_user(REQUESTER)
        )

        assert response.status_code == 422
        assert response.json()["code"] == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_past_start(self, client: AsyncClient):
        response = await client.post(
            "/sessions", json=booking_body(start=NOW - timedelta(days=1)), headers=as_user(REQUESTER)
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_conflict_lists_sessions(self, client: AsyncClient):
        first = await create(client)

        response = await client.post(
            "/sessions",
            json=booking_body(start=IN_TWO_DAYS + timedelta(minutes=45)),
            headers=as_user("carol"),
        )

        assert response.status_code == 409
        data = response.json()
        assert data["code"] == "CONFLICT"
        assert data["details"]["conflicting_session_ids"] == [first["id"]]

    @pytest.mark.asyncio
    async def test_back_to_back_is_allowed(self, client: AsyncClient):
        await create(client)
        second = await create(client, requester="carol", start=IN_TWO_DAYS + timedelta(hours=1))

        assert second["status"] == "pending"

    @pytest.mark.asyncio
    async def test_time_until_start_follows_the_clock(self, client: AsyncClient, clock):
        created = await create(client)
        assert created["time_until_start_seconds"] == 2 * 24 * 3600

        clock.advance(days=1, hours=23)
        detail = await client.get(f"/sessions/{created['id']}", headers=as_user(PROVIDER))
        assert detail.json()["time_until_start_seconds"] == 3600

        clock.advance(hours=2)
        listed = await client.get("/sessions", headers=as_user(REQUESTER))
        assert listed.json()["sessions"][0]["time_until_start_seconds"] == 0


class TestTransitionsApi:
    @pytest.mark.asyncio
    async def test_accept_complete_feedback_flow(self, client: AsyncClient, clock, notifier):
        session = await create(client, start=NOW + timedelta(hours=4))
        sid = session["id"]

        response = await client.post(
            f"/sessions/{sid}/respond",
            json={"action": "accept", "response_message": "Sounds good"},
            headers=as_user(PROVIDER),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "accepted"
        assert response.json()["user_role"] == "provider"

        clock.advance(hours=5)
        response = await client.post(
            f"/sessions/{sid}/complete", json={"notes": "Covered asyncio"}, headers=as_user(REQUESTER)
        )
        assert response.status_code == 200
        assert response.json()["requester_notes"] == "Covered asyncio"

        response = await client.post(
            f"/sessions/{sid}/feedback", json={"rating": 5, "comment": "Great"}, headers=as_user(REQUESTER)
        )
        assert response.status_code == 201
        assert response.json()["rating"] == 5

        response = await client.post(
            f"/sessions/{sid}/feedback", json={"rating": 4}, headers=as_user(REQUESTER)
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_STATE"

        detail = await client.get(f"/sessions/{sid}", headers=as_user(PROVIDER))
        assert [f["reviewer_id"] for f in detail.json()["feedback"]] == [REQUESTER]

        await client.app.state.dispatcher.drain()
        assert notifier.actions == ["create", "accept", "complete", "feedback"]

    @pytest.mark.asyncio
    async def test_requester_cannot_accept(self, client: AsyncClient):
        session = await create(client)

        response = await client.post(
            f"/sessions/{session['id']}/respond", json={"action": "accept"}, headers=as_user(REQUESTER)
        )

        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_reject_without_reason(self, client: AsyncClient):
        session = await create(client)

        response = await client.post(
            f"/sessions/{session['id']}/respond", json={"action": "reject"}, headers=as_user(PROVIDER)
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_propose_alternative_via_respond(self, client: AsyncClient):
        session = await create(client)
        new_start = IN_TWO_DAYS + timedelta(days=1)

        response = await client.post(
            f"/sessions/{session['id']}/respond",
            json={"action": "propose_alternative", "proposed_start": new_start.isoformat(), "message": "Friday?"},
            headers=as_user(PROVIDER),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "pending"
        assert data["scheduled_start"].startswith(new_start.isoformat())
        assert data["alternative_proposal"]["message"] == "Friday?"

    @pytest.mark.asyncio
    async def test_propose_alternative_endpoint(self, client: AsyncClient):
        session = await create(client)
        new_start = IN_TWO_DAYS + timedelta(hours=6)

        response = await client.post(
            f"/sessions/{session['id']}/propose-alternative",
            json={"proposed_start": new_start.isoformat()},
            headers=as_user(REQUESTER),
        )

        assert response.status_code == 200
        assert response.json()["alternative_proposal"]["proposed_by"] == REQUESTER

    @pytest.mark.asyncio
    async def test_cancel_inside_window(self, client: AsyncClient, db_session: AsyncSession):
        session = await SkillSessionFactory.create(
            db_session, status="accepted", scheduled_start=NOW + timedelta(hours=1)
        )

        response = await client.post(
            f"/sessions/{session.id}/cancel", json={"reason": "Ill"}, headers=as_user(REQUESTER)
        )

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_STATE"

    @pytest.mark.asyncio
    async def test_cancel_without_body(self, client: AsyncClient):
        session = await create(client)

        response = await client.post(f"/sessions/{session['id']}/cancel", headers=as_user(PROVIDER))

        assert response.status_code == 200
        assert response.json()["cancelled_by"] == PROVIDER

    @pytest.mark.asyncio
    async def test_outsider_cannot_view(self, client: AsyncClient):
        session = await create(client)

        response = await client.get(f"/sessions/{session['id']}", headers=as_user(OUTSIDER))

        assert response.status_code == 403


class TestQueriesApi:
    @pytest.mark.asyncio
    async def test_list_with_pagination(self, client: AsyncClient):
        for day in range(1, 4):
            await create(client, start=NOW + timedelta(days=day))

        response = await client.get("/sessions?limit=2&type=requested", headers=as_user(REQUESTER))

        assert response.status_code == 200
        data = response.json()
        assert len(data["sessions"]) == 2
        assert data["pagination"] == {
            "current_page": 1,
            "total_pages": 2,
            "total_count": 3,
            "has_next_page": True,
            "has_prev_page": False,
            "limit": 2,
        }

    @pytest.mark.asyncio
    async def test_list_rejects_unknown_status(self, client: AsyncClient):
        response = await client.get("/sessions?status=expired", headers=as_user(REQUESTER))

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_upcoming_and_stats(self, client: AsyncClient):
        first = await create(client, start=NOW + timedelta(days=3))
        second = await create(client, start=NOW + timedelta(days=1))
        await client.post(
            f"/sessions/{second['id']}/respond", json={"action": "accept"}, headers=as_user(PROVIDER)
        )

        upcoming = await client.get("/sessions/upcoming", headers=as_user(PROVIDER))
        assert [s["id"] for s in upcoming.json()] == [second["id"], first["id"]]

        stats = await client.get("/sessions/stats", headers=as_user(REQUESTER))
        assert stats.json() == {
            "total": 2,
            "pending": 1,
            "accepted": 1,
            "rejected": 0,
            "cancelled": 0,
            "completed": 0,
        }

    @pytest.mark.asyncio
    async def test_conflict_precheck(self, client: AsyncClient):
        existing = await create(client)

        response = await client.get(
            "/sessions/conflicts",
            params={
                "start": (IN_TWO_DAYS + timedelta(minutes=30)).isoformat(),
                "duration": 30,
                "participant_id": "carol",
            },
            headers=as_user(PROVIDER),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["has_conflicts"] is True
        assert [c["id"] for c in data["user_conflicts"]] == [existing["id"]]
        assert data["participant_conflicts"] == []
