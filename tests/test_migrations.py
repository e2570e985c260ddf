"""Tests for the schema migration."""

import importlib.util
from pathlib import Path

import pytest
from sqlalchemy import inspect

from alembic.migration import MigrationContext
from alembic.operations import Operations
from skillswap.core.db import Base
from tests.conftest import TEST_DATABASE_URL

VERSIONS = Path(__file__).resolve().parents[1] / "alembic" / "versions"
INITIAL = VERSIONS / "3c1e7a9b2d40_create_booking_tables.py"

BOOKING_TABLES = {"skill_sessions", "session_feedback", "participant_calendars"}


def load_revision(path: Path):
    module_spec = importlib.util.spec_from_file_location(path.stem, path)
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    return module


def run_operations(connection, step) -> None:
    with Operations.context(MigrationContext.configure(connection)):
        step()


def describe_schema(connection) -> dict:
    inspector = inspect(connection)
    return {
        "tables": set(inspector.get_table_names()),
        "checks": {c["name"] for c in inspector.get_check_constraints("skill_sessions")}
        | {c["name"] for c in inspector.get_check_constraints("session_feedback")},
        "uniques": {u["name"] for u in inspector.get_unique_constraints("session_feedback")},
        "indexes": {i["name"] for i in inspector.get_indexes("skill_sessions")},
        "session_columns": {c["name"] for c in inspector.get_columns("skill_sessions")},
        "calendar_columns": {c["name"] for c in inspector.get_columns("participant_calendars")},
    }


class TestInitialMigration:
    def test_is_the_only_root_revision(self):
        revisions = [load_revision(p) for p in sorted(VERSIONS.glob("*.py"))]

        roots = [r.revision for r in revisions if r.down_revision is None]
        assert roots == ["3c1e7a9b2d40"]

    def test_models_cover_the_same_tables(self):
        assert set(Base.metadata.tables) == BOOKING_TABLES

    @pytest.mark.skipif(not TEST_DATABASE_URL, reason="migration uses PostgreSQL column types")
    @pytest.mark.asyncio
    async def test_upgrade_creates_store_guards(self, engine):
        revision = load_revision(INITIAL)

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(run_operations, revision.upgrade)
            schema = await conn.run_sync(describe_schema)
            await conn.run_sync(run_operations, revision.downgrade)
            remaining = await conn.run_sync(lambda c: set(inspect(c).get_table_names()))
            await conn.run_sync(Base.metadata.create_all)

        assert BOOKING_TABLES <= schema["tables"]
        assert schema["checks"] >= {
            "ck_skill_sessions_distinct_participants",
            "ck_skill_sessions_duration_range",
            "ck_session_feedback_rating_range",
        }
        assert "uq_session_feedback_reviewer" in schema["uniques"]
        assert {
            "ix_skill_sessions_requester_calendar",
            "ix_skill_sessions_provider_calendar",
        } <= schema["indexes"]
        assert schema["session_columns"] == set(Base.metadata.tables["skill_sessions"].columns.keys())
        assert schema["calendar_columns"] == set(
            Base.metadata.tables["participant_calendars"].columns.keys()
        )
        assert not BOOKING_TABLES & remaining
