"""Shared fixtures: in-memory SQLite session and a fake ClickUp client."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import Settings
from app.database import Base
from app.models import client, sync_log, team_member, time_log  # noqa: F401  (register tables)
from app.services.clickup_service import parse_time_entry


NOW = datetime(2024, 3, 20, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        clickup_personal_token="pk_test",
        clickup_team_id="42",
        clickup_sync_days=90,
    )


class FakeClickUp:
    """Stands in for ClickUpClient; serves canned raw entries per list id."""

    def __init__(self, entries_by_list=None, errors_by_list=None):
        self.entries_by_list = entries_by_list or {}
        self.errors_by_list = errors_by_list or {}
        self.calls = []

    def fetch_remote_entries(self, list_id, start_ms, end_ms, assignee_ids=None):
        self.calls.append({
            "list_id": list_id,
            "start_ms": start_ms,
            "end_ms": end_ms,
            "assignee_ids": assignee_ids,
        })
        if list_id in self.errors_by_list:
            raise self.errors_by_list[list_id]
        return [parse_time_entry(raw) for raw in self.entries_by_list.get(list_id, [])]


def raw_entry(entry_id, start, minutes, task_id="t1", user_id=7, description="work"):
    """Build a ClickUp API time entry; ``start`` is an aware datetime."""
    return {
        "id": entry_id,
        "task": {"id": task_id, "name": f"Task {task_id}"} if task_id else None,
        "start": str(int(start.timestamp() * 1000)),
        "end": str(int(start.timestamp() * 1000) + minutes * 60000),
        "duration": str(minutes * 60000),
        "user": {"id": user_id, "username": "dev"},
        "description": description,
    }


@pytest.fixture
def fake_clickup():
    return FakeClickUp()
