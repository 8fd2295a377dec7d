"""Shared test fixtures."""

import os
from collections.abc import Iterator
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, Mock
from uuid import UUID, uuid4

import pytest


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("MASTER_API_KEY", "test-master-key")
os.environ.setdefault("LOG_FORMAT", "json")

from cassandra.cluster import Session  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from coursewatch.main import app  # noqa: E402
from coursewatch.progress.dependencies import get_progress_service  # noqa: E402


@pytest.fixture
def client() -> Iterator[TestClient]:
    """Test client without lifespan (no Cassandra or Redis)."""
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def mock_progress_service() -> Mock:
    """ProgressService stand-in wired into the app."""
    service = Mock()
    service.upsert_lesson_progress = AsyncMock()
    service.get_lesson_progress = AsyncMock(return_value=None)
    service.get_course_progress = AsyncMock()
    service.record_quiz_result = AsyncMock()
    service.reset_lesson_progress = AsyncMock(return_value=True)
    service.reset_course_progress = AsyncMock(return_value=0)
    app.dependency_overrides[get_progress_service] = lambda: service
    return service


@pytest.fixture
def mock_session() -> Mock:
    """Mock Cassandra session (cassandra-asyncio-driver API)."""
    session = Mock(spec=Session)
    session.prepare = Mock(side_effect=lambda cql: Mock(query_string=cql))
    session.aexecute = AsyncMock(return_value=Mock())
    return session


@pytest.fixture
def viewer_id() -> UUID:
    return uuid4()


@pytest.fixture
def course_id() -> UUID:
    return uuid4()


def _make_row(**overrides: Any) -> SimpleNamespace:
    row = {
        "viewer_id": uuid4(),
        "course_id": uuid4(),
        "lesson_id": "lesson-1",
        "video_id": "video-1",
        "watched_duration": 0.0,
        "total_duration": 600.0,
        "watch_percentage": 0.0,
        "is_completed": None,
        "completed_at": None,
        "last_watched_at": None,
        "quiz_completed": None,
        "quiz_score": None,
        "quiz_passed": None,
    }
    row.update(overrides)
    return SimpleNamespace(**row)


def _single(row: Any) -> Mock:
    result = Mock()
    result.one = Mock(return_value=row)
    return result


@pytest.fixture
def make_row():
    """Factory for lesson_progress rows as returned by the driver."""
    return _make_row


@pytest.fixture
def single():
    """Factory for result sets whose one() returns the given row."""
    return _single
