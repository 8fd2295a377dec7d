"""Tests for ProgressService.

Covers:
- upsert_lesson_progress (validation, percentage, counters, completion)
- get_lesson_progress / get_course_progress
- record_quiz_result
- reset_lesson_progress / reset_course_progress
"""

import json
from datetime import UTC, datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest

from coursewatch.progress.service import (
    LessonProgressNotFoundError,
    ProgressService,
    ProgressValidationError,
)


@pytest.fixture
def mock_redis():
    """Mock Redis client."""
    redis_mock = AsyncMock()
    redis_mock.publish = AsyncMock(return_value=1)
    return redis_mock


@pytest.fixture
def progress_service(mock_session, mock_redis) -> ProgressService:
    """ProgressService with mocked Cassandra and Redis."""
    return ProgressService(
        session=mock_session, keyspace="test_keyspace", redis=mock_redis
    )


def executed(mock_session) -> list:
    """Prepared statements passed to aexecute, in order."""
    return [call.args[0] for call in mock_session.aexecute.await_args_list]


class TestUpsertValidation:
    """Malformed input is rejected before anything is written."""

    @pytest.mark.asyncio
    async def test_negative_watched_duration_rejected(
        self, progress_service, mock_session, viewer_id, course_id
    ):
        with pytest.raises(ProgressValidationError) as exc_info:
            await progress_service.upsert_lesson_progress(
                viewer_id, course_id, "lesson-1", "video-1", -5, 600
            )

        assert exc_info.value.code == "validation_error"
        mock_session.aexecute.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("total", [0, -1, float("nan"), float("inf")])
    async def test_invalid_total_duration_rejected(
        self, progress_service, mock_session, viewer_id, course_id, total
    ):
        with pytest.raises(ProgressValidationError):
            await progress_service.upsert_lesson_progress(
                viewer_id, course_id, "lesson-1", "video-1", 10, total
            )

        mock_session.aexecute.assert_not_called()

    @pytest.mark.asyncio
    async def test_malformed_viewer_id_rejected(
        self, progress_service, mock_session, course_id
    ):
        with pytest.raises(ProgressValidationError, match="viewer_id"):
            await progress_service.upsert_lesson_progress(
                "not-a-uuid", course_id, "lesson-1", "video-1", 10, 600
            )

        mock_session.aexecute.assert_not_called()

    @pytest.mark.asyncio
    async def test_blank_lesson_id_rejected(
        self, progress_service, mock_session, viewer_id, course_id
    ):
        with pytest.raises(ProgressValidationError, match="lesson_id"):
            await progress_service.upsert_lesson_progress(
                viewer_id, course_id, "  ", "video-1", 10, 600
            )

        mock_session.aexecute.assert_not_called()

    @pytest.mark.asyncio
    async def test_boolean_duration_rejected(
        self, progress_service, mock_session, viewer_id, course_id
    ):
        with pytest.raises(ProgressValidationError):
            await progress_service.upsert_lesson_progress(
                viewer_id, course_id, "lesson-1", "video-1", True, 600
            )

        mock_session.aexecute.assert_not_called()


class TestUpsertLessonProgress:
    """Successful upserts."""

    @pytest.mark.asyncio
    async def test_stores_recomputed_percentage_and_increments_count(
        self, progress_service, mock_session, viewer_id, course_id, make_row, single
    ):
        row = make_row(
            viewer_id=viewer_id,
            course_id=course_id,
            watched_duration=300.0,
            watch_percentage=50.0,
        )
        mock_session.aexecute = AsyncMock(
            side_effect=[
                Mock(),
                Mock(),
                single(row),
                single(SimpleNamespace(watch_count=3)),
            ]
        )

        progress = await progress_service.upsert_lesson_progress(
            str(viewer_id), str(course_id), "lesson-1", "video-1", 300, 600
        )

        statements = executed(mock_session)
        assert statements[0] is progress_service._update_lesson_sample
        assert statements[1] is progress_service._increment_watch_count
        assert progress_service._mark_lesson_completed not in statements

        params = mock_session.aexecute.await_args_list[0].args[1]
        assert params[:4] == ["video-1", 300.0, 600.0, 50.0]
        assert params[5:] == [viewer_id, course_id, "lesson-1"]

        assert progress.watch_percentage == 50.0
        assert progress.watch_count == 3
        assert progress.is_completed is False

    @pytest.mark.asyncio
    async def test_percentage_is_clamped_to_100(
        self, progress_service, mock_session, viewer_id, course_id
    ):
        mock_session.aexecute = AsyncMock(
            side_effect=[
                Mock(),
                Mock(),
                Mock(was_applied=False),
                Mock(one=Mock(return_value=None)),
            ]
        )

        progress = await progress_service.upsert_lesson_progress(
            viewer_id, course_id, "lesson-1", "video-1", 700, 600
        )

        params = mock_session.aexecute.await_args_list[0].args[1]
        assert params[3] == 100.0
        assert progress.watch_percentage == 100.0

    @pytest.mark.asyncio
    async def test_first_completion_uses_conditional_write_and_publishes(
        self,
        progress_service,
        mock_session,
        mock_redis,
        viewer_id,
        course_id,
        make_row,
        single,
    ):
        completed_at = datetime(2026, 1, 1, 12, 0)
        row = make_row(
            viewer_id=viewer_id,
            course_id=course_id,
            watched_duration=540.0,
            watch_percentage=90.0,
            is_completed=True,
            completed_at=completed_at,
        )
        mock_session.aexecute = AsyncMock(
            side_effect=[
                Mock(),
                Mock(),
                Mock(was_applied=True),
                single(row),
                single(SimpleNamespace(watch_count=5)),
            ]
        )

        progress = await progress_service.upsert_lesson_progress(
            viewer_id, course_id, "lesson-1", "video-1", 540, 600
        )

        assert executed(mock_session)[2] is progress_service._mark_lesson_completed
        assert progress.is_completed is True
        assert progress.completed_at == completed_at.replace(tzinfo=UTC)

        mock_redis.publish.assert_awaited_once()
        channel, payload = mock_redis.publish.await_args.args
        assert channel == f"progress:viewer:{viewer_id}"
        message = json.loads(payload)
        assert message["type"] == "lesson_completed"
        assert message["data"]["lesson_id"] == "lesson-1"

    @pytest.mark.asyncio
    async def test_already_completed_lesson_is_not_republished(
        self, progress_service, mock_session, mock_redis, viewer_id, course_id
    ):
        mock_session.aexecute = AsyncMock(
            side_effect=[
                Mock(),
                Mock(),
                Mock(was_applied=False),
                Mock(one=Mock(return_value=None)),
            ]
        )

        await progress_service.upsert_lesson_progress(
            viewer_id, course_id, "lesson-1", "video-1", 580, 600
        )

        mock_redis.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lower_sample_keeps_completion(
        self, progress_service, mock_session, viewer_id, course_id, make_row, single
    ):
        """A later, lower sample never issues a write touching completion."""
        row = make_row(
            viewer_id=viewer_id,
            course_id=course_id,
            watched_duration=60.0,
            watch_percentage=10.0,
            is_completed=True,
            completed_at=datetime(2026, 1, 1, tzinfo=UTC),
        )
        mock_session.aexecute = AsyncMock(
            side_effect=[
                Mock(),
                Mock(),
                single(row),
                single(SimpleNamespace(watch_count=7)),
            ]
        )

        progress = await progress_service.upsert_lesson_progress(
            viewer_id, course_id, "lesson-1", "video-1", 60, 600
        )

        assert progress_service._mark_lesson_completed not in executed(mock_session)
        assert "is_completed" not in progress_service._update_lesson_sample.query_string
        assert progress.is_completed is True
        assert progress.watch_percentage == 10.0

    @pytest.mark.asyncio
    async def test_publish_failure_does_not_fail_upsert(
        self, progress_service, mock_session, mock_redis, viewer_id, course_id
    ):
        mock_redis.publish = AsyncMock(side_effect=ConnectionError("redis down"))
        mock_session.aexecute = AsyncMock(
            side_effect=[
                Mock(),
                Mock(),
                Mock(was_applied=True),
                Mock(one=Mock(return_value=None)),
            ]
        )

        progress = await progress_service.upsert_lesson_progress(
            viewer_id, course_id, "lesson-1", "video-1", 600, 600
        )

        assert progress.watch_percentage == 100.0

    @pytest.mark.asyncio
    async def test_works_without_redis(self, mock_session, viewer_id, course_id):
        service = ProgressService(session=mock_session, keyspace="test_keyspace")
        mock_session.aexecute = AsyncMock(
            side_effect=[
                Mock(),
                Mock(),
                Mock(was_applied=True),
                Mock(one=Mock(return_value=None)),
            ]
        )

        progress = await service.upsert_lesson_progress(
            viewer_id, course_id, "lesson-1", "video-1", 600, 600
        )

        assert progress.lesson_id == "lesson-1"

    @pytest.mark.asyncio
    async def test_custom_completion_threshold(
        self, mock_session, viewer_id, course_id
    ):
        service = ProgressService(
            session=mock_session, keyspace="test_keyspace", completion_threshold=70.0
        )
        mock_session.aexecute = AsyncMock(
            side_effect=[
                Mock(),
                Mock(),
                Mock(was_applied=True),
                Mock(one=Mock(return_value=None)),
            ]
        )

        await service.upsert_lesson_progress(
            viewer_id, course_id, "lesson-1", "video-1", 420, 600
        )

        assert executed(mock_session)[2] is service._mark_lesson_completed


class TestQueries:
    """Lesson and course reads."""

    @pytest.mark.asyncio
    async def test_get_lesson_progress_missing_returns_none(
        self, progress_service, mock_session, viewer_id, course_id, single
    ):
        mock_session.aexecute = AsyncMock(return_value=single(None))

        result = await progress_service.get_lesson_progress(
            viewer_id, course_id, "lesson-1"
        )

        assert result is None
        mock_session.aexecute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_get_lesson_progress_without_counter_row(
        self, progress_service, mock_session, viewer_id, course_id, make_row, single
    ):
        row = make_row(viewer_id=viewer_id, course_id=course_id)
        mock_session.aexecute = AsyncMock(side_effect=[single(row), single(None)])

        result = await progress_service.get_lesson_progress(
            viewer_id, course_id, "lesson-1"
        )

        assert result.watch_count == 0

    @pytest.mark.asyncio
    async def test_course_progress_empty(
        self, progress_service, mock_session, viewer_id, course_id
    ):
        mock_session.aexecute = AsyncMock(side_effect=[[], []])

        summary = await progress_service.get_course_progress(viewer_id, course_id)

        assert summary.total_lessons == 0
        assert summary.completed_lessons == 0
        assert summary.overall_progress == 0
        assert summary.lessons == []

    @pytest.mark.asyncio
    async def test_course_progress_sums_lessons(
        self, progress_service, mock_session, viewer_id, course_id, make_row
    ):
        rows = [
            make_row(
                viewer_id=viewer_id,
                course_id=course_id,
                lesson_id="a",
                watched_duration=600.0,
                total_duration=600.0,
                watch_percentage=100.0,
                is_completed=True,
            ),
            make_row(
                viewer_id=viewer_id,
                course_id=course_id,
                lesson_id="b",
                watched_duration=100.0,
                total_duration=300.0,
                watch_percentage=33.33,
            ),
        ]
        counts = [
            SimpleNamespace(lesson_id="a", watch_count=4),
            SimpleNamespace(lesson_id="b", watch_count=1),
        ]
        mock_session.aexecute = AsyncMock(side_effect=[rows, counts])

        summary = await progress_service.get_course_progress(
            str(viewer_id), str(course_id)
        )

        assert summary.total_lessons == 2
        assert summary.completed_lessons == 1
        assert summary.total_watch_time == 700.0
        assert summary.total_duration == 900.0
        assert summary.overall_progress == 77.78
        assert [lesson.watch_count for lesson in summary.lessons] == [4, 1]

    @pytest.mark.asyncio
    async def test_course_progress_malformed_id(self, progress_service, course_id):
        with pytest.raises(ProgressValidationError):
            await progress_service.get_course_progress("nope", course_id)


class TestQuizResults:
    """record_quiz_result."""

    @pytest.mark.asyncio
    async def test_records_quiz_on_existing_lesson(
        self, progress_service, mock_session, viewer_id, course_id, make_row, single
    ):
        row = make_row(viewer_id=viewer_id, course_id=course_id)
        mock_session.aexecute = AsyncMock(
            side_effect=[single(row), single(SimpleNamespace(watch_count=2)), Mock()]
        )

        progress = await progress_service.record_quiz_result(
            viewer_id, course_id, "lesson-1", score=85, passed=True
        )

        assert executed(mock_session)[2] is progress_service._update_quiz_result
        assert progress.quiz_completed is True
        assert progress.quiz_score == 85.0
        assert progress.quiz_passed is True

    @pytest.mark.asyncio
    async def test_missing_lesson_raises_not_found(
        self, progress_service, mock_session, viewer_id, course_id, single
    ):
        mock_session.aexecute = AsyncMock(return_value=single(None))

        with pytest.raises(LessonProgressNotFoundError) as exc_info:
            await progress_service.record_quiz_result(
                viewer_id, course_id, "lesson-1", score=50, passed=False
            )

        assert exc_info.value.code == "progress_not_found"

    @pytest.mark.asyncio
    async def test_score_out_of_range(self, progress_service, mock_session, viewer_id):
        with pytest.raises(ProgressValidationError):
            await progress_service.record_quiz_result(
                viewer_id, viewer_id, "lesson-1", score=120, passed=True
            )

        mock_session.aexecute.assert_not_called()


class TestResets:
    """Administrative resets."""

    @pytest.mark.asyncio
    async def test_reset_lesson_deletes_row_and_zeroes_counter(
        self, progress_service, mock_session, viewer_id, course_id, make_row, single
    ):
        row = make_row(viewer_id=viewer_id, course_id=course_id)
        mock_session.aexecute = AsyncMock(
            side_effect=[
                single(row),
                single(SimpleNamespace(watch_count=6)),
                Mock(),
                Mock(),
            ]
        )

        removed = await progress_service.reset_lesson_progress(
            viewer_id, course_id, "lesson-1"
        )

        assert removed is True
        statements = executed(mock_session)
        assert statements[2] is progress_service._delete_lesson_progress
        assert statements[3] is progress_service._decrement_watch_count
        assert mock_session.aexecute.await_args_list[3].args[1][0] == 6

    @pytest.mark.asyncio
    async def test_reset_missing_lesson_returns_false(
        self, progress_service, mock_session, viewer_id, course_id, single
    ):
        mock_session.aexecute = AsyncMock(return_value=single(None))

        assert (
            await progress_service.reset_lesson_progress(
                viewer_id, course_id, "lesson-1"
            )
            is False
        )
        mock_session.aexecute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reset_course_removes_every_lesson(
        self, progress_service, mock_session, viewer_id, course_id, make_row
    ):
        rows = [
            make_row(viewer_id=viewer_id, course_id=course_id, lesson_id="a"),
            make_row(viewer_id=viewer_id, course_id=course_id, lesson_id="b"),
        ]
        counts = [SimpleNamespace(lesson_id="a", watch_count=2)]
        mock_session.aexecute = AsyncMock(
            side_effect=[rows, counts, Mock(), Mock(), Mock()]
        )

        removed = await progress_service.reset_course_progress(viewer_id, course_id)

        assert removed == 2
        statements = executed(mock_session)
        # Only lesson "a" had a non-zero counter
        assert statements[2:] == [
            progress_service._delete_lesson_progress,
            progress_service._decrement_watch_count,
            progress_service._delete_lesson_progress,
        ]
        params = [call.args[1] for call in mock_session.aexecute.await_args_list]
        assert params[2] == [viewer_id, course_id, "a"]
        assert params[3] == [2, viewer_id, course_id, "a"]
        assert params[4] == [viewer_id, course_id, "b"]

    def test_reset_deletes_are_conditional(self, progress_service):
        """Deletes share Paxos with the set-once completion write."""
        assert "IF EXISTS" in progress_service._delete_lesson_progress.query_string
        assert (
            "IF completed_at = null"
            in progress_service._mark_lesson_completed.query_string
        )


class TestCompletionBoundary:
    """Completion threshold edge and the read-back fallback."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("watched", "expect_completion_write"),
        [(539, False), (539.99, False), (540, True), (541, True)],
    )
    async def test_threshold_is_inclusive_at_90_percent(
        self,
        progress_service,
        mock_session,
        viewer_id,
        course_id,
        watched,
        expect_completion_write,
    ):
        mock_session.aexecute = AsyncMock(
            side_effect=[
                Mock(),
                Mock(),
                *([Mock(was_applied=True)] if expect_completion_write else []),
                Mock(one=Mock(return_value=None)),
            ]
        )

        await progress_service.upsert_lesson_progress(
            viewer_id, course_id, "lesson-1", "video-1", watched, 600
        )

        issued = progress_service._mark_lesson_completed in executed(mock_session)
        assert issued is expect_completion_write

    @pytest.mark.asyncio
    async def test_fallback_reports_applied_completion(
        self, progress_service, mock_session, viewer_id, course_id
    ):
        mock_session.aexecute = AsyncMock(
            side_effect=[
                Mock(),
                Mock(),
                Mock(was_applied=True),
                Mock(one=Mock(return_value=None)),
            ]
        )

        progress = await progress_service.upsert_lesson_progress(
            viewer_id, course_id, "lesson-1", "video-1", 570, 600
        )

        assert progress.is_completed is True
        assert progress.completed_at is not None
        assert progress.completed_at == progress.last_watched_at

    @pytest.mark.asyncio
    async def test_fallback_without_applied_completion(
        self, progress_service, mock_session, viewer_id, course_id
    ):
        mock_session.aexecute = AsyncMock(
            side_effect=[
                Mock(),
                Mock(),
                Mock(was_applied=False),
                Mock(one=Mock(return_value=None)),
            ]
        )

        progress = await progress_service.upsert_lesson_progress(
            viewer_id, course_id, "lesson-1", "video-1", 570, 600
        )

        assert progress.is_completed is False
        assert progress.completed_at is None
