"""HTTP client for the progress API.

Used by the tracker as its progress sink, and by callers that render
course progress.
"""

from uuid import UUID

import httpx
import structlog

from coursewatch.config import Settings
from coursewatch.progress.schemas import (
    CourseProgressSummary,
    LessonProgressResponse,
    UpdateVideoProgressRequest,
)


logger = structlog.get_logger(__name__)


class ProgressApiError(Exception):
    """Progress API request failed."""


class ProgressApiClient:
    """Async client for the progress endpoints.

    Owns its httpx.AsyncClient unless one is passed in.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProgressApiClient":
        """Build a client for the configured progress API."""
        return cls(
            base_url=settings.tracker_api_base_url,
            timeout=settings.tracker_request_timeout,
        )

    async def __aenter__(self) -> "ProgressApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def send_progress(
        self, update: UpdateVideoProgressRequest
    ) -> LessonProgressResponse:
        """POST a progress sample and return the stored record.

        Raises:
            ProgressApiError: On timeout, transport error or non-2xx status
        """
        payload = update.model_dump(by_alias=True, mode="json", exclude_none=True)

        try:
            response = await self._client.post("/v1/progress/video", json=payload)
        except httpx.TimeoutException as e:
            raise ProgressApiError("Progress API timeout") from e
        except httpx.RequestError as e:
            raise ProgressApiError(f"Progress API request error: {e}") from e

        if response.is_error:
            raise ProgressApiError(f"Progress API error: {response.status_code}")

        return LessonProgressResponse.model_validate(response.json())

    async def get_course_progress(
        self, course_id: UUID, viewer_id: UUID
    ) -> CourseProgressSummary:
        """Fetch a course summary; any failure yields a zeroed summary."""
        try:
            response = await self._client.get(
                f"/v1/progress/course/{course_id}/{viewer_id}"
            )
            response.raise_for_status()
            return CourseProgressSummary.model_validate(response.json())
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(
                "course_progress_fetch_failed",
                course_id=str(course_id),
                viewer_id=str(viewer_id),
                error=str(e),
            )
            return CourseProgressSummary.empty()
