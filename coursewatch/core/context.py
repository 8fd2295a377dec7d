"""Request context tracking using contextvars.

Each request gets an ID (and, once known, the viewer whose progress it
touches) that is injected into every log entry without being passed around.
"""

from contextvars import ContextVar
from typing import Any
from uuid import UUID, uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
viewer_id_var: ContextVar[str | None] = ContextVar("viewer_id", default=None)
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def generate_request_id() -> str:
    """Generate a new unique request ID."""
    return str(uuid4())


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID for the current context.

    Args:
        request_id: Optional request ID. If not provided, generates a new one.

    Returns:
        The request ID that was set.
    """
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def get_viewer_id() -> str | None:
    """Get the viewer bound to the current request."""
    return viewer_id_var.get()


def set_viewer_id(viewer_id: str | UUID | None) -> None:
    """Bind a viewer to the current request."""
    viewer_id_var.set(str(viewer_id) if viewer_id is not None else None)


def get_correlation_id() -> str | None:
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str | None) -> None:
    correlation_id_var.set(correlation_id)


def get_context() -> dict[str, Any]:
    """Get the populated context variables as a dictionary."""
    context: dict[str, Any] = {}

    request_id = get_request_id()
    if request_id:
        context["request_id"] = request_id

    viewer_id = get_viewer_id()
    if viewer_id:
        context["viewer_id"] = viewer_id

    correlation_id = get_correlation_id()
    if correlation_id:
        context["correlation_id"] = correlation_id

    return context


def clear_context() -> None:
    """Reset all context variables at the end of a request."""
    request_id_var.set("")
    viewer_id_var.set(None)
    correlation_id_var.set(None)
