# Core infrastructure
from coursewatch.core.context import (
    clear_context,
    get_context,
    get_request_id,
    set_request_id,
    set_viewer_id,
)
from coursewatch.core.logging import configure_structlog, get_logger
from coursewatch.core.middleware import RequestContextMiddleware


__all__ = [
    "RequestContextMiddleware",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_logger",
    "get_request_id",
    "set_request_id",
    "set_viewer_id",
]
