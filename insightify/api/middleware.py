"""Request correlation middleware."""

import uuid
from contextvars import ContextVar
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from insightify.core.project_context import clear_project_context, set_project_context

REQUEST_ID_HEADER = "X-Request-ID"

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


def get_current_request_id() -> str | None:
    """Get the request id of the request being handled, if any."""
    return request_id_var.get()


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id and the path's project id to the logging context."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        token = request_id_var.set(request_id)
        # Path params are resolved after routing; parse the project from the URL
        set_project_context(_project_from_path(request.url.path))
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
            clear_project_context()
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def _project_from_path(path: str) -> str | None:
    """Extract the project id from ``/<prefix>/<area>/<project_id>/...`` paths."""
    parts = [p for p in path.split("/") if p]
    for area in ("collect", "analytics", "heatmaps", "realtime"):
        if area in parts:
            index = parts.index(area) + 1
            if index < len(parts) and parts[index] != "ws":
                return parts[index]
    return None
