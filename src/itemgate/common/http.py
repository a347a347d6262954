"""Per-request logging context."""

from __future__ import annotations

import contextvars
import json
import uuid
from typing import Any
from urllib.parse import parse_qsl

import structlog

from starlette.requests import Request
from starlette.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp


_request_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "itemgate_request_id",
    default=None,
)


def get_request_id() -> str | None:
    """Get current request id."""
    return _request_id_var.get()


async def parse_request_body(request: Request) -> Any | None:
    """Parse a JSON or form-encoded request body.

    Keys keep the order they arrived in. A form key sent more than once keeps
    only its last value, so the signed body sees the same flattened mapping.
    Returns ``None`` for an empty body.

    Raises:
        ValueError: If the body is neither form-encoded nor valid JSON.
    """
    raw = await request.body()
    if not raw:
        return None

    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/x-www-form-urlencoded"):
        return dict(parse_qsl(raw.decode("utf-8"), keep_blank_values=True))
    return json.loads(raw)


def bind_request_context(request_id: str, request: Request) -> None:
    """Bind request id and client address to every log line of this request."""
    _request_id_var.set(request_id)
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        client=request.client.host if request.client else "unknown",
    )


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tag each request/response with an id and bind it for logging."""

    def __init__(self, app: ASGIApp, header_name: str = "X-Request-ID") -> None:
        super().__init__(app)
        self._header_name = header_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(self._header_name) or uuid.uuid4().hex
        request.state.request_id = request_id
        bind_request_context(request_id, request)

        try:
            response = await call_next(request)
            response.headers.setdefault(self._header_name, request_id)
            return response
        finally:
            _request_id_var.set(None)
            structlog.contextvars.clear_contextvars()
