"""HTTP middleware for request ID propagation and correlation.

Every request/response pair carries a correlation ID: the incoming
header named by LOG_REQUEST_ID_HEADER (X-Request-ID by default, bound
per app on ``app.state.request_id_header``) or a fresh UUID. The ID is
stored in contextvars for the duration of the request so log records
emitted anywhere in the stack, rate limit decisions included, can be
correlated.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import time
import uuid

from fastapi import Request, Response

from app.core.config import settings
from app.core.logging import clear_request_id, set_request_id


async def request_id_middleware(request: Request, call_next) -> Response:
    """Attach a request id and duration header to every response.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with X-Request-ID and
            X-Request-Duration-ms headers added.
    """

    header_name = getattr(
        request.app.state, "request_id_header", settings.log.request_id_header
    )
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response
