"""HTTP middleware for Query Bridge.

Provides:
- Request logging (method, path, status, duration)
- CORS preflight short-circuit: every OPTIONS request gets 204
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response

from query_bridge.observability import get_logger

logger = get_logger("query_bridge.access")

CallNext = Callable[[Request], Awaitable[Response]]


async def answer_preflight(request: Request, call_next: CallNext) -> Response:
    """Answer OPTIONS requests on any path with an empty 204."""
    if request.method == "OPTIONS":
        return Response(status_code=204)
    return await call_next(request)


async def log_requests(request: Request, call_next: CallNext) -> Response:
    """Log one line per request once the response is produced."""
    start = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "request",
        method=request.method,
        path=request.url.path,
        status=response.status_code,
        duration_ms=round((time.perf_counter() - start) * 1000, 3),
    )
    return response
