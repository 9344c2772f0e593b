from __future__ import annotations

import time
from typing import Callable
from uuid import uuid4

from fastapi import Request
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

REQUEST_ID_HEADER = "x-request-id"
QUIET_PATH_SUFFIXES = ("/healthz", "/readyz", "/metrics")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id, bind it to Loguru and write one access line per request.

    An incoming `x-request-id` is reused so ids survive hops between services.
    """

    async def dispatch(self, request: Request, call_next: Callable[[Request], Response]) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()
        with logger.contextualize(request_id=request_id):
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - started) * 1000
            if not request.url.path.endswith(QUIET_PATH_SUFFIXES):
                logger.info(
                    "{} {} -> {} ({:.1f} ms)",
                    request.method,
                    request.url.path,
                    response.status_code,
                    elapsed_ms,
                )
        response.headers.setdefault(REQUEST_ID_HEADER, request_id)
        return response
