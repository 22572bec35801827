from __future__ import annotations

import time
import uuid

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from .logging_config import get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id to every log line emitted while handling a request."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = self._extract_request_id(request)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        started = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
            logger.debug("request.finished", duration_ms=elapsed_ms)
            structlog.contextvars.clear_contextvars()
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    def _extract_request_id(self, request: Request) -> str:
        supplied = request.headers.get(REQUEST_ID_HEADER, "").strip()
        if supplied and len(supplied) <= 64:
            return supplied
        return uuid.uuid4().hex
