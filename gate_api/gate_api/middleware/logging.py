"""Structured request-logging middleware for the schemagate API."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("gate_api.access")

# Header names whose values must be masked in log output.
_SENSITIVE_HEADERS: frozenset[str] = frozenset({"authorization", "apikey", "x-api-key", "cookie"})
_MASK: str = "***"

CORRELATION_HEADER: str = "X-Correlation-ID"


def _safe_headers(request: Request) -> dict[str, str]:
    """Return a copy of the request headers with sensitive values masked."""
    return {key: (_MASK if key.lower() in _SENSITIVE_HEADERS else value) for key, value in request.headers.items()}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with method, path, status code and duration.

    Each request is tagged with a ``correlation_id`` (taken from the
    incoming ``X-Correlation-ID`` header or generated as a UUID-4) and the
    authenticated ``owner_id`` when the auth middleware has set one.  The
    correlation id is echoed back as a response header.  Request bodies
    (SQL, schemas, database URLs) are never logged.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER, "") or str(uuid.uuid4())
        request.state.correlation_id = correlation_id

        start = time.monotonic()
        response: Response | None = None
        try:
            response = await call_next(request)
            response.headers[CORRELATION_HEADER] = correlation_id
            return response
        finally:
            duration_ms = round((time.monotonic() - start) * 1000, 2)
            status_code = response.status_code if response is not None else 500

            log_payload: dict[str, Any] = {
                "method": request.method,
                "path": request.url.path,
                "status_code": status_code,
                "duration_ms": duration_ms,
                "client": request.client.host if request.client else None,
                "correlation_id": correlation_id,
                "owner_id": getattr(request.state, "owner_id", "anonymous"),
                "headers": _safe_headers(request),
            }
            if status_code >= 500:
                logger.error("request completed", extra={"request": log_payload})
            elif status_code >= 400:
                logger.warning("request completed", extra={"request": log_payload})
            else:
                logger.info("request completed", extra={"request": log_payload})
