"""Middleware components for the schemagate API."""

from __future__ import annotations

from gate_api.middleware.auth import AuthenticationMiddleware, decode_owner_id
from gate_api.middleware.json_formatter import JSONFormatter, configure_json_logging
from gate_api.middleware.logging import CORRELATION_HEADER, RequestLoggingMiddleware

__all__ = [
    "AuthenticationMiddleware",
    "CORRELATION_HEADER",
    "JSONFormatter",
    "RequestLoggingMiddleware",
    "configure_json_logging",
    "decode_owner_id",
]
