"""API router modules for the schemagate service."""

from __future__ import annotations

from gate_api.routers import health, schemas, sql

__all__ = [
    "health",
    "schemas",
    "sql",
]
