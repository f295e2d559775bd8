"""Tests for the request-logging middleware and the JSON formatter."""

from __future__ import annotations

import json
import logging
import sys

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from gate_api.middleware.json_formatter import JSONFormatter
from gate_api.middleware.logging import CORRELATION_HEADER, RequestLoggingMiddleware


def _app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(RequestLoggingMiddleware)

    @app.get("/ok")
    async def ok() -> dict[str, bool]:
        return {"ok": True}

    return app


class TestRequestLoggingMiddleware:
    @pytest.mark.asyncio
    async def test_generates_correlation_id(self) -> None:
        async with AsyncClient(transport=ASGITransport(app=_app()), base_url="http://test") as client:
            resp = await client.get("/ok")

        assert len(resp.headers[CORRELATION_HEADER]) == 36

    @pytest.mark.asyncio
    async def test_logs_request_with_masked_headers(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="gate_api.access"):
            async with AsyncClient(transport=ASGITransport(app=_app()), base_url="http://test") as client:
                await client.get("/ok", headers={"Authorization": "Bearer secret-token"})

        record = next(r for r in caplog.records if r.name == "gate_api.access")
        payload = record.request
        assert payload["path"] == "/ok"
        assert payload["status_code"] == 200
        assert payload["owner_id"] == "anonymous"
        assert payload["headers"]["authorization"] == "***"

    @pytest.mark.asyncio
    async def test_client_errors_log_as_warning(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="gate_api.access"):
            async with AsyncClient(transport=ASGITransport(app=_app()), base_url="http://test") as client:
                await client.get("/missing")

        record = next(r for r in caplog.records if r.name == "gate_api.access")
        assert record.levelno == logging.WARNING


class TestJSONFormatter:
    def test_formats_single_line_json(self) -> None:
        record = logging.LogRecord("gate_api.access", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        record.request = {"path": "/ok"}

        line = JSONFormatter().format(record)

        assert "\n" not in line
        payload = json.loads(line)
        assert payload["message"] == "hello world"
        assert payload["level"] == "INFO"
        assert payload["request"] == {"path": "/ok"}
        assert "exc_info" not in payload

    def test_includes_traceback(self) -> None:
        try:
            raise ValueError("bad")
        except ValueError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

        payload = json.loads(JSONFormatter().format(record))

        assert "ValueError: bad" in payload["exc_info"]
