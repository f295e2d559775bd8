"""Shared fixtures for schemagate API tests.

Provides settings, a temporary on-disk snapshot store, mock LLM and
introspection collaborators, a signed bearer token factory and an async
httpx client bound to the application.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from gate_engine.config import EngineSettings

from gate_api.config import APISettings
from gate_api.dependencies import (
    get_engine_settings,
    get_introspector,
    get_llm_client,
    get_settings,
    get_snapshot_store,
)
from gate_api.main import create_app
from gate_api.services.llm_client import Completion, LLMClient
from gate_api.services.schema_introspector import CatalogIntrospector
from gate_api.services.snapshot_store import LocalSnapshotStore

_TEST_JWT_SECRET = "test-secret-for-schemagate"

# ---------------------------------------------------------------------------
# Bearer tokens
# ---------------------------------------------------------------------------


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _make_token(
    sub: str | None = "user-1",
    *,
    secret: str = _TEST_JWT_SECRET,
    alg: str = "HS256",
    **claims: Any,
) -> str:
    """Build a three-part HS256 token signed with *secret*."""
    payload: dict[str, Any] = {"exp": time.time() + 3600, **claims}
    if sub is not None:
        payload["sub"] = sub
    header_b64 = _b64url(json.dumps({"alg": alg, "typ": "JWT"}).encode("utf-8"))
    payload_b64 = _b64url(json.dumps(payload).encode("utf-8"))
    signature = hmac.new(
        secret.encode("utf-8"),
        f"{header_b64}.{payload_b64}".encode("ascii"),
        hashlib.sha256,
    ).digest()
    return f"{header_b64}.{payload_b64}.{_b64url(signature)}"


@pytest.fixture()
def jwt_secret() -> str:
    return _TEST_JWT_SECRET


@pytest.fixture()
def make_token() -> Callable[..., str]:
    """Factory for signed bearer tokens: ``make_token(sub="alice")``."""
    return _make_token


@pytest.fixture()
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {_make_token()}"}


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture()
def test_settings(tmp_path: Path) -> APISettings:
    """Return a settings object suitable for testing."""
    return APISettings(
        _env_file=None,
        debug=True,
        cors_origins=["http://localhost:3000"],
        jwt_secret=_TEST_JWT_SECRET,
        llm_api_key="test-llm-key",
        storage_path=tmp_path / "snapshots",
    )


@pytest.fixture()
def engine_settings() -> EngineSettings:
    return EngineSettings(_env_file=None)


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


@pytest.fixture()
def snapshot_store(test_settings: APISettings) -> LocalSnapshotStore:
    return LocalSnapshotStore(test_settings.storage_path)


@pytest.fixture()
def mock_llm_client() -> AsyncMock:
    """Return a mock LLMClient that generates a safe SELECT by default."""
    client = AsyncMock(spec=LLMClient)
    client.generate_sql = AsyncMock(
        return_value=Completion(
            sql="SELECT o.id, c.name FROM orders o JOIN customers c ON o.cust_id = c.id",
            usage={"prompt_tokens": 120, "completion_tokens": 18, "total_tokens": 138},
        )
    )
    client.close = AsyncMock()
    return client


@pytest.fixture()
def mock_introspector() -> AsyncMock:
    return AsyncMock(spec=CatalogIntrospector)


@pytest.fixture()
def shop_schema() -> dict[str, Any]:
    """Schema payload in the ``{"tables": ...}`` shape."""
    return {
        "tables": {
            "orders": {"columns": [{"name": "id", "type": "integer"}, {"name": "cust_id", "type": "integer"}]},
            "customers": {"columns": [{"name": "id", "type": "integer"}, {"name": "name", "type": "text"}]},
        }
    }


# ---------------------------------------------------------------------------
# Application and client
# ---------------------------------------------------------------------------


@pytest.fixture()
def app(
    test_settings: APISettings,
    engine_settings: EngineSettings,
    snapshot_store: LocalSnapshotStore,
    mock_llm_client: AsyncMock,
    mock_introspector: AsyncMock,
):
    """Create the app with every external collaborator overridden."""
    application = create_app(test_settings)

    application.dependency_overrides[get_settings] = lambda: test_settings
    application.dependency_overrides[get_engine_settings] = lambda: engine_settings
    application.dependency_overrides[get_snapshot_store] = lambda: snapshot_store
    application.dependency_overrides[get_llm_client] = lambda: mock_llm_client
    application.dependency_overrides[get_introspector] = lambda: mock_introspector

    return application


@pytest_asyncio.fixture()
async def client(app, auth_headers: dict[str, str]) -> AsyncClient:
    """Yield an async httpx client bound to the test app.

    Uses ASGITransport so requests go directly to the ASGI app.  Every
    request carries a bearer token for owner ``user-1``.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", headers=auth_headers) as ac:
        yield ac


@pytest_asyncio.fixture()
async def anon_client(app) -> AsyncClient:
    """Client without an Authorization header."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
