"""Tests for the SQL generation and review endpoints."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient

from gate_engine.config import DangerPolicy, EngineSettings

from gate_api.services.llm_client import Completion, LLMError
from gate_api.services.snapshot_service import SnapshotService
from gate_api.services.snapshot_store import LocalSnapshotStore

# ---------------------------------------------------------------------------
# POST /api/v1/sql/generate
# ---------------------------------------------------------------------------


class TestGenerateSQL:
    """Natural-language requests are sent to the model and reviewed."""

    @pytest.mark.asyncio
    async def test_safe_statement_is_returned_with_usage(
        self, client: AsyncClient, mock_llm_client: AsyncMock
    ) -> None:
        resp = await client.post("/api/v1/sql/generate", json={"nl": "orders with customer names"})

        assert resp.status_code == 200
        data = resp.json()
        assert data["blocked"] is False
        assert data["sql"].startswith("SELECT o.id")
        assert data["raw"] == data["sql"]
        assert data["danger"] == {"blocked": False, "matchedKeywords": [], "reason": None}
        assert data["validation"] is None
        assert data["usage"]["total_tokens"] == 138

    @pytest.mark.asyncio
    async def test_missing_nl_is_rejected(self, client: AsyncClient, mock_llm_client: AsyncMock) -> None:
        resp = await client.post("/api/v1/sql/generate", json={"nl": "   "})

        assert resp.status_code == 400
        assert resp.json() == {"error": "Field 'nl' is required"}
        mock_llm_client.generate_sql.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_dangerous_statement_is_blocked(self, client: AsyncClient, mock_llm_client: AsyncMock) -> None:
        mock_llm_client.generate_sql.return_value = Completion(sql="DROP TABLE orders", usage={})

        resp = await client.post("/api/v1/sql/generate", json={"nl": "remove the orders table"})

        assert resp.status_code == 200
        data = resp.json()
        assert data["blocked"] is True
        assert data["sql"] is None
        assert data["raw"] == "DROP TABLE orders"
        assert data["danger"]["matchedKeywords"] == ["DROP"]
        assert "DROP" in data["reason"]

    @pytest.mark.asyncio
    async def test_inline_schema_is_rendered_and_validated(
        self,
        client: AsyncClient,
        mock_llm_client: AsyncMock,
        shop_schema: dict[str, Any],
    ) -> None:
        mock_llm_client.generate_sql.return_value = Completion(sql="SELECT o.total FROM orders o", usage={})

        resp = await client.post(
            "/api/v1/sql/generate",
            json={"nl": "order totals", "schema": shop_schema, "dialect": "mysql"},
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["validation"] == {"ok": False, "unknown": ["orders.total"]}
        assert data["warnings"] == ["Unknown references: orders.total"]
        assert data["sql"] == "SELECT o.total FROM orders o"

        kwargs = mock_llm_client.generate_sql.await_args.kwargs
        assert kwargs["dialect"].value == "mysql"
        assert "orders(id integer, cust_id integer)" in kwargs["schema_text"]

    @pytest.mark.asyncio
    async def test_free_text_schema_is_prompt_only(self, client: AsyncClient, mock_llm_client: AsyncMock) -> None:
        resp = await client.post(
            "/api/v1/sql/generate",
            json={"nl": "count orders", "schema": "orders(id, total)"},
        )

        assert resp.status_code == 200
        assert resp.json()["validation"] is None
        assert mock_llm_client.generate_sql.await_args.kwargs["schema_text"] == "orders(id, total)"

    @pytest.mark.asyncio
    async def test_named_snapshot_is_loaded(
        self,
        client: AsyncClient,
        mock_llm_client: AsyncMock,
        snapshot_store: LocalSnapshotStore,
        shop_schema: dict[str, Any],
    ) -> None:
        await SnapshotService(snapshot_store, "user-1").save("shop", shop_schema)

        resp = await client.post("/api/v1/sql/generate", json={"nl": "orders", "snapshot": "shop"})

        assert resp.status_code == 200
        assert resp.json()["validation"] == {"ok": True, "unknown": []}

    @pytest.mark.asyncio
    async def test_unknown_snapshot_returns_404(self, client: AsyncClient) -> None:
        resp = await client.post("/api/v1/sql/generate", json={"nl": "orders", "snapshot": "missing"})

        assert resp.status_code == 404
        assert resp.json() == {"error": "Schema snapshot 'missing' not found"}

    @pytest.mark.asyncio
    async def test_llm_failure_returns_502(self, client: AsyncClient, mock_llm_client: AsyncMock) -> None:
        mock_llm_client.generate_sql.side_effect = LLMError("LLM provider error 500")

        resp = await client.post("/api/v1/sql/generate", json={"nl": "anything"})

        assert resp.status_code == 502
        assert resp.json() == {"error": "LLM provider error 500"}


# ---------------------------------------------------------------------------
# POST /api/v1/sql/review
# ---------------------------------------------------------------------------


class TestReviewSQL:
    @pytest.mark.asyncio
    async def test_review_without_schema(self, client: AsyncClient, mock_llm_client: AsyncMock) -> None:
        resp = await client.post("/api/v1/sql/review", json={"sql": "  SELECT 1  "})

        assert resp.status_code == 200
        data = resp.json()
        assert data["sql"] == "SELECT 1"
        assert data["usage"] is None
        mock_llm_client.generate_sql.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_statement_is_rejected(self, client: AsyncClient) -> None:
        resp = await client.post("/api/v1/sql/review", json={"sql": ""})

        assert resp.status_code == 400
        assert resp.json() == {"error": "SQL statement must not be empty"}

    @pytest.mark.asyncio
    async def test_wrap_policy_returns_savepoint_copy(self, app, client: AsyncClient) -> None:
        from gate_api.dependencies import get_engine_settings

        wrap_settings = EngineSettings(_env_file=None, danger_policy=DangerPolicy.WRAP)
        app.dependency_overrides[get_engine_settings] = lambda: wrap_settings

        resp = await client.post("/api/v1/sql/review", json={"sql": "DELETE FROM orders WHERE id = 1"})

        data = resp.json()
        assert data["blocked"] is False
        assert data["sql"] == "DELETE FROM orders WHERE id = 1"
        assert "SAVEPOINT ai_guard;" in data["withSafety"]
        assert data["warnings"] == ["Potentially destructive operations detected: DELETE"]

    @pytest.mark.asyncio
    async def test_dangerous_statement_skips_validation(
        self, client: AsyncClient, shop_schema: dict[str, Any]
    ) -> None:
        resp = await client.post(
            "/api/v1/sql/review",
            json={"sql": "UPDATE orders SET bogus = 1", "schema": shop_schema},
        )

        data = resp.json()
        assert data["blocked"] is True
        assert data["validation"] is None

    @pytest.mark.asyncio
    async def test_unknown_table_is_reported_as_written(
        self, client: AsyncClient, shop_schema: dict[str, Any]
    ) -> None:
        resp = await client.post(
            "/api/v1/sql/review",
            json={"sql": "SELECT p.sku FROM products p", "schema": shop_schema},
        )

        assert resp.json()["validation"] == {"ok": False, "unknown": ["p.sku"]}

    @pytest.mark.asyncio
    async def test_invalid_inline_schema_is_rejected(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/api/v1/sql/review",
            json={"sql": "SELECT 1", "schema": {"tables": ["orders"]}},
        )

        assert resp.status_code == 400
        assert "tables" in resp.json()["error"]
