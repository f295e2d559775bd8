"""Tests for the schema snapshot endpoints."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from gate_engine.models.schema import TableDef

from gate_api.services.schema_introspector import (
    CatalogAccessError,
    IntrospectionError,
    IntrospectionResult,
)

# ---------------------------------------------------------------------------
# Save / list / get / delete
# ---------------------------------------------------------------------------


class TestSnapshotCrud:
    @pytest.mark.asyncio
    async def test_save_returns_meta_with_checksum(self, client: AsyncClient, shop_schema: dict[str, Any]) -> None:
        resp = await client.post("/api/v1/schemas", json={"name": "shop", "schema": shop_schema})

        assert resp.status_code == 200
        data = resp.json()
        assert data["ok"] is True
        assert data["meta"]["name"] == "shop"
        assert data["meta"]["dialect"] == "postgres"
        assert len(data["meta"]["checksum"]) == 8
        assert "updatedAt" in data["meta"]

    @pytest.mark.asyncio
    async def test_get_returns_persisted_document(self, client: AsyncClient, shop_schema: dict[str, Any]) -> None:
        saved = (await client.post("/api/v1/schemas", json={"name": "shop", "schema": shop_schema})).json()

        resp = await client.get("/api/v1/schemas/shop")

        assert resp.status_code == 200
        document = resp.json()
        assert document["meta"]["checksum"] == saved["meta"]["checksum"]
        assert list(document["schema"]["tables"]) == ["orders", "customers"]
        assert document["schema"]["tables"]["orders"]["columns"][0] == {"name": "id", "type": "integer"}

    @pytest.mark.asyncio
    async def test_list_includes_saved_snapshots(self, client: AsyncClient, shop_schema: dict[str, Any]) -> None:
        await client.post("/api/v1/schemas", json={"name": "shop", "schema": shop_schema})

        resp = await client.get("/api/v1/schemas")

        assert resp.status_code == 200
        items = resp.json()["items"]
        assert [item["name"] for item in items] == ["shop"]
        assert items[0]["size"] > 0
        assert items[0]["updatedAt"] is not None

    @pytest.mark.asyncio
    async def test_invalid_name_is_rejected(self, client: AsyncClient, shop_schema: dict[str, Any]) -> None:
        resp = await client.post("/api/v1/schemas", json={"name": "../etc", "schema": shop_schema})

        assert resp.status_code == 400
        assert "Invalid snapshot name" in resp.json()["error"]

    @pytest.mark.asyncio
    async def test_non_object_schema_is_rejected(self, client: AsyncClient) -> None:
        resp = await client.post("/api/v1/schemas", json={"name": "shop", "schema": "orders(id)"})

        assert resp.status_code == 400
        assert resp.json() == {"error": "Schema payload must be a JSON object"}

    @pytest.mark.asyncio
    async def test_get_missing_returns_404(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/schemas/nope")

        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_delete(self, client: AsyncClient, shop_schema: dict[str, Any]) -> None:
        await client.post("/api/v1/schemas", json={"name": "shop", "schema": shop_schema})

        resp = await client.delete("/api/v1/schemas/shop")
        assert resp.status_code == 200
        assert resp.json() == {"deleted": "shop"}

        assert (await client.get("/api/v1/schemas/shop")).status_code == 404
        assert (await client.delete("/api/v1/schemas/shop")).status_code == 404

    @pytest.mark.asyncio
    async def test_snapshots_are_isolated_per_owner(
        self,
        app,
        client: AsyncClient,
        make_token,
        shop_schema: dict[str, Any],
    ) -> None:
        await client.post("/api/v1/schemas", json={"name": "shop", "schema": shop_schema})

        other_headers = {"Authorization": f"Bearer {make_token(sub='user-2')}"}
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            headers=other_headers,
        ) as other:
            assert (await other.get("/api/v1/schemas")).json() == {"items": []}
            assert (await other.get("/api/v1/schemas/shop")).status_code == 404


# ---------------------------------------------------------------------------
# Diff / update
# ---------------------------------------------------------------------------


class TestSnapshotDiffAndUpdate:
    @pytest.mark.asyncio
    async def test_diff_reports_structural_changes(self, client: AsyncClient, shop_schema: dict[str, Any]) -> None:
        await client.post("/api/v1/schemas", json={"name": "shop", "schema": shop_schema})
        new_schema = {
            "tables": {
                "orders": {"columns": ["id", "cust_id", "total"]},
                "invoices": {"columns": ["id"]},
            }
        }

        resp = await client.post("/api/v1/schemas/shop/diff", json={"new_schema": new_schema})

        assert resp.status_code == 200
        assert resp.json()["diff"] == {
            "added": ["invoices"],
            "removed": ["customers"],
            "changed": [{"table": "orders", "addedColumns": ["total"], "removedColumns": []}],
        }

    @pytest.mark.asyncio
    async def test_diff_does_not_persist(self, client: AsyncClient, shop_schema: dict[str, Any]) -> None:
        saved = (await client.post("/api/v1/schemas", json={"name": "shop", "schema": shop_schema})).json()

        await client.post("/api/v1/schemas/shop/diff", json={"new_schema": {"orders": {"columns": ["id"]}}})

        document = (await client.get("/api/v1/schemas/shop")).json()
        assert document["meta"]["checksum"] == saved["meta"]["checksum"]

    @pytest.mark.asyncio
    async def test_update_with_identical_content_is_noop(
        self, client: AsyncClient, shop_schema: dict[str, Any]
    ) -> None:
        saved = (await client.post("/api/v1/schemas", json={"name": "shop", "schema": shop_schema})).json()

        resp = await client.post("/api/v1/schemas/shop/update", json={"new_schema": shop_schema})

        assert resp.status_code == 200
        assert resp.json() == {"updated": False, "reason": "No changes detected.", "meta": None}
        document = (await client.get("/api/v1/schemas/shop")).json()
        assert document["meta"]["updatedAt"] == saved["meta"]["updatedAt"]

    @pytest.mark.asyncio
    async def test_update_with_new_content_persists(self, client: AsyncClient, shop_schema: dict[str, Any]) -> None:
        saved = (await client.post("/api/v1/schemas", json={"name": "shop", "schema": shop_schema})).json()

        resp = await client.post(
            "/api/v1/schemas/shop/update",
            json={"new_schema": {"orders": {"columns": ["id"]}}},
        )

        data = resp.json()
        assert data["updated"] is True
        assert data["reason"] == "Schema updated."
        assert data["meta"]["checksum"] != saved["meta"]["checksum"]
        document = (await client.get("/api/v1/schemas/shop")).json()
        assert document["meta"]["checksum"] == data["meta"]["checksum"]
        assert list(document["schema"]["tables"]) == ["orders"]

    @pytest.mark.asyncio
    async def test_update_missing_snapshot_returns_404(self, client: AsyncClient) -> None:
        resp = await client.post("/api/v1/schemas/nope/update", json={"new_schema": {}})

        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# POST /api/v1/schemas/introspect
# ---------------------------------------------------------------------------


class TestIntrospect:
    @pytest.mark.asyncio
    async def test_returns_catalog_tables(self, client: AsyncClient, mock_introspector: AsyncMock) -> None:
        mock_introspector.introspect.return_value = IntrospectionResult(
            schema="public",
            count_tables=1,
            tables={"orders": TableDef(columns=["id"], primary_key=["id"])},
        )

        resp = await client.post(
            "/api/v1/schemas/introspect",
            json={"db_url": "postgresql://catalog@db/app", "maxTables": 10},
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["schema"] == "public"
        assert data["countTables"] == 1
        assert data["tables"]["orders"]["primaryKey"] == ["id"]
        mock_introspector.introspect.assert_awaited_once_with(
            "postgresql://catalog@db/app", schema=None, max_tables=10
        )

    @pytest.mark.asyncio
    async def test_data_reading_role_returns_403(self, client: AsyncClient, mock_introspector: AsyncMock) -> None:
        mock_introspector.introspect.side_effect = CatalogAccessError("role can read data")

        resp = await client.post("/api/v1/schemas/introspect", json={"db_url": "postgresql://app@db/app"})

        assert resp.status_code == 403
        assert resp.json() == {"blocked": True, "code": "ROLE_NOT_CATALOG_ONLY", "reason": "role can read data"}

    @pytest.mark.asyncio
    async def test_connection_failure_returns_502(self, client: AsyncClient, mock_introspector: AsyncMock) -> None:
        mock_introspector.introspect.side_effect = IntrospectionError("Introspection failed: refused")

        resp = await client.post("/api/v1/schemas/introspect", json={"db_url": "postgresql://x@db/app"})

        assert resp.status_code == 502


# ---------------------------------------------------------------------------
# Authentication and health
# ---------------------------------------------------------------------------


class TestAuthAndHealth:
    @pytest.mark.asyncio
    async def test_health_is_public(self, anon_client: AsyncClient) -> None:
        resp = await anon_client.get("/api/v1/health")

        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"
        assert resp.json()["llm"] == "configured"
        assert resp.json()["storage"] == "local"

    @pytest.mark.asyncio
    async def test_missing_token_returns_401(self, anon_client: AsyncClient) -> None:
        resp = await anon_client.get("/api/v1/schemas")

        assert resp.status_code == 401
        assert resp.json() == {"error": "unauthorized"}

    @pytest.mark.asyncio
    async def test_bad_signature_returns_invalid_jwt(self, anon_client: AsyncClient, make_token) -> None:
        token = make_token(secret="some-other-secret")

        resp = await anon_client.get("/api/v1/schemas", headers={"Authorization": f"Bearer {token}"})

        assert resp.status_code == 401
        assert resp.json() == {"error": "invalid_jwt"}

    @pytest.mark.asyncio
    async def test_correlation_id_is_echoed(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/health", headers={"X-Correlation-ID": "abc-123"})

        assert resp.headers["X-Correlation-ID"] == "abc-123"
