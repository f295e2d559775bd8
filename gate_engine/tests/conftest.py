"""Shared fixtures for gate_engine tests."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

import pytest

from gate_engine.models.schema import SchemaSnapshot, TableDef

FIXED_TIME = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


def _build_snapshot(tables: dict[str, list[str]], name: str = "shop", **kwargs) -> SchemaSnapshot:
    kwargs.setdefault("updated_at", FIXED_TIME)
    return SchemaSnapshot(
        name=name,
        tables={t: TableDef(columns=cols) for t, cols in tables.items()},
        **kwargs,
    )


@pytest.fixture()
def make_snapshot() -> Callable[..., SchemaSnapshot]:
    """Factory building a snapshot from ``{table: [column, ...]}``."""
    return _build_snapshot


@pytest.fixture()
def fixed_time() -> datetime:
    return FIXED_TIME


@pytest.fixture()
def shop_snapshot() -> SchemaSnapshot:
    return _build_snapshot({"orders": ["id", "cust_id"], "customers": ["id", "name"]})
