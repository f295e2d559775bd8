"""SQL endpoints: generate a statement with the language model, or review one."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter

from gate_engine.errors import InputError
from gate_engine.models.schema import Dialect, SchemaSnapshot, parse_tables_payload
from gate_engine.prompts import render_schema_text
from gate_engine.review import review_sql

from gate_api.dependencies import EngineSettingsDep, LLMClientDep, SnapshotServiceDep
from gate_api.schemas import GenerateSQLRequest, ReviewSQLRequest, SQLReviewResponse
from gate_api.services.snapshot_service import SnapshotService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sql", tags=["sql"])

_INLINE_SNAPSHOT_NAME = "inline"


async def _resolve_schema(
    service: SnapshotService,
    *,
    schema: dict[str, Any] | str | None,
    snapshot_name: str | None,
    dialect: Dialect,
) -> tuple[SchemaSnapshot | None, str | None]:
    """Return the snapshot to validate against and the schema text for the prompt.

    A named snapshot wins over an inline schema.  Free-text schemas are
    passed to the prompt but cannot be validated against.
    """
    if snapshot_name:
        snapshot, _ = await service.load(snapshot_name)
        return snapshot, render_schema_text(snapshot)
    if isinstance(schema, dict):
        snapshot = SchemaSnapshot(name=_INLINE_SNAPSHOT_NAME, dialect=dialect, tables=parse_tables_payload(schema))
        return snapshot, render_schema_text(snapshot)
    if isinstance(schema, str) and schema.strip():
        return None, schema
    return None, None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/generate", response_model=SQLReviewResponse)
async def generate_sql(
    body: GenerateSQLRequest,
    llm: LLMClientDep,
    service: SnapshotServiceDep,
    engine_settings: EngineSettingsDep,
) -> SQLReviewResponse:
    """Generate SQL for a natural-language request and review it.

    Dangerous statements are handled per the configured danger policy; the
    raw model output is always returned in ``raw``.
    """
    if not body.nl or not body.nl.strip():
        raise InputError("Field 'nl' is required")

    snapshot, schema_text = await _resolve_schema(
        service,
        schema=body.schema_,
        snapshot_name=body.snapshot,
        dialect=body.dialect,
    )
    completion = await llm.generate_sql(body.nl, dialect=body.dialect, schema_text=schema_text)
    review = review_sql(completion.sql, snapshot, settings=engine_settings)
    return SQLReviewResponse.from_review(review, completion.usage)


@router.post("/review", response_model=SQLReviewResponse)
async def review_statement(
    body: ReviewSQLRequest,
    service: SnapshotServiceDep,
    engine_settings: EngineSettingsDep,
) -> SQLReviewResponse:
    """Classify and validate a statement without calling the language model."""
    snapshot, _ = await _resolve_schema(
        service,
        schema=body.schema_,
        snapshot_name=body.snapshot,
        dialect=body.dialect,
    )
    review = review_sql(body.sql, snapshot, settings=engine_settings)
    return SQLReviewResponse.from_review(review)
