"""Schema snapshot endpoints: introspect, save, list, get, delete, diff and update."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter

from gate_engine.models.schema import SnapshotDocument

from gate_api.dependencies import IntrospectorDep, SnapshotServiceDep
from gate_api.schemas import (
    DeleteSnapshotResponse,
    DiffResponse,
    IntrospectRequest,
    NewSchemaRequest,
    SaveSnapshotRequest,
    SaveSnapshotResponse,
    SnapshotItem,
    SnapshotListResponse,
    UpdateSnapshotResponse,
)
from gate_api.services.schema_introspector import IntrospectionResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/schemas", tags=["schemas"])


@router.post("/introspect", response_model=IntrospectionResult)
async def introspect_schema(body: IntrospectRequest, introspector: IntrospectorDep) -> IntrospectionResult:
    """Read table metadata from a PostgreSQL catalog with a read-only session."""
    return await introspector.introspect(body.db_url, schema=body.schema_, max_tables=body.max_tables)


@router.get("", response_model=SnapshotListResponse)
async def list_snapshots(service: SnapshotServiceDep) -> SnapshotListResponse:
    """Return the caller's snapshots, most recently updated first."""
    items = await service.list_snapshots()
    return SnapshotListResponse(
        items=[SnapshotItem(name=item.name, updated_at=item.updated_at, size=item.size) for item in items]
    )


@router.post("", response_model=SaveSnapshotResponse)
async def save_snapshot(body: SaveSnapshotRequest, service: SnapshotServiceDep) -> SaveSnapshotResponse:
    """Create or overwrite a snapshot."""
    meta = await service.save(body.name, body.schema_, body.dialect)
    return SaveSnapshotResponse(meta=meta)


@router.get("/{name}")
async def get_snapshot(name: str, service: SnapshotServiceDep) -> dict[str, Any]:
    """Return the persisted snapshot document."""
    return await service.get_document(name)


@router.delete("/{name}", response_model=DeleteSnapshotResponse)
async def delete_snapshot(name: str, service: SnapshotServiceDep) -> DeleteSnapshotResponse:
    await service.delete(name)
    return DeleteSnapshotResponse(deleted=name)


@router.post("/{name}/diff", response_model=DiffResponse)
async def diff_snapshot(name: str, body: NewSchemaRequest, service: SnapshotServiceDep) -> DiffResponse:
    """Compare a stored snapshot with a candidate schema without saving."""
    return DiffResponse(diff=await service.diff(name, body.new_schema))


@router.post("/{name}/update", response_model=UpdateSnapshotResponse)
async def update_snapshot(name: str, body: NewSchemaRequest, service: SnapshotServiceDep) -> UpdateSnapshotResponse:
    """Replace a snapshot's tables; a no-op when the fingerprint is unchanged."""
    result = await service.update(name, body.new_schema)
    meta = SnapshotDocument.from_snapshot(result.snapshot).meta if result.updated else None
    return UpdateSnapshotResponse(updated=result.updated, reason=result.reason, meta=meta)
