"""Owner-scoped schema snapshot operations.

Wraps a :class:`SnapshotStore` with the snapshot semantics: documents are
validated on the way in, fingerprints are recomputed on every write, and an
update whose content fingerprint matches the stored checksum is a no-op
that writes nothing.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from gate_engine.diff.structural_diff import compute_schema_diff, plan_schema_update
from gate_engine.errors import SnapshotNotFoundError
from gate_engine.models.diff import SchemaDiff, SchemaUpdate
from gate_engine.models.schema import (
    Dialect,
    SchemaSnapshot,
    SnapshotDocument,
    SnapshotMeta,
    parse_tables_payload,
)

from gate_api.services.snapshot_store import SnapshotStore, StorageError, StoredItem, validate_snapshot_name

logger = logging.getLogger(__name__)


class SnapshotService:
    """Save, list, load, diff and update the snapshots of one owner.

    Parameters
    ----------
    store:
        Storage backend.
    owner_id:
        Identity that namespaces every snapshot this service touches.
    """

    def __init__(self, store: SnapshotStore, owner_id: str) -> None:
        self._store = store
        self._owner_id = owner_id

    async def list_snapshots(self) -> list[StoredItem]:
        """Stored snapshots, most recently updated first."""
        return await self._store.list_items(self._owner_id)

    async def save(
        self,
        name: str,
        schema: Any,
        dialect: Dialect = Dialect.POSTGRES,
        *,
        now: datetime | None = None,
    ) -> SnapshotMeta:
        """Create or overwrite snapshot *name* with *schema*."""
        validate_snapshot_name(name)
        tables = parse_tables_payload(schema)
        kwargs: dict[str, Any] = {"updated_at": now} if now is not None else {}
        snapshot = SchemaSnapshot(name=name, dialect=dialect, tables=tables, **kwargs)
        document = SnapshotDocument.from_snapshot(snapshot)
        await self._store.put(self._owner_id, name, document.to_json())
        logger.info("Saved snapshot '%s' (%d tables, checksum %s)", name, len(tables), snapshot.checksum)
        return document.meta

    async def get_document(self, name: str) -> dict[str, Any]:
        """The persisted document exactly as stored."""
        validate_snapshot_name(name)
        raw = await self._store.get(self._owner_id, name)
        if raw is None:
            raise SnapshotNotFoundError(self._owner_id, name)
        return raw

    async def load(self, name: str) -> tuple[SchemaSnapshot, str]:
        """Return the stored snapshot and the checksum recorded with it."""
        raw = await self.get_document(name)
        try:
            document = SnapshotDocument.model_validate(raw)
        except ValidationError as exc:
            raise StorageError(f"Stored snapshot '{name}' is malformed") from exc
        return document.to_snapshot(), document.meta.checksum

    async def delete(self, name: str) -> None:
        validate_snapshot_name(name)
        if not await self._store.delete(self._owner_id, name):
            raise SnapshotNotFoundError(self._owner_id, name)
        logger.info("Deleted snapshot '%s'", name)

    async def diff(self, name: str, new_schema: Any) -> SchemaDiff:
        """Structural diff of stored snapshot *name* against *new_schema*."""
        current, _ = await self.load(name)
        candidate = current.with_tables(parse_tables_payload(new_schema), now=current.updated_at)
        return compute_schema_diff(current, candidate)

    async def update(self, name: str, new_schema: Any, *, now: datetime | None = None) -> SchemaUpdate:
        """Replace the tables of *name*, unless nothing changed."""
        current, stored_checksum = await self.load(name)
        new_tables = parse_tables_payload(new_schema)
        result = plan_schema_update(current, new_tables, stored_checksum=stored_checksum, now=now)
        if result.updated:
            document = SnapshotDocument.from_snapshot(result.snapshot)
            await self._store.put(self._owner_id, name, document.to_json())
        return result

