"""Pydantic models for schema snapshots, diffs and review results."""

from gate_engine.models.diff import SchemaDiff, SchemaUpdate, TableChange
from gate_engine.models.reports import (
    DangerReport,
    ExtractedReferences,
    Reference,
    SQLReview,
    ValidationResult,
)
from gate_engine.models.schema import (
    ColumnDef,
    Dialect,
    ForeignKey,
    SchemaBody,
    SchemaSnapshot,
    SnapshotDocument,
    SnapshotMeta,
    TableDef,
    parse_tables_payload,
)

__all__ = [
    "ColumnDef",
    "DangerReport",
    "Dialect",
    "ExtractedReferences",
    "ForeignKey",
    "Reference",
    "SQLReview",
    "SchemaBody",
    "SchemaDiff",
    "SchemaSnapshot",
    "SchemaUpdate",
    "SnapshotDocument",
    "SnapshotMeta",
    "TableChange",
    "TableDef",
    "ValidationResult",
    "parse_tables_payload",
]
