"""Schema snapshot models.

A :class:`SchemaSnapshot` is the captured table/column structure of one
database, owned by a single identity and addressed by ``name``.  Its
``checksum`` is derived from ``tables`` on every access, so the stored
fingerprint can never drift from the content it describes.

:class:`SnapshotDocument` is the on-disk / object-storage layout::

    {"meta": {"name", "dialect", "updatedAt", "checksum"},
     "schema": {"tables": {"<table>": {"columns": [{"name", "type", "nullable"}]}}}}
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    computed_field,
    field_validator,
    model_validator,
)

from gate_engine.errors import InputError
from gate_engine.identifiers import normalize_identifier

logger = logging.getLogger(__name__)


class Dialect(str, Enum):
    """SQL dialects a snapshot can be captured from and prompted for."""

    POSTGRES = "postgres"
    MYSQL = "mysql"
    SQLITE = "sqlite"
    MSSQL = "mssql"
    SNOWFLAKE = "snowflake"
    BIGQUERY = "bigquery"


# ---------------------------------------------------------------------------
# Table structure
# ---------------------------------------------------------------------------


class ColumnDef(BaseModel):
    """A single column.  Only ``name`` matters for reference validation."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, description="Column name as declared.")
    data_type: str | None = Field(default=None, alias="type", description="Declared data type.")
    nullable: bool | None = Field(default=None, description="Whether the column allows NULLs.")

    @property
    def normalized_name(self) -> str:
        return normalize_identifier(self.name)


class ForeignKey(BaseModel):
    """A foreign-key edge reported by catalog introspection."""

    column: str
    ref_table: str
    ref_column: str


class TableDef(BaseModel):
    """Ordered column list of one table plus optional key metadata."""

    model_config = ConfigDict(populate_by_name=True)

    columns: list[ColumnDef] = Field(default_factory=list)
    primary_key: list[str] = Field(default_factory=list, alias="primaryKey")
    foreign_keys: list[ForeignKey] = Field(default_factory=list, alias="foreignKeys")

    @field_validator("columns", mode="before")
    @classmethod
    def _accept_bare_column_names(cls, value: Any) -> Any:
        # ``{"columns": ["id", "name"]}`` is shorthand for name-only columns.
        if isinstance(value, list):
            return [{"name": item} if isinstance(item, str) else item for item in value]
        return value

    @model_validator(mode="after")
    def _unique_column_names(self) -> TableDef:
        seen: set[str] = set()
        for column in self.columns:
            key = column.normalized_name
            if key in seen:
                raise ValueError(f"duplicate column '{column.name}'")
            seen.add(key)
        return self

    def column_names(self) -> list[str]:
        """Normalised column names in declaration order."""
        return [c.normalized_name for c in self.columns]

    def has_column(self, name: str) -> bool:
        wanted = normalize_identifier(name)
        return any(c.normalized_name == wanted for c in self.columns)


def _normalize_table_keys(tables: dict[str, TableDef]) -> dict[str, TableDef]:
    normalized: dict[str, TableDef] = {}
    for raw_name, table in tables.items():
        key = normalize_identifier(raw_name)
        if not key:
            raise ValueError("table names must not be empty")
        if key in normalized:
            raise ValueError(f"duplicate table '{raw_name}'")
        normalized[key] = table
    return normalized


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


class SchemaSnapshot(BaseModel):
    """A named, versioned capture of a database's tables and columns."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, description="Snapshot name, unique per owner.")
    dialect: Dialect = Field(default=Dialect.POSTGRES)
    tables: dict[str, TableDef] = Field(
        default_factory=dict,
        description="Tables keyed by normalised (lower-cased, unquoted) name.",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        alias="updatedAt",
    )

    @field_validator("tables", mode="after")
    @classmethod
    def _normalize_tables(cls, value: dict[str, TableDef]) -> dict[str, TableDef]:
        return _normalize_table_keys(value)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def checksum(self) -> str:
        """Fingerprint of the current ``tables`` content."""
        from gate_engine.diff.fingerprint import fingerprint_tables

        return fingerprint_tables(self.tables)

    def table(self, name: str) -> TableDef | None:
        return self.tables.get(normalize_identifier(name))

    def with_tables(self, tables: dict[str, TableDef], *, now: datetime | None = None) -> SchemaSnapshot:
        """Return a copy carrying *tables* and a fresh ``updated_at``."""
        return SchemaSnapshot(
            name=self.name,
            dialect=self.dialect,
            tables=tables,
            updated_at=now or datetime.now(UTC),
        )


# ---------------------------------------------------------------------------
# Persisted layout
# ---------------------------------------------------------------------------


class SnapshotMeta(BaseModel):
    """Metadata block of a persisted snapshot document."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    dialect: Dialect | None = None
    updated_at: datetime = Field(alias="updatedAt")
    checksum: str


class SchemaBody(BaseModel):
    """Schema block of a persisted snapshot document."""

    tables: dict[str, TableDef] = Field(default_factory=dict)

    @field_validator("tables", mode="after")
    @classmethod
    def _normalize_tables(cls, value: dict[str, TableDef]) -> dict[str, TableDef]:
        return _normalize_table_keys(value)


class SnapshotDocument(BaseModel):
    """A snapshot as written to storage: ``{"meta": ..., "schema": ...}``."""

    model_config = ConfigDict(populate_by_name=True)

    meta: SnapshotMeta
    schema_: SchemaBody = Field(default_factory=SchemaBody, alias="schema")

    @classmethod
    def from_snapshot(cls, snapshot: SchemaSnapshot) -> SnapshotDocument:
        return cls(
            meta=SnapshotMeta(
                name=snapshot.name,
                dialect=snapshot.dialect,
                updated_at=snapshot.updated_at,
                checksum=snapshot.checksum,
            ),
            schema_=SchemaBody(tables=snapshot.tables),
        )

    def to_snapshot(self) -> SchemaSnapshot:
        snapshot = SchemaSnapshot(
            name=self.meta.name,
            dialect=self.meta.dialect or Dialect.POSTGRES,
            tables=self.schema_.tables,
            updated_at=self.meta.updated_at,
        )
        if snapshot.checksum != self.meta.checksum:
            logger.warning(
                "Stored checksum for snapshot '%s' does not match its content (%s != %s)",
                self.meta.name,
                self.meta.checksum,
                snapshot.checksum,
            )
        return snapshot

    def to_json(self) -> dict[str, Any]:
        """Serialise with the persisted (camelCase) field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Payload parsing
# ---------------------------------------------------------------------------


def parse_tables_payload(payload: Any) -> dict[str, TableDef]:
    """Parse a user-supplied schema payload into normalised table definitions.

    Accepts either ``{"tables": {...}}`` (the shape produced by
    introspection and by persisted documents) or a bare table mapping.

    Raises
    ------
    InputError
        If *payload* is not an object or any table definition is invalid.
    """
    if not isinstance(payload, dict):
        raise InputError("Schema payload must be a JSON object")

    raw_tables = payload["tables"] if "tables" in payload else payload
    if not isinstance(raw_tables, dict):
        raise InputError("Schema 'tables' must be a JSON object keyed by table name")

    try:
        body = SchemaBody.model_validate({"tables": raw_tables})
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"][1:]) or "tables"
        raise InputError(f"Invalid schema at '{location}': {first['msg']}") from exc
    return body.tables
