"""Request and response models for API endpoints.

These schemas validate request bodies and document responses in the
OpenAPI specification.  Field names follow the wire format
(``withSafety``, ``countTables``, ``updatedAt``) through aliases.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from gate_engine.models.diff import SchemaDiff
from gate_engine.models.reports import DangerReport, SQLReview, ValidationResult
from gate_engine.models.schema import Dialect, SnapshotMeta

# ---------------------------------------------------------------------------
# SQL generation and review
# ---------------------------------------------------------------------------


class GenerateSQLRequest(BaseModel):
    """Natural-language request to turn into SQL."""

    nl: str = Field(..., description="The user's request in natural language.")
    dialect: Dialect = Dialect.POSTGRES
    schema_: dict[str, Any] | str | None = Field(
        default=None,
        alias="schema",
        description="Inline schema: a table mapping, an object with 'tables', or free text.",
    )
    snapshot: str | None = Field(default=None, description="Name of a stored snapshot to use.")

    model_config = ConfigDict(populate_by_name=True)


class ReviewSQLRequest(BaseModel):
    """A statement to review without generating it."""

    sql: str
    dialect: Dialect = Dialect.POSTGRES
    schema_: dict[str, Any] | None = Field(default=None, alias="schema")
    snapshot: str | None = None

    model_config = ConfigDict(populate_by_name=True)


class SQLReviewResponse(BaseModel):
    """Review outcome, plus token usage when the statement was generated."""

    model_config = ConfigDict(populate_by_name=True)

    sql: str | None = None
    raw: str
    with_safety: str | None = Field(default=None, alias="withSafety")
    warnings: list[str] = Field(default_factory=list)
    blocked: bool = False
    reason: str | None = None
    danger: DangerReport
    validation: ValidationResult | None = None
    usage: dict[str, Any] | None = None

    @classmethod
    def from_review(cls, review: SQLReview, usage: dict[str, Any] | None = None) -> SQLReviewResponse:
        return cls(
            sql=review.sql,
            raw=review.raw,
            with_safety=review.with_safety,
            warnings=review.warnings,
            blocked=review.blocked,
            reason=review.reason,
            danger=review.danger,
            validation=review.validation,
            usage=usage,
        )


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


class IntrospectRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    db_url: str = Field(..., description="PostgreSQL connection URL of a catalog-only role.")
    schema_: str | None = Field(default=None, alias="schema")
    max_tables: int | None = Field(default=None, alias="maxTables")


class SaveSnapshotRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    schema_: Any = Field(..., alias="schema")
    dialect: Dialect = Dialect.POSTGRES


class NewSchemaRequest(BaseModel):
    new_schema: Any


class SnapshotItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    updated_at: datetime | None = Field(default=None, alias="updatedAt")
    size: int | None = None


class SnapshotListResponse(BaseModel):
    items: list[SnapshotItem] = Field(default_factory=list)


class SaveSnapshotResponse(BaseModel):
    ok: bool = True
    meta: SnapshotMeta


class DeleteSnapshotResponse(BaseModel):
    deleted: str


class DiffResponse(BaseModel):
    diff: SchemaDiff


class UpdateSnapshotResponse(BaseModel):
    updated: bool
    reason: str
    meta: SnapshotMeta | None = None
