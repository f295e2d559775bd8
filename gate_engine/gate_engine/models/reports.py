"""Result models produced by the danger classifier, the reference extractor,
the schema validator and the review orchestrator."""

from __future__ import annotations

from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field


class Reference(NamedTuple):
    """A ``table_or_alias.column`` occurrence, both parts normalised."""

    table_or_alias: str
    column: str

    def __str__(self) -> str:
        return f"{self.table_or_alias}.{self.column}"


class ExtractedReferences(NamedTuple):
    """Alias map and references recovered from one SQL text."""

    alias_map: dict[str, str]
    references: list[Reference]


class DangerReport(BaseModel):
    """Outcome of scanning a statement for mutating or DDL keywords."""

    model_config = ConfigDict(populate_by_name=True)

    blocked: bool = Field(..., description="True when any guarded keyword matched.")
    matched_keywords: list[str] = Field(
        default_factory=list,
        alias="matchedKeywords",
        description="Upper-case keywords found, in guard order, without duplicates.",
    )
    reason: str | None = Field(default=None, description="Present only when blocked.")


class ValidationResult(BaseModel):
    """Outcome of checking dotted references against a schema snapshot."""

    ok: bool
    unknown: list[str] = Field(
        default_factory=list,
        description="'table.column' strings that did not resolve, in discovery order.",
    )


class SQLReview(BaseModel):
    """Decision for one generated statement after danger and schema checks."""

    model_config = ConfigDict(populate_by_name=True)

    sql: str | None = Field(
        default=None,
        description="Statement safe to show to the user; None when blocked.",
    )
    raw: str = Field(..., description="The statement exactly as reviewed.")
    with_safety: str | None = Field(
        default=None,
        alias="withSafety",
        description="Savepoint-wrapped statement under the 'wrap' policy.",
    )
    blocked: bool = False
    reason: str | None = None
    warnings: list[str] = Field(default_factory=list)
    danger: DangerReport
    validation: ValidationResult | None = Field(
        default=None,
        description="None when no snapshot was supplied or the statement was dangerous.",
    )
