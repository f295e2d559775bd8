"""Diff models for comparing two schema snapshots.

List order is part of the contract: ``added`` and every ``changed`` entry
follow the new snapshot's table/column order, ``removed`` and
``removed_columns`` follow the old snapshot's order.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from gate_engine.models.schema import SchemaSnapshot


class TableChange(BaseModel):
    """Column-level change for a table present in both snapshots."""

    model_config = ConfigDict(populate_by_name=True)

    table: str = Field(..., description="Normalised table name.")
    added_columns: list[str] = Field(
        default_factory=list,
        alias="addedColumns",
        description="Columns present in the new snapshot only.",
    )
    removed_columns: list[str] = Field(
        default_factory=list,
        alias="removedColumns",
        description="Columns present in the old snapshot only.",
    )


class SchemaDiff(BaseModel):
    """Structural difference between an old and a new snapshot."""

    added: list[str] = Field(default_factory=list, description="Tables in new but not old.")
    removed: list[str] = Field(default_factory=list, description="Tables in old but not new.")
    changed: list[TableChange] = Field(
        default_factory=list,
        description="Tables in both whose column sets differ.",
    )

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed)


class SchemaUpdate(BaseModel):
    """Outcome of applying new table content to a stored snapshot."""

    updated: bool = Field(..., description="False when the fingerprint did not change.")
    reason: str = Field(default="", description="Human-readable outcome.")
    snapshot: SchemaSnapshot = Field(
        ...,
        description="The snapshot to persist (unchanged when ``updated`` is False).",
    )
