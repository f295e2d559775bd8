"""Structural diff and versioning for schema snapshots.

:func:`compute_schema_diff` compares two snapshots table by table and
column by column (normalised names only; type and nullability changes are
out of scope).  :func:`plan_schema_update` applies the no-op rule used
before persisting a mutation: identical fingerprints mean nothing is
written and ``updated_at`` does not move.
"""

from __future__ import annotations

import logging
from datetime import datetime

from gate_engine.models.diff import SchemaDiff, SchemaUpdate, TableChange
from gate_engine.models.schema import SchemaSnapshot, TableDef

logger = logging.getLogger(__name__)


def compute_schema_diff(old: SchemaSnapshot, new: SchemaSnapshot) -> SchemaDiff:
    """Compare *old* against *new*.

    Parameters
    ----------
    old:
        The stored (base) snapshot.
    new:
        The candidate (target) snapshot.

    Returns
    -------
    SchemaDiff
        ``added`` and ``changed`` follow *new*'s table order; ``removed``
        follows *old*'s.  Within a change, ``added_columns`` follows the new
        column order and ``removed_columns`` the old one.
    """
    diff = SchemaDiff()

    for name in new.tables:
        if name not in old.tables:
            diff.added.append(name)

    for name in old.tables:
        if name not in new.tables:
            diff.removed.append(name)

    for name, new_table in new.tables.items():
        old_table = old.tables.get(name)
        if old_table is None:
            continue
        old_columns = old_table.column_names()
        new_columns = new_table.column_names()
        old_set, new_set = set(old_columns), set(new_columns)
        added_columns = [c for c in new_columns if c not in old_set]
        removed_columns = [c for c in old_columns if c not in new_set]
        if added_columns or removed_columns:
            diff.changed.append(
                TableChange(
                    table=name,
                    added_columns=added_columns,
                    removed_columns=removed_columns,
                )
            )

    return diff


def plan_schema_update(
    current: SchemaSnapshot,
    new_tables: dict[str, TableDef],
    *,
    stored_checksum: str | None = None,
    now: datetime | None = None,
) -> SchemaUpdate:
    """Decide whether *new_tables* changes *current*.

    Parameters
    ----------
    current:
        The stored snapshot.
    new_tables:
        Candidate table content.
    stored_checksum:
        The checksum recorded alongside *current* in storage.  When omitted
        the fingerprint of ``current.tables`` is used.
    now:
        Timestamp for the new version; defaults to the current UTC time.

    Returns
    -------
    SchemaUpdate
        ``updated=False`` with *current* untouched when the fingerprints
        match, otherwise ``updated=True`` with the new snapshot version.
    """
    baseline = stored_checksum or current.checksum
    # with_tables normalises table keys before the checksum is taken.
    snapshot = current.with_tables(new_tables, now=now)

    if snapshot.checksum == baseline:
        logger.debug("Snapshot '%s' unchanged (checksum %s)", current.name, baseline)
        return SchemaUpdate(updated=False, reason="No changes detected.", snapshot=current)

    logger.info(
        "Snapshot '%s' changed: checksum %s -> %s",
        current.name,
        baseline,
        snapshot.checksum,
    )
    return SchemaUpdate(updated=True, reason="Schema updated.", snapshot=snapshot)
