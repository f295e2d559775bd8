"""Schema-aware validation of dotted references in generated SQL.

Each ``table_or_alias.column`` pair found by the reference extractor is
resolved to a base table through the statement's alias map (an identifier
with no alias entry is taken to be a table name already) and checked
against the snapshot:

* unknown table  -> ``"<table_or_alias>.<column>"`` is reported as written;
* unknown column -> ``"<base_table>.<column>"`` is reported.

The guarantee is narrow by design: every dotted pair that looks like a
qualified column reference either resolves to a declared column or is
flagged.  Expressions, correlated subqueries and computed columns are not
checked.
"""

from __future__ import annotations

import logging

from gate_engine.models.reports import Reference, ValidationResult
from gate_engine.models.schema import SchemaSnapshot
from gate_engine.parser.references import ReferenceExtractor

logger = logging.getLogger(__name__)


def resolve_table(alias_map: dict[str, str], reference: Reference) -> str:
    """Return the base table a reference points at."""
    return alias_map.get(reference.table_or_alias, reference.table_or_alias)


def validate_sql_references(
    schema: SchemaSnapshot,
    sql: str,
    extractor: ReferenceExtractor | None = None,
) -> ValidationResult:
    """Check every dotted reference in *sql* against *schema*.

    Parameters
    ----------
    schema:
        The snapshot to validate against.
    sql:
        Statement text.
    extractor:
        Extraction rules; defaults to the extractor for ``schema.dialect``.

    Returns
    -------
    ValidationResult
        ``ok`` is True iff no reference was unknown.  ``unknown`` keeps the
        order in which references appear in the statement.
    """
    if extractor is None:
        extractor = ReferenceExtractor.for_dialect(schema.dialect)

    alias_map, references = extractor.extract(sql)
    unknown: list[str] = []

    for ref in references:
        base = resolve_table(alias_map, ref)
        table = schema.table(base)
        if table is None:
            unknown.append(str(ref))
            continue
        if not table.has_column(ref.column):
            unknown.append(f"{base}.{ref.column}")

    if unknown:
        logger.info(
            "Snapshot '%s': %d of %d reference(s) unknown",
            schema.name,
            len(unknown),
            len(references),
        )
    return ValidationResult(ok=not unknown, unknown=unknown)
