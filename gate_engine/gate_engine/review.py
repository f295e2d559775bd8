"""Review orchestration for generated SQL.

Sequences the danger classifier and, for statements that pass it, the
schema validator, then applies the configured :class:`DangerPolicy`:

* ``block``    -> no statement is returned, ``blocked`` is set;
* ``wrap``     -> the statement is returned with a savepoint-wrapped copy;
* ``annotate`` -> the statement is returned with a warning only.

Schema validation is skipped for dangerous statements.  Unknown references
are advisory unless ``block_on_unknown_references`` is enabled.
"""

from __future__ import annotations

import logging

from gate_engine.config import DangerPolicy, EngineSettings
from gate_engine.contracts.schema_validator import validate_sql_references
from gate_engine.errors import InputError
from gate_engine.models.reports import SQLReview
from gate_engine.models.schema import SchemaSnapshot
from gate_engine.parser.references import ReferenceExtractor
from gate_engine.parser.sql_guard import DangerClassifier, wrap_with_savepoint

logger = logging.getLogger(__name__)


def review_sql(
    sql: str,
    snapshot: SchemaSnapshot | None = None,
    *,
    settings: EngineSettings | None = None,
    classifier: DangerClassifier | None = None,
    extractor: ReferenceExtractor | None = None,
) -> SQLReview:
    """Classify and validate one statement.

    Parameters
    ----------
    sql:
        The statement to review.
    snapshot:
        Schema to validate references against.  Validation is skipped when
        omitted.
    settings:
        Policy settings; defaults to :class:`EngineSettings` built from the
        environment.
    classifier:
        Keyword classifier; defaults to one built from
        ``settings.guarded_keywords``.
    extractor:
        Reference extractor; defaults to the one for the snapshot's dialect.

    Raises
    ------
    InputError
        If *sql* is empty or whitespace.
    """
    if not sql or not sql.strip():
        raise InputError("SQL statement must not be empty")

    settings = settings or EngineSettings()
    classifier = classifier or settings.build_classifier()
    raw = sql.strip()

    danger = classifier.classify(raw)
    if danger.blocked:
        policy = settings.danger_policy
        logger.warning(
            "Dangerous statement (policy=%s): %s",
            policy.value,
            ", ".join(danger.matched_keywords),
        )
        if policy is DangerPolicy.BLOCK:
            return SQLReview(raw=raw, blocked=True, reason=danger.reason, danger=danger)

        warning = f"Potentially destructive operations detected: {', '.join(danger.matched_keywords)}"
        with_safety = wrap_with_savepoint(raw, settings.savepoint_name) if policy is DangerPolicy.WRAP else None
        return SQLReview(sql=raw, raw=raw, with_safety=with_safety, warnings=[warning], danger=danger)

    if snapshot is None:
        return SQLReview(sql=raw, raw=raw, danger=danger)

    validation = validate_sql_references(snapshot, raw, extractor)
    if validation.ok:
        return SQLReview(sql=raw, raw=raw, danger=danger, validation=validation)

    warning = f"Unknown references: {', '.join(validation.unknown)}"
    if settings.block_on_unknown_references:
        return SQLReview(
            raw=raw,
            blocked=True,
            reason=warning,
            warnings=[warning],
            danger=danger,
            validation=validation,
        )
    return SQLReview(sql=raw, raw=raw, warnings=[warning], danger=danger, validation=validation)
