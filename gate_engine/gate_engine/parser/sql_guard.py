"""SQL danger classifier -- keyword deny-list for mutating and DDL statements.

The classifier is **syntax-blind**: it matches whole words against the raw
statement text, case-insensitively.  A guarded keyword is reported wherever
it appears as a whole word, including inside string literals, comments and
quoted identifiers, so the classifier may over-block but never misses an
unquoted keyword.  Word boundaries follow regex ``\\b`` semantics, so
``UPDATED_AT`` or ``drop_reason`` never match ``UPDATE``/``DROP``.

Whether a dangerous statement is blocked, wrapped or merely annotated is a
caller decision (see :mod:`gate_engine.review`); this module only reports.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from gate_engine.errors import InputError
from gate_engine.models.reports import DangerReport

logger = logging.getLogger(__name__)

# Guard order is also the report order.
DEFAULT_GUARDED_KEYWORDS: tuple[str, ...] = (
    "DROP",
    "ALTER",
    "TRUNCATE",
    "CREATE",
    "GRANT",
    "REVOKE",
    "DELETE",
    "UPDATE",
    "INSERT",
    "MERGE",
)

_KEYWORD_RE = re.compile(r"^[A-Z_][A-Z0-9_]*(?: [A-Z_][A-Z0-9_]*)*$")
_SAVEPOINT_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")


def _compile_keyword(keyword: str) -> re.Pattern[str]:
    # Multi-word keywords ("COPY INTO") tolerate any whitespace between words.
    body = r"\s+".join(re.escape(part) for part in keyword.split(" "))
    return re.compile(rf"\b{body}\b", re.IGNORECASE)


class DangerClassifier:
    """Reports which guarded keywords a statement contains.

    The keyword set is fixed at construction so that a deployment (or a
    dialect) can swap the policy without touching module state.

    Parameters
    ----------
    keywords:
        Guarded keywords in report order.  Matching is case-insensitive;
        duplicates are dropped.
    """

    def __init__(self, keywords: Iterable[str] = DEFAULT_GUARDED_KEYWORDS) -> None:
        ordered: list[str] = []
        for raw in keywords:
            keyword = " ".join(raw.split()).upper()
            if not _KEYWORD_RE.match(keyword):
                raise InputError(f"Invalid guarded keyword: {raw!r}")
            if keyword not in ordered:
                ordered.append(keyword)
        if not ordered:
            raise InputError("At least one guarded keyword is required")
        self._patterns: tuple[tuple[str, re.Pattern[str]], ...] = tuple((kw, _compile_keyword(kw)) for kw in ordered)

    @property
    def keywords(self) -> tuple[str, ...]:
        return tuple(kw for kw, _ in self._patterns)

    def classify(self, sql: str) -> DangerReport:
        """Scan *sql* and return a :class:`DangerReport`."""
        matched = [kw for kw, pattern in self._patterns if pattern.search(sql)]
        if not matched:
            return DangerReport(blocked=False)

        logger.info("Guarded keyword(s) detected: %s", ", ".join(matched))
        return DangerReport(
            blocked=True,
            matched_keywords=matched,
            reason=f"Statement contains potentially destructive operations: {', '.join(matched)}",
        )


_DEFAULT_CLASSIFIER = DangerClassifier()


def classify_sql(sql: str, classifier: DangerClassifier | None = None) -> DangerReport:
    """Classify *sql* with *classifier* (the default keyword set when omitted)."""
    return (classifier or _DEFAULT_CLASSIFIER).classify(sql)


def wrap_with_savepoint(sql: str, savepoint_name: str = "ai_guard") -> str:
    """Wrap *sql* so that running it as-is rolls its effects back.

    The statement runs inside a transaction, after a savepoint, and is
    followed by ``ROLLBACK TO SAVEPOINT`` so a user can inspect its effect
    before deciding to run it for real.
    """
    if not _SAVEPOINT_NAME_RE.match(savepoint_name):
        raise InputError(f"Invalid savepoint name: {savepoint_name!r}")
    statement = sql.strip()
    if not statement.endswith(";"):
        statement += ";"
    return "\n".join(
        [
            "BEGIN;",
            f"SAVEPOINT {savepoint_name};",
            statement,
            f"ROLLBACK TO SAVEPOINT {savepoint_name};",
            "COMMIT;",
        ]
    )
