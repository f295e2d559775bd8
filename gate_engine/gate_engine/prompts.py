"""Versioned prompt templates for SQL generation.

The builder is a leaf: it turns a dialect, an optional schema and the
user's request into the two messages sent to the language model.  It holds
no state and performs no I/O.  Bump a template's ``version`` whenever its
wording changes so generated statements can be traced back to the prompt
that produced them.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass

from gate_engine.models.schema import Dialect, SchemaSnapshot, TableDef

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PromptTemplate:
    """An immutable, versioned prompt template."""

    key: str
    version: str
    content: str
    description: str


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

PROMPT_REGISTRY: dict[str, PromptTemplate] = {}


def _register(template: PromptTemplate) -> PromptTemplate:
    PROMPT_REGISTRY[template.key] = template
    return template


def get_prompt(key: str) -> PromptTemplate:
    """Retrieve a registered prompt template by key.

    Raises
    ------
    KeyError
        If no template is registered under *key*.
    """
    try:
        return PROMPT_REGISTRY[key]
    except KeyError:
        raise KeyError(f"Unknown prompt key '{key}'. Registered keys: {sorted(PROMPT_REGISTRY)}")


# ---------------------------------------------------------------------------
# Registered templates
# ---------------------------------------------------------------------------

GENERATE_SQL_SYSTEM = _register(
    PromptTemplate(
        key="generate_sql_system",
        version="v1",
        content=(
            "You are an expert SQL generator.  "
            "Target SQL dialect: {dialect}.  "
            "Return exactly one SQL statement and nothing else: no explanations, "
            "no markdown code fences, no comments.  "
            "Use only the tables and columns present in the schema when one is given.  "
            "Qualify columns with a table name or alias when more than one table is involved, "
            "and do not prefix table names with a schema name.  "
            "Never generate DROP, ALTER, TRUNCATE, GRANT or REVOKE unless the request explicitly asks for it."
        ),
        description="System prompt for natural-language to SQL generation.",
    )
)

GENERATE_SQL_USER = _register(
    PromptTemplate(
        key="generate_sql_user",
        version="v1",
        content=(
            "Write a SQL query for the {dialect} dialect.\n"
            "Database schema:\n"
            "{schema_text}\n"
            "User request:\n"
            '"{request}"'
        ),
        description="User message carrying the schema text and the request.",
    )
)

EMPTY_SCHEMA_TEXT = "(empty)"


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def _dialect_label(dialect: Dialect | str) -> str:
    value = dialect.value if isinstance(dialect, Dialect) else str(dialect)
    return value.upper()


def build_system_prompt(dialect: Dialect | str = Dialect.POSTGRES) -> str:
    return GENERATE_SQL_SYSTEM.content.format(dialect=_dialect_label(dialect))


def build_user_prompt(request: str, schema_text: str | None, dialect: Dialect | str = Dialect.POSTGRES) -> str:
    return GENERATE_SQL_USER.content.format(
        dialect=_dialect_label(dialect),
        schema_text=schema_text or EMPTY_SCHEMA_TEXT,
        request=request.strip(),
    )


def _render_table(name: str, table: TableDef) -> str:
    parts: list[str] = []
    for column in table.columns:
        text = column.name
        if column.data_type:
            text += f" {column.data_type}"
        if column.nullable is False:
            text += " NOT NULL"
        parts.append(text)
    line = f"{name}({', '.join(parts)})"
    if table.primary_key:
        line += f" PK({', '.join(table.primary_key)})"
    for fk in table.foreign_keys:
        line += f" FK({fk.column} -> {fk.ref_table}.{fk.ref_column})"
    return line


def render_schema_text(tables: Mapping[str, TableDef] | SchemaSnapshot) -> str:
    """Render tables as compact prompt text, one ``table(col type, ...)`` per line.

    >>> render_schema_text({"orders": TableDef(columns=["id"])})
    'orders(id)'
    """
    if isinstance(tables, SchemaSnapshot):
        tables = tables.tables
    if not tables:
        return EMPTY_SCHEMA_TEXT
    return "\n".join(_render_table(name, table) for name, table in tables.items())


def build_messages(
    request: str,
    *,
    dialect: Dialect | str = Dialect.POSTGRES,
    schema_text: str | None = None,
) -> list[dict[str, str]]:
    """Chat messages for one generation call."""
    logger.debug(
        "Building prompt %s/%s for dialect %s",
        GENERATE_SQL_SYSTEM.key,
        GENERATE_SQL_SYSTEM.version,
        _dialect_label(dialect),
    )
    return [
        {"role": "system", "content": build_system_prompt(dialect)},
        {"role": "user", "content": build_user_prompt(request, schema_text, dialect)},
    ]
