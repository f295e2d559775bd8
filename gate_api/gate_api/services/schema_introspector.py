"""Catalog-only schema introspection for PostgreSQL.

Reads table, column, primary-key and foreign-key metadata from
``information_schema`` inside a read-only, time-boxed transaction that is
always rolled back.  Before reading anything the connected role is
checked: if it can ``SELECT`` from any non-catalog table the request is
refused (:class:`CatalogAccessError`) unless enforcement is disabled, in
which case the result carries a warning instead.

:func:`build_tables` assembles the catalog rows into table definitions and
performs no I/O; :func:`read_catalog` runs the queries on an open
connection; :class:`CatalogIntrospector` owns engine setup and teardown.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, create_async_engine
from sqlalchemy.pool import NullPool

from gate_engine.errors import InputError
from gate_engine.models.schema import ColumnDef, Dialect, ForeignKey, TableDef

logger = logging.getLogger(__name__)

CATALOG_ONLY_CODE = "ROLE_NOT_CATALOG_ONLY"

_TIMEOUT_RE = re.compile(r"^\d+(?:ms|s|min)?$")

# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

_HAS_DATA_ACCESS_SQL = text(
    """
    SELECT EXISTS (
        SELECT 1
        FROM information_schema.tables t
        WHERE t.table_schema NOT IN ('pg_catalog', 'information_schema', 'pg_toast')
          AND has_table_privilege(
              current_user,
              quote_ident(t.table_schema) || '.' || quote_ident(t.table_name),
              'SELECT'
          )
    ) AS has_select
    """
)

_TABLES_SQL = text(
    """
    SELECT table_name
    FROM information_schema.tables
    WHERE table_schema = :schema
      AND table_type = 'BASE TABLE'
    ORDER BY table_name
    LIMIT :limit
    """
)

_COLUMNS_SQL = text(
    """
    SELECT table_name, column_name, data_type, is_nullable
    FROM information_schema.columns
    WHERE table_schema = :schema
      AND table_name = ANY(:tables)
    ORDER BY table_name, ordinal_position
    """
)

_PRIMARY_KEYS_SQL = text(
    """
    SELECT tc.table_name, kcu.column_name
    FROM information_schema.table_constraints AS tc
    JOIN information_schema.key_column_usage AS kcu
      ON tc.constraint_name = kcu.constraint_name
     AND tc.table_schema = kcu.table_schema
    WHERE tc.constraint_type = 'PRIMARY KEY'
      AND tc.table_schema = :schema
      AND tc.table_name = ANY(:tables)
    ORDER BY tc.table_name, kcu.ordinal_position
    """
)

_FOREIGN_KEYS_SQL = text(
    """
    SELECT tc.table_name,
           kcu.column_name,
           ccu.table_name AS foreign_table_name,
           ccu.column_name AS foreign_column_name
    FROM information_schema.table_constraints AS tc
    JOIN information_schema.key_column_usage AS kcu
      ON tc.constraint_name = kcu.constraint_name
     AND tc.table_schema = kcu.table_schema
    JOIN information_schema.constraint_column_usage AS ccu
      ON ccu.constraint_name = tc.constraint_name
     AND ccu.table_schema = tc.table_schema
    WHERE tc.constraint_type = 'FOREIGN KEY'
      AND tc.table_schema = :schema
      AND tc.table_name = ANY(:tables)
    ORDER BY tc.table_name, kcu.ordinal_position
    """
)


# ---------------------------------------------------------------------------
# Errors and results
# ---------------------------------------------------------------------------


class IntrospectionError(Exception):
    """The database could not be reached or a catalog query failed."""


class CatalogAccessError(Exception):
    """The connected role can read user data and enforcement is on."""

    code = CATALOG_ONLY_CODE

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class CatalogWarning(BaseModel):
    code: str
    reason: str


class IntrospectionResult(BaseModel):
    """Catalog snapshot as returned to API callers."""

    model_config = ConfigDict(populate_by_name=True)

    dialect: Dialect = Dialect.POSTGRES
    schema_: str = Field(..., alias="schema", description="Database schema that was read.")
    count_tables: int = Field(..., alias="countTables")
    tables: dict[str, TableDef] = Field(default_factory=dict)
    warning: CatalogWarning | None = None


def clamp_max_tables(requested: int | None, default: int = 200, limit: int = 2000) -> int:
    """Clamp a requested table cap into ``[1, limit]``; ``None``/0 means *default*."""
    value = requested or default
    return min(max(int(value), 1), limit)


def build_tables(
    table_names: Iterable[str],
    column_rows: Iterable[Mapping[str, Any]],
    primary_key_rows: Iterable[Mapping[str, Any]] = (),
    foreign_key_rows: Iterable[Mapping[str, Any]] = (),
) -> dict[str, TableDef]:
    """Assemble catalog rows into table definitions.

    Rows for tables not in *table_names* are ignored.  Table order follows
    *table_names*; column order follows the row order.
    """
    columns: dict[str, list[ColumnDef]] = {name: [] for name in table_names}
    primary_keys: dict[str, list[str]] = {name: [] for name in columns}
    foreign_keys: dict[str, list[ForeignKey]] = {name: [] for name in columns}

    for row in column_rows:
        bucket = columns.get(row["table_name"])
        if bucket is not None:
            bucket.append(
                ColumnDef(
                    name=row["column_name"],
                    data_type=row.get("data_type"),
                    nullable=str(row.get("is_nullable", "")).upper() == "YES",
                )
            )
    for row in primary_key_rows:
        if row["table_name"] in primary_keys:
            primary_keys[row["table_name"]].append(row["column_name"])
    for row in foreign_key_rows:
        if row["table_name"] in foreign_keys:
            foreign_keys[row["table_name"]].append(
                ForeignKey(
                    column=row["column_name"],
                    ref_table=row["foreign_table_name"],
                    ref_column=row["foreign_column_name"],
                )
            )

    return {
        name: TableDef(columns=cols, primary_key=primary_keys[name], foreign_keys=foreign_keys[name])
        for name, cols in columns.items()
    }


# ---------------------------------------------------------------------------
# Catalog reads
# ---------------------------------------------------------------------------


async def read_catalog(
    conn: AsyncConnection,
    *,
    schema: str = "public",
    max_tables: int = 200,
    statement_timeout: str = "5s",
    enforce_catalog_only: bool = True,
) -> IntrospectionResult:
    """Read table metadata over an open connection.

    The caller owns the connection; this function opens a transaction on
    it and always rolls it back.

    Raises
    ------
    CatalogAccessError
        If the role can read user tables and *enforce_catalog_only* is set.
    """
    if not _TIMEOUT_RE.match(statement_timeout):
        raise InputError(f"Invalid statement timeout: {statement_timeout!r}")

    transaction = await conn.begin()
    try:
        await conn.execute(text("SET TRANSACTION READ ONLY"))
        await conn.execute(text(f"SET LOCAL statement_timeout = '{statement_timeout}'"))
        await conn.execute(text("SET LOCAL search_path = pg_catalog, information_schema"))

        has_select = bool((await conn.execute(_HAS_DATA_ACCESS_SQL)).scalar())
        warning: CatalogWarning | None = None
        if has_select:
            if enforce_catalog_only:
                logger.warning("Introspection refused: role has SELECT on user tables")
                raise CatalogAccessError(
                    "The connected role can read user data. Use a role without SELECT "
                    "on user tables (catalog-only)."
                )
            warning = CatalogWarning(
                code=CATALOG_ONLY_CODE,
                reason="Role can read user data; the session is protected by READ ONLY only.",
            )

        params: dict[str, Any] = {"schema": schema, "limit": max_tables}
        table_names = list((await conn.execute(_TABLES_SQL, params)).scalars().all())
        if not table_names:
            return IntrospectionResult(schema=schema, count_tables=0, tables={}, warning=warning)

        params = {"schema": schema, "tables": table_names}
        column_rows = (await conn.execute(_COLUMNS_SQL, params)).mappings().all()
        pk_rows = (await conn.execute(_PRIMARY_KEYS_SQL, params)).mappings().all()
        fk_rows = (await conn.execute(_FOREIGN_KEYS_SQL, params)).mappings().all()
    finally:
        await transaction.rollback()

    tables = build_tables(table_names, column_rows, pk_rows, fk_rows)
    logger.info("Introspected %d table(s) from schema '%s'", len(tables), schema)
    return IntrospectionResult(schema=schema, count_tables=len(tables), tables=tables, warning=warning)


def to_async_url(db_url: str) -> str:
    """Force the asyncpg driver on a PostgreSQL URL.

    Raises
    ------
    InputError
        If *db_url* is not a PostgreSQL URL.
    """
    try:
        url = make_url(db_url.strip())
    except ArgumentError as exc:
        raise InputError("Field 'db_url' is not a valid database URL") from exc
    if url.get_backend_name() not in ("postgresql", "postgres"):
        raise InputError("Only PostgreSQL databases can be introspected")
    return url.set(drivername="postgresql+asyncpg").render_as_string(hide_password=False)


class CatalogIntrospector:
    """Connects to a user database and reads its catalog.

    Parameters
    ----------
    statement_timeout:
        ``statement_timeout`` applied inside the read-only transaction.
    enforce_catalog_only:
        Refuse roles that can read user data.
    default_max_tables, max_tables_limit:
        Bounds for the per-request table cap.
    connect_timeout:
        Seconds to wait for the connection to be established.
    """

    def __init__(
        self,
        *,
        statement_timeout: str = "5s",
        enforce_catalog_only: bool = True,
        default_max_tables: int = 200,
        max_tables_limit: int = 2000,
        connect_timeout: float = 10.0,
    ) -> None:
        self._statement_timeout = statement_timeout
        self._enforce_catalog_only = enforce_catalog_only
        self._default_max_tables = default_max_tables
        self._max_tables_limit = max_tables_limit
        self._connect_timeout = connect_timeout

    async def introspect(
        self,
        db_url: str,
        *,
        schema: str | None = None,
        max_tables: int | None = None,
    ) -> IntrospectionResult:
        """Introspect *schema* (default ``public``) of the database at *db_url*."""
        if not db_url or not db_url.strip():
            raise InputError("Field 'db_url' is required")
        target_schema = (schema or "public").strip() or "public"
        cap = clamp_max_tables(max_tables, self._default_max_tables, self._max_tables_limit)

        engine = create_async_engine(
            to_async_url(db_url),
            poolclass=NullPool,
            connect_args={"timeout": self._connect_timeout},
        )
        try:
            async with engine.connect() as conn:
                return await read_catalog(
                    conn,
                    schema=target_schema,
                    max_tables=cap,
                    statement_timeout=self._statement_timeout,
                    enforce_catalog_only=self._enforce_catalog_only,
                )
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("Introspection failed: %s", type(exc).__name__)
            raise IntrospectionError(f"Introspection failed: {exc}") from exc
        finally:
            await engine.dispose()
