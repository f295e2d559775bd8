"""schemagate CLI application -- local access to the SQL safety layer.

Provides commands to review a statement against a schema snapshot, inspect
the references a statement makes, diff two snapshot files, print a snapshot
fingerprint and serve the HTTP API.  Human-readable output goes to *stderr*
via Rich; ``--json`` emits machine-readable results on *stdout*.

Exit codes: ``0`` success, ``1`` blocked statement or (with
``--fail-on-change``) a non-empty diff, ``3`` unreadable input.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console

from gate_engine.config import DangerPolicy, EngineSettings, load_engine_settings
from gate_engine.diff.structural_diff import compute_schema_diff
from gate_engine.errors import InputError
from gate_engine.models.schema import Dialect, SchemaSnapshot, SnapshotDocument, parse_tables_payload
from gate_engine.parser.references import ReferenceExtractor
from gate_engine.review import review_sql

from gate_cli.display import display_references, display_review, display_schema_diff

# ---------------------------------------------------------------------------
# App & global state
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="schemagate",
    help="schemagate - danger screening and schema validation for generated SQL",
    no_args_is_help=True,
)
console = Console(stderr=True)

# Populated by the Typer callback.
_json_output: bool = False


@app.callback()
def _global_options(
    json_mode: bool = typer.Option(
        False,
        "--json/--no-json",
        help="Emit structured JSON to stdout instead of human-readable output.",
    ),
) -> None:
    """Global options applied to every command."""
    global _json_output  # noqa: PLW0603
    _json_output = json_mode


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(payload: Any) -> None:
    sys.stdout.write(json.dumps(payload, indent=2, default=str) + "\n")


def _read_text(path: Path, label: str) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        console.print(f"[red]Failed to read {label}: {exc}[/red]")
        raise typer.Exit(code=3) from exc


def _load_snapshot(path: Path, dialect: Dialect | None = None) -> tuple[SchemaSnapshot, str | None]:
    """Load a snapshot file and return it with its stored checksum, if any.

    Accepts a persisted document (``{"meta": ..., "schema": ...}``) or a bare
    ``{"tables": ...}`` / table-mapping object.  *dialect* overrides the
    document's dialect when given.
    """
    raw = _read_text(path, "snapshot")
    try:
        data = json.loads(raw)
        if isinstance(data, dict) and "meta" in data and "schema" in data:
            document = SnapshotDocument.model_validate(data)
            snapshot = document.to_snapshot()
            stored: str | None = document.meta.checksum
        else:
            snapshot = SchemaSnapshot(name=path.stem, tables=parse_tables_payload(data))
            stored = None
    except (json.JSONDecodeError, InputError, ValidationError) as exc:
        console.print(f"[red]Invalid snapshot file {path.name}: {exc}[/red]")
        raise typer.Exit(code=3) from exc

    if dialect is not None:
        snapshot = snapshot.model_copy(update={"dialect": dialect})
    return snapshot, stored


# ---------------------------------------------------------------------------
# review
# ---------------------------------------------------------------------------


@app.command()
def review(
    sql_file: Path = typer.Argument(
        ...,
        help="File containing the SQL statement to review.",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    snapshot_file: Path | None = typer.Option(
        None,
        "--snapshot",
        "-s",
        help="Schema snapshot (JSON) to validate references against.",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    policy: DangerPolicy | None = typer.Option(
        None,
        "--policy",
        "-p",
        help="Danger policy override (block | wrap | annotate). Defaults to GATE_DANGER_POLICY.",
        case_sensitive=False,
    ),
    dialect: Dialect | None = typer.Option(
        None,
        "--dialect",
        help="SQL dialect for identifier quoting. Defaults to the snapshot's dialect.",
        case_sensitive=False,
    ),
    strict: bool = typer.Option(
        False,
        "--strict",
        help="Block statements that reference unknown tables or columns.",
    ),
) -> None:
    """Screen a statement for destructive keywords and unknown references."""
    sql = _read_text(sql_file, "SQL file")
    snapshot = _load_snapshot(snapshot_file, dialect)[0] if snapshot_file else None

    overrides: dict[str, Any] = {}
    if policy is not None:
        overrides["danger_policy"] = policy
    if strict:
        overrides["block_on_unknown_references"] = True
    settings: EngineSettings = load_engine_settings(**overrides)

    try:
        result = review_sql(sql, snapshot, settings=settings)
    except InputError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=3) from exc

    if _json_output:
        _write_json(result.model_dump(mode="json", by_alias=True))
    else:
        display_review(console, result)

    if result.blocked:
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# extract
# ---------------------------------------------------------------------------


@app.command()
def extract(
    sql_file: Path = typer.Argument(
        ...,
        help="File containing the SQL statement.",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    dialect: Dialect = typer.Option(
        Dialect.POSTGRES,
        "--dialect",
        help="SQL dialect for identifier quoting.",
        case_sensitive=False,
    ),
) -> None:
    """Print the alias map and the ``table.column`` references of a statement."""
    sql = _read_text(sql_file, "SQL file")
    extracted = ReferenceExtractor.for_dialect(dialect).extract(sql)

    if _json_output:
        _write_json(
            {
                "aliases": extracted.alias_map,
                "references": [str(ref) for ref in extracted.references],
            }
        )
    else:
        display_references(console, extracted)


# ---------------------------------------------------------------------------
# diff
# ---------------------------------------------------------------------------


@app.command()
def diff(
    old_file: Path = typer.Argument(..., help="Old snapshot (JSON).", exists=True, dir_okay=False),
    new_file: Path = typer.Argument(..., help="New snapshot (JSON).", exists=True, dir_okay=False),
    fail_on_change: bool = typer.Option(
        False,
        "--fail-on-change",
        help="Exit with code 1 when the snapshots differ structurally.",
    ),
) -> None:
    """Compare the tables and columns of two snapshot files."""
    old, _ = _load_snapshot(old_file)
    new, _ = _load_snapshot(new_file)
    result = compute_schema_diff(old, new)

    if _json_output:
        _write_json(result.model_dump(mode="json", by_alias=True))
    else:
        display_schema_diff(console, result)

    if fail_on_change and not result.is_empty:
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# fingerprint
# ---------------------------------------------------------------------------


@app.command()
def fingerprint(
    snapshot_file: Path = typer.Argument(..., help="Snapshot (JSON).", exists=True, dir_okay=False),
) -> None:
    """Print the content fingerprint of a snapshot file."""
    snapshot, stored = _load_snapshot(snapshot_file)
    checksum = snapshot.checksum

    if _json_output:
        _write_json({"name": snapshot.name, "checksum": checksum, "stored": stored, "tables": len(snapshot.tables)})
        return

    console.print(f"[bold]{snapshot.name}[/bold]: {checksum} ({len(snapshot.tables)} tables)")
    if stored is not None and stored != checksum:
        console.print(f"[yellow]warning:[/yellow] stored checksum {stored} does not match content")


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Host to bind the API server to."),
    port: int = typer.Option(8000, "--port", "-p", help="API server port."),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload on code changes."),
) -> None:
    """Run the schemagate HTTP API locally."""
    import uvicorn

    config = uvicorn.Config(
        "gate_api.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )
    server = uvicorn.Server(config)

    console.print(f"[green]\u2713[/green] API server starting on http://{host}:{port}")
    console.print(f"[green]\u2713[/green] OpenAPI docs at http://{host}:{port}/docs")
    try:
        server.run()
    except KeyboardInterrupt:
        console.print("[yellow]Server stopped.[/yellow]")
