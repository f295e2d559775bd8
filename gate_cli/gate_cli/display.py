"""Rich output formatting for the schemagate CLI.

All functions write to a :class:`rich.console.Console` instance (bound to
*stderr*) so that JSON on *stdout* is never mixed with decoration.
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from gate_engine.models.diff import SchemaDiff
from gate_engine.models.reports import ExtractedReferences, SQLReview

# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------


def display_review(console: Console, review: SQLReview) -> None:
    """Render a review decision, the statement and any warnings.

    Parameters
    ----------
    console:
        Rich console to write to (typically stderr).
    review:
        Outcome of :func:`gate_engine.review.review_sql`.
    """
    if review.blocked:
        verdict, style = "BLOCKED", "red"
    elif review.warnings:
        verdict, style = "ALLOWED WITH WARNINGS", "yellow"
    else:
        verdict, style = "ALLOWED", "green"

    lines = [f"[bold]Verdict:[/bold]  [{style}]{verdict}[/{style}]"]
    if review.reason:
        lines.append(f"[bold]Reason:[/bold]   {escape(review.reason)}")
    if review.danger.matched_keywords:
        lines.append(f"[bold]Keywords:[/bold] {', '.join(review.danger.matched_keywords)}")
    if review.validation is not None:
        status = "[green]ok[/green]" if review.validation.ok else f"[red]{len(review.validation.unknown)} unknown[/red]"
        lines.append(f"[bold]Schema:[/bold]   {status}")
    console.print(Panel("\n".join(lines), title="SQL Review", border_style=style))

    for warning in review.warnings:
        console.print(f"[yellow]warning:[/yellow] {escape(warning)}")

    statement = review.with_safety or review.sql
    if statement:
        console.print(Syntax(statement, "sql", word_wrap=True))


# ---------------------------------------------------------------------------
# References
# ---------------------------------------------------------------------------


def display_references(console: Console, extracted: ExtractedReferences) -> None:
    """Render the alias map and the dotted references found in a statement."""
    if extracted.alias_map:
        aliases = Table(title="Aliases", show_lines=False, expand=False)
        aliases.add_column("Alias", style="bold")
        aliases.add_column("Table")
        for alias, table in extracted.alias_map.items():
            aliases.add_row(alias, table)
        console.print(aliases)
    else:
        console.print("[dim]No aliases.[/dim]")

    if not extracted.references:
        console.print("[dim]No dotted references.[/dim]")
        return

    refs = Table(title=f"References ({len(extracted.references)})", show_lines=False, expand=False)
    refs.add_column("Table or alias", style="bold")
    refs.add_column("Column")
    for ref in extracted.references:
        refs.add_row(ref.table_or_alias, ref.column)
    console.print(refs)


# ---------------------------------------------------------------------------
# Schema diff
# ---------------------------------------------------------------------------


def display_schema_diff(console: Console, diff: SchemaDiff) -> None:
    """Render added, removed and changed tables."""
    if diff.is_empty:
        console.print("[green]No structural changes.[/green]")
        return

    table = Table(title="Schema Diff", show_lines=False, expand=False)
    table.add_column("Change", style="bold")
    table.add_column("Table")
    table.add_column("Columns")

    for name in diff.added:
        table.add_row("[green]added[/green]", name, "-")
    for name in diff.removed:
        table.add_row("[red]removed[/red]", name, "-")
    for change in diff.changed:
        parts = [f"+{col}" for col in change.added_columns] + [f"-{col}" for col in change.removed_columns]
        table.add_row("[yellow]changed[/yellow]", change.table, ", ".join(parts))

    console.print(table)
