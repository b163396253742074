from __future__ import annotations

from dotenv import load_dotenv

load_dotenv()

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from callnotes.analytics import compute_analytics
from callnotes.grouping import GROUP_BY_OPTIONS, BucketGroup, group_notes
from callnotes.reminder_views import combined_reminders, reminder_stats
from callnotes.repositories import StorageReadError
from callnotes.search import filter_notes, search_notes, suggest as suggest_keywords
from callnotes.services.contact_import import ContactImportError, JsonFileContactSource
from callnotes.store import CallNotesStore, open_store

app = typer.Typer(help="CallNotes: call notes, reminders and orders kept on this machine")
console = Console()


def _store(ctx: typer.Context) -> CallNotesStore:
    return open_store(ctx.obj)


def _note_line(note) -> str:
    when = note.call_start_time.astimezone()
    preview = escape(note.note.replace("\n", " ")[:60])
    return f"[yellow]{when:%Y-%m-%d %H:%M}[/yellow] [magenta]{escape(note.status_label)}[/magenta] {preview}"


@app.callback()
def main(
    ctx: typer.Context,
    db: Optional[Path] = typer.Option(None, "--db", help="SQLite file to use instead of the configured one"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = db


@app.command()
def notes(
    ctx: typer.Context,
    group_by: str = typer.Option("day", "--group-by", "-g", help="none, day, week, month, year or folder"),
    query: str = typer.Option("", "--query", "-q", help="Only notes matching this text"),
) -> None:
    """Show call notes grouped by time period, contact or folder."""
    if group_by not in GROUP_BY_OPTIONS:
        console.print(f"[red]Unknown grouping {group_by!r}.[/red] Use one of: {', '.join(GROUP_BY_OPTIONS)}")
        raise typer.Exit(code=1)

    with _store(ctx) as store:
        filtered = filter_notes(store.notes(), query, store.contacts())
        groups = group_notes(filtered, group_by, store.folders())

    if not groups:
        console.print("[dim]No notes yet.[/dim]")
        return

    for group in groups:
        tree = Tree(f"[bold cyan]{escape(group.title)}[/bold cyan] [dim]({len(group.notes)})[/dim]")
        if isinstance(group, BucketGroup):
            for sub in group.sub_groups:
                branch = tree.add(f"[bold]{escape(sub.title)}[/bold] [dim]({len(sub.notes)})[/dim]")
                for note in sub.notes:
                    branch.add(_note_line(note))
        else:
            for note in group.notes:
                tree.add(_note_line(note))
        console.print(tree)


@app.command()
def search(ctx: typer.Context, query: str = typer.Argument(..., help="Text to look for")) -> None:
    """Search notes by contact, text, tag or category."""
    with _store(ctx) as store:
        matching = filter_notes(store.notes(), query, store.contacts())
        results = search_notes(matching, query)

    if not results:
        console.print(f"[dim]No notes match {query!r}.[/dim]")
        return

    table = Table(title=f"Results for {query!r}")
    table.add_column("Contact", style="cyan")
    table.add_column("Match", style="magenta")
    table.add_column("Text")
    for result in results:
        text = Text(result.match_text)
        text.stylize("bold reverse", result.highlight_start, result.highlight_end)
        table.add_row(result.note.contact_name, result.match_type, text)
    console.print(table)


@app.command()
def suggest(ctx: typer.Context, query: str = typer.Argument(..., help="Partial search text")) -> None:
    """Suggest search keywords from contacts and notes."""
    with _store(ctx) as store:
        suggestions = suggest_keywords(query, store.contacts(), store.notes())
    for suggestion in suggestions:
        console.print(suggestion)


@app.command()
def remind(ctx: typer.Context) -> None:
    """Show pending call and order reminders."""
    with _store(ctx) as store:
        entries = combined_reminders(store.reminders(), store.orders())

    pending = [e for e in entries if not e.is_completed]
    if not pending:
        console.print("[green]All clear! No pending reminders.[/green]")
        return

    stats = reminder_stats(entries)
    table = Table(title="Pending Reminders")
    table.add_column("Title", style="cyan")
    table.add_column("Contact", style="white")
    table.add_column("Due", style="yellow")
    table.add_column("Kind", style="dim")
    for entry in pending:
        kind = "order" if getattr(entry, "is_order", False) else "call"
        due = entry.due_date.astimezone()
        table.add_row(entry.title, entry.contact_name, f"{due:%Y-%m-%d %H:%M}", kind)
    console.print(table)
    console.print(
        f"{stats.pending} pending, [red]{stats.overdue} overdue[/red], {stats.today} due today, "
        f"{stats.completed} completed"
    )


@app.command()
def stats(ctx: typer.Context) -> None:
    """Show activity totals and trends."""
    with _store(ctx) as store:
        report = compute_analytics(store.contacts(), store.notes(), store.orders(), store.reminders())

    totals = Table(title="Totals")
    for name in report.totals:
        totals.add_column(name.title(), justify="right")
    totals.add_row(*(str(v) for v in report.totals.values()))
    console.print(totals)
    console.print(f"Notes growth: {report.notes_growth:+d}%  Orders growth: {report.orders_growth:+d}%")

    if report.top_tags:
        tags = Table(title="Top Tags")
        tags.add_column("Tag", style="cyan")
        tags.add_column("Notes", justify="right")
        for tag, count in report.top_tags:
            tags.add_row(tag, str(count))
        console.print(tags)


@app.command()
def seed(ctx: typer.Context) -> None:
    """Add a set of sample contacts (skips phone numbers already present)."""
    with _store(ctx) as store:
        try:
            result = store.add_fake_contacts()
        except StorageReadError as exc:
            console.print(f"[red]{escape(str(exc))}[/red]")
            raise typer.Exit(code=1)
    console.print(f"Added {result.imported} contacts ({result.total} total).")


@app.command("import-contacts")
def import_contacts(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON export of an address book"),
) -> None:
    """Import contacts, skipping phone numbers already present."""
    with _store(ctx) as store:
        try:
            result = store.import_device_contacts(JsonFileContactSource(path))
        except (ContactImportError, StorageReadError) as exc:
            console.print(f"[red]{escape(str(exc))}[/red]")
            raise typer.Exit(code=1)
    console.print(f"Imported {result.imported} contacts ({result.total} total).")
