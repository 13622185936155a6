"""cli.py — Command-line interface for **pgvector-memory**
=======================================================

A small **Typer** application to manage index tables and records from the
shell.  Connection settings come from the environment (``PGMEM_`` prefix)
or a ``.env`` file, see :pymod:`pgvector_memory.config.settings`.

Usage examples
--------------
::

    export PGMEM_CONNECTION_STRING="postgresql://user:pw@localhost/db"

    # Create an index for 384-dimensional embeddings
    pgvector-memory create-index notes --vector-size 384

    # Bulk-upsert records from a NDJSON file
    pgvector-memory upsert notes ./records.ndjson

    # Nearest neighbours of a vector, restricted to a tag
    pgvector-memory search notes '[0.1, 0.2, ...]' --limit 3 --tag user=alice

    # Remove a record, then the whole index
    pgvector-memory delete notes n1
    pgvector-memory delete-index notes

Notes
-----
* All commands run **asynchronously** using ``asyncio.run``.
* Errors are printed in red and the process exits with status 1.
"""
from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional

import orjson
import pydantic
import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from pgvector_memory.config.settings import configure_logging, get_settings
from pgvector_memory.core.filters import MemoryFilter
from pgvector_memory.core.memory import PostgresMemory
from pgvector_memory.core.models import MemoryRecord
from pgvector_memory.utils.exceptions import ConfigurationError, MemoryStorageError, log_exception

# ---------------------------------------------------------------------------
# Typer application
# ---------------------------------------------------------------------------
app = typer.Typer(add_completion=False, rich_markup_mode="rich", no_args_is_help=True)
console = Console()

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_memory() -> PostgresMemory:
    """Create a storage instance based on current settings."""
    try:
        settings = get_settings()
    except pydantic.ValidationError as exc:
        problems = [f"{'.'.join(map(str, e['loc']))}: {e['msg']}" for e in exc.errors()]
        raise ConfigurationError(
            "Invalid PGMEM_* settings: " + "; ".join(problems),
            context={"errors": problems},
            cause=exc,
        ) from exc
    configure_logging(settings)
    return PostgresMemory(settings)


def _run(fn: Callable[[PostgresMemory], Awaitable[None]]) -> None:
    """Run *fn* against a fresh storage instance, closing it afterwards."""

    async def _main() -> None:
        memory = _get_memory()
        try:
            await fn(memory)
        finally:
            await memory.close()

    try:
        asyncio.run(_main())
    except MemoryStorageError as exc:
        log_exception(exc, level=logging.DEBUG)
        rprint(f"[red]Error:[/] {exc.message}")
        raise typer.Exit(code=1)


def _parse_tags(tags: Optional[List[str]]) -> Optional[MemoryFilter]:
    if not tags:
        return None
    flt = MemoryFilter()
    for tag in tags:
        key, sep, value = tag.partition("=")
        flt = flt.and_(*MemoryFilter.by_tag(key, value if sep else None))
    return flt


def _parse_vector(text: str) -> List[float]:
    try:
        values = json.loads(text)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"not a JSON array: {exc}") from exc
    if not isinstance(values, list):
        raise typer.BadParameter("expected a JSON array of numbers")
    return values


def _print_records(rows: List[Any], *, with_score: bool) -> None:
    if not rows:
        rprint("[yellow]No records found.[/]")
        return
    table = Table(show_header=True, header_style="bold")
    if with_score:
        table.add_column("score", justify="right")
    table.add_column("id")
    table.add_column("content")
    table.add_column("tags", style="dim")
    for row in rows:
        record, score = row if with_score else (row, None)
        cells = [record.id, record.content, ", ".join(record.tags.to_strings())]
        if with_score:
            cells.insert(0, f"{score:.3f}")
        table.add_row(*cells)
    console.print(table)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("create-index", help="Create the table backing an index (no-op if it exists).")
def create_index(
    name: str = typer.Argument(..., help="Index name"),
    vector_size: int = typer.Option(..., "--vector-size", "-d", help="Embedding dimension"),
) -> None:
    async def _cmd(memory: PostgresMemory) -> None:
        await memory.create_index(name, vector_size)
        rprint(f"[green]✓ Index '{name}' ready.")

    _run(_cmd)


@app.command("list-indexes", help="List the indexes stored in the configured schema.")
def list_indexes() -> None:
    async def _cmd(memory: PostgresMemory) -> None:
        names = await memory.get_indexes()
        if not names:
            rprint("[yellow]No indexes found.[/]")
        for name in names:
            rprint(name)

    _run(_cmd)


@app.command("delete-index", help="Drop the table backing an index.")
def delete_index(name: str = typer.Argument(..., help="Index name")) -> None:
    async def _cmd(memory: PostgresMemory) -> None:
        await memory.delete_index(name)
        rprint(f"[green]✓ Index '{name}' deleted.")

    _run(_cmd)


@app.command(help="Upsert records from a newline-delimited JSON file.")
def upsert(
    index: str = typer.Argument(..., help="Index name"),
    path: Path = typer.Argument(..., exists=True, readable=True, help="NDJSON file path"),
) -> None:
    async def _cmd(memory: PostgresMemory) -> None:
        count = 0
        with path.open("r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    record = MemoryRecord.from_dict(orjson.loads(line))
                except (orjson.JSONDecodeError, MemoryStorageError, ValueError) as exc:
                    rprint(f"[red]Skipping line {lineno}:[/] {exc}")
                    continue
                await memory.upsert(index, record)
                count += 1
        rprint(f"[green]✓ Upserted {count} records.[/]")

    _run(_cmd)


@app.command(help="Find the records most similar to a vector.")
def search(
    index: str = typer.Argument(..., help="Index name"),
    vector: str = typer.Argument(..., help="Query vector as a JSON array"),
    min_score: float = typer.Option(0.0, "--min-score", "-s", help="Minimum cosine similarity"),
    limit: int = typer.Option(5, "--limit", "-l", help="Max hits to return (0 = no limit)"),
    tag: Optional[List[str]] = typer.Option(None, "--tag", "-t", help="key=value tag filter"),
) -> None:
    query = _parse_vector(vector)

    async def _cmd(memory: PostgresMemory) -> None:
        filters = _parse_tags(tag)
        hits = [
            hit
            async for hit in memory.get_similar_list(
                index, query, filters=filters, min_relevance=min_score, limit=limit
            )
        ]
        _print_records(hits, with_score=True)

    _run(_cmd)


@app.command("list", help="List records of an index, ordered by id.")
def list_records(
    index: str = typer.Argument(..., help="Index name"),
    limit: int = typer.Option(20, "--limit", "-l", help="Max records to return (0 = no limit)"),
    offset: int = typer.Option(0, "--offset", help="Records to skip"),
    tag: Optional[List[str]] = typer.Option(None, "--tag", "-t", help="key=value tag filter"),
) -> None:
    async def _cmd(memory: PostgresMemory) -> None:
        filters = _parse_tags(tag)
        records = [
            r async for r in memory.get_list(index, filters=filters, limit=limit, offset=offset)
        ]
        _print_records(records, with_score=False)

    _run(_cmd)


@app.command(help="Delete a record by id.")
def delete(
    index: str = typer.Argument(..., help="Index name"),
    record_id: str = typer.Argument(..., help="Record id"),
) -> None:
    async def _cmd(memory: PostgresMemory) -> None:
        await memory.delete(index, record_id)
        rprint("[green]✓ Deleted.")

    _run(_cmd)


@app.command(help="Check database connectivity.")
def health() -> None:
    async def _cmd(memory: PostgresMemory) -> None:
        status = await memory.health_check()
        colour = "green" if status["healthy"] else "red"
        rprint(f"[{colour}]{'healthy' if status['healthy'] else 'unhealthy'}[/] {status['message']}")
        if not status["healthy"]:
            raise typer.Exit(code=1)

    _run(_cmd)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:  # pragma: no cover
    """CLI entry-point used by the ``pgvector-memory`` console script."""
    try:
        app()
    except MemoryStorageError as exc:
        rprint(f"[red]Error:[/] {exc.message}")
        sys.exit(1)


if __name__ == "__main__":  # pragma: no cover
    main()
