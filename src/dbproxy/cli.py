"""
Command line interface: inspect and query a database through dbproxy.

    dbproxy tables   TARGET
    dbproxy describe TARGET TABLE
    dbproxy indexes  TARGET TABLE
    dbproxy query    TARGET SQL [PARAMS...] [--execute]

Every command accepts ``--json`` for machine-readable output.
"""

from __future__ import annotations

import json
import sys
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from dbproxy.errors import DatabaseProxyError
from dbproxy.logging import configure_logging
from dbproxy.registry import get

app = typer.Typer(
    name="dbproxy",
    help="dbproxy: one SQL API over MySQL, PostgreSQL and SQLite.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()
err_console = Console(stderr=True)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("dbproxy")
        except PackageNotFoundError:
            v = "0.1.0"
        typer.echo(f"dbproxy {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log database events to stderr."),
) -> None:
    """dbproxy CLI: list tables, describe them, run queries."""
    configure_logging(
        level="DEBUG" if verbose else "WARNING",
        json_format=False,
        stream=sys.stderr,
    )


# ── Output helpers ───────────────────────────────────────────────────────


def _fail(error: DatabaseProxyError) -> None:
    err_console.print(f"[bold red]Error[/bold red] ({error.category.value}): {error.message}")
    raise typer.Exit(code=1)


def _print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def _print_rows(rows: list[dict[str, Any]], *, title: str = "") -> None:
    if not rows:
        console.print("[dim]No rows.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for column in rows[0]:
        table.add_column(column, overflow="fold")
    for row in rows:
        table.add_row(*("NULL" if value is None else str(value) for value in row.values()))
    console.print(table)


# ── Commands ─────────────────────────────────────────────────────────────


@app.command()
def tables(
    target: str = typer.Argument(..., help="Target identifier, e.g. sqlite:app.db"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """List the tables of the database."""
    try:
        names = get(target).get_tables()
    except DatabaseProxyError as e:
        _fail(e)

    if json_out:
        _print_json(names)
        return
    _print_rows([{"table": name} for name in names], title="Tables")


@app.command()
def describe(
    target: str = typer.Argument(..., help="Target identifier"),
    table: str = typer.Argument(..., help="Table name"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Show the column definitions of a table."""
    try:
        definition = get(target).get_table_definition(table)
    except DatabaseProxyError as e:
        _fail(e)

    rows = [
        {
            "name": column.name,
            "type": column.type,
            "nullable": column.nullable,
            "default": column.default,
        }
        for column in definition
    ]
    if json_out:
        _print_json(rows)
        return
    _print_rows(rows, title=table)


@app.command()
def indexes(
    target: str = typer.Argument(..., help="Target identifier"),
    table: str = typer.Argument(..., help="Table name"),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Show the indexes of a table."""
    try:
        rows = [row.to_dict() for row in get(target).get_table_indexes(table)]
    except DatabaseProxyError as e:
        _fail(e)

    if json_out:
        _print_json(rows)
        return
    _print_rows(rows, title=f"Indexes on {table}")


@app.command()
def query(
    target: str = typer.Argument(..., help="Target identifier"),
    sql: str = typer.Argument(..., help="SQL with ? placeholders"),
    params: list[str] = typer.Argument(None, help="Positional parameters"),
    execute: bool = typer.Option(
        False, "--execute", "-x", help="Run as a statement and print the affected row count"
    ),
    json_out: bool = typer.Option(False, "--json", help="JSON output"),
) -> None:
    """Run a query and print its rows."""
    try:
        proxy = get(target)
        if execute:
            affected = proxy.query(sql, params or [])
        else:
            rows = [row.to_dict() for row in proxy.get_all(sql, params or [])]
    except DatabaseProxyError as e:
        _fail(e)

    if execute:
        if json_out:
            _print_json({"affected": affected})
        else:
            console.print(f"[green]{affected}[/green] row(s) affected")
        return

    if json_out:
        _print_json(rows)
        return
    _print_rows(rows)


__all__ = [
    "app",
]
