"""
Root Typer application for the handler-spine CLI.

Commands
--------
serve      Run a module until interrupted
routes     Print the route table a handler tree produces
handlers   Print the feed handlers a handler tree produces
"""

from __future__ import annotations

import asyncio
import json

import typer
from rich.console import Console
from rich.table import Table

from handlerspine.core.errors import HandlerSpineError
from handlerspine.core.logging import configure_logging
from handlerspine.core.settings import ModuleSettings, normalize_prefix
from handlerspine.discovery import DirectorySource, discover
from handlerspine.routes import build_route_table
from handlerspine.subscriptions.dispatcher import load_feed_handlers

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="handler-spine",
    help="handler-spine: HTTP routes and resumable feed handlers from a directory tree.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError, version as pkg_version

        try:
            v = pkg_version("handler-spine")
        except PackageNotFoundError:
            v = "unknown"
        typer.echo(f"handler-spine {v}")
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
) -> None:
    """handler-spine CLI: serve and inspect handler trees."""


def _fail(error: HandlerSpineError) -> None:
    err_console.print(f"[bold red]{type(error).__name__}:[/bold red] {error.message}")
    raise typer.Exit(code=1) from error


@app.command("serve")
def serve(
    rest_path: str | None = typer.Option(None, "--rest-path", "-r", help="HTTP handler tree"),
    feed_path: str | None = typer.Option(None, "--feed-path", "-f", help="Feed handler tree"),
    host: str | None = typer.Option(None, "--host", "-h", help="Bind address"),
    port: int | None = typer.Option(None, "--port", "-p", help="Bind port"),
    log_level: str | None = typer.Option(None, "--log-level"),
) -> None:
    """Start a module on the in-process feed; options override HANDLERSPINE_* settings."""
    from handlerspine.module import Module

    overrides = {
        key: value
        for key, value in {
            "rest_path": rest_path,
            "feed_path": feed_path,
            "host": host,
            "port": port,
            "log_level": log_level,
        }.items()
        if value is not None
    }
    settings = ModuleSettings(**overrides)
    configure_logging(level=settings.log_level, json_format=settings.json_logs)

    module = Module.build(settings)

    async def _run() -> None:
        try:
            await module.start()
            await module.wait()
        finally:
            await module.stop()

    console.print(
        f"[bold green]Starting handler-spine[/bold green] on {settings.host}:{settings.port}"
    )
    try:
        asyncio.run(_run())
    except HandlerSpineError as e:
        _fail(e)
    except KeyboardInterrupt:
        console.print("[yellow]Stopped[/yellow]")


@app.command("routes")
def routes(
    path: str = typer.Argument(..., help="HTTP handler tree"),
    prefix: str = typer.Option("", "--prefix", help="URL prefix"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List every (path, verb) the tree produces, 405 entries included."""
    source = DirectorySource(path)
    try:
        table = build_route_table(discover(source), root=source.root)
    except HandlerSpineError as e:
        _fail(e)

    base = normalize_prefix(prefix)
    rows = table.describe()
    for row in rows:
        row["path"] = base + row["path"] if row["path"] != "/" else (base or "/")

    if json_out:
        console.print_json(json.dumps(rows))
        return

    out = Table(title=f"Routes ({len(table.paths)} paths)")
    out.add_column("Path")
    out.add_column("Verb")
    out.add_column("Status")
    out.add_column("Handler")
    for row in rows:
        style = None if row["status"] == "handler" else "dim"
        out.add_row(row["path"], row["verb"], row["status"], row["handler"], style=style)
    console.print(out)


@app.command("handlers")
def handlers(
    path: str = typer.Argument(..., help="Feed handler tree"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List feed handler identifiers and their filters."""
    try:
        found = load_feed_handlers(DirectorySource(path))
    except HandlerSpineError as e:
        _fail(e)

    if found is None:
        err_console.print("[bold red]Duplicate feed handler identifiers[/bold red]")
        raise typer.Exit(code=1)

    rows = [
        {
            "handler_id": handler.handler_id,
            "shape": type(handler).__name__,
            "filter": handler.filter.to_dict(),
        }
        for handler in found
    ]

    if json_out:
        console.print_json(json.dumps(rows))
        return

    out = Table(title=f"Feed handlers ({len(rows)})")
    out.add_column("Handler id")
    out.add_column("Shape")
    out.add_column("Filter")
    for row in rows:
        out.add_row(row["handler_id"], row["shape"], json.dumps(row["filter"]))
    console.print(out)
