"""Typer-based CLI for the ArchGraph architecture knowledge graph."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from . import __version__, config, config_manager
from .builder import build_graph
from .errors import (
    GraphFormatError,
    GraphNotFoundError,
    RootFolderMissingError,
    ScopeNotFoundError,
    SourceFormatError,
)
from .graph_export import export_dot
from .query_engine import GraphQueryEngine
from .storage import GraphStore, find_graph_dir, load_source

console = Console()

app = typer.Typer(
    help="🗺️  ArchGraph CLI — architecture knowledge graph for documented codebases.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="⚙️  View or change query defaults")
app.add_typer(config_app, name="config")

NOT_FOUND_SUGGESTION = (
    "Use a valid node ID (folder, module, export, term, doc) or a filesystem path. "
    "Run `archgraph ls` to see available folders."
)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"ArchGraph CLI v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    graph_dir: Optional[Path] = typer.Option(
        None,
        "--graph-dir",
        "-g",
        file_okay=False,
        help=f"Directory holding {config.GRAPH_FILE_NAME} (default: nearest {config.GRAPH_DIR_NAME}).",
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log debug output to stderr."),
):
    """ArchGraph CLI: build and query a knowledge graph of your architecture docs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = {"graph_dir": graph_dir}


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2))


def _fail(payload: Any) -> None:
    _echo_json(payload)
    raise typer.Exit(code=1)


def _not_found(identifier: str) -> None:
    _fail({"error": "Node not found in graph", "identifier": identifier, "suggestion": NOT_FOUND_SUGGESTION})


def _open_store(ctx: typer.Context) -> GraphStore:
    graph_dir = (ctx.obj or {}).get("graph_dir")
    if graph_dir is not None:
        return GraphStore(graph_dir)
    try:
        return GraphStore(find_graph_dir())
    except GraphNotFoundError as exc:
        raise typer.BadParameter(str(exc))


def _open_engine(ctx: typer.Context) -> GraphQueryEngine:
    store = _open_store(ctx)
    try:
        return GraphQueryEngine.from_store(store)
    except (GraphNotFoundError, GraphFormatError) as exc:
        raise typer.BadParameter(str(exc))


@app.command("build")
def build(
    ctx: typer.Context,
    source: Path = typer.Argument(..., exists=True, dir_okay=False, help="Source bundle (JSON)."),
    root: Optional[Path] = typer.Option(None, "--root", "-r", help="Override the bundle's rootPath."),
):
    """Build the knowledge graph from a source bundle and save it."""
    try:
        bundle = load_source(source)
    except SourceFormatError as exc:
        raise typer.BadParameter(str(exc))

    base_dir = str(root.resolve()) if root else bundle.root_path
    graph = build_graph(bundle.vocabulary, bundle.docs, base_dir)

    graph_dir = (ctx.obj or {}).get("graph_dir") or Path.cwd() / config.GRAPH_DIR_NAME
    path = GraphStore(graph_dir).save(graph)

    stats = graph.metadata.stats
    typer.echo(f"Built graph from '{source}' into '{path}'.")
    typer.echo(
        f"Folders: {stats.folder_count} | Modules: {stats.module_count} | Exports: {stats.export_count} | "
        f"Terms: {stats.term_count} | Docs: {stats.doc_count} | Edges: {stats.edge_count}"
    )


@app.command("stats")
def stats(ctx: typer.Context):
    """Show node and edge counts of the current graph."""
    graph = _open_engine(ctx).graph
    counts = graph.metadata.stats

    table = Table(title="Knowledge Graph", show_lines=False)
    table.add_column("Category", style="cyan")
    table.add_column("Count", justify="right", style="green")
    table.add_row("Folders", str(counts.folder_count))
    table.add_row("Modules", str(counts.module_count))
    table.add_row("Exports", str(counts.export_count))
    table.add_row("Terms", str(counts.term_count))
    table.add_row("Docs", str(counts.doc_count))
    table.add_row("Edges", str(counts.edge_count))

    console.print(table)
    console.print(f"[dim]Generated {graph.metadata.generated_at} (schema {graph.metadata.version})[/dim]")


@app.command("search")
def search(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Free-text query."),
    limit: int = typer.Option(config.SEARCH_LIMIT, "--limit", "-n", min=1, max=100, help="Maximum results."),
):
    """Fuzzy search across every node."""
    results = _open_engine(ctx).search(query, limit=limit)
    _echo_json({"query": query, "results": [r.to_dict() for r in results]})


@app.command("select")
def select(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Free-text query."),
    scope: Optional[str] = typer.Option(None, "--scope", "-s", help="Folder ID to search within."),
    verbose_output: bool = typer.Option(
        not config.CONCISE_OUTPUT, "--verbose-output", help="Longer excerpts, more docs and files."
    ),
):
    """Pick the single best node for a query, with confidence."""
    engine = _open_engine(ctx)
    try:
        payload = engine.select(query, scope=scope, concise=not verbose_output)
    except ScopeNotFoundError as exc:
        _fail({
            "error": "Scope folder not found in graph",
            "folderId": exc.folder_id,
            "suggestion": "Run `archgraph ls` to see available folder IDs.",
        })
    if payload is None:
        _fail({
            "error": "No matching node found",
            "query": query,
            "suggestion": "Try a different query or widen the scope.",
        })
    _echo_json(payload)


@app.command("pick")
def pick(
    ctx: typer.Context,
    identifier: str = typer.Argument(..., help="Node ID or filesystem path."),
):
    """Describe one node and its direct neighbours."""
    payload = _open_engine(ctx).describe(identifier)
    if payload is None:
        _not_found(identifier)
    _echo_json(payload)


@app.command("context")
def context(
    ctx: typer.Context,
    identifier: str = typer.Argument(..., help="Node ID or filesystem path."),
    depth: int = typer.Option(
        config.DEFAULT_DEPTH, "--depth", "-d", min=config.UNLIMITED_DEPTH, help="Levels to expand (-1 for all)."
    ),
):
    """Collect a node's neighbourhood and the docs that explain it."""
    payload = _open_engine(ctx).context(identifier, depth=depth)
    if payload is None:
        _not_found(identifier)
    _echo_json(payload)


@app.command("ls")
def ls(
    ctx: typer.Context,
    depth: int = typer.Option(1, "--depth", "-d", min=config.UNLIMITED_DEPTH, help="Path depth to list (-1 for all)."),
):
    """List the folder hierarchy and essential docs."""
    engine = _open_engine(ctx)
    try:
        listing = engine.list_hierarchy(depth=depth)
    except RootFolderMissingError as exc:
        _fail({
            "error": "Root folder not found in graph",
            "rootId": exc.root_id,
            "suggestion": f"Rebuild the graph; it must contain a '{config.ROOT_FOLDER_NAME}' folder.",
        })
    _echo_json(listing.to_dict())


@app.command("docs")
def docs(
    ctx: typer.Context,
    query: Optional[str] = typer.Argument(None, help="Optional query; lists all docs when omitted."),
):
    """List docs by priority, or search them."""
    results = _open_engine(ctx).search_docs(query)
    payload: dict = {"results": [r.to_dict() for r in results]}
    if query:
        payload = {"query": query, **payload}
    _echo_json(payload)


@app.command("export-graph")
def export_graph(
    ctx: typer.Context,
    focus: str = typer.Option("", "--focus", "-f", help="Only nodes whose ID contains this, plus neighbours."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file path."),
):
    """Export the graph to Graphviz DOT."""
    engine = _open_engine(ctx)
    if output is None:
        output = Path.cwd() / "archgraph.dot"
    export_dot(engine.graph, output, focus=focus)
    typer.echo(f"Exported graph to {output}")


@config_app.command("show")
def config_show():
    """Show effective query defaults."""
    values = config_manager.load_query_config()
    table = Table(title="Query Defaults", show_lines=False)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")
    for key in config_manager.DEFAULT_QUERY_CONFIG:
        table.add_row(key, str(values.get(key)))
    console.print(table)
    console.print(f"[dim]User config: {config_manager.user_config_file()}[/dim]")


@config_app.command("set")
def config_set(
    default_depth: Optional[int] = typer.Option(None, "--default-depth", min=config.UNLIMITED_DEPTH),
    search_limit: Optional[int] = typer.Option(None, "--search-limit", min=1),
    concise: Optional[bool] = typer.Option(None, "--concise/--no-concise"),
):
    """Update query defaults in the user config file."""
    if default_depth is None and search_limit is None and concise is None:
        raise typer.BadParameter("Nothing to set. Pass at least one option.")
    saved = config_manager.save_query_config(
        default_depth=default_depth, search_limit=search_limit, concise=concise
    )
    if not saved:
        typer.echo("Failed to save configuration.", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Saved query defaults to {config_manager.user_config_file()}")


if __name__ == "__main__":
    app()
