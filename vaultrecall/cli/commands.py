"""CLI commands for vaultrecall."""

import asyncio
import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from vaultrecall import __version__, __logo__

app = typer.Typer(
    name="vaultrecall",
    help=f"{__logo__} vaultrecall - hybrid long-term memory for agents",
    no_args_is_help=True,
)

console = Console()

ConfigOption = typer.Option(None, "--config", "-c", help="Config file (default ~/.vaultrecall/config.json)")
VaultOption = typer.Option(None, "--vault", help="Override the vault path")


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} vaultrecall v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """vaultrecall - hybrid long-term memory for agents."""
    pass


def _make_engine(config_path: Path | None, vault: str | None):
    """Load config, set up logging and build an engine, exiting on config errors."""
    from vaultrecall.config.loader import ConfigError, load_config
    from vaultrecall.memory.engine import MemoryEngine
    from vaultrecall.utils.logging import setup_logging

    try:
        config = load_config(config_path, vault_path=vault)
    except ConfigError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(1)

    setup_logging(config.log_level)
    return MemoryEngine(config)


def _print_json(data: dict) -> None:
    console.print_json(json.dumps(data, ensure_ascii=False))


# ============================================================================
# Indexing
# ============================================================================


@app.command()
def index(
    config: Path = ConfigOption,
    vault: str = VaultOption,
):
    """Run one full indexing pass."""
    engine = _make_engine(config, vault)

    async def run():
        try:
            if not await engine.health_check():
                return None
            engine.load()
            return await engine.run_index()
        finally:
            await engine.stop()

    report = asyncio.run(run())
    if report is None:
        console.print("[red]Qdrant or Ollama unavailable, see log above[/red]")
        raise typer.Exit(1)
    if report.error:
        console.print(f"[red]Indexing failed: {report.error}[/red]")
        raise typer.Exit(1)

    console.print(
        f"[green]✓[/green] Indexed {report.chunks} chunks from {report.files} files "
        f"in {report.duration_seconds:.1f}s"
    )
    if report.pruned:
        console.print(f"  Pruned {len(report.pruned)} deleted files")
    for rel_path in report.failed:
        console.print(f"  [yellow]failed:[/yellow] {rel_path}")


@app.command()
def watch(
    config: Path = ConfigOption,
    vault: str = VaultOption,
):
    """Index, then keep indexes in sync with the vault until Ctrl+C."""
    engine = _make_engine(config, vault)

    async def run():
        if not await engine.start():
            await engine.stop()
            return False
        console.print(f"{__logo__} Watching {engine.config.vault_dir} (Ctrl+C to stop)")
        try:
            await asyncio.Event().wait()
        finally:
            await engine.stop()
        return True

    try:
        ok = asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\nStopped.")
        return
    if not ok:
        raise typer.Exit(1)


@app.command()
def status(
    config: Path = ConfigOption,
    vault: str = VaultOption,
):
    """Show index state and service health."""
    engine = _make_engine(config, vault)

    async def run():
        try:
            healthy = await engine.health_check()
            engine.load()
            return healthy, engine.status()
        finally:
            await engine.stop()

    healthy, info = asyncio.run(run())

    table = Table(title="vaultrecall Status")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Services", "[green]✓ healthy[/green]" if healthy else "[red]✗ unavailable[/red]")
    for key, value in info.items():
        table.add_row(key, str(value))
    console.print(table)


@app.command()
def tools(
    as_json: bool = typer.Option(False, "--json", help="Print the function definitions as JSON"),
    config: Path = ConfigOption,
    vault: str = VaultOption,
):
    """Show the tools and hooks the plugin registers with a host."""
    from vaultrecall.plugin import LocalHost, MemoryPlugin

    engine = _make_engine(config, vault)
    host = LocalHost()
    try:
        MemoryPlugin(engine.config, engine=engine).register(host)
    finally:
        asyncio.run(engine.close())

    definitions = host.tools.get_definitions()
    if as_json:
        console.print_json(json.dumps(definitions, ensure_ascii=False))
        return

    table = Table(title="Registered Tools")
    table.add_column("Tool", style="cyan")
    table.add_column("Required")
    table.add_column("Description")
    for definition in definitions:
        function = definition["function"]
        table.add_row(
            function["name"],
            ", ".join(function["parameters"].get("required", [])) or "-",
            function["description"],
        )
    console.print(table)

    hooks = [hook.event for hook in host.hooks.list_hooks()]
    console.print(f"Hooks: {', '.join(hooks) if hooks else 'none'}")


# ============================================================================
# Search & read
# ============================================================================


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    max_results: int = typer.Option(None, "--max-results", "-n", help="Maximum results"),
    min_score: float = typer.Option(None, "--min-score", help="Vector similarity threshold"),
    as_json: bool = typer.Option(False, "--json", help="Print the raw result object"),
    config: Path = ConfigOption,
    vault: str = VaultOption,
):
    """Hybrid search over indexed memory."""
    engine = _make_engine(config, vault)

    async def run():
        try:
            engine.load()
            return await engine.memory_search(query, max_results, min_score)
        finally:
            await engine.stop()

    result = asyncio.run(run())
    if as_json:
        _print_json(result)
        return

    if result.get("error"):
        console.print(f"[yellow]{result['error']}[/yellow]")
    if not result["results"]:
        console.print("No results.")
        return

    table = Table(title=f"Results for '{query}'" + ("" if result.get("hybrid") else " (text-only)"))
    table.add_column("Score", style="green")
    table.add_column("Source", style="magenta")
    table.add_column("File", style="cyan")
    table.add_column("Lines")
    table.add_column("Snippet")
    for hit in result["results"]:
        snippet = hit["snippet"].replace("\n", " ")
        table.add_row(
            f"{hit['score']:.3f}",
            hit["source"],
            hit["file"],
            f"{hit['startLine']}-{hit['endLine']}",
            snippet[:120] + ("..." if len(snippet) > 120 else ""),
        )
    console.print(table)


@app.command()
def get(
    path: str = typer.Argument(..., help="Logical path, e.g. vault/Projects/Foo.md"),
    from_line: int = typer.Option(1, "--from", "-f", help="1-based first line"),
    lines: int = typer.Option(None, "--lines", "-l", help="Number of lines"),
    config: Path = ConfigOption,
    vault: str = VaultOption,
):
    """Print lines from an indexed file."""
    engine = _make_engine(config, vault)
    try:
        result = engine.memory_get(path, from_line, lines)
    finally:
        asyncio.run(engine.close())
    if result.get("error"):
        console.print(f"[red]{result['error']}[/red]")
        raise typer.Exit(1)
    console.print(result["text"], markup=False, highlight=False)


@app.command()
def orphans(
    config: Path = ConfigOption,
    vault: str = VaultOption,
):
    """List notes nothing links to."""
    engine = _make_engine(config, vault)
    try:
        engine.load()
        report = engine.memory_organize(dry_run=True)
    finally:
        asyncio.run(engine.close())

    if not report["orphans"]:
        console.print("No orphaned notes.")
        return
    for file in report["orphans"]:
        console.print(f"  {file}")
    console.print(f"\n{report['count']} orphans. [dim]{report['note']}[/dim]")


# ============================================================================
# Captured facts
# ============================================================================


captured_app = typer.Typer(help="Manage facts captured from conversation")
app.add_typer(captured_app, name="captured")


@captured_app.command("list")
def captured_list(
    category: str = typer.Option(None, "--category", help="preference, project, personal or other"),
    limit: int = typer.Option(20, "--limit", "-n", help="Page size"),
    offset: str = typer.Option(None, "--offset", help="Cursor from a previous page"),
    config: Path = ConfigOption,
    vault: str = VaultOption,
):
    """List captured facts."""
    import time

    engine = _make_engine(config, vault)

    async def run():
        try:
            return await engine.captured_list(category, limit, offset)
        finally:
            await engine.stop()

    result = asyncio.run(run())
    if result.get("error"):
        console.print(f"[red]{result['error']}[/red]")
        raise typer.Exit(1)
    if not result["items"]:
        console.print("No captured memories.")
        return

    table = Table(title="Captured Memories")
    table.add_column("ID", style="cyan")
    table.add_column("Category", style="magenta")
    table.add_column("Captured")
    table.add_column("Text")
    for item in result["items"]:
        captured = ""
        if item["capturedAt"]:
            captured = time.strftime("%Y-%m-%d %H:%M", time.localtime(item["capturedAt"] / 1000))
        table.add_row(item["id"], item["category"], captured, item["text"])
    console.print(table)

    if result.get("next_offset") is not None:
        console.print(f"[dim]Next page: --offset {result['next_offset']}[/dim]")


@captured_app.command("delete")
def captured_delete(
    point_id: str = typer.Argument(..., help="Captured memory id"),
    config: Path = ConfigOption,
    vault: str = VaultOption,
):
    """Delete a captured fact."""
    engine = _make_engine(config, vault)

    async def run():
        try:
            return await engine.captured_delete(point_id)
        finally:
            await engine.stop()

    result = asyncio.run(run())
    if result.get("deleted"):
        console.print(f"[green]✓[/green] Deleted {point_id}")
    else:
        console.print(f"[red]Delete failed: {result.get('error')}[/red]")
        raise typer.Exit(1)


@captured_app.command("export")
def captured_export(
    category: str = typer.Option(None, "--category", help="preference, project, personal or other"),
    limit: int = typer.Option(100, "--limit", "-n", help="Maximum facts"),
    title: str = typer.Option(None, "--title", "-t", help="Note title"),
    config: Path = ConfigOption,
    vault: str = VaultOption,
):
    """Export captured facts to the vault inbox."""
    engine = _make_engine(config, vault)

    async def run():
        try:
            return await engine.captured_export(category, limit, title)
        finally:
            await engine.stop()

    result = asyncio.run(run())
    if result.get("error"):
        console.print(f"[red]Export failed: {result['error']}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Exported {result['count']} memories to {result['path']}")


if __name__ == "__main__":
    app()
