"""Cache management commands for the protosync CLI.

Inspect and clean the git clones and downloaded JARs kept in the user cache
directory. Cached content is only an optimization, so cleaning is always safe;
the next sync re-clones or re-downloads what it needs.
"""

from __future__ import annotations

import contextlib
from pathlib import Path

import click
from rich.table import Table

from ..cache import clear_cache
from ..cache import get_cache_dir
from ..cache import get_clone_dir
from ..cache import scan_cache
from ..console import console
from ..resolver.artifactory import human_size
from ..utils.error_format import escape_markup


def _get_size(path: Path) -> int:
    """Get total size of a file or directory in bytes."""
    if path.is_file():
        return path.stat().st_size
    total = 0
    with contextlib.suppress(OSError):
        for entry in path.rglob("*"):
            if entry.is_file():
                with contextlib.suppress(OSError):
                    total += entry.stat().st_size
    return total


@click.group(invoke_without_command=True)
@click.pass_context
def cache(ctx: click.Context):
    """Manage cached git clones and downloaded archives."""
    if ctx.invoked_subcommand is None:
        click.echo("\n" + ctx.get_help())
        ctx.exit()


@cache.command(name="path")
def cache_path():
    """Show the cache directory paths."""
    console.print(f"[cyan]{escape_markup(get_cache_dir())}[/cyan] [dim](archives)[/dim]")
    console.print(f"[cyan]{escape_markup(get_clone_dir())}[/cyan] [dim](git clones)[/dim]")


@cache.command(name="list")
@click.option(
    "--kind",
    type=click.Choice(["all", "clone", "archive"]),
    default="all",
    help="Filter by cache entry kind",
)
def cache_list(kind: str):
    """List cached clones and archives with sizes."""
    entries = [e for e in scan_cache() if kind == "all" or e.kind == kind]
    if not entries:
        console.print("[dim]Nothing cached.[/dim]")
        console.print(f"[dim]Path: {escape_markup(get_cache_dir())}[/dim]")
        return

    table = Table(title="protosync cache")
    table.add_column("Kind", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Ref", style="green")
    table.add_column("URL", style="dim")
    table.add_column("Cached", style="dim")
    table.add_column("Size", justify="right")

    total_size = 0
    for entry in entries:
        size = _get_size(entry.cache_path)
        total_size += size
        table.add_row(
            entry.kind,
            escape_markup(entry.name),
            escape_markup(entry.ref),
            escape_markup(entry.url),
            entry.cached_at,
            human_size(size),
        )

    console.print(table)
    console.print(f"\n[bold]Total:[/bold] {len(entries)} entries, {human_size(total_size)}")


@cache.command(name="clean")
@click.option("--force", "-f", is_flag=True, help="Skip confirmation prompt")
@click.option(
    "--mutable-only",
    is_flag=True,
    help="Only clean clones of branches, keep tags, SHAs and archives",
)
def cache_clean(force: bool, mutable_only: bool):
    """Delete cached clones and archives."""
    entries = scan_cache()
    to_clean = [e for e in entries if e.is_mutable] if mutable_only else entries
    if not to_clean:
        console.print("[dim]Nothing to clean.[/dim]")
        return

    total_size = sum(_get_size(e.cache_path) for e in to_clean)
    console.print(f"\n[bold]Will clean {len(to_clean)} entries ({human_size(total_size)}):[/bold]")
    for entry in to_clean:
        console.print(f"  [dim]{entry.kind}[/dim] {escape_markup(entry.name)}@{escape_markup(entry.ref)}")

    if not force and not click.confirm("\nProceed with cleaning cache?"):
        console.print("[yellow]Aborted.[/yellow]")
        return

    cleaned, failures = clear_cache(to_clean)
    for entry, error in failures:
        console.print(f"[red]Error cleaning {escape_markup(entry.cache_path)}:[/red] {escape_markup(error)}")

    if failures:
        console.print(f"\n[yellow]Cleaned {cleaned} entries, {len(failures)} errors[/yellow]")
    else:
        console.print(f"\n[green]Cleaned {cleaned} entries ({human_size(total_size)})[/green]")
