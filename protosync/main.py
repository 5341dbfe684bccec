"""protosync CLI - sync the transitive import closure of .proto files."""

from __future__ import annotations

import logging
from pathlib import Path

import click
from rich.syntax import Syntax

from .commands.cache import cache as cache_group
from .config import BUILTIN_CONFIG
from .config import DEFAULT_CONFIG_FILE
from .config import Config
from .config import config_schema
from .config import load_config
from .console import console
from .console import err_console
from .errors import ProtosyncError
from .logging_setup import LEVELS
from .logging_setup import init_logging
from .resolver.base import Resolver
from .resolver.base import combine
from .resolver.local import LocalResolver
from .sync import sync
from .utils.error_format import error_hint
from .utils.error_format import escape_markup
from .utils.error_format import format_error_message

logger = logging.getLogger(__name__)

HELP = """Sync the transitive import closure of a set of .proto files to a local directory.

A configuration file tells protosync where to look for .proto files. It then
retrieves and parses the .proto files given as sources, recursively retrieving
all imports. Run `protosync schema` to see the configuration format and the
default repositories.
"""


def _parse_variables(ctx: click.Context, param: click.Parameter, values: tuple[str, ...]) -> dict[str, str]:
    variables: dict[str, str] = {}
    for value in values:
        key, sep, val = value.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE but got {value!r}", ctx=ctx, param=param)
        variables[key] = val
    return variables


def load_effective_config(config_path: str | None, variables: dict[str, str], no_defaults: bool) -> Config:
    """Load the configuration the way the CLI sees it.

    An explicit ``--config`` wins; otherwise ``./protosync.yaml`` is used if it
    exists. The built-in repositories are appended unless ``no_defaults``.
    """
    if config_path:
        config = load_config(config_path, variables)
    elif Path(DEFAULT_CONFIG_FILE).exists():
        config = load_config(DEFAULT_CONFIG_FILE, variables)
    else:
        config = Config()
    if not no_defaults:
        config = config.with_defaults()
    return config


def _print_error(e: BaseException) -> None:
    err_console.print(f"[red]Error:[/red] {escape_markup(format_error_message(e))}")
    if hint := error_hint(e):
        err_console.print(f"[dim]Tip: {escape_markup(hint)}[/dim]")


def _close_resolvers(resolvers: list[Resolver]) -> None:
    for resolver in resolvers:
        close = getattr(resolver, "close", None)
        if close is not None:
            close()


@click.group(help=HELP)
@click.version_option(package_name="protosync")
def cli():
    pass


@cli.command("sync")
@click.argument("sources", nargs=-1)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help=f"protosync config file path (default: ./{DEFAULT_CONFIG_FILE} if present).",
)
@click.option(
    "--set",
    "variables",
    multiple=True,
    metavar="KEY=VALUE",
    callback=_parse_variables,
    help="Set variables for interpolating into the config.",
)
@click.option(
    "--dest",
    "-d",
    type=click.Path(exists=True, file_okay=False),
    metavar="DIR",
    help="Destination root to sync files to.",
)
@click.option(
    "--include",
    "-I",
    "includes",
    multiple=True,
    help="Additional local include roots to search, and scan for dependencies to resolve.",
)
@click.option("--no-defaults", is_flag=True, help="Don't include the set of default repositories.")
@click.option(
    "--log-level",
    type=click.Choice(LEVELS, case_sensitive=False),
    default=None,
    help="Minimum log level.",
)
@click.option("--log-json", type=click.Path(dir_okay=False), help="Also write JSONL logs to this file.")
@click.pass_context
def sync_cmd(
    ctx: click.Context,
    sources: tuple[str, ...],
    config_path: str | None,
    variables: dict[str, str],
    dest: str | None,
    includes: tuple[str, ...],
    no_defaults: bool,
    log_level: str | None,
    log_json: str | None,
):
    """Sync proto SOURCES (import paths or local roots) and their imports."""
    log = init_logging(log_level, log_json, console=err_console)

    try:
        config = load_effective_config(config_path, variables, no_defaults)
    except ProtosyncError as e:
        _print_error(e)
        ctx.exit(1)

    dest = dest or config.dest
    if not dest:
        raise click.UsageError("destination not provided on command line (--dest) or configuration file", ctx=ctx)

    resolvers: list[Resolver] = []
    try:
        resolvers, all_sources = config.resolve()
        resolvers.append(LocalResolver(list(includes)))
        all_sources += [*sources, *includes]
        if not all_sources:
            raise click.UsageError("sources not provided on command line or configuration file", ctx=ctx)

        synced = sync(combine(*resolvers), dest, *all_sources, log=log)
    except ProtosyncError as e:
        _print_error(e)
        ctx.exit(1)
    finally:
        _close_resolvers(resolvers)

    console.print(f"[green]✓ Synced {len(synced)} files to {escape_markup(dest)}[/green]")


@cli.command("schema")
def schema_cmd():
    """Show the configuration file schema and the default repositories."""
    console.print("[bold]Configuration schema:[/bold]")
    console.print_json(config_schema())
    console.print("\n[bold]Default repositories (unless --no-defaults is used):[/bold]")
    console.print(Syntax(BUILTIN_CONFIG, "yaml"))


cli.add_command(cache_group)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
