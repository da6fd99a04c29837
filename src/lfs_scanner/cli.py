"""Command line interface for LFS Scanner."""

import json
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import ConfigManager
from .exceptions import ConfigError, PipeStartError
from .services.log_scanner import LogDiffDirection
from .services.pipeline import ScanResult
from .services.pointer_scanner import PointerScanner
from .utils.exception_logger import ExceptionLogger

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_START_FAILURE = 1
EXIT_INCOMPLETE = 2

# Global console for rich output
console = Console()
error_console = Console(stderr=True)


def _display_result(result: ScanResult, as_json: bool, title: str) -> None:
    """Print scan results as a table or JSON."""
    if as_json:
        payload = {
            "complete": result.complete,
            "errors": [str(e) for e in result.errors],
            "pointers": [p.to_dict() for p in result.pointers],
        }
        click.echo(json.dumps(payload, indent=2))
        return

    if not result.pointers:
        console.print("No LFS pointers found", style="yellow")
    else:
        table = Table(title=title)
        table.add_column("Path", style="cyan")
        table.add_column("OID", style="green")
        table.add_column("Size", justify="right")
        table.add_column("Blob")
        for pointer in result.pointers:
            table.add_row(
                pointer.name,
                pointer.oid,
                str(pointer.size),
                pointer.sha1[:12] if pointer.sha1 else "-",
            )
        console.print(table)

    if not result.complete:
        for error in result.errors:
            error_console.print(f"⚠️  Scan incomplete: {error}", style="red")


def _exit_code(result: ScanResult) -> int:
    return EXIT_OK if result.complete else EXIT_INCOMPLETE


def _make_scanner(ctx: click.Context) -> PointerScanner:
    return PointerScanner(ctx.obj["repo_dir"], ctx.obj["config"])


@click.group()
@click.option(
    "--path",
    "-p",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Repository directory to scan (default: current directory)",
)
@click.option("--config", "-c", type=click.Path(path_type=Path), help="Config file path")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.version_option(version=__version__, prog_name="lfs-scan")
@click.pass_context
def cli(
    ctx: click.Context,
    path: Optional[Path],
    config: Optional[Path],
    verbose: bool,
) -> None:
    """Find Git LFS pointer files in trees and unpushed history.

    \b
    EXAMPLES:
      lfs-scan tree HEAD            # Every pointer in the HEAD tree
      lfs-scan unpushed             # Pointers not yet on any remote
      lfs-scan log --deletions -- main~10..main
    """
    ctx.ensure_object(dict)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s:%(name)s:%(message)s",
    )

    exception_logger = ExceptionLogger.initialize()
    exception_logger.install_thread_exception_hook()

    repo_dir = path or Path.cwd()
    if config:
        config_manager = ConfigManager(config)
    else:
        config_manager = ConfigManager.create_with_backtrack(repo_dir)

    try:
        ctx.obj["config"] = config_manager.get_config()
    except ConfigError as e:
        error_console.print(f"❌ {e}", style="red")
        sys.exit(EXIT_START_FAILURE)

    ctx.obj["repo_dir"] = repo_dir
    ctx.obj["verbose"] = verbose


@cli.command()
@click.argument("ref", default="HEAD")
@click.option("--json", "as_json", is_flag=True, help="Output results as JSON")
@click.pass_context
def tree(ctx: click.Context, ref: str, as_json: bool) -> None:
    """List every LFS pointer in the tree at REF (default: HEAD)."""
    scanner = _make_scanner(ctx)
    try:
        result = scanner.scan_tree(ref)
    except PipeStartError as e:
        error_console.print(f"❌ {e}", style="red")
        sys.exit(EXIT_START_FAILURE)

    _display_result(result, as_json, f"LFS pointers at {ref}")
    sys.exit(_exit_code(result))


@cli.command()
@click.option("--remote", "-r", default=None, help="Only consider this remote as pushed")
@click.option("--json", "as_json", is_flag=True, help="Output results as JSON")
@click.pass_context
def unpushed(ctx: click.Context, remote: Optional[str], as_json: bool) -> None:
    """List LFS pointers added locally but not pushed to any remote."""
    config = ctx.obj["config"]
    if remote:
        config = config.model_copy(update={"remote": remote})
    scanner = PointerScanner(ctx.obj["repo_dir"], config)
    try:
        result = scanner.scan_unpushed()
    except PipeStartError as e:
        error_console.print(f"❌ {e}", style="red")
        sys.exit(EXIT_START_FAILURE)

    _display_result(result, as_json, "Unpushed LFS pointers")
    sys.exit(_exit_code(result))


@cli.command(context_settings={"ignore_unknown_options": True})
@click.option(
    "--deletions", is_flag=True, help="Collect pointers removed instead of added"
)
@click.option("--include", "-I", multiple=True, help="Only paths matching this pattern")
@click.option("--exclude", "-X", multiple=True, help="Skip paths matching this pattern")
@click.option("--json", "as_json", is_flag=True, help="Output results as JSON")
@click.argument("log_args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def log(
    ctx: click.Context,
    deletions: bool,
    include: Tuple[str, ...],
    exclude: Tuple[str, ...],
    as_json: bool,
    log_args: Tuple[str, ...],
) -> None:
    """List LFS pointers changed by the commits LOG_ARGS select.

    LOG_ARGS are passed to git log, e.g. a revision range.
    """
    direction = LogDiffDirection.DELETIONS if deletions else LogDiffDirection.ADDITIONS
    scanner = _make_scanner(ctx)
    try:
        result = scanner.scan_log(
            list(log_args),
            direction,
            include_paths=list(include) or None,
            exclude_paths=list(exclude) or None,
        )
    except PipeStartError as e:
        error_console.print(f"❌ {e}", style="red")
        sys.exit(EXIT_START_FAILURE)

    _display_result(result, as_json, "LFS pointers in log")
    sys.exit(_exit_code(result))


def main() -> None:
    """Console script entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
