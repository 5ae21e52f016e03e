"""CLI entrypoints for shellwatch."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer

from shellwatch.app import (
    AppConfigError,
    CommandRequest,
    initialize_config,
    load_app_config,
    parse_env_entries,
    run_command,
)
from shellwatch.execution.base import Outcome
from shellwatch.execution.cancel import CancelSignal
from shellwatch.fs.tree import FileTreeError, dir_depth, dir_tree_size, find_dirs, find_files
from shellwatch.util.logging import configure_logging

EXIT_TIMED_OUT = 124
EXIT_CANCELLED = 130
_POLL_INTERVAL_S = 0.1

app = typer.Typer(help="Run shell commands under supervision.")


@app.callback()
def main(
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        help="Logging level (e.g., DEBUG, INFO, WARNING).",
    ),
) -> None:
    """Configure CLI-level options."""

    configure_logging(log_level)


@app.command()
def init(directory: Path = typer.Argument(Path("."))) -> None:
    """Write a default shellwatch.yaml into a directory."""

    try:
        config_path = initialize_config(directory)
    except AppConfigError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc
    typer.echo(f"Created configuration at {config_path}")


@app.command("run")
def run_cmd(
    command_line: str = typer.Argument(..., help="Command line handed to the shell."),
    timeout_s: Optional[float] = typer.Option(
        None,
        "--timeout",
        "-t",
        help="Kill the command after this many seconds.",
    ),
    env: Optional[List[str]] = typer.Option(
        None,
        "--env",
        "-e",
        help="Extra KEY=VALUE environment entry; may be repeated.",
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file or directory containing one.",
    ),
) -> None:
    """Run a command, streaming its output, and exit with its status."""

    cancel = CancelSignal()
    try:
        config = load_app_config(config_path)
        request = CommandRequest(
            command_line=command_line,
            timeout_s=timeout_s,
            env=parse_env_entries(env or []),
            cancel=cancel,
            background=True,
        )
    except AppConfigError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    outcome = run_command(request, config)
    try:
        while not outcome.wait(_POLL_INTERVAL_S):
            _flush_output(outcome)
    except KeyboardInterrupt:
        cancel.cancel()
        outcome.wait()
    _flush_output(outcome)

    raise typer.Exit(code=_exit_code_for(outcome))


@app.command("find-files")
def find_files_command(
    root: Path = typer.Argument(..., help="Directory to search."),
    pattern: str = typer.Argument(..., help="File name glob, e.g. '*.log'."),
    max_depth: Optional[int] = typer.Option(
        None,
        "--max-depth",
        help="Maximum depth (0 = unlimited).",
    ),
    exclude: Optional[List[str]] = typer.Option(
        None,
        "--exclude",
        "-x",
        help="Directory name to skip; may be repeated.",
    ),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c"),
) -> None:
    """List files whose name matches a glob."""

    depth, ignore = _search_defaults(config_path, max_depth, exclude)
    for path in find_files(root, pattern, depth, ignore):
        typer.echo(str(path))


@app.command("find-dirs")
def find_dirs_command(
    root: Path = typer.Argument(..., help="Directory to search."),
    pattern: str = typer.Argument(..., help="Directory name glob."),
    max_depth: Optional[int] = typer.Option(
        None,
        "--max-depth",
        help="Maximum depth (0 = unlimited).",
    ),
    exclude: Optional[List[str]] = typer.Option(
        None,
        "--exclude",
        "-x",
        help="Directory name to skip; may be repeated.",
    ),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c"),
) -> None:
    """List directories whose name matches a glob."""

    depth, ignore = _search_defaults(config_path, max_depth, exclude)
    for path in find_dirs(root, pattern, depth, ignore):
        typer.echo(str(path))


@app.command("size")
def size_command(
    root: Path = typer.Argument(..., help="Directory to measure."),
    exclude: Optional[List[str]] = typer.Option(
        None,
        "--exclude",
        "-x",
        help="Directory name to skip; may be repeated.",
    ),
) -> None:
    """Print the total size in bytes of all files under a directory."""

    typer.echo(str(dir_tree_size(root, exclude or [])))


@app.command("depth")
def depth_command(
    root: Path = typer.Argument(..., help="Root directory."),
    path: Path = typer.Argument(..., help="Path below the root."),
) -> None:
    """Print how many directory levels a path sits below a root."""

    try:
        depth = dir_depth(root, path)
    except (FileTreeError, FileNotFoundError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(str(depth))


def _flush_output(outcome: Outcome) -> None:
    stdout = outcome.stdout.read()
    if stdout:
        typer.echo(stdout, nl=False)
    stderr = outcome.stderr.read()
    if stderr:
        typer.echo(stderr, nl=False, err=True)


def _exit_code_for(outcome: Outcome) -> int:
    if outcome.timed_out:
        typer.echo(f"Error: {outcome.error_text}", err=True)
        return EXIT_TIMED_OUT
    if outcome.cancelled:
        typer.echo(f"Error: {outcome.error_text}", err=True)
        return EXIT_CANCELLED
    if outcome.is_error or outcome.exit_code is None:
        typer.echo(f"Error: {outcome.error_text}", err=True)
        return 1
    if outcome.exit_code < 0:
        return 128 - outcome.exit_code
    return outcome.exit_code


def _search_defaults(
    config_path: Path | None,
    max_depth: int | None,
    exclude: list[str] | None,
) -> tuple[int, list[str]]:
    try:
        files_config = load_app_config(config_path).files
    except AppConfigError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    depth = files_config.max_depth if max_depth is None else max_depth
    ignore = list(files_config.exclude_dirs) if exclude is None else exclude
    return depth, ignore
