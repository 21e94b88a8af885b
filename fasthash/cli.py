from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Sequence

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text

from fasthash import __version__
from fasthash.config import (
    FileConfig,
    HashAlgorithm,
    IndexConfig,
    load_config_file,
    merge_excludes,
)
from fasthash.errors import FastHashError
from fasthash.index_service import RunHooks, RunResult, report_lines, run_index
from fasthash.mirror import ChangeCallback
from fasthash.models import Change
from fasthash.progress_ui import HashProgressUI, MirrorProgressUI
from fasthash.scanner import ProgressCallback


app = typer.Typer(
    help=(
        "Index a directory with file hashes and print the diff against a previous state file. "
        "Concurrent runs against the same state file or target are not coordinated; "
        "use external locking if you need it."
    ),
    add_completion=False,
)
console = Console(highlight=False, soft_wrap=True, emoji=False)
err_console = Console(stderr=True, highlight=False, soft_wrap=True)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


class CliRunHooks(RunHooks):
    def __init__(self, *, show_progress: bool) -> None:
        self._show_progress = show_progress

    def warn(self, message: str) -> None:
        err_console.print(Text(f"Warning: {message}", style="yellow"))

    def changes_ready(self, changes: Sequence[Change]) -> None:
        for line in report_lines(changes):
            console.print(line, markup=False)

    @contextmanager
    def hashing(self, root: Path, paths: Sequence[Path]) -> Iterator[ProgressCallback | None]:
        if not self._show_progress or not paths:
            yield None
            return
        with HashProgressUI(
            total_files=len(paths),
            total_bytes=_total_bytes(paths),
            console=err_console,
        ) as ui:
            yield ui.file_done

    @contextmanager
    def mirroring(self, changes: Sequence[Change]) -> Iterator[ChangeCallback | None]:
        if not self._show_progress or not changes:
            yield None
            return
        with MirrorProgressUI(total_changes=len(changes), console=err_console) as ui:
            yield ui.change_done


def _total_bytes(paths: Sequence[Path]) -> int:
    total = 0
    for path in paths:
        try:
            total += os.stat(path).st_size
        except OSError:
            # Only an estimate for the progress bar; hashing reports the failure.
            continue
    return total


def _render_summary(result: RunResult, config: IndexConfig) -> None:
    summary = result.summary
    if not summary.has_changes:
        err_console.print("[green]No changes detected.[/green]")
    err_console.print(
        f"Indexed {result.entry_count} file(s): "
        f"{summary.added} added, {summary.updated} updated, {summary.deleted} deleted"
    )
    if result.mirror is not None:
        err_console.print(
            f"Mirrored to {config.target}: {len(result.mirror.copied)} copied, "
            f"{len(result.mirror.deleted)} deleted, {len(result.mirror.skipped)} skipped"
        )
    if result.state_written:
        err_console.print(f"State written: {config.state_file}")
    else:
        err_console.print(f"[yellow]State not written (--no-write):[/yellow] {config.state_file}")


def _build_config(
    state_file: Path,
    directory: Path,
    *,
    excludes: tuple[str, ...],
    algo: HashAlgorithm | None,
    no_write: bool,
    follow_symlinks: bool | None,
    target: Path | None,
    workers: int | None,
    config_file: Path | None,
) -> IndexConfig:
    file_config = load_config_file(config_file) if config_file is not None else FileConfig()
    return IndexConfig(
        root=directory,
        state_file=state_file,
        target=target if target is not None else file_config.target,
        excludes=merge_excludes(file_config.excludes, excludes),
        algorithm=algo or file_config.algorithm or HashAlgorithm.BLAKE3,
        no_write=no_write,
        follow_symlinks=follow_symlinks if follow_symlinks is not None else bool(file_config.follow_symlinks),
        workers=workers if workers is not None else file_config.workers,
        extra_excluded_files=(config_file,) if config_file is not None else (),
    )


def _run(config: IndexConfig, *, show_progress: bool) -> int:
    try:
        result = run_index(config, CliRunHooks(show_progress=show_progress))
    except KeyboardInterrupt:
        err_console.print("[yellow]Interrupted.[/yellow] State was not written; a mirror may be partial.")
        return 130
    except FastHashError as exc:
        err_console.print(Text(f"Error: {exc}", style="red"))
        return 1

    _render_summary(result, config)
    return 0


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.command()
def main(
    state_file: Path = typer.Argument(..., help="Snapshot file read at start and rewritten at the end."),
    directory: Path = typer.Argument(..., help="Directory to index."),
    exclude: list[str] | None = typer.Option(
        None,
        "--exclude",
        "-x",
        help="Exclude glob pattern(s); a plain name prunes that directory everywhere (repeatable).",
    ),
    algo: HashAlgorithm | None = typer.Option(
        None,
        "--algo",
        case_sensitive=False,
        help="Hash algorithm. Defaults to blake3.",
    ),
    no_write: bool = typer.Option(False, "--no-write", help="Do not rewrite the state file."),
    follow_symlinks: bool = typer.Option(
        False,
        "--follow-symlinks",
        help="Follow symbolic links while walking the directory.",
    ),
    target: Path | None = typer.Option(
        None,
        "--target",
        help="Mirror added/updated/deleted files into this directory.",
    ),
    workers: int | None = typer.Option(
        None,
        "--workers",
        min=1,
        help="Hashing threads. Defaults to the CPU count.",
    ),
    config_file: Path | None = typer.Option(
        None,
        "--config",
        help="JSON file with defaults: exclude, algo, target, follow_symlinks, workers.",
    ),
    progress: bool = typer.Option(True, "--progress/--no-progress", help="Show progress bars on stderr."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr."),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    """Hash DIRECTORY, print A/U/D lines against STATE_FILE, optionally mirror to --target."""
    _configure_logging(verbose)
    try:
        config = _build_config(
            state_file,
            directory,
            excludes=tuple(exclude or ()),
            algo=algo,
            no_write=no_write,
            follow_symlinks=True if follow_symlinks else None,
            target=target,
            workers=workers,
            config_file=config_file,
        )
    except FastHashError as exc:
        err_console.print(Text(f"Error: {exc}", style="red"))
        raise typer.Exit(code=1)

    raise typer.Exit(code=_run(config, show_progress=progress))
