from __future__ import annotations

import threading

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

from fasthash.models import Change


def _shorten_path(path: str, max_len: int = 64) -> str:
    if len(path) <= max_len:
        return path
    keep = max_len - 3
    if keep <= 0:
        return path[:max_len]
    head = keep // 2
    tail = keep - head
    return f"{path[:head]}...{path[-tail:]}"


class HashProgressUI:
    """Byte-weighted progress bar fed by the hashing pipeline."""

    def __init__(
        self,
        *,
        total_files: int,
        total_bytes: int,
        console: Console | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._total_files = total_files
        self._done_files = 0
        self._by_bytes = total_bytes > 0
        amount_columns = (
            (DownloadColumn(binary_units=True), TransferSpeedColumn())
            if self._by_bytes
            else (MofNCompleteColumn(),)
        )
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]Hashing"),
            BarColumn(),
            *amount_columns,
            TimeRemainingColumn(),
            TextColumn("{task.fields[file_progress]}"),
            TextColumn("{task.fields[path]}"),
            console=console,
            transient=True,
            expand=True,
        )
        self._task_id: TaskID = self._progress.add_task(
            "hash",
            total=total_bytes if self._by_bytes else total_files,
            file_progress=f"0/{total_files} files",
            path="",
        )

    def __enter__(self) -> "HashProgressUI":
        self._progress.__enter__()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._progress.__exit__(exc_type, exc, tb)

    def file_done(self, rel_path: str, size: int) -> None:
        with self._lock:
            self._done_files += 1
            self._progress.update(
                self._task_id,
                advance=size if self._by_bytes else 1,
                file_progress=f"{self._done_files}/{self._total_files} files",
                path=_shorten_path(rel_path),
            )


class MirrorProgressUI:
    def __init__(self, *, total_changes: int, console: Console | None = None) -> None:
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold]Mirroring"),
            BarColumn(),
            MofNCompleteColumn(),
            TextColumn("{task.fields[path]}"),
            console=console,
            transient=True,
            expand=True,
        )
        self._task_id: TaskID = self._progress.add_task("mirror", total=total_changes, path="")

    def __enter__(self) -> "MirrorProgressUI":
        self._progress.__enter__()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._progress.__exit__(exc_type, exc, tb)

    def change_done(self, change: Change) -> None:
        self._progress.update(
            self._task_id,
            advance=1,
            path=f"{change.kind.value} {_shorten_path(change.rel_path)}",
        )
