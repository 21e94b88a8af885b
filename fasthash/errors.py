from __future__ import annotations

from pathlib import Path


class FastHashError(Exception):
    """Base class for errors that abort a run."""


class ConfigError(FastHashError):
    pass


class IndexingError(FastHashError):
    def __init__(self, path: Path | str, message: str) -> None:
        self.path = Path(path)
        super().__init__(f"{message}: {self.path}")


class SyncError(FastHashError):
    def __init__(self, operation: str, path: Path | str, message: str) -> None:
        self.operation = operation
        self.path = Path(path)
        super().__init__(f"{message} ({operation}): {self.path}")


class StateFileError(FastHashError):
    def __init__(self, path: Path | str, message: str) -> None:
        self.path = Path(path)
        super().__init__(f"{message}: {self.path}")
