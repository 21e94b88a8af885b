from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable


@dataclass(frozen=True, slots=True)
class Entry:
    rel_path: str
    size: int
    tstamp: int
    hash_hex: str

    def to_line(self) -> str:
        return f"{self.rel_path}:{self.size}:{self.tstamp}:{self.hash_hex}"


Index = dict[str, Entry]


def build_index(entries: Iterable[Entry]) -> Index:
    return {entry.rel_path: entry for entry in entries}


def sorted_entries(index: Index) -> list[Entry]:
    return [index[path] for path in sorted(index)]


class ChangeKind(str, Enum):
    ADDED = "A"
    UPDATED = "U"
    DELETED = "D"

    @property
    def rank(self) -> int:
        return _CHANGE_RANKS[self]


_CHANGE_RANKS = {ChangeKind.ADDED: 0, ChangeKind.UPDATED: 1, ChangeKind.DELETED: 2}


@dataclass(frozen=True, slots=True)
class Change:
    kind: ChangeKind
    rel_path: str

    @property
    def sort_key(self) -> tuple[int, str]:
        return (self.kind.rank, self.rel_path)

    @property
    def is_deletion(self) -> bool:
        return self.kind is ChangeKind.DELETED

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.rel_path}"
