from __future__ import annotations

from dataclasses import dataclass

from fasthash.models import Change, ChangeKind, Index


@dataclass(slots=True)
class DiffSummary:
    added: int
    updated: int
    deleted: int

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.updated or self.deleted)

    @classmethod
    def from_changes(cls, changes: list[Change]) -> "DiffSummary":
        counts = {kind: 0 for kind in ChangeKind}
        for change in changes:
            counts[change.kind] += 1
        return cls(
            added=counts[ChangeKind.ADDED],
            updated=counts[ChangeKind.UPDATED],
            deleted=counts[ChangeKind.DELETED],
        )


def diff_indices(old: Index, new: Index) -> list[Change]:
    """Classify paths as added, updated (hash differs) or deleted.

    Size and timestamp are ignored; only ``hash_hex`` decides whether a shared
    path changed. Output is ordered by kind (A, U, D) and then by path.
    """
    changes: list[Change] = []

    for path, new_entry in new.items():
        old_entry = old.get(path)
        if old_entry is None:
            changes.append(Change(ChangeKind.ADDED, path))
        elif old_entry.hash_hex != new_entry.hash_hex:
            changes.append(Change(ChangeKind.UPDATED, path))

    for path in old:
        if path not in new:
            changes.append(Change(ChangeKind.DELETED, path))

    changes.sort(key=lambda change: change.sort_key)
    return changes
