from __future__ import annotations

from pathlib import Path

import pytest

from fasthash.models import Entry


def write_files(root: Path, files: dict[str, str]) -> None:
    for rel_path, content in files.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


def entry(rel_path: str, hash_hex: str, *, size: int = 1, tstamp: int = 1_700_000_000) -> Entry:
    return Entry(rel_path=rel_path, size=size, tstamp=tstamp, hash_hex=hash_hex)


@pytest.fixture
def source_dir(tmp_path: Path) -> Path:
    root = tmp_path / "source"
    root.mkdir()
    return root


@pytest.fixture
def target_dir(tmp_path: Path) -> Path:
    return tmp_path / "target"
