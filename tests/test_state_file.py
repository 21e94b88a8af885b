from __future__ import annotations

import os
import stat
from pathlib import Path

import pytest

from conftest import entry
from fasthash.errors import StateFileError
from fasthash.models import build_index
from fasthash.state_file import load_index, parse_lines, save_index


def test_missing_state_file_loads_as_empty_index(tmp_path: Path) -> None:
    result = load_index(tmp_path / "missing.txt")

    assert result.index == {}
    assert result.warnings == []


def test_save_then_load_reconstructs_index(tmp_path: Path) -> None:
    index = build_index(
        [
            entry("b/c.txt", "ab" * 32, size=12, tstamp=1_600_000_000),
            entry("a.txt", "cd" * 16, size=0, tstamp=0),
            entry("dir with space/ü.bin", "ef" * 32, size=2**64 - 1, tstamp=5),
        ]
    )
    path = tmp_path / "state.txt"

    save_index(path, index)
    result = load_index(path)

    assert result.index == index
    assert result.warnings == []


def test_save_writes_sorted_records_and_creates_parents(tmp_path: Path) -> None:
    index = build_index([entry("z.txt", "11"), entry("a/b.txt", "22"), entry("a.txt", "33")])
    path = tmp_path / "nested" / "deeper" / "state.txt"

    save_index(path, index)

    assert path.read_text(encoding="utf-8").splitlines() == [
        "a.txt:1:1700000000:33",
        "a/b.txt:1:1700000000:22",
        "z.txt:1:1700000000:11",
    ]
    assert [p.name for p in path.parent.iterdir()] == ["state.txt"]


def test_save_replaces_previous_content_whole(tmp_path: Path) -> None:
    path = tmp_path / "state.txt"
    save_index(path, build_index([entry("old.txt", "00"), entry("keep.txt", "11")]))

    save_index(path, build_index([entry("keep.txt", "22")]))

    assert path.read_text(encoding="utf-8") == "keep.txt:1:1700000000:22\n"


def test_malformed_line_is_skipped_with_warning(tmp_path: Path) -> None:
    path = tmp_path / "state.txt"
    path.write_text(
        "a.txt:3:100:aaaa\nfoo:bar\nb.txt:4:200:bbbb\n",
        encoding="utf-8",
    )

    result = load_index(path)

    assert sorted(result.index) == ["a.txt", "b.txt"]
    assert "foo" not in result.index
    assert len(result.warnings) == 1
    assert "line 2" in result.warnings[0]


def test_comments_and_blank_lines_are_ignored() -> None:
    result = parse_lines([b"# header", b"", b"   ", b"  a.txt:1:2:ff  ", b"#x:1:2:3"])

    assert list(result.index) == ["a.txt"]
    assert result.index["a.txt"].hash_hex == "ff"
    assert result.warnings == []


def test_unparsable_numbers_default_to_zero() -> None:
    result = parse_lines([b"a.txt:abc:-5:ff", b"b.txt:18446744073709551616:7:ee"])

    assert result.index["a.txt"].size == 0
    assert result.index["a.txt"].tstamp == 0
    assert result.index["b.txt"].size == 0
    assert result.index["b.txt"].tstamp == 7
    assert len(result.warnings) == 3


def test_duplicate_path_keeps_last_entry_and_warns() -> None:
    result = parse_lines([b"a.txt:1:1:first", b"a.txt:2:2:second"])

    assert result.index["a.txt"].hash_hex == "second"
    assert result.index["a.txt"].size == 2
    assert any("duplicate" in warning for warning in result.warnings)


def test_hash_field_keeps_extra_colons() -> None:
    result = parse_lines([b"a.txt:1:2:ff:ee"])

    assert result.index["a.txt"].hash_hex == "ff:ee"


def test_invalid_utf8_line_is_skipped() -> None:
    result = parse_lines([b"\xff\xfe:1:2:ff", b"ok.txt:1:2:aa"])

    assert list(result.index) == ["ok.txt"]
    assert len(result.warnings) == 1


def test_unreadable_state_path_degrades_to_empty(tmp_path: Path) -> None:
    directory = tmp_path / "state.txt"
    directory.mkdir()

    result = load_index(directory)

    assert result.index == {}
    assert len(result.warnings) == 1


def test_save_fails_when_parent_cannot_be_created(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")

    with pytest.raises(StateFileError) as excinfo:
        save_index(blocker / "state.txt", build_index([entry("a.txt", "00")]))

    assert excinfo.value.path == blocker


def test_save_keeps_existing_file_mode(tmp_path: Path) -> None:
    path = tmp_path / "state.txt"
    path.write_text("", encoding="utf-8")
    os.chmod(path, 0o644)

    save_index(path, build_index([entry("a.txt", "00")]))

    assert stat.S_IMODE(path.stat().st_mode) == 0o644


def test_new_state_file_uses_umask_default_mode(tmp_path: Path) -> None:
    path = tmp_path / "state.txt"
    umask = os.umask(0o022)
    try:
        save_index(path, build_index([entry("a.txt", "00")]))
    finally:
        os.umask(umask)

    assert stat.S_IMODE(path.stat().st_mode) == 0o644


def test_save_through_symlink_updates_link_target(tmp_path: Path) -> None:
    real = tmp_path / "real.txt"
    real.write_text("", encoding="utf-8")
    link = tmp_path / "link.txt"
    link.symlink_to(real)

    save_index(link, build_index([entry("a.txt", "00")]))

    assert link.is_symlink()
    assert real.read_text(encoding="utf-8") == "a.txt:1:1700000000:00\n"
