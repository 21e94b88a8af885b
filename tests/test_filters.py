from __future__ import annotations

import os
from pathlib import Path

import pytest

from conftest import write_files
from fasthash.filters import build_path_filter, relative_posix, walk_files


def _rel(root: Path, paths: list[Path]) -> list[str]:
    return [relative_posix(root, path) for path in paths]


def test_plain_name_prunes_directory_and_descendants(tmp_path: Path) -> None:
    write_files(
        tmp_path,
        {
            "keep.txt": "k",
            "build/out.o": "o",
            "build/sub/x.txt": "x",
            "src/build/nested.txt": "n",
            "src/main.c": "m",
        },
    )

    result = walk_files(tmp_path, build_path_filter(["build"]))

    assert _rel(tmp_path, result.paths) == ["keep.txt", "src/main.c"]
    assert result.warnings == []


def test_pruned_directory_is_never_descended(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    write_files(tmp_path, {"build/sub/x.txt": "x", "a.txt": "a"})
    visited: list[str] = []
    real_walk = os.walk

    def _recording_walk(*args, **kwargs):
        for dirpath, dirnames, filenames in real_walk(*args, **kwargs):
            visited.append(relative_posix(tmp_path, Path(dirpath)))
            yield dirpath, dirnames, filenames

    monkeypatch.setattr("fasthash.filters.os.walk", _recording_walk)

    walk_files(tmp_path, build_path_filter(["build"]))

    assert visited == ["."]


def test_glob_patterns_and_normalization(tmp_path: Path) -> None:
    write_files(
        tmp_path,
        {
            "a.log": "1",
            "logs/b.log": "2",
            "notes.txt": "3",
            ".git/HEAD": "4",
            "state.txt": "5",
        },
    )

    path_filter = build_path_filter(["*.log", "./.git/**", " state.txt ", ""])
    result = walk_files(tmp_path, path_filter)

    assert _rel(tmp_path, result.paths) == ["notes.txt"]
    assert path_filter.exclude_patterns == ("*.log", ".git/**", "state.txt")


def test_backslash_patterns_are_normalized() -> None:
    path_filter = build_path_filter(["out\\tmp"])

    assert path_filter.excludes("out/tmp/file.bin")
    assert not path_filter.excludes("out/file.bin")


def test_results_are_sorted_relative_paths(tmp_path: Path) -> None:
    write_files(tmp_path, {"b/z.txt": "", "a.txt": "", "b/a.txt": "", "B.txt": ""})

    result = walk_files(tmp_path)

    assert _rel(tmp_path, result.paths) == ["B.txt", "a.txt", "b/a.txt", "b/z.txt"]
    assert all(path.is_absolute() for path in result.paths)


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_symlinks_skipped_unless_following(tmp_path: Path) -> None:
    root = tmp_path / "root"
    outside = tmp_path / "outside"
    write_files(root, {"real.txt": "r"})
    write_files(outside, {"linked_dir/inner.txt": "i", "file.txt": "f"})
    try:
        (root / "link.txt").symlink_to(outside / "file.txt")
        (root / "dir_link").symlink_to(outside / "linked_dir", target_is_directory=True)
    except OSError:
        pytest.skip("cannot create symlinks here")

    plain = walk_files(root)
    followed = walk_files(root, follow_symlinks=True)

    assert _rel(root, plain.paths) == ["real.txt"]
    assert _rel(root, followed.paths) == ["dir_link/inner.txt", "link.txt", "real.txt"]


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
def test_symlink_loop_terminates_when_following(tmp_path: Path) -> None:
    write_files(tmp_path, {"sub/a.txt": "a"})
    try:
        (tmp_path / "sub" / "loop").symlink_to(tmp_path, target_is_directory=True)
    except OSError:
        pytest.skip("cannot create symlinks here")

    result = walk_files(tmp_path, follow_symlinks=True)

    assert "sub/a.txt" in _rel(tmp_path, result.paths)
    assert any("already visited" in warning for warning in result.warnings)


@pytest.mark.skipif(
    os.name != "posix" or os.geteuid() == 0, reason="needs POSIX permissions as non-root"
)
def test_unreadable_directory_becomes_warning(tmp_path: Path) -> None:
    write_files(tmp_path, {"ok.txt": "ok", "locked/secret.txt": "s"})
    locked = tmp_path / "locked"
    locked.chmod(0)
    try:
        result = walk_files(tmp_path)
    finally:
        locked.chmod(0o755)

    assert _rel(tmp_path, result.paths) == ["ok.txt"]
    assert len(result.warnings) == 1
