import shutil
import subprocess
from pathlib import Path

import pytest

from smartchunk.errors import ConfigurationError
from smartchunk.ingestion import (
    DEFAULT_IGNORE_PATTERNS,
    git_changed_files,
    merge_ignore_patterns,
    read_file_list,
    walk_source_files,
)


def _touch(path: Path, text: str = "") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


def test_walk_keeps_supported_files_and_prunes_ignored_dirs(tmp_path):
    keep = [
        _touch(tmp_path / "app.py"),
        _touch(tmp_path / "src" / "lib.rs"),
        _touch(tmp_path / "web" / "index.ts"),
    ]
    _touch(tmp_path / "README.md")
    _touch(tmp_path / "node_modules" / "dep" / "index.js")
    _touch(tmp_path / "target" / "debug" / "build.rs")
    _touch(tmp_path / "generated" / "schema.py")

    found = walk_source_files(tmp_path, merge_ignore_patterns(["generated"]))

    assert found == sorted(keep)


def test_merge_ignore_patterns_appends_without_duplicates():
    merged = merge_ignore_patterns(["  docs ", "", "target"])
    assert merged[: len(DEFAULT_IGNORE_PATTERNS)] == list(DEFAULT_IGNORE_PATTERNS)
    assert merged[-1] == "docs"
    assert merged.count("target") == 1


def test_read_file_list_resolves_relative_entries(tmp_path):
    listing = _touch(tmp_path / "files.txt", "# changed\na.py\n\nsub/b.go\na.py\n/abs/c.rs\n")
    assert read_file_list(listing, root=tmp_path) == [
        tmp_path / "a.py",
        tmp_path / "sub" / "b.go",
        Path("/abs/c.rs"),
    ]


def test_read_file_list_missing_is_a_configuration_error(tmp_path):
    with pytest.raises(ConfigurationError):
        read_file_list(tmp_path / "nope.txt")


def _git(root: Path, *args: str) -> str:
    completed = subprocess.run(
        ["git", "-C", str(root), "-c", "user.email=dev@example.com", "-c", "user.name=dev", *args],
        capture_output=True,
        text=True,
        check=True,
    )
    return completed.stdout.strip()


@pytest.mark.skipif(shutil.which("git") is None, reason="git not available")
def test_git_changed_files_drops_deleted_paths(tmp_path):
    _git(tmp_path, "init", "-q")
    _touch(tmp_path / "kept.py", "x = 1\n")
    _touch(tmp_path / "gone.py", "y = 1\n")
    _touch(tmp_path / "same.py", "z = 1\n")
    _git(tmp_path, "add", ".")
    _git(tmp_path, "commit", "-q", "-m", "first")
    base = _git(tmp_path, "rev-parse", "HEAD")

    _touch(tmp_path / "kept.py", "x = 2\n")
    _touch(tmp_path / "new.rs", "fn main() {}\n")
    (tmp_path / "gone.py").unlink()
    _git(tmp_path, "add", "-A")
    _git(tmp_path, "commit", "-q", "-m", "second")

    changed = git_changed_files(tmp_path, base)

    assert sorted(changed) == [tmp_path / "kept.py", tmp_path / "new.rs"]


@pytest.mark.skipif(shutil.which("git") is None, reason="git not available")
def test_git_unknown_commit_is_a_configuration_error(tmp_path):
    _git(tmp_path, "init", "-q")
    with pytest.raises(ConfigurationError):
        git_changed_files(tmp_path, "does-not-exist")


@pytest.mark.skipif(shutil.which("git") is None, reason="git not available")
def test_git_changed_files_from_a_subdirectory(tmp_path):
    _git(tmp_path, "init", "-q")
    _touch(tmp_path / "svc" / "a.py", "x = 1\n")
    _touch(tmp_path / "top.py", "y = 1\n")
    _git(tmp_path, "add", ".")
    _git(tmp_path, "commit", "-q", "-m", "first")
    base = _git(tmp_path, "rev-parse", "HEAD")

    _touch(tmp_path / "svc" / "a.py", "x = 2\n")
    _touch(tmp_path / "top.py", "y = 2\n")
    _git(tmp_path, "commit", "-q", "-am", "second")

    assert git_changed_files(tmp_path / "svc", base) == [tmp_path / "svc" / "a.py"]
