"""
Input file selection: full directory walks and git changed-file lists.
"""
from __future__ import annotations

import os
import subprocess
from fnmatch import fnmatch
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from ..chunking import DriverRegistry, default_registry
from ..errors import ConfigurationError
from ..logger import get_logger

log = get_logger(__name__)

DEFAULT_IGNORE_PATTERNS: Sequence[str] = (
    ".git",
    ".hg",
    ".svn",
    ".idea",
    ".vscode",
    ".DS_Store",
    "__pycache__",
    ".mypy_cache",
    ".pytest_cache",
    ".ruff_cache",
    ".tox",
    ".venv",
    "venv",
    "node_modules",
    "target",
    "dist",
    "build",
    "vendor",
)


def _should_ignore(name: str, patterns: Sequence[str]) -> bool:
    return any(fnmatch(name, pattern) for pattern in patterns)


def merge_ignore_patterns(extra: Optional[Iterable[str]] = None) -> List[str]:
    user = [name.strip() for name in (extra or []) if name.strip()]
    return list(dict.fromkeys(tuple(DEFAULT_IGNORE_PATTERNS) + tuple(user)))


def walk_source_files(
    root: Path,
    ignore_patterns: Optional[Sequence[str]] = None,
    registry: Optional[DriverRegistry] = None,
) -> List[Path]:
    """
    Every file under ``root`` with an extension some driver handles.

    Directories and files matching an ignore pattern are pruned. The result
    is sorted so that repeated walks of an unchanged tree are identical.
    """
    registry = registry or default_registry()
    patterns = list(ignore_patterns) if ignore_patterns is not None else merge_ignore_patterns()
    files: List[Path] = []
    for current, dirs, filenames in os.walk(root):
        dirs[:] = [d for d in dirs if not _should_ignore(d, patterns)]
        current_path = Path(current)
        for filename in filenames:
            if _should_ignore(filename, patterns):
                continue
            candidate = current_path / filename
            if registry.is_supported(candidate):
                files.append(candidate)
    files.sort()
    log.info("source_files_collected", root=str(root), files=len(files))
    return files


def git_changed_files(root: Path, since: str) -> List[Path]:
    """
    Files under ``root`` changed between ``since`` and ``HEAD``.

    ``root`` may be a subdirectory of the repository; git reports paths
    relative to it. Paths that no longer exist (deleted or renamed away) are
    dropped.
    """
    try:
        completed = subprocess.run(
            ["git", "-C", str(root), "diff", "--name-only", "--relative", since, "HEAD"],
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as exc:
        raise ConfigurationError(f"Git command could not run: {exc}") from exc

    if completed.returncode != 0:
        raise ConfigurationError(f"Git error: {completed.stderr.strip()}")

    files: List[Path] = []
    for line in completed.stdout.splitlines():
        if not line.strip():
            continue
        candidate = root / line.strip()
        if candidate.is_file():
            files.append(candidate)
        else:
            log.info("changed_file_missing", file=str(candidate))
    log.info("git_changes_collected", since=since, files=len(files))
    return files


def read_file_list(list_path: Path, root: Optional[Path] = None) -> List[Path]:
    """Paths listed one per line in ``list_path``; relative ones resolve against ``root``."""
    try:
        lines = list_path.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise ConfigurationError(f"Cannot read file list {list_path}: {exc}") from exc
    files: List[Path] = []
    for line in lines:
        entry = line.strip()
        if not entry or entry.startswith("#"):
            continue
        path = Path(entry)
        if not path.is_absolute() and root is not None:
            path = root / path
        files.append(path)
    return list(dict.fromkeys(files))
