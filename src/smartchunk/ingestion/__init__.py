"""
Input selection package.

Resolves which files a run processes: a full walk of the root directory, the
files git reports as changed since a commit, or an explicit list.
"""
from .sources import (
    DEFAULT_IGNORE_PATTERNS,
    git_changed_files,
    merge_ignore_patterns,
    read_file_list,
    walk_source_files,
)

__all__ = [
    "DEFAULT_IGNORE_PATTERNS",
    "git_changed_files",
    "merge_ignore_patterns",
    "read_file_list",
    "walk_source_files",
]
