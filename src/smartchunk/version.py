"""Version string shipped in the package's VERSION file."""

from __future__ import annotations

from importlib import resources


def get_version() -> str:
    try:
        return resources.files("smartchunk").joinpath("VERSION").read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        return "unknown"


__version__ = get_version()
