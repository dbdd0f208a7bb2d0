"""
Error kinds raised by the chunking engine.

Per-file errors (unreadable file, parse failure, tokenization failure) are
caught at the pipeline boundary and reported in the run summary.
Configuration errors abort a run before any worker starts.
"""
from __future__ import annotations

from pathlib import Path
from typing import Union


class ChunkerError(Exception):
    """Base class for every error raised by smartchunk."""

    kind = "error"


class FileError(ChunkerError):
    """An error bound to a single input file."""

    def __init__(self, path: Union[str, Path], reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = str(path)
        self.reason = reason


class UnreadableFileError(FileError):
    kind = "unreadable_file"


class ParseFailureError(FileError):
    kind = "parse_failure"


class TokenizationError(ChunkerError):
    """The tokenizer could not measure a span of text."""

    kind = "tokenization_failure"


class ConfigurationError(ChunkerError):
    """Invalid run configuration; fatal before dispatch."""

    kind = "configuration_error"


__all__ = [
    "ChunkerError",
    "ConfigurationError",
    "FileError",
    "ParseFailureError",
    "TokenizationError",
    "UnreadableFileError",
]
