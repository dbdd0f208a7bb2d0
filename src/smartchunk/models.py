"""
Data model shared by the extractor, the splitter and the pipeline.
"""
from __future__ import annotations

from bisect import bisect_right
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

CONTEXT_SEPARATOR = " > "
PARTIAL_SUFFIX = "_partial"

# Serialised field order of a ChunkRecord.
RECORD_FIELDS: Tuple[str, ...] = (
    "id",
    "file_path",
    "language",
    "chunk_type",
    "chunk_name",
    "context",
    "signature",
    "comment",
    "code",
    "start_line",
    "end_line",
    "token_count",
)


@dataclass(frozen=True)
class SourceFile:
    """Raw bytes of one input file plus a line index over them."""

    path: str
    language: str
    data: bytes
    line_starts: Tuple[int, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        starts = [0]
        index = self.data.find(b"\n")
        while index != -1:
            starts.append(index + 1)
            index = self.data.find(b"\n", index + 1)
        object.__setattr__(self, "line_starts", tuple(starts))

    def text(self, start: int, end: int) -> str:
        return self.data[start:end].decode("utf-8")

    def line_of(self, offset: int) -> int:
        """1-based line number of the byte at ``offset``."""
        return bisect_right(self.line_starts, offset)

    def line_start(self, offset: int) -> int:
        """Byte offset of the first byte on the line holding ``offset``."""
        return self.line_starts[self.line_of(offset) - 1]

    def last_line_of(self, start: int, end: int) -> int:
        """Line of the last byte of ``[start, end)``."""
        return self.line_of(max(start, end - 1))


@dataclass(frozen=True)
class Segment:
    """
    A contiguous byte range used as a packing unit by the splitter.

    ``chunk`` is set when the segment is exactly a nested chunk candidate.
    ``children`` partitions the same range into finer units and is empty for
    indivisible (single line) segments.
    """

    start: int
    end: int
    chunk: Optional["RawCandidate"] = None
    children: Tuple["Segment", ...] = ()


@dataclass(frozen=True)
class RawCandidate:
    """A chunk boundary discovered during the tree walk, before splitting."""

    source: SourceFile = field(repr=False, compare=False)
    chunk_type: str
    chunk_name: str
    context: Tuple[str, ...]
    signature: str
    comment: str
    start_byte: int
    end_byte: int
    start_line: int
    end_line: int
    segments: Tuple[Segment, ...] = field(default=(), repr=False, compare=False)

    @property
    def file_path(self) -> str:
        return self.source.path

    @property
    def language(self) -> str:
        return self.source.language

    @property
    def code(self) -> str:
        return self.source.text(self.start_byte, self.end_byte)

    def iter_nested(self) -> List["RawCandidate"]:
        """Nested candidates reachable through the segment tree, in source order."""
        found: List[RawCandidate] = []
        pending = list(reversed(self.segments))
        while pending:
            segment = pending.pop()
            if segment.chunk is not None:
                found.append(segment.chunk)
                found.extend(segment.chunk.iter_nested())
            else:
                pending.extend(reversed(segment.children))
        return found


def render_context(descriptors: Tuple[str, ...]) -> str:
    return CONTEXT_SEPARATOR.join(descriptors)


@dataclass(frozen=True)
class ChunkRecord:
    """The unit of output. ``oversized`` is kept in memory only."""

    id: str
    file_path: str
    language: str
    chunk_type: str
    chunk_name: str
    context: str
    signature: str
    comment: str
    code: str
    start_line: int
    end_line: int
    token_count: int
    oversized: bool = field(default=False, compare=False)

    @property
    def is_partial(self) -> bool:
        return self.chunk_type.endswith(PARTIAL_SUFFIX)

    def with_id(self, chunk_id: str) -> "ChunkRecord":
        return replace(self, id=chunk_id)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        return {name: data[name] for name in RECORD_FIELDS}


__all__ = [
    "CONTEXT_SEPARATOR",
    "ChunkRecord",
    "PARTIAL_SUFFIX",
    "RECORD_FIELDS",
    "RawCandidate",
    "Segment",
    "SourceFile",
    "render_context",
]
