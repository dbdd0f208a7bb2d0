"""
Token-budget aware splitting of chunk candidates.

A candidate that fits the budget becomes one record. Larger candidates are
cut along their segment tree with a greedy packer: consecutive segments are
grouped while the measured text of the group still fits, and a segment that
cannot fit on its own is opened up into its sub-segments. Nested chunk
candidates that cannot fit are split under their own name and context.
Text is never dropped; a single line that exceeds the budget is emitted
whole and flagged as oversized.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple, Union

from ..logger import get_logger
from ..models import (
    PARTIAL_SUFFIX,
    ChunkRecord,
    RawCandidate,
    Segment,
    SourceFile,
    render_context,
)

log = get_logger(__name__)


@dataclass(frozen=True)
class _Span:
    start: int
    end: int
    oversized: bool = False


_Piece = Union[_Span, ChunkRecord]


class _Packer:
    """Greedy packing state for one candidate."""

    def __init__(self, splitter: "TokenAwareSplitter", source: SourceFile) -> None:
        self.splitter = splitter
        self.source = source
        self.pieces: List[_Piece] = []
        self.start: Optional[int] = None
        self.end: Optional[int] = None

    def _fits(self, start: int, end: int) -> bool:
        return self.splitter.measure(self.source.text(start, end)) <= self.splitter.max_tokens

    def flush(self) -> None:
        if self.start is not None and self.end is not None:
            self.pieces.append(_Span(self.start, self.end))
        self.start = self.end = None

    def feed(self, segment: Segment) -> None:
        if self.start is not None and self._fits(self.start, segment.end):
            self.end = segment.end
            return
        if self._fits(segment.start, segment.end):
            self.flush()
            self.start, self.end = segment.start, segment.end
            return
        if segment.chunk is not None:
            self.flush()
            self.pieces.extend(self.splitter.split(segment.chunk, segment.start, segment.end))
            return
        if segment.children:
            for child in segment.children:
                self.feed(child)
            return
        self.flush()
        self.pieces.append(_Span(segment.start, segment.end, oversized=True))


class TokenAwareSplitter:
    """Splits ``RawCandidate``s into records of at most ``max_tokens`` tokens."""

    def __init__(self, count_tokens: Callable[[str], int], max_tokens: int) -> None:
        if max_tokens <= 0:
            raise ValueError(f"max_tokens must be positive, got {max_tokens}")
        self.count_tokens = count_tokens
        self.max_tokens = max_tokens

    def measure(self, text: str) -> int:
        return self.count_tokens(text)

    def split(
        self, candidate: RawCandidate, lo: Optional[int] = None, hi: Optional[int] = None
    ) -> List[ChunkRecord]:
        """
        Records covering ``candidate`` in source order, ids left empty.

        ``lo`` and ``hi`` bound the line-aligned segment holding a nested
        candidate; code sharing its first or last line is emitted with it.
        """
        start, end = self._bounds(candidate, lo, hi)
        source = candidate.source
        code = source.text(start, end)
        tokens = self.measure(code)
        if tokens <= self.max_tokens:
            return [self._whole(candidate, start, end, code, tokens)]

        packer = _Packer(self, source)
        if start < candidate.start_byte:
            packer.feed(Segment(start, candidate.start_byte))
        for segment in candidate.segments:
            packer.feed(segment)
        if end > candidate.end_byte:
            packer.feed(Segment(candidate.end_byte, end))
        packer.flush()

        spans = [piece for piece in packer.pieces if isinstance(piece, _Span)]
        if not candidate.segments or (
            len(packer.pieces) == 1 and len(spans) == 1
        ):
            log.warning(
                "chunk_over_budget",
                file=candidate.file_path,
                chunk=candidate.chunk_name,
                tokens=tokens,
                max_tokens=self.max_tokens,
            )
            return [self._whole(candidate, start, end, code, tokens, oversized=True)]

        records: List[ChunkRecord] = []
        total = len(spans)
        index = 0
        for piece in packer.pieces:
            if isinstance(piece, ChunkRecord):
                records.append(piece)
                continue
            index += 1
            records.append(self._partial(candidate, piece, index, total))
        log.debug(
            "chunk_split",
            file=candidate.file_path,
            chunk=candidate.chunk_name,
            tokens=tokens,
            partials=total,
            records=len(records),
        )
        return records

    @staticmethod
    def _bounds(
        candidate: RawCandidate, lo: Optional[int], hi: Optional[int]
    ) -> Tuple[int, int]:
        data = candidate.source.data
        start, end = candidate.start_byte, candidate.end_byte
        if lo is not None and lo < start and data[lo:start].strip():
            start = lo
        if hi is not None and hi > end:
            tail = data[end:hi].rstrip()
            if tail.strip():
                end += len(tail)
        return start, end

    @staticmethod
    def _whole(
        candidate: RawCandidate,
        start: int,
        end: int,
        code: str,
        tokens: int,
        oversized: bool = False,
    ) -> ChunkRecord:
        source = candidate.source
        return ChunkRecord(
            id="",
            file_path=candidate.file_path,
            language=candidate.language,
            chunk_type=candidate.chunk_type,
            chunk_name=candidate.chunk_name,
            context=render_context(candidate.context),
            signature=candidate.signature,
            comment=candidate.comment,
            code=code,
            start_line=source.line_of(start),
            end_line=source.last_line_of(start, end),
            token_count=tokens,
            oversized=oversized,
        )

    def _partial(
        self, candidate: RawCandidate, span: _Span, index: int, total: int
    ) -> ChunkRecord:
        source = candidate.source
        code = source.text(span.start, span.end)
        tokens = self.measure(code)
        if span.oversized:
            log.warning(
                "chunk_over_budget",
                file=candidate.file_path,
                chunk=candidate.chunk_name,
                line=source.line_of(span.start),
                tokens=tokens,
                max_tokens=self.max_tokens,
            )
        first = index == 1
        return ChunkRecord(
            id="",
            file_path=candidate.file_path,
            language=candidate.language,
            chunk_type=f"{candidate.chunk_type}{PARTIAL_SUFFIX}",
            chunk_name=candidate.chunk_name,
            context=render_context(candidate.context + (f"partial({index}/{total})",)),
            signature=candidate.signature if first else "",
            comment=candidate.comment if first else "",
            code=code,
            start_line=source.line_of(span.start),
            end_line=source.last_line_of(span.start, span.end),
            token_count=tokens,
            oversized=span.oversized,
        )
