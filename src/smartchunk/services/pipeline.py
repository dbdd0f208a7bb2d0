"""
Concurrent chunking pipeline.

Each input file is handled end to end (read, parse, extract, split, hash) by
one worker thread. Completed batches are handed to the sink from the calling
thread, one file at a time, so a file's records always land contiguously and
in source order.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

from ..chunking import ChunkExtractor, DriverRegistry, TokenAwareSplitter, default_registry
from ..errors import ChunkerError, FileError
from ..identity import make_chunk_id
from ..ingestion import (
    git_changed_files,
    merge_ignore_patterns,
    walk_source_files,
)
from ..logger import get_logger
from ..models import ChunkRecord
from ..settings import settings, validate_run_config
from ..storage import ChunkSink
from ..tokenizer import TiktokenCounter

log = get_logger(__name__)

PathLike = Union[str, Path]


@dataclass
class PipelineCallbacks:
    file_done: Optional[Callable[[Path], None]] = None
    stage: Optional[Callable[[str], None]] = None


@dataclass
class FileFailure:
    path: str
    kind: str
    reason: str


@dataclass
class PipelineResult:
    files_total: int = 0
    files_processed: int = 0
    files_skipped: int = 0
    chunk_count: int = 0
    token_total: int = 0
    oversized_count: int = 0
    failures: List[FileFailure] = field(default_factory=list)

    @property
    def files_failed(self) -> int:
        return len(self.failures)


class ChunkPipeline:
    """Runs extraction, splitting and hashing over many files in parallel."""

    def __init__(
        self,
        max_chunk_tokens: Optional[int] = None,
        workers: Optional[int] = None,
        count_tokens: Optional[Callable[[str], int]] = None,
        registry: Optional[DriverRegistry] = None,
        tolerate_syntax_errors: Optional[bool] = None,
        encoding: Optional[str] = None,
    ) -> None:
        self.max_chunk_tokens = (
            max_chunk_tokens if max_chunk_tokens is not None else settings.max_chunk_tokens
        )
        self.workers = workers if workers is not None else settings.workers
        validate_run_config(None, self.max_chunk_tokens, self.workers)

        self.registry = registry or default_registry()
        self.extractor = ChunkExtractor(
            registry=self.registry,
            tolerate_syntax_errors=(
                tolerate_syntax_errors
                if tolerate_syntax_errors is not None
                else settings.tolerate_syntax_errors
            ),
        )
        self.count_tokens = count_tokens or TiktokenCounter(
            encoding or settings.tokenizer_encoding
        )
        self.splitter = TokenAwareSplitter(self.count_tokens, self.max_chunk_tokens)

    def process_file(self, path: PathLike) -> List[ChunkRecord]:
        """All records of one file in source order; raises on per-file errors."""
        driver = self.registry.for_path(path)
        if driver is None:
            return []
        source = self.extractor.read_source(path, driver)
        records: List[ChunkRecord] = []
        for candidate in self.extractor.extract(source, driver):
            for record in self.splitter.split(candidate):
                records.append(
                    record.with_id(
                        make_chunk_id(record.file_path, record.chunk_type, record.code)
                    )
                )
        return records

    def run(
        self,
        files: Sequence[PathLike],
        sink: ChunkSink,
        callbacks: Optional[PipelineCallbacks] = None,
    ) -> PipelineResult:
        """Chunk ``files`` concurrently and deliver each file's batch to ``sink``."""
        cb = callbacks or PipelineCallbacks()
        ordered = list(dict.fromkeys(Path(path) for path in files))
        result = PipelineResult(files_total=len(ordered))

        planned: List[Path] = []
        for path in ordered:
            if not self.registry.is_supported(path):
                result.files_skipped += 1
                log.debug("file_skipped_unsupported", file=str(path))
            elif not path.exists():
                result.files_skipped += 1
                log.info("file_skipped_missing", file=str(path))
            else:
                planned.append(path)

        if cb.stage:
            cb.stage("chunk_started")
        log.info("chunking_started", files=len(planned), workers=self.workers)

        with ThreadPoolExecutor(
            max_workers=self.workers, thread_name_prefix="smartchunk"
        ) as pool:
            futures = {pool.submit(self.process_file, path): path for path in planned}
            for future in as_completed(futures):
                path = futures[future]
                try:
                    records = future.result()
                except ChunkerError as exc:
                    reason = exc.reason if isinstance(exc, FileError) else str(exc)
                    result.failures.append(FileFailure(str(path), exc.kind, reason))
                    log.warning("file_failed", file=str(path), kind=exc.kind, reason=reason)
                except Exception as exc:
                    result.failures.append(FileFailure(str(path), "internal_error", repr(exc)))
                    log.exception("file_failed", file=str(path), kind="internal_error")
                else:
                    sink.write_batch(records)
                    result.files_processed += 1
                    result.chunk_count += len(records)
                    result.token_total += sum(record.token_count for record in records)
                    result.oversized_count += sum(1 for record in records if record.oversized)
                    log.info("file_chunked", file=str(path), chunks=len(records))
                finally:
                    if cb.file_done:
                        cb.file_done(path)

        if cb.stage:
            cb.stage("chunk_completed")
        log.info(
            "chunking_completed",
            files=result.files_processed,
            failed=result.files_failed,
            skipped=result.files_skipped,
            chunks=result.chunk_count,
            tokens=result.token_total,
        )
        return result

    def resolve_files(
        self,
        root_path: Path,
        file_list_override: Optional[Sequence[PathLike]] = None,
        since: Optional[str] = None,
        ignore_patterns: Optional[Sequence[str]] = None,
    ) -> List[Path]:
        """Explicit list first, then git changes since ``since``, else a full walk."""
        validate_run_config(root_path, self.max_chunk_tokens, self.workers)
        if file_list_override is not None:
            log.info("scan_started", mode="file_list", files=len(file_list_override))
            return [Path(path) for path in file_list_override]
        if since:
            log.info("scan_started", mode="git_diff", since=since)
            return git_changed_files(root_path, since)
        log.info("scan_started", mode="full_walk", root=str(root_path))
        return walk_source_files(
            root_path,
            ignore_patterns=merge_ignore_patterns(ignore_patterns),
            registry=self.registry,
        )

    def scan(
        self,
        root_path: Path,
        sink: ChunkSink,
        file_list_override: Optional[Sequence[PathLike]] = None,
        since: Optional[str] = None,
        ignore_patterns: Optional[Sequence[str]] = None,
        callbacks: Optional[PipelineCallbacks] = None,
    ) -> PipelineResult:
        files = self.resolve_files(root_path, file_list_override, since, ignore_patterns)
        if callbacks and callbacks.stage:
            callbacks.stage("files_resolved")
        result = self.run(files, sink, callbacks)
        log.info("scan_completed", root=str(root_path), chunks=result.chunk_count)
        return result
