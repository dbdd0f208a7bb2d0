"""
Output sinks for chunk records.

Every sink receives one file's records at a time and appends them as a
contiguous group, so batches from concurrent workers never interleave.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import IO, List, Optional, Protocol, Sequence

from ..logger import get_logger
from ..models import ChunkRecord

log = get_logger(__name__)


class ChunkSink(Protocol):
    """Anything that accepts per-file batches of records."""

    def write_batch(self, records: Sequence[ChunkRecord]) -> None:
        ...


class MemoryChunkSink:
    """Collects records in memory."""

    def __init__(self) -> None:
        self._records: List[ChunkRecord] = []
        self._batches: List[List[ChunkRecord]] = []
        self._lock = threading.Lock()

    def write_batch(self, records: Sequence[ChunkRecord]) -> None:
        batch = list(records)
        with self._lock:
            self._records.extend(batch)
            self._batches.append(batch)

    @property
    def records(self) -> List[ChunkRecord]:
        with self._lock:
            return list(self._records)

    @property
    def batches(self) -> List[List[ChunkRecord]]:
        with self._lock:
            return [list(batch) for batch in self._batches]


class JsonlChunkSink:
    """Appends records to a JSON-lines file, one object per line."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._handle: Optional[IO[str]] = None
        self._lock = threading.Lock()
        self.records_written = 0

    def open(self) -> "JsonlChunkSink":
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._handle = self.path.open("w", encoding="utf-8")
        log.info("output_opened", path=str(self.path))
        return self

    def close(self) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.close()
                self._handle = None
                log.info("output_closed", path=str(self.path), records=self.records_written)

    def __enter__(self) -> "JsonlChunkSink":
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def write_batch(self, records: Sequence[ChunkRecord]) -> None:
        lines = [json.dumps(record.to_dict(), ensure_ascii=False) for record in records]
        with self._lock:
            if self._handle is None:
                raise RuntimeError(f"Output sink is not open: {self.path}")
            for line in lines:
                self._handle.write(line)
                self._handle.write("\n")
            self._handle.flush()
            self.records_written += len(lines)
