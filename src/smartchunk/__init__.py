"""
smartchunk: syntax-aware, token-bounded source code chunking for retrieval
and code-search indexing.
"""

from .chunking import ChunkExtractor, DriverRegistry, LanguageDriver, TokenAwareSplitter
from .identity import make_chunk_id
from .models import ChunkRecord, RawCandidate
from .services import ChunkPipeline, PipelineResult
from .version import __version__

__all__ = [
    "ChunkExtractor",
    "ChunkPipeline",
    "ChunkRecord",
    "DriverRegistry",
    "LanguageDriver",
    "PipelineResult",
    "RawCandidate",
    "TokenAwareSplitter",
    "__version__",
    "make_chunk_id",
]
