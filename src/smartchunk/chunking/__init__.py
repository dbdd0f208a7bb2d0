"""
Chunking engine: language drivers, tree-sitter extraction and token-aware
splitting of source files into syntax-respecting chunks.
"""

from .drivers import (
    BUILTIN_DRIVERS,
    ChunkRule,
    DriverRegistry,
    LanguageDriver,
    default_registry,
)
from .extractor import ChunkExtractor
from .splitter import TokenAwareSplitter

__all__ = [
    "BUILTIN_DRIVERS",
    "ChunkExtractor",
    "ChunkRule",
    "DriverRegistry",
    "LanguageDriver",
    "TokenAwareSplitter",
    "default_registry",
]
