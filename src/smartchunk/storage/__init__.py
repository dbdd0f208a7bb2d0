"""
Output sinks for chunk records.
"""
from .sinks import ChunkSink, JsonlChunkSink, MemoryChunkSink

__all__ = ["ChunkSink", "JsonlChunkSink", "MemoryChunkSink"]
