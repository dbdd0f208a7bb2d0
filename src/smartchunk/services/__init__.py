"""
Service layer orchestrators for smartchunk.
"""
from .pipeline import ChunkPipeline, FileFailure, PipelineCallbacks, PipelineResult

__all__ = ["ChunkPipeline", "FileFailure", "PipelineCallbacks", "PipelineResult"]
