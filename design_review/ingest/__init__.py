"""Document ingestion: chunking, embedding and indexing."""

from .chunker import Chunk, ChunkMetadata, ChunkingOptions, DocumentChunker, chunk_document
from .embedder import Embedder

__all__ = [
    "Chunk",
    "ChunkMetadata",
    "ChunkingOptions",
    "DocumentChunker",
    "chunk_document",
    "Embedder",
]
