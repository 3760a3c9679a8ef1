"""Bounded in-memory Qdrant store for procedure chunks."""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from qdrant_client import QdrantClient
from qdrant_client.models import Distance, PointStruct, VectorParams

from config.settings import settings
from design_review.errors import RetrievalError
from design_review.ingest.chunker import Chunk
from design_review.ingest.embedder import Embedder

logger = logging.getLogger(__name__)

NO_RESULTS_MESSAGE = "No relevant procedure documents found."
CONTEXT_SEPARATOR = "\n\n---\n\n"


@dataclass
class IndexedEntry:
    """A chunk with its cached embedding and insertion sequence number."""
    chunk: Chunk
    vector: List[float]
    inserted_at: int


@dataclass
class SearchResult:
    """A ranked search hit."""
    content: str
    source_id: str
    section_header: Optional[str]
    score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "source_id": self.source_id,
            "section_header": self.section_header,
            "score": self.score,
        }


def format_context(results: List[SearchResult]) -> str:
    """Render ranked hits as one prompt-ready context block."""
    if not results:
        return NO_RESULTS_MESSAGE

    blocks = []
    for i, result in enumerate(results, 1):
        label = result.section_header or f"Section {i}"
        blocks.append(f"[{label}] (source: {result.source_id})\n{result.content}")

    return CONTEXT_SEPARATOR.join(blocks)


class RetrievalStore:
    """
    Similarity index over procedure chunks with a capacity ceiling.

    Features:
    - In-memory Qdrant collection with cosine similarity
    - Two-watermark eviction of the oldest entries
    - Eviction rebuilds from cached vectors (no re-embedding)
    - Rebuilt collections are swapped in atomically for readers
    """

    def __init__(
        self,
        embedder: Optional[Embedder] = None,
        max_capacity: Optional[int] = None,
        target_watermark: Optional[int] = None,
        collection_name: Optional[str] = None
    ):
        """
        Initialize the retrieval store.

        Args:
            embedder: Embedding function wrapper (default BGE embedder)
            max_capacity: Size that triggers eviction (uses settings if not provided)
            target_watermark: Size kept after eviction (uses settings if not provided)
            collection_name: Qdrant collection name (uses settings if not provided)

        Raises:
            RetrievalError: If the watermarks are inconsistent
        """
        self.embedder = embedder or Embedder()
        self.max_capacity = max_capacity if max_capacity is not None else settings.retrieval_max_capacity
        self.target_watermark = (
            target_watermark if target_watermark is not None else settings.retrieval_target_watermark
        )
        self.collection_name = collection_name or settings.collection_name

        if not 0 < self.target_watermark <= self.max_capacity:
            raise RetrievalError(
                f"Invalid watermarks: target={self.target_watermark}, max={self.max_capacity}",
                operation="configure",
            )

        self._lock = threading.RLock()
        self._client: Optional[QdrantClient] = None
        self._entries: List[IndexedEntry] = []
        self._sequence = 0
        self._dimension: Optional[int] = None
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._entries)

    def initialize(self) -> None:
        """Allocate an empty index. Calling it again is a no-op."""
        with self._lock:
            if self._initialized:
                return
            self._client = QdrantClient(location=":memory:")
            self._entries = []
            self._dimension = None
            self._initialized = True
            logger.info(
                "Retrieval store initialized (capacity=%d, target=%d)",
                self.max_capacity, self.target_watermark,
            )

    def add_chunks(self, chunks: List[Chunk]) -> int:
        """
        Embed and index chunks, evicting the oldest entries when full.

        Args:
            chunks: Chunks to index, oldest first

        Returns:
            Number of chunks actually indexed

        Raises:
            RetrievalError: If embedding or indexing fails
        """
        if not chunks:
            return 0

        self.initialize()

        if len(chunks) > self.max_capacity:
            logger.warning(
                "Batch of %d chunks exceeds capacity %d; indexing the newest %d",
                len(chunks), self.max_capacity, self.max_capacity,
            )
            chunks = chunks[-self.max_capacity:]

        # Embedding runs outside the lock so searches are not held up
        vectors = self.embedder.embed_texts([chunk.content for chunk in chunks])

        with self._lock:
            if len(self._entries) + len(chunks) > self.max_capacity:
                self._evict(incoming=len(chunks))

            new_entries = []
            for chunk, vector in zip(chunks, vectors):
                new_entries.append(IndexedEntry(chunk=chunk, vector=vector, inserted_at=self._sequence))
                self._sequence += 1

            self._ensure_collection(self._client, len(vectors[0]))
            try:
                self._client.upsert(
                    collection_name=self.collection_name,
                    points=[self._to_point(entry) for entry in new_entries],
                )
            except Exception as e:
                raise RetrievalError(f"Failed to index chunks: {e}", operation="add_chunks", original_error=e) from e

            self._entries.extend(new_entries)
            logger.info("Indexed %d chunks (store size %d)", len(new_entries), len(self._entries))
            return len(new_entries)

    def search(self, query: str, k: Optional[int] = None) -> List[SearchResult]:
        """
        Find the chunks most similar to a query.

        Args:
            query: Free-text query
            k: Maximum number of results (uses settings if not provided)

        Returns:
            Results ordered by descending similarity

        Raises:
            RetrievalError: Only if the store was never initialized
        """
        if not self._initialized:
            raise RetrievalError("Retrieval store is not initialized", operation="search")

        k = settings.retrieval_top_k if k is None else k
        if k <= 0 or self.count == 0:
            return []

        try:
            vector = self.embedder.embed_query(query)
        except RetrievalError as e:
            logger.warning("Search embedding failed: %s", e)
            return []

        with self._lock:
            if not self._entries:
                return []
            try:
                response = self._client.query_points(
                    collection_name=self.collection_name,
                    query=vector,
                    limit=k,
                    with_payload=True,
                )
            except Exception as e:
                logger.warning("Search query failed: %s", e)
                return []

        results = [
            SearchResult(
                content=point.payload["content"],
                source_id=point.payload["source_id"],
                section_header=point.payload.get("section_header"),
                score=point.score,
            )
            for point in response.points
        ]
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:k]

    def search_with_context(self, query: str, k: Optional[int] = None) -> str:
        """Search and render the hits as one context block for a prompt."""
        return format_context(self.search(query, k))

    def get_status(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "initialized": self._initialized,
                "count": len(self._entries),
                "capacity": self.max_capacity,
                "target_watermark": self.target_watermark,
            }

    def clear(self) -> None:
        """Drop every entry and start over with an empty index."""
        with self._lock:
            self.close()
            self.initialize()
            logger.info("Retrieval store cleared")

    def close(self) -> None:
        """Release the Qdrant client."""
        with self._lock:
            if self._client is not None:
                self._client.close()
            self._client = None
            self._entries = []
            self._dimension = None
            self._initialized = False

    def _evict(self, incoming: int) -> None:
        """Keep the newest entries and rebuild the index from their cached vectors."""
        keep = min(self.target_watermark, self.max_capacity - incoming)
        retained = self._entries[-keep:] if keep > 0 else []
        removed = len(self._entries) - len(retained)

        rebuilt = QdrantClient(location=":memory:")
        if retained:
            self._ensure_collection(rebuilt, len(retained[0].vector))
            rebuilt.upsert(
                collection_name=self.collection_name,
                points=[self._to_point(entry) for entry in retained],
            )

        # Swap while holding the lock
        old_client = self._client
        self._client = rebuilt
        self._entries = list(retained)
        if not retained:
            self._dimension = None
        old_client.close()

        logger.info("Evicted %d oldest chunks (%d remaining)", removed, len(retained))

    def _ensure_collection(self, client: QdrantClient, dimension: int) -> None:
        if client is self._client and self._dimension is not None:
            if dimension != self._dimension:
                raise RetrievalError(
                    f"Dimension mismatch: index uses {self._dimension}, got {dimension}",
                    operation="add_chunks",
                )
            return

        if not client.collection_exists(self.collection_name):
            client.create_collection(
                collection_name=self.collection_name,
                vectors_config=VectorParams(size=dimension, distance=Distance.COSINE),
            )
        if client is self._client:
            self._dimension = dimension

    def _to_point(self, entry: IndexedEntry) -> PointStruct:
        meta = entry.chunk.metadata
        return PointStruct(
            id=entry.inserted_at,
            vector=entry.vector,
            payload={
                "content": entry.chunk.content,
                "source_id": meta.source_id,
                "section_header": meta.section_header,
                "chunk_id": meta.chunk_id,
                "chunk_index": meta.chunk_index,
                "inserted_at": entry.inserted_at,
            },
        )
