"""Ingestion workflow: chunk procedure documents and index them."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from design_review.errors import DesignReviewError, format_error
from design_review.ingest.chunker import DocumentChunker, count_words
from design_review.storage.vector_store import RetrievalStore

logger = logging.getLogger(__name__)

DEFAULT_PATTERNS = ("*.md", "*.txt")


@dataclass
class IngestionResult:
    """Result of ingesting one document."""
    source_id: str
    chunk_count: int = 0
    chunks_added: int = 0
    word_count: int = 0
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def __str__(self):
        if self.error:
            return f"{self.source_id}: failed ({self.error})"
        return f"{self.source_id}: {self.chunks_added}/{self.chunk_count} chunks, {self.word_count} words"


class DocumentIngestor:
    """
    Feeds (text, source id) pairs into the retrieval store.

    Text extraction from binary formats happens before this point.
    """

    def __init__(
        self,
        chunker: Optional[DocumentChunker] = None,
        store: Optional[RetrievalStore] = None
    ):
        """
        Initialize the ingestor.

        Args:
            chunker: Document chunker (settings-based if not provided)
            store: Retrieval store to index into (new store if not provided)
        """
        self.chunker = chunker or DocumentChunker()
        self.store = store or RetrievalStore()

    def ingest_document(self, text: str, source_id: str) -> IngestionResult:
        """
        Chunk and index one document.

        Raises:
            RetrievalError: If embedding or indexing fails
        """
        chunks = self.chunker.chunk_document(text, source_id)
        added = self.store.add_chunks(chunks)

        result = IngestionResult(
            source_id=source_id,
            chunk_count=len(chunks),
            chunks_added=added,
            word_count=count_words(text),
        )
        logger.info("Ingested %s", result)
        return result

    def ingest_documents(self, documents: Iterable[Tuple[str, str]]) -> List[IngestionResult]:
        """Ingest (text, source id) pairs; a failing document does not stop the batch."""
        results = []
        for text, source_id in documents:
            try:
                results.append(self.ingest_document(text, source_id))
            except DesignReviewError as e:
                logger.error("Failed to ingest %s: %s", source_id, format_error(e))
                results.append(IngestionResult(source_id=source_id, error=format_error(e)))
        return results

    def ingest_directory(self, path: str, patterns: Sequence[str] = DEFAULT_PATTERNS) -> List[IngestionResult]:
        """
        Ingest UTF-8 text files under a directory.

        Source ids are paths relative to the directory.

        Raises:
            FileNotFoundError: If the directory does not exist
        """
        root = Path(path)
        if not root.is_dir():
            raise FileNotFoundError(f"Not a directory: {path}")

        files = sorted({f for pattern in patterns for f in root.rglob(pattern) if f.is_file()})
        logger.info("Found %d documents in %s", len(files), root)

        results = []
        for file_path in files:
            source_id = file_path.relative_to(root).as_posix()
            try:
                text = file_path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.error("Failed to read %s: %s", file_path, e)
                results.append(IngestionResult(source_id=source_id, error=str(e)))
                continue
            results.extend(self.ingest_documents([(text, source_id)]))

        return results
