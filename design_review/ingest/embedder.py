"""Embedding generation using HuggingFace BGE model."""

import logging
import time
from typing import List, Optional

from langchain_core.embeddings import Embeddings

from config.settings import settings
from design_review.errors import RetrievalError

logger = logging.getLogger(__name__)


class Embedder:
    """
    Generates embeddings for document chunks and queries.

    Features:
    - Local embedding generation (no API required)
    - Batch processing for efficiency
    - Retry logic with exponential backoff
    - Dimension consistency checks
    """

    def __init__(
        self,
        embedding_model: Optional[Embeddings] = None,
        model: Optional[str] = None,
        device: Optional[str] = None,
        batch_size: int = 64,
        max_retries: int = 3,
        retry_delay: float = 1.0
    ):
        """
        Initialize the embedder.

        Args:
            embedding_model: Any LangChain embeddings object (BGE model built lazily if not provided)
            model: Embedding model name (uses settings if not provided)
            device: Device for computation - "cpu" or "cuda" (uses settings if not provided)
            batch_size: Number of texts to process per batch
            max_retries: Maximum attempts per batch or query
            retry_delay: Base delay between retries in seconds
        """
        self.model = model or settings.embedding_model
        self.device = device or settings.embedding_device
        self.batch_size = batch_size
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self._embedding_model = embedding_model
        self.dimension: Optional[int] = None

    @property
    def embedding_model(self) -> Embeddings:
        """Lazily initialize the BGE model on first use."""
        if self._embedding_model is None:
            from langchain_community.embeddings import HuggingFaceBgeEmbeddings

            logger.info("Initializing BGE embeddings model %s on %s", self.model, self.device)
            self._embedding_model = HuggingFaceBgeEmbeddings(
                model_name=self.model,
                model_kwargs={'device': self.device},
                encode_kwargs={
                    'normalize_embeddings': settings.embedding_normalize,
                    'batch_size': self.batch_size,
                },
            )
        return self._embedding_model

    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        """
        Embed document texts in batches.

        Args:
            texts: Non-empty texts to embed

        Returns:
            One vector per text, in input order

        Raises:
            RetrievalError: If any text is empty or the backend keeps failing
        """
        if any(not text or not text.strip() for text in texts):
            raise RetrievalError("Cannot embed empty text", operation="embed_texts")

        vectors: List[List[float]] = []
        for i in range(0, len(texts), self.batch_size):
            batch = texts[i:i + self.batch_size]
            batch_vectors = self._with_retries(
                lambda: self.embedding_model.embed_documents(batch),
                operation="embed_texts",
            )
            if len(batch_vectors) != len(batch):
                raise RetrievalError(
                    f"Embedding backend returned {len(batch_vectors)} vectors for {len(batch)} texts",
                    operation="embed_texts",
                )
            for vector in batch_vectors:
                self._check_dimension(vector)
            vectors.extend(batch_vectors)

        logger.debug("Embedded %d texts", len(vectors))
        return vectors

    def embed_query(self, text: str) -> List[float]:
        """
        Embed a search query.

        Raises:
            RetrievalError: If the text is empty or the backend keeps failing
        """
        if not text or not text.strip():
            raise RetrievalError("Cannot embed empty query", operation="embed_query")

        vector = self._with_retries(
            lambda: self.embedding_model.embed_query(text),
            operation="embed_query",
        )
        self._check_dimension(vector)
        return vector

    def _with_retries(self, call, operation: str):
        """Run an embedding call, retrying with exponential backoff."""
        for attempt in range(self.max_retries):
            try:
                return call()
            except Exception as e:
                if attempt < self.max_retries - 1:
                    delay = self.retry_delay * (2 ** attempt)
                    logger.warning(
                        "Embedding failed (%s). Retrying in %.1fs (%d/%d)",
                        e, delay, attempt + 1, self.max_retries,
                    )
                    time.sleep(delay)
                    continue
                raise RetrievalError(
                    f"Embedding failed after {self.max_retries} attempts: {e}",
                    operation=operation,
                    original_error=e,
                ) from e

    def _check_dimension(self, vector: List[float]) -> None:
        if self.dimension is None:
            self.dimension = len(vector)
        elif len(vector) != self.dimension:
            raise RetrievalError(
                f"Dimension mismatch: expected {self.dimension}, got {len(vector)}",
                operation="embed",
            )
