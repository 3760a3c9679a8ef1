"""Test configuration."""

import json
import re
import threading
import time
from typing import Callable, List, Optional, Sequence

import pytest
from langchain_core.embeddings import Embeddings

from config.settings import settings
from design_review.ingest.chunker import Chunk, ChunkMetadata
from design_review.ingest.embedder import Embedder
from design_review.storage.vector_store import RetrievalStore

VOCABULARY = [
    "risk", "alarm", "diagnosis", "battery", "firmware",
    "label", "training", "audit", "sterile", "software",
]


class KeywordEmbeddings(Embeddings):
    """Deterministic embeddings: one dimension per vocabulary word plus a bias."""

    def __init__(self, fail_on: Optional[str] = None, fail_queries: bool = False):
        self.fail_on = fail_on
        self.fail_queries = fail_queries
        self.embedded_texts = 0

    def _vector(self, text: str) -> List[float]:
        if self.fail_on and self.fail_on in text:
            raise RuntimeError("embedding backend unavailable")
        words = re.findall(r"[a-z]+", text.lower())
        return [float(words.count(term)) for term in VOCABULARY] + [0.1]

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        vectors = [self._vector(text) for text in texts]
        self.embedded_texts += len(texts)
        return vectors

    def embed_query(self, text: str) -> List[float]:
        if self.fail_queries:
            raise RuntimeError("embedding backend unavailable")
        return self._vector(text)


class ScriptedLLM:
    """
    Stand-in for LLMClient.

    Returns scripted responses in order (then ``default``); an Exception
    entry is raised instead of returned. Every call is recorded.
    """

    def __init__(self, responses: Sequence = (), default=None):
        self.responses = list(responses)
        self.default = default
        self.calls = []
        self._lock = threading.Lock()

    def invoke(self, system_prompt: str, user_prompt: str, timeout_ms: Optional[int] = None) -> str:
        with self._lock:
            self.calls.append({"system": system_prompt, "user": user_prompt, "timeout_ms": timeout_ms})
            response = self.responses.pop(0) if self.responses else self.default
        if isinstance(response, Exception):
            raise response
        if response is None:
            raise AssertionError("ScriptedLLM has no response left")
        return response


class SlowChatModel:
    """Chat model whose calls outlast any short timeout."""

    def __init__(self, delay: float = 0.5):
        self.delay = delay

    def invoke(self, messages):
        time.sleep(self.delay)
        return "too late"


def verdict_json(verdict: str = "PASS", findings=None, recommendations=None, **extra) -> str:
    payload = {
        "verdict": verdict,
        "findings": findings if findings is not None else [f"{verdict.lower()} finding"],
        "recommendations": recommendations if recommendations is not None else ["keep records"],
    }
    payload.update(extra)
    return json.dumps(payload)


@pytest.fixture(autouse=True)
def no_review_history(monkeypatch):
    """Keep tests from writing review records into the working directory."""
    monkeypatch.setattr(settings, "persistence_enabled", False)


@pytest.fixture
def embeddings():
    return KeywordEmbeddings()


@pytest.fixture
def embedder(embeddings):
    return Embedder(embedding_model=embeddings, max_retries=1, retry_delay=0)


@pytest.fixture
def store(embedder):
    """Initialized store with small watermarks (capacity 10, target 8)."""
    store = RetrievalStore(embedder=embedder, max_capacity=10, target_watermark=8)
    store.initialize()
    yield store
    store.close()


@pytest.fixture
def make_chunk() -> Callable[..., Chunk]:
    """Factory for chunks with sensible metadata."""
    def _make(content: str, source_id: str = "sop.md", index: int = 0, header: Optional[str] = None) -> Chunk:
        return Chunk(
            content=content,
            metadata=ChunkMetadata(
                chunk_id=f"{source_id}-{index}",
                source_id=source_id,
                chunk_index=index,
                start_offset=0,
                end_offset=len(content),
                section_header=header,
            ),
        )
    return _make


@pytest.fixture
def make_llm() -> Callable[..., ScriptedLLM]:
    return ScriptedLLM


@pytest.fixture
def make_verdict() -> Callable[..., str]:
    return verdict_json


@pytest.fixture
def slow_chat_model():
    return SlowChatModel()


@pytest.fixture
def sample_procedures(tmp_path):
    """A small procedure directory."""
    docs = tmp_path / "procedures"
    (docs / "quality").mkdir(parents=True)

    (docs / "change_control.md").write_text(
        "# Change Control\n\n"
        "Every design change requires a documented risk assessment.\n\n"
        "## Labeling\n\n"
        "Label changes must avoid diagnosis claims.\n",
        encoding="utf-8",
    )
    (docs / "quality" / "training.txt").write_text(
        "1. Training\nStaff complete training before an audit.\n",
        encoding="utf-8",
    )
    (docs / "scan.pdf").write_bytes(b"%PDF-1.4 binary")

    return docs
