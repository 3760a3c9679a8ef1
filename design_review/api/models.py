"""Pydantic models for API requests and responses."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class DocumentRequest(BaseModel):
    """Procedure document text to ingest."""
    source_id: str = Field(..., min_length=1, description="Identifier of the source document")
    text: str = Field(..., description="Extracted document text")


class IngestionResponse(BaseModel):
    """Outcome of ingesting one document."""
    source_id: str
    chunk_count: int
    chunks_added: int
    word_count: int


class StoreStatusResponse(BaseModel):
    """Retrieval store status."""
    initialized: bool
    count: int
    capacity: int
    target_watermark: int


class SearchRequest(BaseModel):
    """Similarity search over the knowledge base."""
    query: str = Field(..., min_length=1)
    k: int = Field(3, ge=1, le=50, description="Maximum number of results")


class SearchResultResponse(BaseModel):
    """Single search hit."""
    content: str
    source_id: str
    section_header: Optional[str] = None
    score: float


class ReviewCreateRequest(BaseModel):
    """Request to review a design change."""
    description: str = Field(..., min_length=1, description="Description of the proposed change")


class ReviewResponse(BaseModel):
    """Completed review."""
    status: str
    correlation_id: str
    state: Dict[str, Any]
    synthesis: Optional[Dict[str, Any]] = None


class ProcedureQuestionRequest(BaseModel):
    """Free-form question about the procedures."""
    question: str = Field(..., min_length=1)


class ProcedureAnswerResponse(BaseModel):
    """Answer with the documents it came from."""
    answer: str
    sources: List[str]
