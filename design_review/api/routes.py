"""API routes for knowledge base management, reviews and procedure questions."""

import logging
import threading
import uuid
from dataclasses import dataclass
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request

from design_review.agents.procedure_agent import ProcedureAgent
from design_review.errors import (
    AgentInfrastructureError,
    ProcedureQueryError,
    RetrievalError,
    format_error,
)
from design_review.ingest.ingestor import DocumentIngestor
from design_review.storage.vector_store import RetrievalStore
from design_review.workflow.orchestrator import ReviewOrchestrator

from .models import (
    DocumentRequest,
    IngestionResponse,
    ProcedureAnswerResponse,
    ProcedureQuestionRequest,
    ReviewCreateRequest,
    ReviewResponse,
    SearchRequest,
    SearchResultResponse,
    StoreStatusResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["design-review"])


@dataclass
class ReviewServices:
    """Components shared by every request; one retrieval store for all of them."""
    store: RetrievalStore
    ingestor: DocumentIngestor
    orchestrator: ReviewOrchestrator
    procedure_agent: ProcedureAgent

    @classmethod
    def create(cls) -> "ReviewServices":
        store = RetrievalStore()
        store.initialize()
        return cls(
            store=store,
            ingestor=DocumentIngestor(store=store),
            orchestrator=ReviewOrchestrator(store=store),
            procedure_agent=ProcedureAgent(store=store),
        )

    def close(self) -> None:
        self.orchestrator.close()
        self.procedure_agent.close()
        self.store.close()


_services_lock = threading.Lock()


def ensure_services(app) -> ReviewServices:
    """Return the app's services, building the defaults exactly once."""
    with _services_lock:
        services = getattr(app.state, "services", None)
        if services is None:
            services = ReviewServices.create()
            app.state.services = services
            app.state.owns_services = True
        return services


def get_services(request: Request) -> ReviewServices:
    return ensure_services(request.app)


@router.post("/documents", response_model=IngestionResponse)
def ingest_document(body: DocumentRequest, services: ReviewServices = Depends(get_services)):
    """Chunk and index a procedure document."""
    try:
        result = services.ingestor.ingest_document(body.text, body.source_id)
    except RetrievalError as e:
        logger.error("Ingestion of %s failed: %s", body.source_id, format_error(e))
        raise HTTPException(status_code=502, detail=format_error(e))

    return IngestionResponse(
        source_id=result.source_id,
        chunk_count=result.chunk_count,
        chunks_added=result.chunks_added,
        word_count=result.word_count,
    )


@router.get("/knowledge-base/status", response_model=StoreStatusResponse)
def knowledge_base_status(services: ReviewServices = Depends(get_services)):
    return StoreStatusResponse(**services.store.get_status())


@router.delete("/knowledge-base", response_model=StoreStatusResponse)
def clear_knowledge_base(services: ReviewServices = Depends(get_services)):
    """Remove every indexed chunk."""
    services.store.clear()
    return StoreStatusResponse(**services.store.get_status())


@router.post("/knowledge-base/search", response_model=List[SearchResultResponse])
def search_knowledge_base(body: SearchRequest, services: ReviewServices = Depends(get_services)):
    try:
        results = services.store.search(body.query, body.k)
    except RetrievalError as e:
        raise HTTPException(status_code=409, detail=format_error(e))

    return [SearchResultResponse(**result.to_dict()) for result in results]


@router.post("/reviews", response_model=ReviewResponse)
def create_review(body: ReviewCreateRequest, services: ReviewServices = Depends(get_services)):
    """Run a design change through the regulatory, quality and engineering reviews."""
    correlation_id = str(uuid.uuid4())
    logger.info("Review request %s received", correlation_id)

    try:
        outcome = services.orchestrator.process_design_change(body.description)
    except AgentInfrastructureError as e:
        logger.error("Review request %s failed: %s", correlation_id, format_error(e))
        raise HTTPException(status_code=503, detail=format_error(e))

    return ReviewResponse(
        status=outcome.state.phase.value.lower(),
        correlation_id=correlation_id,
        state=outcome.state.model_dump(mode="json", by_alias=True),
        synthesis=outcome.synthesis.model_dump(mode="json", by_alias=True) if outcome.synthesis else None,
    )


@router.post("/procedures/query", response_model=ProcedureAnswerResponse)
def query_procedure(body: ProcedureQuestionRequest, services: ReviewServices = Depends(get_services)):
    """Answer a question from the loaded procedures."""
    try:
        answer = services.procedure_agent.query_procedure(body.question)
    except ProcedureQueryError as e:
        raise HTTPException(status_code=502, detail=format_error(e))

    return ProcedureAnswerResponse(answer=answer.answer, sources=answer.sources)
