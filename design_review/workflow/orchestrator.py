"""LangGraph pipeline driving a design change through the three reviews."""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from langgraph.graph import END, StateGraph

from config.settings import settings
from design_review.agents.base_expert import Assessment, ExpertReviewer
from design_review.agents.experts import EngineeringReviewer, QualityReviewer, RegulatoryReviewer
from design_review.agents.llm_client import LLMClient
from design_review.errors import AgentInfrastructureError
from design_review.storage.persistence import ReviewPersistence
from design_review.storage.vector_store import RetrievalStore
from design_review.workflow.state import (
    ExpertRole,
    FinalVerdict,
    ReviewMessage,
    ReviewOutcome,
    ReviewPhase,
    ReviewPipelineState,
    ReviewState,
    VerdictType,
    transition,
)
from design_review.workflow.synthesis import Synthesizer, describe_verdict, regulatory_block_synthesis

logger = logging.getLogger(__name__)

COORDINATOR_ID = "coordinator"


def route_after_regulatory(state: ReviewPipelineState) -> str:
    """Only the regulatory axis is a hard gate."""
    if state.regulatory_verdict and state.regulatory_verdict.verdict == VerdictType.BLOCK:
        return "regulatory_block"
    return "quality_review"


class ReviewOrchestrator:
    """
    Runs one review request per call:

    intake -> regulatory_review -> quality_review -> engineering_review
    -> synthesis -> finalize, with regulatory_review -> regulatory_block
    when the regulatory verdict is BLOCK.

    Reviewer and synthesis failures degrade to fallbacks. The request
    fails with AgentInfrastructureError only when every model call it made
    found the backend unreachable.
    """

    def __init__(
        self,
        store: Optional[RetrievalStore] = None,
        llm: Optional[LLMClient] = None,
        synthesis_llm: Optional[LLMClient] = None,
        regulatory: Optional[ExpertReviewer] = None,
        quality: Optional[ExpertReviewer] = None,
        engineering: Optional[ExpertReviewer] = None,
        synthesizer: Optional[Synthesizer] = None,
        persistence: Optional[ReviewPersistence] = None
    ):
        """
        Initialize the orchestrator.

        Args:
            store: Shared retrieval store injected into the default reviewers
            llm: Generation function for the default reviewers
            synthesis_llm: Generation function for synthesis (llm if not provided)
            regulatory: Regulatory reviewer override
            quality: Quality reviewer override
            engineering: Engineering reviewer override
            synthesizer: Synthesis step override
            persistence: History sink (created from settings when enabled)
        """
        self.store = store
        # Clients built here are closed by close(); injected ones belong to the caller
        self._owned_clients: List[LLMClient] = []

        if llm is None and not (regulatory and quality and engineering):
            llm = LLMClient(temperature=settings.ollama_temperature)
            self._owned_clients.append(llm)

        self.regulatory = regulatory or RegulatoryReviewer(store=store, llm=llm)
        self.quality = quality or QualityReviewer(store=store, llm=llm)
        self.engineering = engineering or EngineeringReviewer(store=store, llm=llm)

        if synthesizer is None:
            synthesizer = Synthesizer(llm=synthesis_llm or llm)
            if synthesis_llm is None and llm is None:
                self._owned_clients.append(synthesizer.llm)
        self.synthesizer = synthesizer

        if persistence is None and settings.persistence_enabled:
            persistence = ReviewPersistence()
        self.persistence = persistence

        self.graph = self._build_graph()

    def _build_graph(self):
        workflow = StateGraph(ReviewPipelineState)

        workflow.add_node("intake", self._intake)
        workflow.add_node("regulatory_review", self._regulatory_review)
        workflow.add_node("regulatory_block", self._regulatory_block)
        workflow.add_node("quality_review", self._quality_review)
        workflow.add_node("engineering_review", self._engineering_review)
        workflow.add_node("synthesis", self._synthesis)
        workflow.add_node("finalize", self._finalize)

        workflow.set_entry_point("intake")
        workflow.add_edge("intake", "regulatory_review")
        workflow.add_conditional_edges(
            "regulatory_review",
            route_after_regulatory,
            {
                "regulatory_block": "regulatory_block",
                "quality_review": "quality_review",
            }
        )
        workflow.add_edge("regulatory_block", END)
        workflow.add_edge("quality_review", "engineering_review")
        workflow.add_edge("engineering_review", "synthesis")
        workflow.add_edge("synthesis", "finalize")
        workflow.add_edge("finalize", END)

        return workflow.compile()

    def process_design_change(self, description: str) -> ReviewOutcome:
        """
        Review one design change.

        Returns:
            Final review state and synthesis result

        Raises:
            AgentInfrastructureError: If the model backend was unreachable for every call
        """
        initial = ReviewPipelineState(description=description)
        logger.info("Review %s started", initial.request_id)

        result = self.graph.invoke(initial.model_dump())
        final = result if isinstance(result, ReviewPipelineState) else ReviewPipelineState.model_validate(result)
        state = final.to_review_state()

        if final.model_calls and final.infrastructure_failures == final.model_calls:
            logger.error(
                "Review %s: all %d model calls failed to reach the backend",
                final.request_id, final.model_calls,
            )
            raise AgentInfrastructureError(
                f"all {final.model_calls} model calls failed to reach the backend",
                state=state,
            )

        logger.info(
            "Review %s finished in %s with %s",
            final.request_id, state.phase.value,
            state.final_verdict.value if state.final_verdict else None,
        )
        self._persist(state, final)
        return ReviewOutcome(state=state, synthesis=final.synthesis)

    def process_design_changes(self, descriptions: Iterable[str], max_workers: int = 4) -> List[ReviewOutcome]:
        """Review independent changes concurrently; outcomes keep input order."""
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="review") as executor:
            return list(executor.map(self.process_design_change, descriptions))

    def close(self) -> None:
        """Shut down the model clients this orchestrator created."""
        for client in self._owned_clients:
            client.close()
        self._owned_clients = []

    # Graph nodes

    def _intake(self, state: ReviewPipelineState) -> Dict[str, Any]:
        return {
            "messages": [ReviewMessage(
                agent_id=COORDINATOR_ID,
                role=ExpertRole.COORDINATOR,
                content=f"Design change request received: {state.description}",
            )],
            "updated_at": datetime.now(),
        }

    def _regulatory_review(self, state: ReviewPipelineState) -> Dict[str, Any]:
        phase = self._move(state, ReviewPhase.REGULATORY_REVIEW)
        assessment = self.regulatory.assess(state.description)
        return {"phase": phase, "regulatory_verdict": assessment.verdict, **self._record(self.regulatory, assessment)}

    def _regulatory_block(self, state: ReviewPipelineState) -> Dict[str, Any]:
        phase = self._move(state, ReviewPhase.BLOCKED)
        logger.warning("Review %s blocked by regulatory review", state.request_id)
        return {
            "phase": phase,
            "final_verdict": FinalVerdict.REJECTED,
            "required_documents": [],
            "synthesis": regulatory_block_synthesis(state.regulatory_verdict),
            "updated_at": datetime.now(),
        }

    def _quality_review(self, state: ReviewPipelineState) -> Dict[str, Any]:
        phase = self._move(state, ReviewPhase.QUALITY_REVIEW)
        assessment = self.quality.assess(state.description)
        return {"phase": phase, "quality_verdict": assessment.verdict, **self._record(self.quality, assessment)}

    def _engineering_review(self, state: ReviewPipelineState) -> Dict[str, Any]:
        phase = self._move(state, ReviewPhase.ENGINEERING_REVIEW)
        assessment = self.engineering.assess(state.description)
        return {"phase": phase, "engineering_verdict": assessment.verdict, **self._record(self.engineering, assessment)}

    def _synthesis(self, state: ReviewPipelineState) -> Dict[str, Any]:
        phase = self._move(state, ReviewPhase.SYNTHESIS)
        attempt = self.synthesizer.synthesize(
            state.description,
            state.regulatory_verdict,
            state.quality_verdict,
            state.engineering_verdict,
        )
        return {
            "phase": phase,
            "synthesis": attempt.result,
            "model_calls": 1,
            "infrastructure_failures": int(attempt.infrastructure_failure),
            "updated_at": datetime.now(),
        }

    def _finalize(self, state: ReviewPipelineState) -> Dict[str, Any]:
        synthesis = state.synthesis
        target = ReviewPhase.BLOCKED if synthesis.final_verdict == FinalVerdict.REJECTED else ReviewPhase.COMPLETED
        phase = self._move(state, target)
        return {
            "phase": phase,
            "final_verdict": synthesis.final_verdict,
            "required_documents": list(synthesis.required_documents),
            "messages": [ReviewMessage(
                agent_id=COORDINATOR_ID,
                role=ExpertRole.COORDINATOR,
                content=f"Final decision: {synthesis.final_verdict.value}\n{synthesis.summary}",
            )],
            "updated_at": datetime.now(),
        }

    # Helpers

    def _move(self, state: ReviewPipelineState, target: ReviewPhase) -> ReviewPhase:
        phase = transition(state.phase, target)
        logger.info("Review %s: %s -> %s", state.request_id, state.phase.value, phase.value)
        return phase

    def _record(self, reviewer: ExpertReviewer, assessment: Assessment) -> Dict[str, Any]:
        """State updates shared by the three reviewer nodes."""
        verdict = assessment.verdict
        return {
            "messages": [ReviewMessage(
                agent_id=reviewer.name,
                role=reviewer.role,
                content=describe_verdict(verdict),
                verdict=verdict.verdict,
            )],
            "missing_info": list(verdict.missing_info),
            "model_calls": 1,
            "infrastructure_failures": int(assessment.infrastructure_failure),
            "updated_at": datetime.now(),
        }

    def _persist(self, state: ReviewState, final: ReviewPipelineState) -> None:
        if self.persistence is None:
            return
        try:
            self.persistence.save_review(state, final.synthesis)
            self.persistence.save_summary(state, final.synthesis)
        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to persist review %s: %s", state.request_id, e)
