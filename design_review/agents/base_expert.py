"""Shared behavior of the discipline reviewers."""

import logging
from dataclasses import dataclass
from typing import Optional

from config.settings import settings
from design_review.agents.llm_client import LLMClient
from design_review.agents.parsing import parse_model_output
from design_review.errors import (
    AgentInfrastructureError,
    RetrievalError,
    ReviewTimeoutError,
    VerdictParseError,
)
from design_review.storage.vector_store import NO_RESULTS_MESSAGE, RetrievalStore
from design_review.workflow.state import ExpertRole, Verdict, VerdictType

logger = logging.getLogger(__name__)

FALLBACK_RECOMMENDATION = "manual review required"

RESPONSE_FORMAT = """Answer ONLY with a JSON object in exactly this format:
{
  "verdict": "PASS" | "WARNING" | "BLOCK" | "NEEDS_INFO",
  "findings": ["finding 1", "finding 2"],
  "recommendations": ["recommendation 1", "recommendation 2"],
  "missingInfo": ["additional information needed, if any"],
  "referencedSections": ["procedure sections you relied on"]
}"""


def fallback_verdict(reason: str) -> Verdict:
    """Conservative verdict used whenever a review cannot complete."""
    return Verdict(
        verdict=VerdictType.NEEDS_INFO,
        findings=[reason],
        recommendations=[FALLBACK_RECOMMENDATION],
        missing_info=[],
        referenced_sections=[],
    )


@dataclass
class Assessment:
    """A verdict plus the error that forced a fallback, if any."""
    verdict: Verdict
    error: Optional[Exception] = None

    @property
    def is_fallback(self) -> bool:
        return self.error is not None

    @property
    def infrastructure_failure(self) -> bool:
        return isinstance(self.error, AgentInfrastructureError)


class ExpertReviewer:
    """
    Reviews a design change from one discipline's point of view.

    Subclasses provide ``role`` and ``rubric``. Supporting passages come
    from the shared retrieval store; a missing or failing knowledge base
    only means the prompt carries no procedure context.
    """

    role: ExpertRole
    rubric: str = ""

    def __init__(
        self,
        store: Optional[RetrievalStore] = None,
        llm: Optional[LLMClient] = None,
        top_k: Optional[int] = None,
        timeout_ms: Optional[int] = None
    ):
        """
        Initialize the reviewer.

        Args:
            store: Shared retrieval store (reviews run without context if None)
            llm: Generation function (reviewer-temperature ChatOllama if not provided)
            top_k: Passages to retrieve (uses settings if not provided)
            timeout_ms: Model call budget (uses settings if not provided)
        """
        self.store = store
        self.llm = llm or LLMClient(temperature=settings.ollama_temperature)
        self.top_k = top_k or settings.retrieval_top_k
        self.timeout_ms = timeout_ms or settings.llm_timeout_ms

    @property
    def name(self) -> str:
        return f"{self.role.value.lower()}_reviewer"

    def analyze(self, description: str, extra_context: Optional[str] = None) -> Verdict:
        """
        Review a change description.

        Never raises: any failure yields the NEEDS_INFO fallback verdict.
        """
        return self.assess(description, extra_context).verdict

    def assess(self, description: str, extra_context: Optional[str] = None) -> Assessment:
        """Like analyze, but also reports the error behind a fallback."""
        procedure_context = self.retrieve_context(description)
        system_prompt = self.build_system_prompt(procedure_context, extra_context)
        user_prompt = f"[Change request]\n{description}"

        logger.info("%s review started", self.role.value)
        try:
            raw = self.llm.invoke(system_prompt, user_prompt, self.timeout_ms)
            verdict = parse_model_output(raw, Verdict, context=f"{self.role.value} review")
        except VerdictParseError as e:
            logger.warning("%s review fell back: %s", self.role.value, e.message)
            return Assessment(fallback_verdict("Model response could not be parsed"), e)
        except ReviewTimeoutError as e:
            logger.warning("%s review fell back: %s", self.role.value, e.message)
            return Assessment(fallback_verdict(f"Review timed out after {e.timeout_ms}ms"), e)
        except AgentInfrastructureError as e:
            logger.error("%s review fell back: %s", self.role.value, e.message)
            return Assessment(fallback_verdict("Model backend unavailable"), e)
        except Exception as e:
            logger.exception("%s review failed", self.role.value)
            return Assessment(fallback_verdict("Error during analysis"), e)

        logger.info("%s review complete: %s", self.role.value, verdict.verdict.value)
        return Assessment(verdict)

    def retrieve_context(self, description: str) -> str:
        """Fetch supporting passages; empty string when none are available."""
        if self.store is None:
            return ""

        try:
            context = self.store.search_with_context(f"{self.role.value} {description}", self.top_k)
        except RetrievalError as e:
            logger.warning("%s context retrieval failed: %s", self.role.value, e.message)
            return ""

        return "" if context == NO_RESULTS_MESSAGE else context

    def build_system_prompt(self, procedure_context: str, extra_context: Optional[str] = None) -> str:
        parts = [self.rubric.strip()]
        if procedure_context:
            parts.append(f"[Reference procedures]\n{procedure_context}")
        if extra_context:
            parts.append(f"[Additional context]\n{extra_context}")
        parts.append(RESPONSE_FORMAT)
        return "\n\n".join(parts)
