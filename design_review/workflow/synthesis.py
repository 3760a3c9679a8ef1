"""Synthesis of the three reviews into one decision."""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from config.settings import settings
from design_review.agents.llm_client import LLMClient
from design_review.agents.parsing import parse_model_output
from design_review.errors import AgentInfrastructureError, format_error
from design_review.workflow.state import FinalVerdict, SynthesisResult, Verdict, VerdictType

logger = logging.getLogger(__name__)

REGULATORY_BLOCK_SUMMARY = "Regulatory review found a violation; the change cannot proceed"
FALLBACK_SUMMARY = "Automatic decision (synthesis output was unusable)"
FALLBACK_REQUIRED_DOCUMENTS = ["Design change request", "Risk analysis report"]
FALLBACK_NEXT_STEPS = ["Complete detailed review and prepare required documentation"]
FALLBACK_BLOCKER = "An expert review returned BLOCK"

SYNTHESIS_PROMPT = """You make the final decision in the design change process of a medical device quality management system.
Combine the results of the regulatory, quality and engineering reviews into one decision.

[Regulatory review]
{regulatory}

[Quality review]
{quality}

[Engineering review]
{engineering}

[Decision criteria]
- APPROVED: every reviewer returned PASS or only minor WARNINGs
- NEEDS_REVIEW: WARNINGs require further review or changes
- REJECTED: one or more BLOCKs or a serious problem

Answer ONLY with a JSON object in this format:
{{
  "finalVerdict": "APPROVED" | "REJECTED" | "NEEDS_REVIEW",
  "summary": "reason for the decision",
  "requiredDocuments": ["documents that must be prepared"],
  "nextSteps": ["next steps"],
  "blockers": ["reasons the change is blocked, if any"]
}}"""


def describe_verdict(verdict: Verdict) -> str:
    return "\n".join([
        f"Verdict: {verdict.verdict.value}",
        f"Findings: {'; '.join(verdict.findings)}",
        f"Recommendations: {'; '.join(verdict.recommendations)}",
    ])


def regulatory_block_synthesis(regulatory: Verdict) -> SynthesisResult:
    """Decision for the regulatory short-circuit."""
    return SynthesisResult(
        final_verdict=FinalVerdict.REJECTED,
        summary=REGULATORY_BLOCK_SUMMARY,
        required_documents=[],
        next_steps=list(regulatory.recommendations),
        blockers=list(regulatory.findings),
    )


def fallback_synthesis(verdicts: Sequence[Verdict]) -> SynthesisResult:
    """
    Deterministic decision used when the synthesis call is unusable.

    REJECTED if any review blocked, NEEDS_REVIEW if any warned or lacked
    information, APPROVED otherwise.
    """
    kinds = {v.verdict for v in verdicts}

    if VerdictType.BLOCK in kinds:
        final = FinalVerdict.REJECTED
    elif kinds & {VerdictType.WARNING, VerdictType.NEEDS_INFO}:
        final = FinalVerdict.NEEDS_REVIEW
    else:
        final = FinalVerdict.APPROVED

    return SynthesisResult(
        final_verdict=final,
        summary=FALLBACK_SUMMARY,
        required_documents=list(FALLBACK_REQUIRED_DOCUMENTS),
        next_steps=list(FALLBACK_NEXT_STEPS),
        blockers=[FALLBACK_BLOCKER] if final == FinalVerdict.REJECTED else [],
    )


@dataclass
class SynthesisAttempt:
    """A synthesis result plus the error that forced the fallback, if any."""
    result: SynthesisResult
    error: Optional[Exception] = None

    @property
    def is_fallback(self) -> bool:
        return self.error is not None

    @property
    def infrastructure_failure(self) -> bool:
        return isinstance(self.error, AgentInfrastructureError)


class Synthesizer:
    """Asks the model for the final decision, falling back to fixed rules."""

    def __init__(self, llm: Optional[LLMClient] = None, timeout_ms: Optional[int] = None):
        self.llm = llm or LLMClient(temperature=settings.synthesis_temperature)
        self.timeout_ms = timeout_ms or settings.llm_timeout_ms

    def synthesize(
        self,
        description: str,
        regulatory: Verdict,
        quality: Verdict,
        engineering: Verdict
    ) -> SynthesisAttempt:
        system_prompt = SYNTHESIS_PROMPT.format(
            regulatory=describe_verdict(regulatory),
            quality=describe_verdict(quality),
            engineering=describe_verdict(engineering),
        )
        user_prompt = f"Design change: {description}"

        try:
            raw = self.llm.invoke(system_prompt, user_prompt, self.timeout_ms)
            result = parse_model_output(raw, SynthesisResult, context="synthesis")
        except Exception as e:
            logger.warning("Synthesis fell back to rule-based decision: %s", format_error(e))
            return SynthesisAttempt(fallback_synthesis([regulatory, quality, engineering]), e)

        logger.info("Synthesis decided %s", result.final_verdict.value)
        return SynthesisAttempt(result)
