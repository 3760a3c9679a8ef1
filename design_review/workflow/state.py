"""Review data model and phase machine."""

import operator
import uuid
from datetime import datetime
from enum import Enum
from typing import Annotated, Dict, List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from design_review.errors import InvalidPhaseTransitionError


class ExpertRole(str, Enum):
    """Author of a review message."""
    COORDINATOR = "COORDINATOR"
    REGULATORY = "REGULATORY"
    QUALITY = "QUALITY"
    ENGINEERING = "ENGINEERING"


class VerdictType(str, Enum):
    """Reviewer classification."""
    PASS = "PASS"
    WARNING = "WARNING"
    BLOCK = "BLOCK"
    NEEDS_INFO = "NEEDS_INFO"


class FinalVerdict(str, Enum):
    """Decision produced by synthesis."""
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    NEEDS_REVIEW = "NEEDS_REVIEW"


class ReviewPhase(str, Enum):
    """Phases of a review request, in order."""
    INITIATED = "INITIATED"
    REGULATORY_REVIEW = "REGULATORY_REVIEW"
    QUALITY_REVIEW = "QUALITY_REVIEW"
    ENGINEERING_REVIEW = "ENGINEERING_REVIEW"
    SYNTHESIS = "SYNTHESIS"
    COMPLETED = "COMPLETED"
    BLOCKED = "BLOCKED"


PHASE_TRANSITIONS: Dict[ReviewPhase, Set[ReviewPhase]] = {
    ReviewPhase.INITIATED: {ReviewPhase.REGULATORY_REVIEW},
    # BLOCKED here is the regulatory short-circuit
    ReviewPhase.REGULATORY_REVIEW: {ReviewPhase.QUALITY_REVIEW, ReviewPhase.BLOCKED},
    ReviewPhase.QUALITY_REVIEW: {ReviewPhase.ENGINEERING_REVIEW},
    ReviewPhase.ENGINEERING_REVIEW: {ReviewPhase.SYNTHESIS},
    ReviewPhase.SYNTHESIS: {ReviewPhase.COMPLETED, ReviewPhase.BLOCKED},
    ReviewPhase.COMPLETED: set(),
    ReviewPhase.BLOCKED: set(),
}

TERMINAL_PHASES = {ReviewPhase.COMPLETED, ReviewPhase.BLOCKED}


def transition(current: ReviewPhase, target: ReviewPhase) -> ReviewPhase:
    """
    Validate a phase move.

    Returns:
        The target phase

    Raises:
        InvalidPhaseTransitionError: If target is not reachable from current
    """
    if target not in PHASE_TRANSITIONS[current]:
        raise InvalidPhaseTransitionError(current.value, target.value)
    return target


class Verdict(BaseModel):
    """Validated output of one reviewer call."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    verdict: VerdictType
    findings: List[str]
    recommendations: List[str]
    missing_info: List[str] = Field(default_factory=list)
    referenced_sections: List[str] = Field(default_factory=list)

    @field_validator("verdict", mode="before")
    @classmethod
    def normalize_verdict(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("findings", "recommendations", "missing_info", "referenced_sections", mode="before")
    @classmethod
    def coerce_lists(cls, value):
        return [] if value is None else value


class SynthesisResult(BaseModel):
    """Aggregated decision over the three reviews."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    final_verdict: FinalVerdict
    summary: str
    required_documents: List[str]
    next_steps: List[str]
    blockers: List[str] = Field(default_factory=list)

    @field_validator("final_verdict", mode="before")
    @classmethod
    def normalize_verdict(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("required_documents", "next_steps", "blockers", mode="before")
    @classmethod
    def coerce_lists(cls, value):
        return [] if value is None else value


class ReviewMessage(BaseModel):
    """One entry of the append-only review log."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    agent_id: str
    role: ExpertRole
    content: str
    verdict: Optional[VerdictType] = None
    timestamp: datetime = Field(default_factory=datetime.now)


class ReviewState(BaseModel):
    """Snapshot of a review request."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    request_id: str
    description: str
    phase: ReviewPhase
    messages: List[ReviewMessage] = Field(default_factory=list)
    regulatory_verdict: Optional[Verdict] = None
    quality_verdict: Optional[Verdict] = None
    engineering_verdict: Optional[Verdict] = None
    final_verdict: Optional[FinalVerdict] = None
    required_documents: List[str] = Field(default_factory=list)
    missing_info: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES


class ReviewPipelineState(BaseModel):
    """
    LangGraph state for one review request.

    Extends the review snapshot with the synthesis result and model-call
    accounting. ``messages``, ``missing_info`` and the counters are merged
    additively; nodes return only what they add.
    """
    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    description: str
    phase: ReviewPhase = ReviewPhase.INITIATED
    messages: Annotated[List[ReviewMessage], operator.add] = Field(default_factory=list)
    regulatory_verdict: Optional[Verdict] = None
    quality_verdict: Optional[Verdict] = None
    engineering_verdict: Optional[Verdict] = None
    final_verdict: Optional[FinalVerdict] = None
    required_documents: List[str] = Field(default_factory=list)
    missing_info: Annotated[List[str], operator.add] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    synthesis: Optional[SynthesisResult] = None
    model_calls: Annotated[int, operator.add] = 0
    infrastructure_failures: Annotated[int, operator.add] = 0

    def to_review_state(self) -> ReviewState:
        return ReviewState(
            request_id=self.request_id,
            description=self.description,
            phase=self.phase,
            messages=list(self.messages),
            regulatory_verdict=self.regulatory_verdict,
            quality_verdict=self.quality_verdict,
            engineering_verdict=self.engineering_verdict,
            final_verdict=self.final_verdict,
            required_documents=list(self.required_documents),
            missing_info=list(self.missing_info),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class ReviewOutcome(BaseModel):
    """Result of one review request."""
    model_config = ConfigDict(frozen=True)

    state: ReviewState
    synthesis: Optional[SynthesisResult] = None
