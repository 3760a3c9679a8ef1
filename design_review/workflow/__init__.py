"""Review state machine and orchestration."""

from .state import (
    ExpertRole,
    FinalVerdict,
    ReviewMessage,
    ReviewOutcome,
    ReviewPhase,
    ReviewState,
    SynthesisResult,
    Verdict,
    VerdictType,
    transition,
)

__all__ = [
    "ExpertRole",
    "FinalVerdict",
    "ReviewMessage",
    "ReviewOutcome",
    "ReviewPhase",
    "ReviewState",
    "SynthesisResult",
    "Verdict",
    "VerdictType",
    "transition",
]
