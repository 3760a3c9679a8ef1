"""
Error classes for the design review system.

Provides structured exception handling for:
- Chunking configuration errors
- Retrieval errors (index unavailable, embedding backend failures)
- Model call errors (timeouts, unparsable output, unreachable backend)
- Workflow errors (illegal phase transitions, procedure questions)
"""

from typing import Any, Dict, Optional


class DesignReviewError(Exception):
    """
    Base exception for all design review errors.

    All custom exceptions in the system inherit from this class so callers
    can handle and serialize them consistently.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize design review error.

        Args:
            message: Human-readable error message
            details: Optional additional context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ChunkingConfigError(DesignReviewError):
    """Invalid chunking options."""

    def __init__(self, reason: str, chunk_size: int, overlap: int):
        self.reason = reason
        message = f"Invalid chunking options: {reason}"
        super().__init__(message, {"chunk_size": chunk_size, "overlap": overlap})


# =============================================================================
# Retrieval Errors
# =============================================================================

class RetrievalError(DesignReviewError):
    """
    Error in the retrieval store.

    Raised when the index is not initialized or the embedding backend
    fails. Reviewers treat it as "no context available".
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.operation = operation
        self.original_error = original_error

        details: Dict[str, Any] = {"operation": operation}
        if original_error:
            details["original_error"] = str(original_error)

        super().__init__(message, details)


# =============================================================================
# Model Call Errors
# =============================================================================

class ReviewTimeoutError(DesignReviewError):
    """A model call exceeded its time budget."""

    def __init__(self, operation: str, timeout_ms: int):
        self.operation = operation
        self.timeout_ms = timeout_ms

        message = f"Model call '{operation}' timed out after {timeout_ms}ms"
        super().__init__(message, {"operation": operation, "timeout_ms": timeout_ms})


class VerdictParseError(DesignReviewError):
    """
    Model output does not match the expected JSON schema.

    Covers every stage of the parse: no JSON object in the text, invalid
    JSON, and schema validation failures.
    """

    def __init__(self, context: str, reason: str, raw_excerpt: str = ""):
        self.context = context
        self.reason = reason
        self.raw_excerpt = raw_excerpt

        message = f"Could not parse model output for {context}: {reason}"
        super().__init__(message, {"context": context, "reason": reason, "raw_excerpt": raw_excerpt})


class AgentInfrastructureError(DesignReviewError):
    """
    The model backend is unreachable.

    This is the only error allowed to propagate out of a review request.
    When raised by the orchestrator, ``state`` holds the review state as it
    stood when the outage was detected.
    """

    def __init__(
        self,
        reason: str,
        state: Optional[Any] = None,
        original_error: Optional[Exception] = None,
    ):
        self.reason = reason
        self.state = state
        self.original_error = original_error

        message = f"Model backend unavailable: {reason}"
        details: Dict[str, Any] = {"reason": reason}
        if original_error:
            details["original_error"] = str(original_error)

        super().__init__(message, details)


# =============================================================================
# Workflow Errors
# =============================================================================

class InvalidPhaseTransitionError(DesignReviewError):
    """Attempted to move a review to a phase that is not reachable."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        message = f"Illegal phase transition {current} -> {target}"
        super().__init__(message, {"current": current, "target": target})


class ProcedureQueryError(DesignReviewError):
    """A procedure question could not be answered."""

    def __init__(self, question: str, original_error: Optional[Exception] = None):
        self.question = question
        self.original_error = original_error

        details: Dict[str, Any] = {"question": question}
        if original_error:
            details["original_error"] = str(original_error)

        super().__init__("Procedure query failed", details)


def format_error(error: BaseException) -> str:
    """Render an error for API responses and log lines."""
    if isinstance(error, DesignReviewError):
        return f"[{error.__class__.__name__}] {error.message}"
    return str(error)
