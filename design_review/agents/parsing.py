"""Defensive parsing of JSON answers embedded in model output."""

import json
import logging
from typing import Any, Dict, Type, TypeVar

from pydantic import BaseModel, ValidationError

from design_review.errors import VerdictParseError

logger = logging.getLogger(__name__)

MAX_LOGGED_CHARS = 2048

ModelT = TypeVar("ModelT", bound=BaseModel)


def truncate(text: str, limit: int = MAX_LOGGED_CHARS) -> str:
    """Shorten text for log lines and error details."""
    if len(text) <= limit:
        return text
    return text[:limit] + f"... ({len(text) - limit} more chars)"


def extract_json_object(text: str, context: str) -> Dict[str, Any]:
    """
    Slice from the first '{' to the last '}' and decode it.

    Raises:
        VerdictParseError: If no object is present or it does not decode
    """
    start = text.find("{")
    end = text.rfind("}") + 1

    if start == -1 or end <= start:
        logger.warning("No JSON object found in %s output (%d chars)", context, len(text))
        raise VerdictParseError(context, "no JSON object in model output", truncate(text))

    candidate = text[start:end]
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as e:
        logger.warning("Invalid JSON in %s output: %s\n%s", context, e, truncate(candidate))
        raise VerdictParseError(context, f"invalid JSON: {e.msg}", truncate(candidate)) from e

    if not isinstance(data, dict):
        raise VerdictParseError(context, "JSON value is not an object", truncate(candidate))

    return data


def parse_model_output(text: str, model_cls: Type[ModelT], context: str) -> ModelT:
    """
    Extract the JSON object from raw output and validate it.

    Args:
        text: Raw model output, possibly with prose around the JSON
        model_cls: Pydantic model describing the expected schema
        context: Label used in logs and errors

    Returns:
        Validated model instance

    Raises:
        VerdictParseError: On any extraction, decoding or validation failure
    """
    data = extract_json_object(text, context)
    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        logger.warning(
            "Schema validation failed for %s: %d errors\n%s",
            context, e.error_count(), truncate(json.dumps(data, ensure_ascii=False)),
        )
        raise VerdictParseError(
            context,
            f"schema validation failed ({e.error_count()} errors)",
            truncate(json.dumps(data, ensure_ascii=False)),
        ) from e
