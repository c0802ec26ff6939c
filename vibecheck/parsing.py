"""
Response Parsing

Best-effort extraction of the verdict JSON from free-form model text.
A malformed reply becomes a zero-confidence "no" instead of an error.
"""

import json
import logging
import re
from typing import Any, Optional

from pydantic import ValidationError

from .exceptions import MalformedResponseError
from .models import EvaluationResult

logger = logging.getLogger(__name__)

JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")


def extract_json(text: str) -> Any:
    """
    Parse the JSON object embedded in a model reply.

    Takes the span from the first "{" to the last "}" so that leading
    and trailing prose (or code fences) is ignored. Falls back to parsing
    the whole text when no braces are present.

    Args:
        text: Raw reply text

    Returns:
        The decoded JSON value

    Raises:
        MalformedResponseError: If nothing in the text decodes as JSON
    """
    match = JSON_OBJECT_RE.search(text or "")
    candidate = match.group(0) if match else (text or "")

    try:
        return json.loads(candidate)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Failed to parse response JSON: {e}") from e


def malformed_result(reasoning: str, raw: Any = None) -> EvaluationResult:
    return EvaluationResult(verdict="no", confidence=0.0, reasoning=reasoning, raw_response=raw)


def _as_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return "\n".join(_as_text(item) or "" for item in value)
    return json.dumps(value, default=str)


def _coerce_details(data: dict) -> dict:
    """Coerce the explanatory fields of a reply; they never fail a verdict"""
    details: dict[str, Any] = {}

    if "reasoning" in data:
        details["reasoning"] = _as_text(data["reasoning"])

    fail_reason = data.get("failReason", data.get("fail_reason"))
    if isinstance(fail_reason, str):
        details["failReason"] = fail_reason
    elif fail_reason is not None:
        logger.debug("Ignoring non-text failReason: %r", fail_reason)

    suggestions = data.get("suggestions")
    if isinstance(suggestions, str):
        details["suggestions"] = [suggestions]
    elif isinstance(suggestions, (list, tuple)):
        details["suggestions"] = [_as_text(item) for item in suggestions if item is not None]

    return details


def parse_response(text: str, include_raw: bool = False) -> EvaluationResult:
    """
    Turn a model reply into an EvaluationResult.

    Never raises for bad model output:
    - undecodable text -> "no" at confidence 0, reasoning carries the text
    - no "confidence" field (or one that is not a number) -> "no" at
      confidence 0, reasoning states the format was invalid
    - reasoning, failReason and suggestions of the wrong shape are coerced
      to text (or dropped), never downgrading the verdict

    Args:
        text: Raw reply text from the provider
        include_raw: Attach ``text`` as ``raw_response``

    Returns:
        Normalized EvaluationResult
    """
    raw = text if include_raw else None

    try:
        data = extract_json(text)
    except MalformedResponseError as e:
        logger.warning("Could not parse model reply: %s", e)
        return malformed_result(f"Error parsing response: {text}", raw)

    if not isinstance(data, dict) or "confidence" not in data:
        logger.warning("Model reply has no confidence field")
        return malformed_result(f"Invalid response format: {json.dumps(data)}", raw)

    fields = {key: data[key] for key in ("verdict", "confidence") if key in data}
    fields.update(_coerce_details(data))

    try:
        result = EvaluationResult.model_validate({**fields, "rawResponse": raw})
    except ValidationError as e:
        logger.warning("Model reply failed validation: %s", e)
        return malformed_result(f"Invalid response format: {json.dumps(data)}", raw)

    if not result.in_range:
        # Not clamped: pass/fail is computed on the reported value
        logger.warning("Model reported confidence %s outside [0, 1]", result.confidence)

    return result
