"""JSON extraction and repair for model responses.

Model output is parsed strictly first. Only when that fails is the text run
through ``json_repair``, which fixes trailing commas, unquoted keys and similar
slips. The repair library is imported on first use.
"""

import json
import logging
import re
from typing import Any

logger = logging.getLogger(__name__)

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*(\{.*\}|\[.*\])\s*```", re.DOTALL)

ERROR_CONTEXT_CHARS = 100


def strip_code_fence(text: str) -> str:
    """Return the JSON body of a fenced response, or the trimmed text."""
    cleaned = text.strip()
    match = _FENCE_PATTERN.search(cleaned)
    if match:
        return match.group(1).strip()
    return cleaned


def repair_json_text(text: str) -> str:
    """Run ``text`` through json_repair and return the repaired JSON string."""
    from json_repair import repair_json

    return repair_json(text)


def error_context(text: str, position: int, window: int = ERROR_CONTEXT_CHARS) -> str:
    """Slice of ``text`` around ``position``."""
    start = max(0, position - window)
    end = min(len(text), position + window)
    return text[start:end]


def parse_json_response(text: str) -> Any:
    """Parse JSON from model response text.

    Steps:
    1. Strip a surrounding code fence, if any
    2. Strict ``json.loads``
    3. On failure, repair and parse again

    Args:
        text: Raw response text

    Returns:
        The parsed JSON object or array

    Raises:
        json.JSONDecodeError: The strict parse error, when repair also fails
    """
    if not isinstance(text, str):
        raise ValueError(f"Expected string input, got {type(text)}")

    cleaned = strip_code_fence(text)

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as parse_error:
        logger.warning(f"Strict JSON parse failed: {parse_error.msg} at position {parse_error.pos}")
        original_error = parse_error

    try:
        parsed = json.loads(repair_json_text(cleaned))
        if not isinstance(parsed, (dict, list)):
            raise ValueError(f"Repair produced {type(parsed).__name__}, not an object or array")
    except (json.JSONDecodeError, ValueError) as repair_error:
        logger.error(
            f"Failed to parse or repair JSON response ({repair_error}). "
            f"Context around error position {original_error.pos}:\n"
            f"{error_context(cleaned, original_error.pos)}"
        )
        logger.debug(f"Full response:\n{cleaned}")
        raise original_error

    logger.info("Successfully repaired JSON response")
    return parsed
