"""Response parsing shared by the model adapters."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

import structlog

from ...utils.async_helpers import LLMResponseError

log = structlog.get_logger()

# Maximum response length in characters
MAX_RESPONSE_LENGTH = 50000


def retry_after_seconds(headers: Mapping[str, str]) -> int | None:
    """Whole seconds from a ``retry-after`` header; None if absent or a date."""
    value = headers.get("retry-after", "").strip()
    return int(value) if value.isdigit() else None


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code block (```json ... ```) if present."""
    text = text.strip()
    if not text.startswith("```"):
        return text

    lines = text.split("\n")
    end = len(lines)
    for i in range(len(lines) - 1, 0, -1):
        if lines[i].strip() == "```":
            end = i
            break
    return "\n".join(lines[1:end]).strip()


def parse_json_object(response_text: str) -> dict[str, Any]:
    """Parse a model response that must be a single JSON object.

    Args:
        response_text: Raw response text from the model.

    Returns:
        The decoded object.

    Raises:
        LLMResponseError: If the text is too long, not JSON, or not an object.
    """
    if len(response_text) > MAX_RESPONSE_LENGTH:
        raise LLMResponseError(f"Response exceeds maximum length: {len(response_text)}")

    text = strip_code_fences(response_text)
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        log.error("json_parse_error", error=str(e), response_preview=text[:200])
        raise LLMResponseError(f"Invalid JSON in LLM response: {e}") from e

    if not isinstance(data, dict):
        raise LLMResponseError(f"Expected a JSON object, got {type(data).__name__}")
    return data
