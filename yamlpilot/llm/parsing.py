"""Re-parsing of LLM replies into JSON objects."""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from yamlpilot.llm.errors import ErrorClass, LLMError

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^\s*```[a-zA-Z0-9_-]*\s*\n(.*?)\n?\s*```\s*$", re.DOTALL)


def strip_code_fences(text: str) -> str:
    match = _FENCE_RE.match(text)
    return match.group(1) if match else text


def parse_json_response(text: str | None) -> dict[str, Any]:
    """Recover a JSON object from an LLM reply.

    Tries the reply as-is (minus Markdown fences), then the outermost
    {...} span. Raises LLMError(INVALID_RESPONSE) if neither is a JSON
    object.
    """
    if not text or not text.strip():
        return {}

    candidate = strip_code_fences(text.strip())
    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError:
        start, end = candidate.find("{"), candidate.rfind("}")
        if start == -1 or end <= start:
            logger.warning("LLM reply contained no JSON object (%d chars)", len(text))
            raise LLMError(ErrorClass.INVALID_RESPONSE, "LLM reply was not JSON") from None
        try:
            parsed = json.loads(candidate[start : end + 1])
        except json.JSONDecodeError as e:
            logger.warning("LLM reply JSON could not be recovered: %s", str(e)[:200])
            raise LLMError(ErrorClass.INVALID_RESPONSE, "LLM reply was not valid JSON") from e

    if not isinstance(parsed, dict):
        raise LLMError(
            ErrorClass.INVALID_RESPONSE,
            f"Expected a JSON object, got {type(parsed).__name__}",
        )
    return parsed
