"""LLM tasks: analyze, generate, explain, summarize-diff.

Each task redacts secrets from its input, builds its prompt, calls the
model, re-parses the reply into a typed result, and redacts the result
text again before it leaves the service.
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from yamlpilot.guardrails.redaction import redact_secrets
from yamlpilot.llm.client import LLMClient
from yamlpilot.llm.errors import ErrorClass, LLMError
from yamlpilot.llm.prompts import (
    build_analyze_prompt,
    build_diff_summary_prompt,
    build_explain_prompt,
    build_generate_prompt,
)
from yamlpilot.models import CodeExplanation, DiffSummary, GeneratedYAML, YAMLAnalysis

logger = logging.getLogger(__name__)

ResultT = TypeVar("ResultT", bound=BaseModel)


def _validate(model: type[ResultT], data: dict[str, Any]) -> ResultT:
    """Coerce a parsed reply into model; a wrongly shaped reply is an INVALID_RESPONSE."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        logger.warning("%s reply failed validation on %s", model.__name__, fields)
        raise LLMError(
            ErrorClass.INVALID_RESPONSE, f"LLM reply did not match {model.__name__}"
        ) from e


async def analyze_yaml(llm: LLMClient, content: str, filename: str = "") -> YAMLAnalysis:
    system, user = build_analyze_prompt(redact_secrets(content), filename)
    data = await llm.complete_json(system, user)
    result = _validate(YAMLAnalysis, data)
    logger.info("Analyzed %s: is_correct=%s", filename or "<upload>", result.is_correct)
    return result.model_copy(
        update={
            "corrected_yaml": redact_secrets(result.corrected_yaml),
            "explanation": redact_secrets(result.explanation),
        }
    )


async def generate_yaml(llm: LLMClient, request: str) -> GeneratedYAML:
    system, user = build_generate_prompt(redact_secrets(request))
    data = await llm.complete_json(system, user)
    result = _validate(GeneratedYAML, data)
    return result.model_copy(
        update={
            "generated_yaml": redact_secrets(result.generated_yaml),
            "explanation": redact_secrets(result.explanation),
        }
    )


async def explain_code(llm: LLMClient, code: str) -> CodeExplanation:
    system, user = build_explain_prompt(redact_secrets(code))
    data = await llm.complete_json(system, user)
    result = _validate(CodeExplanation, data)
    return CodeExplanation(explanation=redact_secrets(result.explanation))


async def summarize_diff(llm: LLMClient, diff: str, title: str = "") -> DiffSummary:
    system, user = build_diff_summary_prompt(redact_secrets(diff), title)
    data = await llm.complete_json(system, user)
    result = _validate(DiffSummary, data)
    return result.model_copy(
        update={
            "summary": redact_secrets(result.summary),
            "risks": [redact_secrets(r) for r in result.risks],
        }
    )
