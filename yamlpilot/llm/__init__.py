"""LLM access: prompt templates, client, and task functions."""

from yamlpilot.llm.client import LLMClient
from yamlpilot.llm.errors import ErrorClass, LLMError, classify_error
from yamlpilot.llm.tasks import analyze_yaml, explain_code, generate_yaml, summarize_diff

__all__ = [
    "ErrorClass",
    "LLMClient",
    "LLMError",
    "analyze_yaml",
    "classify_error",
    "explain_code",
    "generate_yaml",
    "summarize_diff",
]
