"""LLM error classification.

Every failure of a provider call is classified once and carried as an
LLMError, so route handlers can map it to an HTTP status and a message
that never echoes the provider's error body.
"""

from __future__ import annotations

from enum import Enum

import openai


class ErrorClass(str, Enum):
    """Classification of LLM provider errors."""

    RATE_LIMIT = "rate_limit"              # 429, quota exhausted
    AUTH_FAILURE = "auth_failure"          # 401/403, bad or missing key
    SERVER_ERROR = "server_error"          # 5xx from the provider
    TIMEOUT = "timeout"
    MODEL_ERROR = "model_error"            # bad request, unknown model
    INVALID_RESPONSE = "invalid_response"  # reply was not the JSON we asked for
    UNKNOWN = "unknown"


_STATUS_BY_CLASS = {
    ErrorClass.RATE_LIMIT: 429,
    ErrorClass.AUTH_FAILURE: 401,
}

_MESSAGE_BY_CLASS = {
    ErrorClass.RATE_LIMIT: "API quota exceeded. Please check your OpenAI API key has sufficient credits.",
    ErrorClass.AUTH_FAILURE: "Invalid API key. Please check your OPENAI_API_KEY configuration.",
}


class LLMError(Exception):
    """A classified failure of an LLM call."""

    def __init__(self, error_class: ErrorClass, message: str = "") -> None:
        super().__init__(message or error_class.value)
        self.error_class = error_class

    @property
    def status_code(self) -> int:
        return _STATUS_BY_CLASS.get(self.error_class, 500)

    def public_message(self, fallback: str) -> str:
        """Message safe to return to API callers."""
        return _MESSAGE_BY_CLASS.get(self.error_class, fallback)


def classify_error(error: Exception) -> ErrorClass:
    """Classify an LLM error into an error class.

    SDK exception types are checked first; the message text is the fallback
    for wrapped or foreign exceptions.
    """
    if isinstance(error, LLMError):
        return error.error_class
    if isinstance(error, openai.RateLimitError):
        return ErrorClass.RATE_LIMIT
    if isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return ErrorClass.AUTH_FAILURE
    if isinstance(error, openai.APITimeoutError):
        return ErrorClass.TIMEOUT
    if isinstance(error, openai.InternalServerError):
        return ErrorClass.SERVER_ERROR
    if isinstance(error, (openai.BadRequestError, openai.NotFoundError)):
        return ErrorClass.MODEL_ERROR

    status = getattr(error, "status_code", None) or getattr(error, "status", None)
    if status == 429:
        return ErrorClass.RATE_LIMIT
    if status in (401, 403):
        return ErrorClass.AUTH_FAILURE
    if isinstance(status, int) and status >= 500:
        return ErrorClass.SERVER_ERROR

    error_str = str(error).lower()
    if "rate" in error_str and "limit" in error_str or "too many requests" in error_str:
        return ErrorClass.RATE_LIMIT
    if "invalid api key" in error_str or "unauthorized" in error_str:
        return ErrorClass.AUTH_FAILURE
    if "timeout" in error_str or "timed out" in error_str:
        return ErrorClass.TIMEOUT
    if isinstance(error, TimeoutError):
        return ErrorClass.TIMEOUT

    return ErrorClass.UNKNOWN
