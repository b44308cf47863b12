"""Thin async wrapper around the OpenAI chat completions API."""

from __future__ import annotations

import logging
import time
from typing import Any

import openai

from yamlpilot.config import Settings
from yamlpilot.llm.errors import ErrorClass, LLMError, classify_error
from yamlpilot.llm.parsing import parse_json_response

logger = logging.getLogger(__name__)


class LLMClient:
    """Chat-completion client with error classification.

    The underlying SDK client is created lazily so the app can start (and
    serve webhooks history, health, etc.) without an API key.
    """

    def __init__(self, settings: Settings, client: openai.AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._client = client

    @property
    def model(self) -> str:
        return self._settings.llm_model

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(self._settings.openai_api_key)

    def _get_client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            if not self._settings.openai_api_key:
                raise LLMError(ErrorClass.AUTH_FAILURE, "OPENAI_API_KEY is not set")
            self._client = openai.AsyncOpenAI(
                api_key=self._settings.openai_api_key,
                base_url=self._settings.openai_base_url,
                timeout=self._settings.llm_timeout_seconds,
                max_retries=self._settings.llm_max_retries,
            )
        return self._client

    async def _complete(self, system: str, user: str, **kwargs: Any) -> str:
        client = self._get_client()
        start = time.monotonic()
        try:
            completion = await client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                max_completion_tokens=self._settings.llm_max_completion_tokens,
                **kwargs,
            )
        except Exception as e:
            error_class = classify_error(e)
            logger.warning(
                "LLM call failed (model=%s): [%s] %s",
                self.model,
                error_class.value,
                str(e)[:200],  # Truncate to avoid logging request bodies
            )
            raise LLMError(error_class, str(e)[:200]) from e

        content = completion.choices[0].message.content if completion.choices else None
        logger.debug(
            "LLM response in %.1fs (model=%s): %s",
            time.monotonic() - start,
            self.model,
            (content or "")[:500],
        )
        return content or ""

    async def complete_json(self, system: str, user: str) -> dict[str, Any]:
        """Request a JSON object reply and parse it."""
        content = await self._complete(
            system, user, response_format={"type": "json_object"}
        )
        return parse_json_response(content or "{}")

    async def complete_text(self, system: str, user: str) -> str:
        return await self._complete(system, user)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
