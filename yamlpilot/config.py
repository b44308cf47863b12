"""yamlpilot configuration."""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Environment-driven settings for the yamlpilot backend."""

    # LLM provider
    openai_api_key: str = ""
    openai_base_url: str | None = None
    llm_model: str = "gpt-5"
    llm_max_completion_tokens: int = 2048
    llm_timeout_seconds: float = 60.0
    llm_max_retries: int = 2
    llm_rate_limit: str = "30/minute"
    # Only enable behind a proxy that overwrites X-Forwarded-For
    trust_forwarded_for: bool = False

    # GitHub
    github_webhook_secret: str = ""
    github_token: str = ""
    github_api_url: str = "https://api.github.com"
    github_timeout_seconds: float = 30.0

    # Persistence (empty redis_url = in-memory)
    redis_url: str = ""
    event_history_limit: int = 500

    # Input limits
    max_yaml_bytes: int = 1024 * 1024
    max_input_chars: int = 20_000
    max_files_per_event: int = 20
    max_concurrent_analyses: int = 4

    cors_allowed_origins: list[str] = ["http://localhost:5000", "http://localhost:5173"]
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the root logger (idempotent)."""
    root = logging.getLogger()
    root.setLevel(level.upper())
    if any(getattr(h, "_yamlpilot", False) for h in root.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    handler._yamlpilot = True  # type: ignore[attr-defined]
    root.addHandler(handler)
