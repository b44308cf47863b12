"""Shared fixtures for the yamlpilot test suite.

The LLM provider is replaced by a MagicMock standing in for the OpenAI SDK
client, so the real LLMClient, prompt, and parsing code runs. GitHub is
served by an httpx.MockTransport backed by FakeGitHub.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from types import SimpleNamespace
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from yamlpilot.config import Settings
from yamlpilot.llm.client import LLMClient
from yamlpilot.security.middleware import limiter
from yamlpilot.serve import create_app
from yamlpilot.storage.events import MemoryEventStore
from yamlpilot.webhooks.github import GitHubClient
from yamlpilot.webhooks.idempotency import DeliveryDeduplicator

WEBHOOK_SECRET = "webhook-test-secret"

ANALYSIS_OK = {"corrected_yaml": "a: 1\n", "explanation": "Looks good.", "is_correct": True}
ANALYSIS_FIXED = {
    "corrected_yaml": "services:\n  web:\n    image: nginx:1.27  # FIX: pin tag\n",
    "explanation": "1. The image tag was unpinned.",
    "is_correct": False,
}


def make_completion(content: str | None) -> SimpleNamespace:
    """Shape of an OpenAI chat completion, as far as LLMClient reads it."""
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class FakeGitHub:
    """In-memory GitHub REST API for httpx.MockTransport."""

    def __init__(self) -> None:
        self.files: dict[tuple[str, str], str] = {}
        self.pull_files: dict[tuple[str, int], list[dict[str, Any]]] = {}
        self.diffs: dict[tuple[str, int], str] = {}
        self.failures: dict[str, int] = {}  # path -> status code
        self.bodies: dict[str, Any] = {}  # path suffix -> JSON body served with 200
        self.requests: list[httpx.Request] = []

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        for prefix, status in self.failures.items():
            if path.endswith(prefix):
                return httpx.Response(status, json={"message": "boom"})
        for suffix, body in self.bodies.items():
            if path.endswith(suffix):
                return httpx.Response(200, json=body)

        parts = path.strip("/").split("/")
        # /repos/{owner}/{name}/...
        repo = "/".join(parts[1:3])
        if parts[3] == "contents":
            file_path = "/".join(parts[4:])
            content = self.files.get((repo, file_path))
            if content is None:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, content=content.encode())
        if parts[3] == "pulls" and len(parts) == 6 and parts[5] == "files":
            number = int(parts[4])
            page = int(request.url.params.get("page", "1"))
            per_page = int(request.url.params.get("per_page", "30"))
            entries = self.pull_files.get((repo, number), [])
            return httpx.Response(200, json=entries[(page - 1) * per_page : page * per_page])
        if parts[3] == "pulls" and len(parts) == 5:
            diff = self.diffs.get((repo, int(parts[4])))
            if diff is None:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, text=diff)
        return httpx.Response(404, json={"message": "Not Found"})


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        openai_api_key="sk-test",
        github_webhook_secret=WEBHOOK_SECRET,
        github_token="",
        redis_url="",
        llm_rate_limit="1000/minute",
        max_concurrent_analyses=2,
    )


@pytest.fixture
def openai_mock() -> MagicMock:
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=make_completion(json.dumps(ANALYSIS_OK)))
    client.close = AsyncMock()
    return client


def reply_with(openai_mock: MagicMock, fn: Callable[[str, str], Any]) -> None:
    """Route completions through fn(system, user) -> dict | str | Exception."""

    async def _create(**kwargs: Any) -> SimpleNamespace:
        messages = kwargs["messages"]
        result = fn(messages[0]["content"], messages[1]["content"])
        if isinstance(result, Exception):
            raise result
        if isinstance(result, dict):
            result = json.dumps(result)
        return make_completion(result)

    openai_mock.chat.completions.create = AsyncMock(side_effect=_create)


@pytest.fixture
def llm(settings, openai_mock) -> LLMClient:
    return LLMClient(settings, client=openai_mock)


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def github(settings, fake_github) -> GitHubClient:
    transport = httpx.MockTransport(fake_github.handle)
    return GitHubClient(
        settings,
        client=httpx.AsyncClient(transport=transport, base_url=settings.github_api_url),
    )


@pytest.fixture
def store(settings) -> MemoryEventStore:
    return MemoryEventStore(max_events=settings.event_history_limit)


@pytest.fixture
def no_backoff(monkeypatch):
    """Make retry backoff instant."""
    monkeypatch.setattr("yamlpilot.retry._sleep", AsyncMock())


@pytest.fixture
def app(settings, llm, github, store):
    limiter.reset()
    return create_app(
        settings,
        llm=llm,
        github=github,
        store=store,
        deduplicator=DeliveryDeduplicator(),
    )


@pytest.fixture
def client(app):
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c
