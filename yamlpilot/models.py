"""Request, response, and record models shared by the API and the webhook pipeline."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


# ---------------------------------------------------------------------------
# LLM task results
# ---------------------------------------------------------------------------


def _as_text(value: Any) -> Any:
    """None becomes "", a list of steps becomes newline-joined text."""
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return "\n".join(str(v) for v in value if v is not None)
    return value


class YAMLAnalysis(BaseModel):
    corrected_yaml: str = ""
    explanation: str = ""
    is_correct: bool = False

    @field_validator("is_correct", mode="before")
    @classmethod
    def _coerce_bool(cls, value: Any) -> Any:
        # Models occasionally answer "true"/"false" as strings.
        if isinstance(value, str):
            return value.strip().lower() in ("true", "yes", "1")
        if value is None:
            return False
        return value

    @field_validator("corrected_yaml", "explanation", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        return _as_text(value)


class GeneratedYAML(BaseModel):
    generated_yaml: str = ""
    explanation: str = ""

    @field_validator("generated_yaml", "explanation", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        return _as_text(value)


class CodeExplanation(BaseModel):
    explanation: str = ""

    @field_validator("explanation", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        return _as_text(value)


class DiffSummary(BaseModel):
    summary: str = ""
    risks: list[str] = Field(default_factory=list)
    yaml_files: list[str] = Field(default_factory=list)

    @field_validator("summary", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        return _as_text(value)

    @field_validator("risks", "yaml_files", mode="before")
    @classmethod
    def _listify(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [value] if value.strip() else []
        if isinstance(value, (list, tuple)):
            return [str(v) for v in value]
        return value


# ---------------------------------------------------------------------------
# API request bodies
# ---------------------------------------------------------------------------


class GenerateRequest(BaseModel):
    prompt: str = ""


class ExplainRequest(BaseModel):
    code: str = ""


class SummarizeDiffRequest(BaseModel):
    """Either an inline diff, or a pull request to fetch the diff from."""

    diff: str = ""
    title: str = ""
    repository: str = ""
    pull_number: int | None = None


# ---------------------------------------------------------------------------
# Webhook event history
# ---------------------------------------------------------------------------


class EventStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    ERROR = "error"
    SKIPPED = "skipped"


class FileAnalysis(BaseModel):
    """Outcome of analyzing one file touched by a webhook event."""

    file: str
    analysis: YAMLAnalysis | None = None
    error: str | None = None
    original_content: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.analysis is not None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WebhookEventRecord(BaseModel):
    """One processed webhook delivery, as persisted in the event log."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    repository: str
    event_type: str
    timestamp: datetime = Field(default_factory=_utcnow)
    status: EventStatus
    files_analyzed: list[FileAnalysis] = Field(default_factory=list)
    delivery_id: str = ""
    ref: str = ""
    pull_number: int | None = None
    diff_summary: DiffSummary | None = None


def aggregate_status(results: list[FileAnalysis]) -> EventStatus:
    """Fold per-file outcomes into one event status."""
    if not results:
        return EventStatus.SKIPPED
    succeeded = sum(1 for r in results if r.ok)
    if succeeded == len(results):
        return EventStatus.SUCCESS
    if succeeded == 0:
        return EventStatus.ERROR
    return EventStatus.PARTIAL
