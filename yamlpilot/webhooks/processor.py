"""Webhook event processing: fetch each changed YAML file, analyze it, record.

Processing is best-effort per file. A fetch or LLM failure is recorded on
that file's result and never aborts the others; the event status is the
aggregate of the per-file outcomes. Exactly one record is appended to the
event store per processed delivery.
"""

from __future__ import annotations

import asyncio
import logging

from yamlpilot.config import Settings
from yamlpilot.guardrails.redaction import redact_secrets
from yamlpilot.llm.client import LLMClient
from yamlpilot.llm.errors import LLMError
from yamlpilot.llm.tasks import analyze_yaml, summarize_diff
from yamlpilot.models import (
    DiffSummary,
    EventStatus,
    FileAnalysis,
    WebhookEventRecord,
    aggregate_status,
)
from yamlpilot.storage.events import EventStore
from yamlpilot.webhooks.dispatcher import GitHubEvent, is_yaml_path
from yamlpilot.webhooks.github import GitHubClient, GitHubError

logger = logging.getLogger(__name__)

SKIPPED_FILE_LIMIT = "Skipped: per-event file limit reached"


class WebhookProcessor:
    """Runs the fetch-and-analyze pipeline for one GitHub event."""

    def __init__(
        self,
        settings: Settings,
        llm: LLMClient,
        github: GitHubClient,
        store: EventStore,
    ) -> None:
        self._settings = settings
        self._llm = llm
        self._github = github
        self._store = store

    async def process(self, event: GitHubEvent, delivery_id: str = "") -> WebhookEventRecord:
        record = WebhookEventRecord(
            repository=event.repository,
            event_type=event.event_type,
            status=EventStatus.SKIPPED,
            delivery_id=delivery_id,
            ref=event.ref,
            pull_number=event.pull_number,
        )

        try:
            files = await self._resolve_files(event)
        except GitHubError as e:
            logger.error(
                "Could not list files for %s #%s: %s",
                event.repository,
                event.pull_number,
                e,
            )
            record.status = EventStatus.ERROR
            return self._store.append(record)

        record.files_analyzed = await self._analyze_files(event, files)
        record.status = aggregate_status(record.files_analyzed)

        if event.is_pull_request:
            record.diff_summary = await self._summarize_pull_request(event)

        logger.info(
            "Processed %s for %s: status=%s files=%d",
            event.event_type,
            event.repository,
            record.status.value,
            len(record.files_analyzed),
        )
        return self._store.append(record)

    async def _resolve_files(self, event: GitHubEvent) -> list[str]:
        if not event.is_pull_request:
            return list(event.yaml_files)
        paths = await self._github.list_pull_request_files(event.repository, event.pull_number)
        return [p for p in paths if is_yaml_path(p)]

    async def _analyze_files(self, event: GitHubEvent, files: list[str]) -> list[FileAnalysis]:
        limit = self._settings.max_files_per_event
        selected, overflow = files[:limit], files[limit:]
        if overflow:
            logger.warning(
                "%s: %d YAML files exceed the per-event limit of %d",
                event.repository,
                len(overflow),
                limit,
            )

        semaphore = asyncio.Semaphore(max(self._settings.max_concurrent_analyses, 1))

        async def bounded(path: str) -> FileAnalysis:
            async with semaphore:
                return await self._analyze_file(event, path)

        results = list(await asyncio.gather(*(bounded(p) for p in selected)))
        results.extend(FileAnalysis(file=p, error=SKIPPED_FILE_LIMIT) for p in overflow)
        return results

    async def _analyze_file(self, event: GitHubEvent, path: str) -> FileAnalysis:
        ref = event.head_sha or event.ref
        try:
            content = await self._github.get_file_content(event.repository, path, ref)
        except GitHubError as e:
            logger.warning("Fetch failed for %s:%s: %s", event.repository, path, e)
            return FileAnalysis(file=path, error=f"Failed to fetch file: {e}")

        if len(content.encode("utf-8")) > self._settings.max_yaml_bytes:
            return FileAnalysis(file=path, error="File too large to analyze")

        try:
            analysis = await analyze_yaml(self._llm, content, filename=path)
        except LLMError as e:
            logger.warning("Analysis failed for %s:%s: [%s]", event.repository, path, e.error_class.value)
            return FileAnalysis(
                file=path,
                error=e.public_message("Failed to analyze YAML file."),
                original_content=redact_secrets(content),
            )

        return FileAnalysis(file=path, analysis=analysis, original_content=redact_secrets(content))

    async def _summarize_pull_request(self, event: GitHubEvent) -> DiffSummary | None:
        try:
            diff = await self._github.get_pull_request_diff(event.repository, event.pull_number)
            return await summarize_diff(
                self._llm, diff[: self._settings.max_input_chars], title=event.pull_title
            )
        except (GitHubError, LLMError) as e:
            logger.warning(
                "Diff summary failed for %s #%s: %s",
                event.repository,
                event.pull_number,
                str(e)[:200],
            )
            return None
