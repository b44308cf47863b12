"""GitHub event parsing: turns raw webhook payloads into GitHubEvent values.

Only `push` and `pull_request` events carry YAML changes worth analyzing.
Push events list their changed files in the payload; pull request events
only identify the PR, and the file list is fetched from the API later.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

# Maximum length of payload strings echoed into logs
_MAX_FIELD_LENGTH = 200

_YAML_SUFFIXES = (".yml", ".yaml")

_NULL_SHA = "0" * 40

PULL_REQUEST_ACTIONS = {"opened", "synchronize", "reopened", "ready_for_review"}

SUPPORTED_EVENTS = {"push", "pull_request"}


@dataclass
class GitHubEvent:
    """Normalized GitHub event ready for processing."""

    event_type: str
    repository: str
    ref: str = ""
    head_sha: str = ""
    # Push events: YAML paths from the payload. Pull requests: filled later.
    yaml_files: list[str] = field(default_factory=list)
    pull_number: int | None = None
    pull_title: str = ""
    action: str = ""

    @property
    def is_pull_request(self) -> bool:
        return self.event_type == "pull_request"


def sanitize_field(value: Any) -> str:
    """Sanitize a payload value for safe inclusion in logs."""
    if value is None:
        return ""
    s = re.sub(r"[\x00-\x1f\x7f]+", " ", str(value))
    s = re.sub(r"\s+", " ", s).strip()
    if len(s) > _MAX_FIELD_LENGTH:
        s = s[:_MAX_FIELD_LENGTH] + "..."
    return s


def is_yaml_path(path: str) -> bool:
    return path.lower().endswith(_YAML_SUFFIXES)


def changed_yaml_files(commits: list[dict[str, Any]]) -> list[str]:
    """YAML paths added or modified across commits, in first-seen order.

    A path removed by a later commit is dropped; a path re-added after
    removal is kept.
    """
    present: dict[str, None] = {}
    for commit in commits:
        for path in (commit.get("added") or []) + (commit.get("modified") or []):
            if isinstance(path, str) and is_yaml_path(path):
                present.setdefault(path, None)
        for path in commit.get("removed") or []:
            present.pop(path, None)
    return list(present)


def _repository_name(payload: dict[str, Any]) -> str:
    repo = payload.get("repository") or {}
    return str(repo.get("full_name") or repo.get("name") or "unknown")


def _parse_push(payload: dict[str, Any]) -> GitHubEvent:
    after = str(payload.get("after") or "")
    event = GitHubEvent(
        event_type="push",
        repository=_repository_name(payload),
        ref=str(payload.get("ref") or ""),
        head_sha=after,
    )
    if payload.get("deleted") or after == _NULL_SHA:
        logger.info("Push to %s deletes %s, nothing to analyze", event.repository, sanitize_field(event.ref))
        return event

    commits = payload.get("commits")
    if not isinstance(commits, list):
        commits = []
    if not commits and isinstance(payload.get("head_commit"), dict):
        commits = [payload["head_commit"]]
    event.yaml_files = changed_yaml_files(commits)
    return event


def _parse_pull_request(payload: dict[str, Any]) -> GitHubEvent | None:
    action = str(payload.get("action") or "")
    if action not in PULL_REQUEST_ACTIONS:
        logger.info("Ignoring pull_request action %s", sanitize_field(action))
        return None

    pr = payload.get("pull_request") or {}
    head = pr.get("head") or {}
    number = payload.get("number", pr.get("number"))
    try:
        pull_number = int(number)
    except (TypeError, ValueError):
        logger.warning("pull_request payload without a usable number: %s", sanitize_field(number))
        return None

    return GitHubEvent(
        event_type="pull_request",
        repository=_repository_name(payload),
        ref=str(head.get("ref") or ""),
        head_sha=str(head.get("sha") or ""),
        pull_number=pull_number,
        pull_title=str(pr.get("title") or ""),
        action=action,
    )


def parse_event(event_type: str, payload: dict[str, Any]) -> GitHubEvent | None:
    """Parse a raw webhook payload into a normalized GitHubEvent.

    Args:
        event_type: Value of the X-GitHub-Event header
        payload: Parsed JSON payload

    Returns:
        GitHubEvent ready for processing, or None if the event is not handled
    """
    if event_type == "push":
        return _parse_push(payload)
    if event_type == "pull_request":
        return _parse_pull_request(payload)

    logger.info("Unsupported GitHub event: %s, skipping", sanitize_field(event_type))
    return None
