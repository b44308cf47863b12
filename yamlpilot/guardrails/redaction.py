"""Secret redaction for content crossing the LLM boundary.

YAML configs routinely carry credentials. Everything sent to the provider
and everything returned to callers passes through redact_secrets().
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

_SECRET_PATTERNS = [
    (re.compile(r"-----BEGIN (?:[A-Z]+ )?PRIVATE KEY-----[\s\S]*?-----END (?:[A-Z]+ )?PRIVATE KEY-----"), "private_key"),
    (re.compile(r"sk-ant-[a-zA-Z0-9_-]{10,}"), "anthropic_key"),
    (re.compile(r"sk-(?:proj-)?[a-zA-Z0-9_-]{20,}"), "openai_key"),
    (re.compile(r"(?:AKIA|ASIA)[A-Z0-9]{16}"), "aws_key"),
    (re.compile(r"(?:ghp|gho|ghs|ghr|ghu)_[A-Za-z0-9_]{36,}"), "github_token"),
    (re.compile(r"github_pat_[A-Za-z0-9_]{22,}"), "github_pat"),
    (re.compile(r"glpat-[A-Za-z0-9_-]{20,}"), "gitlab_token"),
    (re.compile(r"xox[bpa]-[a-zA-Z0-9-]{20,}"), "slack_token"),
    (re.compile(r"AIza[A-Za-z0-9_-]{35}"), "google_api_key"),
    (re.compile(r"npm_[A-Za-z0-9]{36,}"), "npm_token"),
    (re.compile(r"SG\.[a-zA-Z0-9_-]{20,}\.[a-zA-Z0-9_-]{20,}"), "sendgrid_key"),
    (re.compile(r"(?:sk|pk|rk)_(?:live|test)_[a-zA-Z0-9]{10,}"), "stripe_key"),
    # Connection URLs with inline credentials: keep scheme and host, drop userinfo
    (re.compile(r"(?<=://)[^/\s:@]+:[^/\s@]+(?=@)"), "url_credentials"),
]


@dataclass
class RedactionResult:
    text: str
    labels: list[str] = field(default_factory=list)
    redacted_count: int = 0


def redact(text: str) -> RedactionResult:
    """Replace known secret shapes with [REDACTED_<LABEL>] placeholders."""
    if not text:
        return RedactionResult(text=text or "")

    labels: list[str] = []
    count = 0
    for pattern, label in _SECRET_PATTERNS:
        text, n = pattern.subn(f"[REDACTED_{label.upper()}]", text)
        if n:
            labels.append(label)
            count += n

    if count:
        logger.info("Redacted %d secret(s): %s", count, labels)
    return RedactionResult(text=text, labels=labels, redacted_count=count)


def redact_secrets(text: str) -> str:
    return redact(text).text
