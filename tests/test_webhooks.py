"""Tests for the GitHub webhook inbound system.

Tests:
- Signature verification (HMAC-SHA256, legacy SHA1, fail-closed)
- Event parsing for push and pull_request payloads
- Delivery idempotency (Redis and in-memory)
"""

from __future__ import annotations

import hashlib
import hmac
from unittest.mock import MagicMock

import pytest
import redis

from tests.conftest import WEBHOOK_SECRET, sign
from yamlpilot.webhooks.dispatcher import (
    changed_yaml_files,
    is_yaml_path,
    parse_event,
    sanitize_field,
)
from yamlpilot.webhooks.idempotency import DeliveryDeduplicator
from yamlpilot.webhooks.verification import verify_github, verify_request


# ── Signature Verification ────────────────────────────────────────────────


class TestGitHubVerification:
    """X-Hub-Signature-256 verification."""

    BODY = b'{"ref": "refs/heads/main"}'

    def test_valid_signature(self):
        assert verify_github(self.BODY, sign(self.BODY), WEBHOOK_SECRET) is True

    def test_uppercase_hex_accepted(self):
        header = "sha256=" + sign(self.BODY)[len("sha256="):].upper()
        assert verify_github(self.BODY, header, WEBHOOK_SECRET) is True

    def test_invalid_signature(self):
        assert verify_github(self.BODY, "sha256=deadbeef", WEBHOOK_SECRET) is False

    def test_tampered_body(self):
        sig = sign(self.BODY)
        assert verify_github(b'{"ref": "refs/heads/evil"}', sig, WEBHOOK_SECRET) is False

    def test_wrong_secret(self):
        sig = sign(self.BODY, secret="other-secret")
        assert verify_github(self.BODY, sig, WEBHOOK_SECRET) is False

    def test_missing_prefix_rejected(self):
        bare = hmac.new(WEBHOOK_SECRET.encode(), self.BODY, hashlib.sha256).hexdigest()
        assert verify_github(self.BODY, bare, WEBHOOK_SECRET) is False

    def test_missing_signature(self):
        assert verify_github(self.BODY, None, WEBHOOK_SECRET) is False

    def test_missing_secret_rejects(self):
        """No secret configured -> always reject (fail-closed)."""
        assert verify_github(self.BODY, sign(self.BODY, secret=""), "") is False

    def test_legacy_sha1_fallback(self):
        digest = hmac.new(WEBHOOK_SECRET.encode(), self.BODY, hashlib.sha1).hexdigest()
        assert verify_github(self.BODY, None, WEBHOOK_SECRET, signature_sha1=f"sha1={digest}") is True

    def test_sha256_takes_precedence_over_sha1(self):
        """A bad SHA-256 header is not rescued by a valid SHA1 header."""
        digest = hmac.new(WEBHOOK_SECRET.encode(), self.BODY, hashlib.sha1).hexdigest()
        assert (
            verify_github(self.BODY, "sha256=bad", WEBHOOK_SECRET, signature_sha1=f"sha1={digest}")
            is False
        )

    def test_verify_request_reads_lowercase_headers(self):
        headers = {"x-hub-signature-256": sign(self.BODY)}
        assert verify_request(self.BODY, headers, WEBHOOK_SECRET) is True
        assert verify_request(self.BODY, {}, WEBHOOK_SECRET) is False


# ── Event Parsing ─────────────────────────────────────────────────────────


def _push_payload(commits, **extra):
    payload = {
        "ref": "refs/heads/main",
        "after": "a" * 40,
        "repository": {"full_name": "acme/app", "name": "app"},
        "commits": commits,
    }
    payload.update(extra)
    return payload


class TestSanitizeField:
    def test_strips_control_characters(self):
        assert sanitize_field("main\r\nINJECTED") == "main INJECTED"

    def test_truncates_long_values(self):
        assert len(sanitize_field("A" * 1000)) <= 203

    def test_none_returns_empty(self):
        assert sanitize_field(None) == ""


class TestYamlPaths:
    @pytest.mark.parametrize(
        "path", ["docker-compose.yml", ".github/workflows/ci.yaml", "k8s/DEPLOY.YML"]
    )
    def test_yaml_paths(self, path):
        assert is_yaml_path(path) is True

    @pytest.mark.parametrize("path", ["README.md", "yml", "config.yml.bak", "values.json"])
    def test_non_yaml_paths(self, path):
        assert is_yaml_path(path) is False


class TestChangedYamlFiles:
    def test_union_in_first_seen_order(self):
        commits = [
            {"added": ["b.yml"], "modified": ["README.md"], "removed": []},
            {"added": [], "modified": ["a.yaml", "b.yml"], "removed": []},
        ]
        assert changed_yaml_files(commits) == ["b.yml", "a.yaml"]

    def test_later_removal_drops_path(self):
        commits = [
            {"added": ["ci.yml"], "modified": [], "removed": []},
            {"added": [], "modified": [], "removed": ["ci.yml"]},
        ]
        assert changed_yaml_files(commits) == []

    def test_readded_after_removal_is_kept(self):
        commits = [
            {"removed": ["ci.yml"]},
            {"added": ["ci.yml"]},
        ]
        assert changed_yaml_files(commits) == ["ci.yml"]

    def test_missing_lists_tolerated(self):
        assert changed_yaml_files([{}, {"added": None}]) == []


class TestParsePushEvent:
    def test_push_collects_yaml_files(self):
        payload = _push_payload(
            [{"added": ["docker-compose.yml"], "modified": [".github/workflows/ci.yml", "app.py"]}]
        )
        event = parse_event("push", payload)
        assert event is not None
        assert event.event_type == "push"
        assert event.repository == "acme/app"
        assert event.ref == "refs/heads/main"
        assert event.head_sha == "a" * 40
        assert event.yaml_files == ["docker-compose.yml", ".github/workflows/ci.yml"]
        assert event.is_pull_request is False

    def test_branch_deletion_has_no_files(self):
        payload = _push_payload([{"added": ["x.yml"]}], deleted=True, after="0" * 40)
        event = parse_event("push", payload)
        assert event is not None
        assert event.yaml_files == []

    def test_falls_back_to_head_commit(self):
        payload = _push_payload([], head_commit={"modified": ["ci.yml"]})
        event = parse_event("push", payload)
        assert event.yaml_files == ["ci.yml"]

    def test_missing_repository_is_unknown(self):
        event = parse_event("push", {"commits": []})
        assert event.repository == "unknown"


class TestParsePullRequestEvent:
    def _payload(self, action="opened", **pr):
        base = {
            "number": 7,
            "title": "Add CI",
            "head": {"ref": "feature/ci", "sha": "b" * 40},
        }
        base.update(pr)
        return {
            "action": action,
            "number": 7,
            "pull_request": base,
            "repository": {"full_name": "acme/app"},
        }

    @pytest.mark.parametrize("action", ["opened", "synchronize", "reopened", "ready_for_review"])
    def test_handled_actions(self, action):
        event = parse_event("pull_request", self._payload(action))
        assert event is not None
        assert event.pull_number == 7
        assert event.pull_title == "Add CI"
        assert event.head_sha == "b" * 40
        assert event.ref == "feature/ci"
        assert event.is_pull_request is True
        assert event.yaml_files == []

    @pytest.mark.parametrize("action", ["closed", "labeled", "assigned", ""])
    def test_ignored_actions(self, action):
        assert parse_event("pull_request", self._payload(action)) is None

    def test_missing_number_ignored(self):
        payload = self._payload()
        del payload["number"]
        del payload["pull_request"]["number"]
        assert parse_event("pull_request", payload) is None


class TestUnsupportedEvents:
    @pytest.mark.parametrize("event_type", ["issues", "release", "star", ""])
    def test_returns_none(self, event_type):
        assert parse_event(event_type, {"repository": {"full_name": "acme/app"}}) is None


# ── Idempotency ───────────────────────────────────────────────────────────


class TestRedisDeduplication:
    """Delivery dedup via Redis SET NX."""

    def test_new_delivery_not_duplicate(self):
        mock_r = MagicMock()
        mock_r.set.return_value = True  # SET NX succeeded (new key)
        dedup = DeliveryDeduplicator(mock_r)

        assert dedup.is_duplicate("d-123") is False
        args, kwargs = mock_r.set.call_args
        assert args[0] == "yamlpilot:webhook:seen:d-123"
        assert kwargs["nx"] is True
        assert kwargs["ex"] == 86400  # 24h TTL

    def test_seen_delivery_is_duplicate(self):
        mock_r = MagicMock()
        mock_r.set.return_value = None  # key exists
        assert DeliveryDeduplicator(mock_r).is_duplicate("d-123") is True

    def test_redis_down_allows_through(self):
        """Redis failure -> fail open (allow delivery)."""
        mock_r = MagicMock()
        mock_r.set.side_effect = redis.ConnectionError("connection refused")
        assert DeliveryDeduplicator(mock_r).is_duplicate("d-123") is False

    def test_empty_delivery_id_not_duplicate(self):
        mock_r = MagicMock()
        assert DeliveryDeduplicator(mock_r).is_duplicate("") is False
        mock_r.set.assert_not_called()


class TestLocalDeduplication:
    def test_second_delivery_is_duplicate(self):
        dedup = DeliveryDeduplicator()
        assert dedup.is_duplicate("d-1") is False
        assert dedup.is_duplicate("d-1") is True
        assert dedup.is_duplicate("d-2") is False

    def test_entries_expire(self):
        dedup = DeliveryDeduplicator(ttl_seconds=0)
        assert dedup.is_duplicate("d-1") is False
        assert dedup.is_duplicate("d-1") is False

    def test_from_empty_url_is_local(self):
        dedup = DeliveryDeduplicator.from_url("")
        assert dedup.is_duplicate("x") is False
        assert dedup.is_duplicate("x") is True
