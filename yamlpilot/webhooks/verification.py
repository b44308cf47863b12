"""GitHub webhook signature verification.

Security contract:
- All comparisons use hmac.compare_digest() (constant-time)
- Verification failure -> 401 immediately, no payload processing
- Empty secret -> verification always fails (fail-closed)
- X-Hub-Signature-256 (HMAC-SHA256) is preferred; the legacy
  X-Hub-Signature (HMAC-SHA1) is only consulted when the SHA-256 header
  is absent
"""

from __future__ import annotations

import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)

SIGNATURE_256_HEADER = "x-hub-signature-256"
SIGNATURE_SHA1_HEADER = "x-hub-signature"


def _expected(secret: str, body: bytes, digestmod) -> str:
    return hmac.new(secret.encode("utf-8"), body, digestmod).hexdigest()


def _check(header: str, prefix: str, expected: str) -> bool:
    if not header.startswith(prefix):
        return False
    return hmac.compare_digest(expected, header[len(prefix):].strip().lower())


def verify_github(
    body: bytes,
    signature_256: str | None,
    secret: str,
    signature_sha1: str | None = None,
) -> bool:
    """Verify a GitHub webhook signature.

    Args:
        body: Raw request body bytes
        signature_256: Value of X-Hub-Signature-256 ("sha256=<hex>")
        secret: Webhook secret configured on the GitHub side
        signature_sha1: Value of X-Hub-Signature ("sha1=<hex>")

    Returns:
        True if signature is valid
    """
    if not secret:
        logger.warning("GITHUB_WEBHOOK_SECRET not set, rejecting webhook")
        return False

    if signature_256:
        return _check(signature_256, "sha256=", _expected(secret, body, hashlib.sha256))
    if signature_sha1:
        return _check(signature_sha1, "sha1=", _expected(secret, body, hashlib.sha1))
    return False


def verify_request(body: bytes, headers: dict[str, str], secret: str) -> bool:
    """Verify using a lowercase-keyed headers dict."""
    return verify_github(
        body,
        headers.get(SIGNATURE_256_HEADER),
        secret,
        signature_sha1=headers.get(SIGNATURE_SHA1_HEADER),
    )
