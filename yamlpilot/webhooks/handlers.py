"""GitHub webhook HTTP handler.

Flow:
1. Read raw body (needed for HMAC verification)
2. Verify signature
3. Answer `ping`
4. Parse JSON, check delivery idempotency
5. Parse the event, schedule processing as a background task
6. Return 202 Accepted immediately

Security contract:
- Never return error details to the webhook caller
- Return 401 only for signature failures
- Log all webhook activity for audit trail
"""

from __future__ import annotations

import json
import logging
from collections import Counter

from fastapi import APIRouter, BackgroundTasks, Request
from fastapi.responses import JSONResponse

from yamlpilot.webhooks.dispatcher import GitHubEvent, parse_event, sanitize_field
from yamlpilot.webhooks.verification import verify_request

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

# Webhook receive counter for monitoring
_webhook_counts: Counter[str] = Counter()


def _log_webhook(delivery_id: str, event_type: str, repository: str, status: str) -> None:
    """Audit log for webhook activity."""
    _webhook_counts[event_type or "unknown"] += 1
    logger.info(
        "WEBHOOK_AUDIT delivery=%s event=%s repository=%s status=%s",
        sanitize_field(delivery_id) or "-",
        sanitize_field(event_type) or "-",
        sanitize_field(repository) or "-",
        status,
    )


async def _process(request: Request, event: GitHubEvent, delivery_id: str) -> None:
    processor = request.app.state.processor
    try:
        record = await processor.process(event, delivery_id)
    except Exception:
        # Background task: nothing upstream to propagate to.
        logger.exception("Webhook processing crashed: %s/%s", event.repository, delivery_id)
        _log_webhook(delivery_id, event.event_type, event.repository, "processing_failed")
        return
    _log_webhook(delivery_id, event.event_type, event.repository, f"processed:{record.status.value}")


@router.post("/github")
async def github_webhook(request: Request, background_tasks: BackgroundTasks) -> JSONResponse:
    """Receive GitHub webhooks (signature-verified)."""
    settings = request.app.state.settings
    body = await request.body()
    headers = {k.lower(): v for k, v in request.headers.items()}
    event_type = headers.get("x-github-event", "")
    delivery_id = headers.get("x-github-delivery", "")

    if not verify_request(body, headers, settings.github_webhook_secret):
        _log_webhook(delivery_id, event_type, "", "signature_failed")
        return JSONResponse({"status": "unauthorized"}, status_code=401)

    if event_type == "ping":
        _log_webhook(delivery_id, event_type, "", "pong")
        return JSONResponse({"status": "pong"}, status_code=200)

    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        _log_webhook(delivery_id, event_type, "", "invalid_json")
        return JSONResponse({"status": "invalid_payload"}, status_code=400)
    if not isinstance(payload, dict):
        _log_webhook(delivery_id, event_type, "", "invalid_json")
        return JSONResponse({"status": "invalid_payload"}, status_code=400)

    if request.app.state.deduplicator.is_duplicate(delivery_id):
        _log_webhook(delivery_id, event_type, "", "duplicate")
        return JSONResponse({"status": "duplicate"}, status_code=200)

    event = parse_event(event_type, payload)
    if event is None:
        _log_webhook(delivery_id, event_type, "", "ignored")
        return JSONResponse({"status": "ignored"}, status_code=202)

    background_tasks.add_task(_process, request, event, delivery_id)
    _log_webhook(delivery_id, event_type, event.repository, "accepted")
    return JSONResponse({"status": "accepted"}, status_code=202, background=background_tasks)


@router.get("/status")
async def webhook_status() -> dict:
    """Webhook receive counts by event type."""
    return {"counts": dict(_webhook_counts)}
