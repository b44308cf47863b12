"""LLM-backed API routes: analyze, generate, explain, summarize-diff.

Every handler returns {"error": "..."} with a 4xx/5xx status on failure.
Provider error details are logged, never returned.

No `from __future__ import annotations` here: the rate-limit decorator wraps
the handlers, and FastAPI must resolve their annotations at import time.
"""

import logging
import re

from fastapi import APIRouter, File, Query, Request, UploadFile
from fastapi.responses import JSONResponse

from yamlpilot.guardrails.input_validator import validate_input
from yamlpilot.llm.errors import LLMError
from yamlpilot.llm.tasks import analyze_yaml, explain_code, generate_yaml, summarize_diff
from yamlpilot.models import ExplainRequest, GenerateRequest, SummarizeDiffRequest
from yamlpilot.security.middleware import limiter, llm_rate_limit
from yamlpilot.webhooks.dispatcher import is_yaml_path
from yamlpilot.webhooks.github import GitHubError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["llm"])

_REPOSITORY_RE = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _llm_error(e: LLMError, fallback: str) -> JSONResponse:
    logger.error("LLM task failed: [%s] %s", e.error_class.value, str(e)[:200])
    return _error(e.public_message(fallback), e.status_code)


@router.post("/analyze-yml")
@limiter.limit(llm_rate_limit)
async def analyze_yml(request: Request, file: UploadFile | None = File(None)):
    """Analyze an uploaded YAML file and return a corrected version."""
    settings = request.app.state.settings
    if file is None:
        return _error("No file uploaded", 400)

    filename = file.filename or ""
    if not is_yaml_path(filename):
        return _error("Please upload a .yml or .yaml file", 400)

    raw = await file.read(settings.max_yaml_bytes + 1)
    if len(raw) > settings.max_yaml_bytes:
        return _error("File too large", 400)
    try:
        content = raw.decode("utf-8")
    except UnicodeDecodeError:
        return _error("File is not valid UTF-8 text", 400)
    if not content.strip():
        return _error("Uploaded file is empty", 400)

    try:
        result = await analyze_yaml(request.app.state.llm, content, filename=filename)
    except LLMError as e:
        return _llm_error(e, "Failed to analyze YAML file. Please try again.")
    return result.model_dump()


@router.post("/generate-yml")
@limiter.limit(llm_rate_limit)
async def generate_yml(request: Request, body: GenerateRequest):
    """Generate a YAML file from a natural-language request."""
    checked = validate_input(body.prompt, request.app.state.settings.max_input_chars)
    if checked.empty:
        return _error("No prompt provided", 400)
    try:
        result = await generate_yaml(request.app.state.llm, checked.sanitized.strip())
    except LLMError as e:
        return _llm_error(e, "Failed to generate YAML. Please try again.")
    return result.model_dump()


@router.post("/explain-code")
@limiter.limit(llm_rate_limit)
async def explain(request: Request, body: ExplainRequest):
    """Explain a code snippet in plain English."""
    checked = validate_input(body.code, request.app.state.settings.max_input_chars)
    if checked.empty:
        return _error("No code provided", 400)
    try:
        result = await explain_code(request.app.state.llm, checked.sanitized.strip())
    except LLMError as e:
        return _llm_error(e, "Failed to explain code. Please try again.")
    return result.model_dump()


@router.post("/summarize-diff")
@limiter.limit(llm_rate_limit)
async def summarize(request: Request, body: SummarizeDiffRequest):
    """Summarize a unified diff, inline or fetched from a pull request."""
    settings = request.app.state.settings
    diff, title = body.diff, body.title

    if not diff.strip():
        if not (body.repository and body.pull_number):
            return _error("Provide a diff, or a repository and pull_number", 400)
        if not _REPOSITORY_RE.match(body.repository):
            return _error("repository must look like owner/name", 400)
        try:
            diff = await request.app.state.github.get_pull_request_diff(
                body.repository, body.pull_number
            )
        except GitHubError as e:
            if e.status_code == 404:
                return _error("Pull request not found", 404)
            return _error("Failed to fetch pull request diff", 502)
        if not diff.strip():
            return _error("Pull request has no changes", 400)

    checked = validate_input(diff, settings.max_input_chars)
    try:
        result = await summarize_diff(request.app.state.llm, checked.sanitized, title=title)
    except LLMError as e:
        return _llm_error(e, "Failed to summarize diff. Please try again.")
    return result.model_dump()


@router.get("/webhook-events")
async def webhook_events(
    request: Request,
    limit: int = Query(50),
    repository: str | None = Query(None),
):
    """Webhook delivery history, newest first."""
    store = request.app.state.store
    limit = max(1, min(limit, request.app.state.settings.event_history_limit))
    if repository:
        events = store.list_by_repository(repository, limit)
    else:
        events = store.list(limit)
    return [e.model_dump(mode="json") for e in events]
