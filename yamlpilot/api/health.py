"""Health route."""

from __future__ import annotations

from fastapi import APIRouter, Request

from yamlpilot import __version__

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request):
    """Service status and configured backends. Never reports secret values."""
    state = request.app.state
    return {
        "status": "healthy",
        "version": __version__,
        "checks": {
            "llm_configured": state.llm.configured,
            "llm_model": state.llm.model,
            "webhook_secret_configured": bool(state.settings.github_webhook_secret),
            "github_token_configured": bool(state.settings.github_token),
            "event_store": state.store.backend,
        },
    }
