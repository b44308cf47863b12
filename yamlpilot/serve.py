"""FastAPI application factory and entry point."""

from __future__ import annotations

import argparse
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from yamlpilot import __version__
from yamlpilot.api import health, routes
from yamlpilot.config import Settings, configure_logging, get_settings
from yamlpilot.llm.client import LLMClient
from yamlpilot.security.middleware import install_middleware
from yamlpilot.storage.events import EventStore, build_event_store
from yamlpilot.webhooks import handlers as webhook_handlers
from yamlpilot.webhooks.github import GitHubClient
from yamlpilot.webhooks.idempotency import DeliveryDeduplicator
from yamlpilot.webhooks.processor import WebhookProcessor

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    llm: LLMClient | None = None,
    github: GitHubClient | None = None,
    store: EventStore | None = None,
    deduplicator: DeliveryDeduplicator | None = None,
) -> FastAPI:
    """Build the app. Collaborators can be injected (tests); otherwise they
    are constructed from settings."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    llm = llm or LLMClient(settings)
    github = github or GitHubClient(settings)
    store = store or build_event_store(settings)
    deduplicator = deduplicator or DeliveryDeduplicator.from_url(settings.redis_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "yamlpilot %s starting (model=%s, store=%s)",
            __version__,
            settings.llm_model,
            store.backend,
        )
        if not settings.github_webhook_secret:
            logger.warning("GITHUB_WEBHOOK_SECRET not set: all webhooks will be rejected")
        yield
        await github.close()
        await llm.close()

    app = FastAPI(title="yamlpilot", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.llm = llm
    app.state.github = github
    app.state.store = store
    app.state.deduplicator = deduplicator
    app.state.processor = WebhookProcessor(settings, llm, github, store)

    app.include_router(health.router)
    app.include_router(routes.router)
    app.include_router(webhook_handlers.router)
    install_middleware(app, settings)
    return app


def main(argv: list[str] | None = None) -> None:
    import uvicorn

    parser = argparse.ArgumentParser(prog="yamlpilot", description="Run the yamlpilot API server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=5000)
    parser.add_argument("--reload", action="store_true")
    args = parser.parse_args(argv)

    uvicorn.run(
        "yamlpilot.serve:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
