"""HTTP middleware and error handlers: CORS, rate limiting, invalid requests.

Middleware ordering (outermost first):
1. CORS -- handles OPTIONS preflight
2. Rate limiting -- per-client limits on the LLM-backed routes only; the
   webhook receiver, health and history routes are not limited

The limit string and proxy trust are read from Settings when the app is
built and evaluated per request, so tests can tighten them at runtime.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from yamlpilot.config import Settings

logger = logging.getLogger(__name__)

_policy = {
    "llm_limit": "30/minute",
    # X-Forwarded-For is client-controlled unless a proxy rewrites it
    "trust_forwarded_for": False,
}


def client_key(request: Request) -> str:
    """Rate-limit key: the peer address, or the first X-Forwarded-For hop behind a proxy."""
    if _policy["trust_forwarded_for"]:
        first_hop = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
        if first_hop:
            return first_hop
    return get_remote_address(request)


limiter = Limiter(key_func=client_key)


def llm_rate_limit() -> str:
    """Limit string for LLM-backed endpoints."""
    return _policy["llm_limit"]


def _rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    retry_after = getattr(exc, "retry_after", None) or 60
    logger.warning("Rate limit exceeded for %s on %s", client_key(request), request.url.path)
    return JSONResponse(
        {"error": "Rate limit exceeded", "retry_after": retry_after},
        status_code=429,
        headers={"Retry-After": str(retry_after)},
    )


def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Field locations only; the submitted values are never echoed back
    fields = sorted({".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()})
    logger.info("Invalid request to %s: %s", request.url.path, fields)
    return JSONResponse({"error": "Invalid request"}, status_code=400)


def install_middleware(app: FastAPI, settings: Settings) -> None:
    """Install CORS, rate limiting and the request validation handler on the app."""
    _policy["llm_limit"] = settings.llm_rate_limit
    _policy["trust_forwarded_for"] = settings.trust_forwarded_for

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    logger.info(
        "Middleware installed: llm_limit=%s cors_origins=%d",
        settings.llm_rate_limit,
        len(settings.cors_allowed_origins),
    )
