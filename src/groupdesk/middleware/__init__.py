"""Middleware registration."""

from fastapi import FastAPI

from groupdesk.config import Settings
from groupdesk.middleware.cors import setup_cors
from groupdesk.middleware.error_handler import setup_error_handlers
from groupdesk.middleware.logging import setup_logging
from groupdesk.middleware.rate_limit import RateLimitMiddleware
from groupdesk.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register middleware and exception handlers.

    Starlette runs middleware in reverse-add order, so CORS (added last) is
    outermost and also decorates 429 responses from the rate limiter.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
