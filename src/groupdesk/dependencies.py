"""Shared FastAPI dependencies."""

from __future__ import annotations

import httpx
from fastapi import Request

from groupdesk.config import Settings


def get_app_settings(request: Request) -> Settings:
    """Settings the running app was built with."""
    return request.app.state.settings


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Shared outbound HTTP client."""
    return request.app.state.http_client
