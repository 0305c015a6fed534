"""Signed notification to the companion Discord bot after a verification.

Delivery is best effort: the identity link is already committed when this
runs, so transport errors and non-2xx answers are logged and dropped.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

logger = structlog.get_logger()

SIGNATURE_HEADER = "X-Companion-Signature"
VERIFY_PATH = "/api/discord/verify"


def sign_body(secret: str, body: bytes) -> str:
    """base64(HMAC-SHA256(secret, body))."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def build_verify_payload(
    state: str,
    roblox_id: int,
    username: str,
    display_name: str,
    roles: list[dict[str, Any]],
) -> dict[str, Any]:
    return {
        "state": state,
        "robloxId": roblox_id,
        "username": username,
        "displayName": display_name,
        "roles": roles,
    }


@dataclass
class CompanionNotifier:
    http: httpx.AsyncClient
    base_url: str
    secret: str
    timeout: float = 8.0

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    async def send_verification(self, payload: dict[str, Any]) -> bool:
        """POST the payload to the bot. Returns whether it was accepted."""
        if not self.enabled:
            logger.debug("companion_notify_skipped", reason="not_configured")
            return False

        body = json.dumps(payload, separators=(",", ":")).encode("utf-8")
        url = self.base_url.rstrip("/") + VERIFY_PATH
        headers = {"Content-Type": "application/json"}
        if self.secret:
            headers[SIGNATURE_HEADER] = sign_body(self.secret, body)
        try:
            resp = await self.http.post(url, content=body, headers=headers, timeout=self.timeout)
        except httpx.HTTPError as exc:
            logger.warning("companion_notify_failed", url=url, error=str(exc))
            return False

        if resp.status_code >= 300:
            logger.warning("companion_notify_failed", url=url, status_code=resp.status_code)
            return False
        logger.info("companion_notified", roblox_id=payload.get("robloxId"))
        return True
