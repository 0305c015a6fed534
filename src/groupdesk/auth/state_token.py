"""Signed, time-limited state tokens for the OAuth redirect round-trip.

Two wire formats are accepted:

* current: ``<payload>.<signature>`` where ``payload`` is base64url (no
  padding) of the compact JSON ``{"d": discord_id, "g": guild_id,
  "t": expiry_ms, "v": 2}`` and ``signature`` is base64url HMAC-SHA256 of the
  payload segment.
* legacy: ``<hex hmac>.<discord_id>.<issued_ms>`` where the HMAC covers
  ``"<discord_id>.<issued_ms>"``. Legacy tokens carry no guild and expire a
  fixed window after issue.

Decoding tries the current format first, then the legacy one, and returns
``None`` for anything that does not verify.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

CURRENT_VERSION = 2
LEGACY_VERSION = 1


@dataclass(frozen=True)
class StateClaims:
    discord_id: str
    guild_id: str | None
    expiry: datetime | None
    version: int


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64url_decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def _to_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def _from_ms(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


class StateTokenCodec:
    """Encode and verify state tokens with a shared server secret."""

    def __init__(self, secret: str, legacy_window: timedelta = timedelta(minutes=10)) -> None:
        self._secret = secret.encode("utf-8")
        self.legacy_window = legacy_window

    def _sign(self, message: str) -> bytes:
        return hmac.new(self._secret, message.encode("utf-8"), hashlib.sha256).digest()

    def encode(
        self,
        discord_id: str,
        guild_id: str | None = None,
        ttl: timedelta = timedelta(minutes=10),
        now: datetime | None = None,
    ) -> str:
        """Return a current-format token valid for ``ttl`` from ``now``."""
        if not self._secret:
            msg = "State secret is not configured"
            raise ValueError(msg)
        if now is None:
            now = datetime.now(timezone.utc)

        payload: dict[str, Any] = {"d": str(discord_id)}
        if guild_id:
            payload["g"] = str(guild_id)
        payload["t"] = _to_ms(now + ttl)
        payload["v"] = CURRENT_VERSION

        payload_b64 = _b64url_encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
        return f"{payload_b64}.{_b64url_encode(self._sign(payload_b64))}"

    def decode(self, token: str | None, now: datetime | None = None) -> StateClaims | None:
        """Verify ``token``; ``None`` on bad signature, malformed payload or expiry."""
        if not token or not self._secret:
            return None
        if now is None:
            now = datetime.now(timezone.utc)

        parts = str(token).split(".")
        if len(parts) == 2:
            return self._decode_current(parts[0], parts[1], now)
        if len(parts) == 3:
            return self._decode_legacy(parts[0], parts[1], parts[2], now)
        return None

    def _decode_current(self, payload_b64: str, sig_b64: str, now: datetime) -> StateClaims | None:
        expected = _b64url_encode(self._sign(payload_b64))
        if not hmac.compare_digest(expected.encode(), sig_b64.encode("utf-8")):
            return None
        try:
            data = json.loads(_b64url_decode(payload_b64).decode("utf-8"))
        except ValueError:
            return None
        if not isinstance(data, dict) or not data.get("d"):
            return None

        expiry = None
        if data.get("t"):
            try:
                expiry = _from_ms(int(data["t"]))
            except (TypeError, ValueError, OverflowError, OSError):
                return None
            if now > expiry:
                return None

        try:
            version = int(data.get("v") or CURRENT_VERSION)
        except (TypeError, ValueError):
            return None

        guild = data.get("g")
        return StateClaims(
            discord_id=str(data["d"]),
            guild_id=str(guild) if guild else None,
            expiry=expiry,
            version=version,
        )

    def _decode_legacy(self, hash_hex: str, discord_id: str, issued: str, now: datetime) -> StateClaims | None:
        expected = self._sign(f"{discord_id}.{issued}").hex()
        if not discord_id or not hmac.compare_digest(expected.encode(), hash_hex.encode("utf-8")):
            return None
        try:
            issued_at = _from_ms(int(issued))
        except (ValueError, OverflowError, OSError):
            return None
        expiry = issued_at + self.legacy_window
        if now > expiry:
            return None
        return StateClaims(discord_id=discord_id, guild_id=None, expiry=expiry, version=LEGACY_VERSION)
