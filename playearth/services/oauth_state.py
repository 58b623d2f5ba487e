"""
Signed OAuth ``state`` for the Strava connect flow.

The callback is unauthenticated (Strava redirects the browser), so the state
carries the user id, a nonce and an issued-at time, signed with HMAC-SHA256.
A forged, tampered or stale state is rejected.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import json
import secrets
from typing import Any, Optional

from playearth.core.clock import Clock, get_clock


def _b64url_encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def _b64url_decode(s: str) -> bytes:
    pad = "=" * (-len(s) % 4)
    return base64.urlsafe_b64decode((s + pad).encode("utf-8"))


def _sign(payload_b64: str, secret: str) -> str:
    mac = hmac.new(secret.encode("utf-8"), payload_b64.encode("utf-8"), hashlib.sha256).digest()
    return _b64url_encode(mac)


def create_signed_state(user_id: str, secret: str, clock: Optional[Clock] = None) -> str:
    payload = {
        "uid": user_id,
        "nonce": secrets.token_hex(8),
        "iat": int((clock or get_clock()).now().timestamp()),
    }
    raw = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
    payload_b64 = _b64url_encode(raw)
    return f"{payload_b64}.{_sign(payload_b64, secret)}"


def verify_signed_state(
    token: str | None,
    secret: str,
    ttl_seconds: int,
    clock: Optional[Clock] = None,
) -> Optional[str]:
    """Return the user id bound to a valid state, else None."""
    if not token or "." not in token:
        return None
    payload_b64, sig = token.split(".", 1)
    if not payload_b64 or not sig:
        return None
    if not hmac.compare_digest(sig.encode("utf-8"), _sign(payload_b64, secret).encode("utf-8")):
        return None
    try:
        payload: dict[str, Any] = json.loads(_b64url_decode(payload_b64))
        iat = int(payload["iat"])
    except (ValueError, KeyError, TypeError):
        return None

    now = int((clock or get_clock()).now().timestamp())
    if ttl_seconds > 0 and (now - iat) > ttl_seconds:
        return None
    user_id = payload.get("uid")
    return str(user_id) if user_id else None
