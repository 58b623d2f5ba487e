from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt

from .config import Settings, get_settings


# Supabase signs session tokens with the project's JWT secret
JWT_ALGORITHM = "HS256"


def create_access_token(
    user_id: str,
    email: str | None = None,
    expires_minutes: int = 60,
    settings: Optional[Settings] = None,
) -> str:
    """Mint a Supabase-compatible access token (local development and tests)."""
    settings = settings or get_settings()
    now = datetime.now(tz=timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "aud": settings.supabase_jwt_audience,
        "role": "authenticated",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=expires_minutes)).timestamp()),
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, settings.supabase_jwt_secret, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str, settings: Optional[Settings] = None) -> dict[str, Any]:
    """Raises ``jwt.InvalidTokenError`` when the signature, audience or expiry is wrong."""
    settings = settings or get_settings()
    payload = jwt.decode(
        token,
        settings.supabase_jwt_secret,
        algorithms=[JWT_ALGORITHM],
        audience=settings.supabase_jwt_audience,
    )
    if not payload.get("sub"):
        raise jwt.InvalidTokenError("token has no subject")
    return payload
