from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends, Request

from playearth.core.config import Settings, get_settings
from playearth.core.errors import Unauthorized
from playearth.core.security import decode_access_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: Optional[str] = None


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        return None
    return header.split(" ", 1)[1].strip() or None


def _decode(token: str, settings: Settings) -> CurrentUser:
    try:
        claims = decode_access_token(token, settings)
    except jwt.InvalidTokenError as e:
        logger.info("auth.invalid_token error=%s", e)
        raise Unauthorized("Invalid session")
    return CurrentUser(id=str(claims["sub"]), email=claims.get("email"))


def get_current_user(request: Request, settings: Settings = Depends(get_settings)) -> CurrentUser:
    token = _bearer_token(request)
    if not token:
        raise Unauthorized()
    return _decode(token, settings)


def get_optional_user(request: Request, settings: Settings = Depends(get_settings)) -> Optional[CurrentUser]:
    """Signed-in user when a valid token is sent; anonymous callers get None."""
    token = _bearer_token(request)
    if not token:
        return None
    try:
        return _decode(token, settings)
    except Unauthorized:
        return None
