"""
Security utilities: JWT creation and verification.
Access tokens are issued by the identity provider with a shared secret;
this service verifies them with python-jose.
"""
from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from pitlane.core.config import settings


def create_access_token(user_id: str, expire_delta: timedelta | None = None) -> str:
    """
    Create a short-lived JWT access token.
    Used by tooling and tests; production tokens come from the identity provider.
    """
    now = datetime.now(timezone.utc)
    if expire_delta is None:
        expire_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    payload: dict[str, Any] = {
        "sub": user_id,
        "type": "access",
        "iat": now,
        "exp": now + expire_delta,
        "jti": secrets.token_hex(16),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and validate an access token.
    Raises JWTError on failure.
    """
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    if payload.get("type") != "access":
        raise JWTError("Invalid token type")
    return payload
