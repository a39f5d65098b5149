"""Access token helpers.

Sessions are issued elsewhere; this service only needs to mint tokens for
tests and tooling and to decode the bearer token on incoming requests.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt

from .settings import get_settings

ACCESS_TOKEN_TTL = timedelta(minutes=30)


def create_access_token(data: Dict[str, Any], expires_delta: timedelta = ACCESS_TOKEN_TTL) -> str:
    payload = data.copy()
    payload.update(
        {
            "exp": datetime.now(timezone.utc) + expires_delta,
            "iat": datetime.now(timezone.utc),
            "type": "access",
            "jti": uuid.uuid4().hex,
        }
    )
    return jwt.encode(payload, get_settings().secret_key, algorithm="HS256")


def decode_token(token: str) -> dict[str, Any]:
    return jwt.decode(token, get_settings().secret_key, algorithms=["HS256"])


__all__ = ["create_access_token", "decode_token"]
