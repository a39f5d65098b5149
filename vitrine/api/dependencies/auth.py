"""Authentication dependencies for FastAPI.

Sessions are issued by the identity provider; here we only read the owner id
out of the bearer token.
"""
from __future__ import annotations

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from vitrine.core.errors import AuthRequired
from vitrine.core.logging import bind_request_context
from vitrine.core.security import decode_token

bearer_scheme = HTTPBearer(auto_error=False)


def get_optional_owner(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str | None:
    bind_request_context()
    if creds is None:
        return None
    try:
        payload = decode_token(creds.credentials)
    except Exception:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from None

    if payload.get("type") != "access":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token type")

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing subject")
    bind_request_context(owner_id=str(subject))
    return str(subject)


def get_current_owner(owner_id: str | None = Depends(get_optional_owner)) -> str:
    if owner_id is None:
        raise AuthRequired("Sign in to continue")
    return owner_id


__all__ = ["bearer_scheme", "get_current_owner", "get_optional_owner"]
