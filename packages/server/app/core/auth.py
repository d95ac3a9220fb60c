"""
Identity boundary.

Sessions are issued by the identity provider; this service only verifies
the signed session JWT (cookie or Bearer header) and resolves it to the
mirrored user row.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog
from fastapi import Depends, HTTPException, Request

from app.core.config import get_settings
from app.core.dependencies import get_repository
from app.core.identity import Identity
from app.repositories.base import MembershipRepository

log = structlog.get_logger()
settings = get_settings()

DEFAULT_TOKEN_TTL = timedelta(hours=1)


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_session_token(
    user_id: uuid.UUID,
    email: str,
    *,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Sign a session token (tests and local tooling)."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "iat": now,
        "exp": now + (expires_delta or DEFAULT_TOKEN_TTL),
    }
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_session_token(token: str) -> dict:
    """Decode and verify a session token. Raises jwt.InvalidTokenError."""
    return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])


def _token_from_request(request: Request) -> Optional[str]:
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


# ---------------------------------------------------------------------------
# FastAPI dependency
# ---------------------------------------------------------------------------

async def get_current_identity(
    request: Request,
    repo: MembershipRepository = Depends(get_repository),
) -> Identity:
    token = _token_from_request(request)
    if not token:
        raise HTTPException(status_code=401, detail="Authentication required")

    try:
        payload = decode_session_token(token)
        user_id = uuid.UUID(payload["sub"])
    except (jwt.InvalidTokenError, KeyError, ValueError) as exc:
        log.info("auth.invalid_token", error=str(exc))
        raise HTTPException(status_code=401, detail="Invalid or expired session")

    user = await repo.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")

    structlog.contextvars.bind_contextvars(user_id=str(user.id))
    return Identity(user_id=user.id, email=user.email.strip().lower())
