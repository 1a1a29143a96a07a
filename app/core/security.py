from __future__ import annotations

import secrets
from datetime import UTC, datetime, timedelta
from typing import Annotated, Any

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.config import settings
from app.core.db import get_db
from app.models.player import Player

# HTTP Bearer scheme for FastAPI dependencies
bearer_scheme = HTTPBearer(auto_error=False)


def _get_jwt_secret() -> str:
    """Get the JWT secret, generating an ephemeral one for dev if not set.

    WARNING: If not set, an ephemeral secret is generated per-process, which will
    invalidate tokens on restart. Configure settings.jwt_secret in production.
    """
    if settings.jwt_secret:
        return settings.jwt_secret
    secret = secrets.token_urlsafe(32)
    logger.warning(
        "JWT secret not configured. Using ephemeral secret for this process; tokens will invalidate on restart."
    )
    settings.jwt_secret = secret
    return secret


def create_access_token(*, sub: str, ttl_seconds: int = 15 * 60) -> str:
    """Create a short-lived access JWT for a player id.

    Tokens are normally minted by the account service; this exists for local
    tooling and tests.
    """
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        "sub": sub,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=ttl_seconds)).timestamp()),
    }
    return jwt.encode(payload, _get_jwt_secret(), algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and validate an access token, returning claims or raising.

    Raises jwt.InvalidTokenError (caught by caller) on invalid token.
    """
    return jwt.decode(token, _get_jwt_secret(), algorithms=[settings.jwt_algorithm])


async def get_current_player(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Player:
    """Resolve the current Player from Authorization: Bearer <jwt>.

    - 401 if missing/invalid
    - 404 if user not found (e.g., deleted)
    """
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        claims = decode_access_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired") from None
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token") from None

    sub = claims.get("sub")
    if not sub:
        raise HTTPException(status_code=401, detail="Invalid token claims")

    try:
        player_id = int(sub)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid subject") from None

    result = await db.exec(select(Player).where(Player.id == player_id))
    player = result.first()
    if not player or player.is_system:
        raise HTTPException(status_code=404, detail="Player not found")
    return player


def require_admin(player: Annotated[Player, Depends(get_current_player)]) -> Player:
    if not player.is_admin:
        raise HTTPException(status_code=403, detail="Admin privileges required")
    return player
