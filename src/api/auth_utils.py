"""
Bearer token helpers.

Tokens are issued by the identity collaborator; the market only decodes
them into an Actor. create_access_token exists for dev tooling and tests.
"""

import os
from datetime import UTC, datetime, timedelta
from typing import Any, get_args
from uuid import UUID

from jose import jwt

from src.domain.entities import Actor, RoleType

SECRET_KEY = os.environ.get("MARKET_SECRET_KEY", "dev-secret-unsafe")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24  # 24 hours

ROLES = frozenset(get_args(RoleType))


class InvalidToken(ValueError):
    """Token is malformed, expired, or carries unusable claims."""


def create_access_token(
    actor: Actor,
    expires_delta: timedelta | None = None,
    now_utc: datetime | None = None,
) -> str:
    """
    Create a JWT access token for actor.

    Args:
        actor: Caller to encode ("sub" = user id, "role")
        expires_delta: Optional custom expiration delta
        now_utc: Current UTC time (for testing/determinism). Defaults to datetime.now(UTC).
    """
    current_time = now_utc if now_utc is not None else datetime.now(UTC)
    expire = current_time + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))

    claims: dict[str, Any] = {"sub": str(actor.user_id), "role": actor.role, "exp": expire}
    encoded_jwt: str = jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)
    return encoded_jwt


def actor_from_token(token: str) -> Actor:
    """
    Decode a bearer token into the calling Actor.

    Raises:
        InvalidToken: bad signature, expired, or unknown role / user id
    """
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.JWTError as e:
        raise InvalidToken("Invalid token") from e

    user_id = payload.get("sub")
    role = payload.get("role", "user")
    if not isinstance(user_id, str) or role not in ROLES:
        raise InvalidToken("Invalid token payload")
    try:
        return Actor(user_id=UUID(user_id), role=role)
    except ValueError as e:
        raise InvalidToken("Invalid token payload") from e
