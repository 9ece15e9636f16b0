"""JWT issue/verify for access and refresh tokens (HS256, shared JWT_SECRET).

Tokens carry ``sub`` (user id) and ``type``; a refresh token is never
accepted where an access token is expected, and vice versa.
"""

from datetime import UTC, datetime, timedelta
from typing import Literal

from jose import JWTError, jwt

from config.settings import settings
from src.mp_common.errors import InvalidCredentialsError, InvalidRefreshTokenError

TokenType = Literal["access", "refresh"]

_LIFETIMES: dict[str, timedelta] = {
    "access": timedelta(minutes=settings.JWT_EXPIRE_MINUTES),
    "refresh": timedelta(days=settings.JWT_REFRESH_EXPIRE_DAYS),
}


def _issue(user_id: str, token_type: TokenType) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": user_id,
        "type": token_type,
        "iat": now,
        "exp": now + _LIFETIMES[token_type],
    }
    return str(jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM))


def create_access_token(user_id: str) -> str:
    return _issue(user_id, "access")


def create_refresh_token(user_id: str) -> str:
    return _issue(user_id, "refresh")


def decode_token(token: str, expected_type: TokenType) -> dict[str, str]:
    """Decode and validate a token of the expected type.

    Raises:
        InvalidCredentialsError: bad access token.
        InvalidRefreshTokenError: bad refresh token.
    """
    error = InvalidCredentialsError if expected_type == "access" else InvalidRefreshTokenError
    try:
        # Explicit algorithm list prevents algorithm confusion
        payload: dict[str, str] = jwt.decode(
            token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError:
        raise error() from None
    if payload.get("type") != expected_type:
        raise error()
    return payload
