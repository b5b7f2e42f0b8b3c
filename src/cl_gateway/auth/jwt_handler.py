"""JWT token creation and verification.

HS256 with the shared JWT_SECRET. Every token carries the username as `sub`
and the login session id as `jti`; a token is only honoured while its
session is still present in the SessionRegistry, so logout revokes it.
"""

from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from config.settings import settings
from src.cl_common.errors import InvalidCredentialsError, InvalidRefreshTokenError

_ALGORITHM = settings.JWT_ALGORITHM
ACCESS_EXPIRE = timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
REFRESH_EXPIRE = timedelta(days=settings.JWT_REFRESH_EXPIRE_DAYS)


def _encode(username: str, session_id: str, token_type: str, ttl: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": username,
        "jti": session_id,
        "type": token_type,
        "iat": now,
        "exp": now + ttl,
    }
    return str(jwt.encode(payload, settings.JWT_SECRET, algorithm=_ALGORITHM))


def create_access_token(username: str, session_id: str) -> str:
    """Issue a short-lived access token (default: 30 min)."""
    return _encode(username, session_id, "access", ACCESS_EXPIRE)


def create_refresh_token(username: str, session_id: str) -> str:
    """Issue a long-lived refresh token (default: 7 days), bound to the same session."""
    return _encode(username, session_id, "refresh", REFRESH_EXPIRE)


def decode_token(token: str, expected_type: str) -> dict[str, str]:
    """Decode and validate a JWT.

    `expected_type` is "access" or "refresh" and is strictly enforced, so a
    refresh token can never be used as an access token.

    Raises:
        InvalidCredentialsError: invalid/expired token when expecting "access".
        InvalidRefreshTokenError: invalid/expired token when expecting "refresh".
    """
    payload: dict[str, str] = {}
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[_ALGORITHM])
    except JWTError:
        _raise_auth_error(expected_type)

    if payload.get("type") != expected_type:
        _raise_auth_error(expected_type)
    if not payload.get("sub") or not payload.get("jti"):
        _raise_auth_error(expected_type)

    return payload


def _raise_auth_error(expected_type: str) -> None:
    if expected_type == "access":
        raise InvalidCredentialsError()
    raise InvalidRefreshTokenError()
