"""
Password hashing and signed session tokens.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

import jwt
from werkzeug.security import check_password_hash, generate_password_hash

from taskboard.errors import AuthenticationFailed

TOKEN_ALGORITHM = "HS256"

_DURATION_PATTERN = re.compile(r"^\s*(\d+)\s*([smhdw]?)\s*$")
_DURATION_UNITS = {
    "": "seconds",
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
    "w": "weeks",
}


def parse_duration(value: str) -> timedelta:
    """Parse expiry strings such as "2d", "1h", "30m" or "3600"."""
    match = _DURATION_PATTERN.match(value or "")
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return timedelta(**{_DURATION_UNITS[unit]: int(amount)})


def hash_password(plain: str) -> str:
    return generate_password_hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    if not plain or not hashed:
        return False
    return check_password_hash(hashed, plain)


def create_access_token(
    user_id: str, secret: str, expires_in: str, now: datetime | None = None
) -> str:
    issued = now or datetime.now(timezone.utc)
    payload = {
        "id": user_id,
        "iat": issued,
        "exp": issued + parse_duration(expires_in),
    }
    return jwt.encode(payload, secret, algorithm=TOKEN_ALGORITHM)


def decode_access_token(token: str, secret: str) -> str:
    """Return the user id carried by `token` or raise AuthenticationFailed."""
    try:
        payload = jwt.decode(token, secret, algorithms=[TOKEN_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthenticationFailed("Token expired, please log in again") from None
    except jwt.InvalidTokenError:
        raise AuthenticationFailed("Invalid token") from None
    user_id = payload.get("id")
    if not isinstance(user_id, str) or not user_id:
        raise AuthenticationFailed("Invalid token")
    return user_id
