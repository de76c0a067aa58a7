"""
Password hashing and JWT helpers.

Tokens are HS256 JWTs whose `sub` claim is the profile id. Decoding failures
of any kind (bad signature, expired, missing claim) collapse into a single
Unauthorized so callers learn nothing beyond the category.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt

from residency.core.config import get_settings
from residency.core.exceptions import Unauthorized

settings = get_settings()


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> int:
    """Return the user id carried by a valid token."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.PyJWTError:
        raise Unauthorized()

    subject = payload.get("sub")
    if subject is None:
        raise Unauthorized()
    try:
        return int(subject)
    except (TypeError, ValueError):
        raise Unauthorized()
