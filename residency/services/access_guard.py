"""
Access guard: resolve a bearer credential to an identity and check roles.

Every boundary operation goes through `get_identity` or `require_roles`
rather than re-implementing role checks per endpoint. Staff and proprietor
are interchangeable for all core operations.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from residency.core.exceptions import Forbidden, ProfileNotFound, Unauthorized
from residency.core.logging import get_logger
from residency.core.security import decode_access_token
from residency.db.session import get_db
from residency.models.user import User, UserRole

logger = get_logger(__name__)

STAFF_ROLES = frozenset({UserRole.STAFF, UserRole.PROPRIETOR})

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Identity:
    user_id: int
    role: UserRole
    email: Optional[str] = None

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


async def authenticate(db: AsyncSession, token: Optional[str]) -> Identity:
    """
    Resolve a bearer token to an identity.

    Raises Unauthorized for a missing or invalid token and ProfileNotFound
    (a Forbidden) when the token is valid but no active profile exists yet.
    """
    if not token:
        raise Unauthorized("Missing Authorization header")

    user_id = decode_access_token(token)

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        logger.warning("profile_not_found", user_id=user_id)
        raise ProfileNotFound()

    return Identity(user_id=user.id, role=UserRole(user.role), email=user.email)


def authorize_role(identity: Identity, allowed_roles: Iterable[UserRole]) -> Identity:
    if identity.role not in set(allowed_roles):
        logger.warning("role_forbidden", user_id=identity.user_id, role=identity.role.value)
        raise Forbidden()
    return identity


async def get_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Identity:
    token = credentials.credentials if credentials else None
    identity = await authenticate(db, token)
    structlog.contextvars.bind_contextvars(user_id=identity.user_id)
    return identity


def require_roles(*roles: UserRole):
    """Dependency factory: authenticated identity restricted to `roles`."""
    allowed = frozenset(roles)

    async def dependency(identity: Identity = Depends(get_identity)) -> Identity:
        return authorize_role(identity, allowed)

    return dependency


require_staff = require_roles(*STAFF_ROLES)
