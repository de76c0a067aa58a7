"""
Local identity provider: student registration and login.

Every self-registered profile is a student. Staff and proprietor roles are
granted out of band.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from residency.core.exceptions import EmailAlreadyRegistered, Forbidden, Unauthorized
from residency.core.logging import get_logger
from residency.core.security import create_access_token, hash_password, verify_password
from residency.models.user import User, UserRole
from residency.schemas.user import UserCreate, UserLogin

logger = get_logger(__name__)


async def register_user(db: AsyncSession, user_data: UserCreate) -> User:
    """
    Register a new student profile with a hashed password.
    Raises 409 if the email already exists.
    """
    result = await db.execute(select(User).where(User.email == user_data.email))
    if result.scalar_one_or_none():
        logger.warning("registration_failed", reason="email_exists", email=user_data.email)
        raise EmailAlreadyRegistered()

    user = User(
        email=user_data.email,
        full_name=user_data.full_name,
        gender=user_data.gender,
        hashed_password=hash_password(user_data.password),
        role=UserRole.STUDENT.value,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration for the same email
        await db.rollback()
        raise EmailAlreadyRegistered()
    await db.refresh(user)

    logger.info("user_registered", user_id=user.id, email=user.email)
    return user


async def authenticate_user(db: AsyncSession, login_data: UserLogin) -> str:
    """
    Authenticate user and return JWT access token.
    Raises 401 if credentials are invalid.
    """
    result = await db.execute(select(User).where(User.email == login_data.email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(login_data.password, user.hashed_password):
        logger.warning("login_failed", email=login_data.email)
        raise Unauthorized("Invalid email or password")

    if not user.is_active:
        raise Forbidden("Account is deactivated")

    token = create_access_token(data={"sub": str(user.id)})
    logger.info("user_logged_in", user_id=user.id)
    return token
