# edu_erp/api/deps.py
import logging
from typing import AsyncGenerator, Callable, Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import AccessDeniedError
from ..core.security import decode_access_token
from ..database import get_db
from ..models import User, UserRole
from ..repositories import UserRepository
from ..services import (
    AuditLogger,
    NotificationService,
    VisibilityService,
    build_audit_logger,
    build_notification_service,
    build_visibility_service,
)

# Configure logging
logger = logging.getLogger(__name__)


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get a database session."""
    async for session in get_db():
        yield session


async def get_current_user(
    token: str = Depends(oauth2_scheme), db: AsyncSession = Depends(db_session)
) -> User:
    """Dependency to get the current user from a JWT in an Authorization header."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    payload = decode_access_token(token)
    if payload is None:
        raise credentials_exception

    user_id_str: Optional[str] = payload.get("sub")
    if user_id_str is None:
        raise credentials_exception
    try:
        user_id = UUID(user_id_str)
    except ValueError:
        raise credentials_exception

    user = await UserRepository(db).get(user_id)
    if user is None or not user.is_active:
        logger.warning(f"Token for unknown or inactive user {user_id}")
        raise credentials_exception
    return user


async def current_user(user: User = Depends(get_current_user)) -> User:
    """A simple wrapper dependency for getting the current user."""
    return user


def require_roles(*roles: UserRole) -> Callable:
    """Dependency factory allowing only the given roles. Super admins always pass."""
    allowed = {role.value for role in roles} | {UserRole.SUPER_ADMIN.value}

    async def _checker(user: User = Depends(current_user)) -> User:
        if user.role not in allowed:
            raise AccessDeniedError(
                user.id,
                "You do not have permission to perform this action",
                required_roles=sorted(allowed),
            )
        return user

    return _checker


async def get_visibility_service(
    db: AsyncSession = Depends(db_session),
) -> VisibilityService:
    return build_visibility_service(db)


async def get_notification_service(
    db: AsyncSession = Depends(db_session),
) -> NotificationService:
    return build_notification_service(db)


async def get_audit_logger(db: AsyncSession = Depends(db_session)) -> AuditLogger:
    return build_audit_logger(db)
