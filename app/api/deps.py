from typing import Annotated, Optional
import logging

from fastapi import Depends, Header, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.database import get_db
from app.core.security import verify_access_token, verify_api_key
from app.models.user import User, UserRole
from app.services.auto_delivery_service import AutoDeliveryService


logger = logging.getLogger(__name__)

# HTTP Bearer security scheme. Errors are raised by the dependencies below so
# the auto-delivery trigger can fall back to the API key header.
security = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    """Settings constructed once at startup by create_app()."""
    return request.app.state.settings


async def _resolve_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials],
    db: AsyncSession,
) -> Optional[User]:
    if credentials is None:
        return None

    user_id = verify_access_token(get_app_settings(request), credentials.credentials)
    if user_id is None:
        logger.warning("Token verification failed - invalid or expired token")
        return None

    try:
        user_pk = int(user_id)
    except ValueError:
        logger.warning(f"Invalid user_id in token: {user_id}")
        return None

    result = await db.execute(select(User).where(User.id == user_pk))
    user = result.scalar_one_or_none()
    if user is None:
        logger.warning(f"User {user_id} from token not found")
    return user


async def get_current_user(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Dependency to get the current authenticated user.
    Validates the JWT token and returns the user object.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    user = await _resolve_user(request, credentials, db)
    if user is None:
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated"
        )

    return user


def require_roles(*roles: UserRole):
    """
    Dependency factory to require one of the given roles.

    Usage:
        @router.get("/", dependencies=[Depends(require_roles(UserRole.ADMIN))])
        async def admin_endpoint():
            ...
    """
    allowed = {role.value for role in roles}

    async def role_dependency(
        user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        if user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied. Required role: {', '.join(sorted(allowed))}"
            )
        return user

    return role_dependency


async def require_auto_delivery_caller(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
    x_api_key: Annotated[Optional[str], Header()] = None,
) -> None:
    """Scheduled tasks present X-API-Key; people need an admin or staff token."""
    if verify_api_key(get_app_settings(request), x_api_key):
        return

    user = await _resolve_user(request, credentials, db)
    if user is not None and user.is_active and user.is_back_office:
        return

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
    )


def get_auto_delivery_service(request: Request) -> AutoDeliveryService:
    return AutoDeliveryService(request.app.state.session_factory, get_app_settings(request))


# Type aliases for cleaner endpoint signatures
CurrentUser = Annotated[User, Depends(get_current_user)]
BackOfficeUser = Annotated[User, Depends(require_roles(UserRole.ADMIN, UserRole.STAFF))]
DB = Annotated[AsyncSession, Depends(get_db)]
AutoDelivery = Annotated[AutoDeliveryService, Depends(get_auto_delivery_service)]
