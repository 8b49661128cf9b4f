"""
Shared dependencies for API endpoints.

Includes:
- Bearer token resolution to the calling user
- Role gating for admin endpoints
- Injectable clock for request-time evaluation
"""

from typing import Annotated

import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from core.clock import Clock, utc_now
from core.exceptions import AuthenticationRequired, AuthorizationDenied
from db.session import get_db
from schemas.converters import user_model_to_schema
from schemas.user import UserInDB
from services.identity_service import IdentityService, require_admin

logger = structlog.get_logger(__name__)

# Missing credentials are reported as AuthenticationRequired (401), not by HTTPBearer
security = HTTPBearer(auto_error=False)


def get_clock() -> Clock:
    """Time source for services; overridden in tests."""
    return utc_now


def get_client_ip(request: Request) -> str | None:
    """Client address as seen by the app (proxy headers are not trusted)."""
    return request.client.host if request.client else None


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: AsyncSession = Depends(get_db),
) -> UserInDB:
    """
    Resolve the bearer token to an active user.

    Raises:
        AuthenticationRequired: no token, invalid/expired token, or unknown/inactive user.
    """
    if credentials is None:
        raise AuthenticationRequired("Missing bearer token")
    user = await IdentityService(db).resolve_user_record(credentials.credentials)
    return user_model_to_schema(user)


async def get_current_user_optional(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: AsyncSession = Depends(get_db),
) -> UserInDB | None:
    """
    Like get_current_user, but anonymous or unresolvable callers get None.

    Useful for read endpoints that personalise output when a user is known.
    """
    if credentials is None:
        return None
    try:
        user = await IdentityService(db).resolve_user_record(credentials.credentials)
    except AuthenticationRequired:
        return None
    return user_model_to_schema(user)


async def get_current_admin_user(
    current_user: Annotated[UserInDB, Depends(get_current_user)],
) -> UserInDB:
    """
    Ensure the current user is an admin.

    Raises:
        AuthorizationDenied: the caller has the USER role.
    """
    try:
        require_admin(current_user.role)
    except AuthorizationDenied:
        logger.warning("non_admin_access_attempt", user_id=current_user.id)
        raise
    return current_user


CurrentUser = Annotated[UserInDB, Depends(get_current_user)]
OptionalUser = Annotated[UserInDB | None, Depends(get_current_user_optional)]
AdminUser = Annotated[UserInDB, Depends(get_current_admin_user)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
RequestClock = Annotated[Clock, Depends(get_clock)]
