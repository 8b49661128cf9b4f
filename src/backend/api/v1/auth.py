"""
Authentication endpoints.

Username/password accounts with stateless bearer tokens. The role claim
is re-checked against the stored user on every request.
"""

import structlog
from fastapi import APIRouter, status

from api.deps import CurrentUser, DbSession, RequestClock
from core.config import settings
from schemas.auth import LoginRequest, TokenResponse
from schemas.converters import user_model_to_response
from schemas.user import UserCreate, UserResponse
from services.identity_service import IdentityService

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, db: DbSession, clock: RequestClock) -> TokenResponse:
    """
    Register a new USER account and return a token for immediate use.

    Admin accounts are never created through this endpoint.
    """
    identity = IdentityService(db, clock=clock)
    user = await identity.register(
        username=user_data.username,
        password=user_data.password,
        email=str(user_data.email) if user_data.email else None,
    )
    return TokenResponse(
        access_token=identity.issue_token(user),
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=user_model_to_response(user),
    )


@router.post("/login", response_model=TokenResponse)
async def login(credentials: LoginRequest, db: DbSession, clock: RequestClock) -> TokenResponse:
    """Exchange username and password for an access token."""
    user, token = await IdentityService(db, clock=clock).authenticate(
        credentials.username,
        credentials.password,
    )
    return TokenResponse(
        access_token=token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=user_model_to_response(user),
    )


@router.get("/me", response_model=UserResponse)
async def me(current_user: CurrentUser, db: DbSession) -> UserResponse:
    user = await IdentityService(db).get_user(current_user.id)
    return user_model_to_response(user)
