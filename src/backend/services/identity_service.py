"""
Identity & Credential Service

Registers users, checks passwords and turns bearer tokens into
(user_id, role) pairs. Token signing itself lives in core.security.
"""

from datetime import timedelta
from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.clock import Clock, utc_now
from core.config import settings
from core.exceptions import (
    AuthenticationRequired,
    AuthorizationDenied,
    BusinessRuleViolation,
    ConflictError,
    NotFound,
    ValidationError,
)
from core.security import create_access_token, decode_token, hash_password, verify_password
from models.user import User, UserRole
from repositories.user_repository import UserRepository

logger = structlog.get_logger(__name__)


def require_admin(role: UserRole | str) -> None:
    """Raise AuthorizationDenied unless ``role`` is ADMIN."""
    if UserRole(role) != UserRole.ADMIN:
        raise AuthorizationDenied("Admin privileges required")


class IdentityService:
    """User accounts and bearer-token resolution."""

    def __init__(self, db: AsyncSession, clock: Clock = utc_now):
        self.db = db
        self.clock = clock
        self.users = UserRepository(db)

    async def register(
        self,
        username: str,
        password: str,
        email: Optional[str] = None,
        role: UserRole = UserRole.USER,
    ) -> User:
        """
        Create an account.

        Raises:
            ValidationError: username blank or password too short.
            BusinessRuleViolation: username or email already registered.
        """
        username = (username or "").strip()
        if not username:
            raise ValidationError("Username is required")
        if len(password or "") < settings.PASSWORD_MIN_LENGTH:
            raise ValidationError(f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters")

        if await self.users.username_exists(username):
            raise BusinessRuleViolation("Username is already taken", error_code="USERNAME_TAKEN")
        if email and await self.users.email_exists(email):
            raise BusinessRuleViolation("Email is already registered", error_code="EMAIL_TAKEN")

        try:
            user = await self.users.create(
                username=username,
                hashed_password=hash_password(password),
                email=email,
                role=role,
                created_at=self.clock(),
            )
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            logger.warning("registration_conflict", username=username)
            raise ConflictError("Username or email is already registered") from exc

        logger.info("user_registered", user_id=user.id, role=user.role)
        return user

    async def authenticate(self, username: str, password: str) -> tuple[User, str]:
        """
        Check credentials and issue an access token.

        The same error is raised for unknown users, wrong passwords and
        deactivated accounts.
        """
        user = await self.users.get_by_username((username or "").strip())
        if user is None or not verify_password(password or "", user.hashed_password):
            logger.info("login_failed", username=username)
            raise AuthenticationRequired("Invalid username or password")
        if not user.is_active:
            logger.info("login_failed_inactive", user_id=user.id)
            raise AuthenticationRequired("Invalid username or password")

        user.last_login_at = self.clock()
        await self.db.commit()

        token = self.issue_token(user)
        logger.info("user_logged_in", user_id=user.id)
        return user, token

    def issue_token(self, user: User, expires_delta: Optional[timedelta] = None) -> str:
        return create_access_token(user.id, user.role, expires_delta=expires_delta)

    async def resolve_user(self, token: Optional[str]) -> tuple[str, UserRole]:
        """
        Map a bearer token to ``(user_id, role)``.

        The role comes from the stored user, not the token claim, so a
        demoted admin loses access without waiting for token expiry.
        """
        user = await self.resolve_user_record(token)
        return user.id, UserRole(user.role)

    async def resolve_user_record(self, token: Optional[str]) -> User:
        if not token:
            raise AuthenticationRequired("Missing bearer token")

        payload = decode_token(token)
        if payload is None or not payload.get("sub"):
            raise AuthenticationRequired("Invalid or expired token")

        user = await self.users.get_by_id(payload["sub"])
        if user is None or not user.is_active:
            raise AuthenticationRequired("Invalid or expired token")
        return user

    async def get_user(self, user_id: str) -> User:
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise NotFound.for_entity("User", user_id)
        return user

    async def list_users(self, page: int = 1, per_page: int = 20) -> tuple[list[User], int]:
        return await self.users.list_users(page=page, per_page=per_page)

    async def set_active(self, user_id: str, active: bool) -> User:
        """Activate or deactivate an account."""
        user = await self.get_user(user_id)
        user.is_active = active
        await self.db.commit()
        logger.info("user_active_changed", user_id=user_id, is_active=active)
        return user

    async def change_role(self, user_id: str, role: UserRole | str) -> User:
        """
        Grant or revoke ADMIN.

        Takes effect on the user's next request, since roles are read from
        the stored user rather than from the token.
        """
        try:
            new_role = UserRole(role)
        except ValueError as exc:
            raise ValidationError(f"Unknown role: {role}") from exc
        user = await self.get_user(user_id)
        previous = user.role
        user.role = new_role.value
        await self.db.commit()
        logger.info("user_role_changed", user_id=user_id, from_role=previous, to_role=new_role.value)
        return user

    async def ensure_admin(self, username: str, password: str) -> User:
        """
        Create the bootstrap admin if the username is free.

        An existing account with that name is left untouched.
        """
        existing = await self.users.get_by_username(username)
        if existing is not None:
            return existing
        user = await self.register(username, password, role=UserRole.ADMIN)
        logger.info("bootstrap_admin_created", user_id=user.id)
        return user
