"""
User repository for database operations.
"""

from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models.user import User, UserRole


class UserRepository:
    """Repository for user database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _get_rowcount(self, result: Any) -> int:
        """Safely get rowcount from result."""
        return getattr(result, "rowcount", 0) or 0

    async def get_by_id(self, user_id: str) -> Optional[User]:
        """Get a user by ID."""
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> Optional[User]:
        """Get a user by username."""
        result = await self.db.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def username_exists(self, username: str) -> bool:
        """Check if username is already taken."""
        result = await self.db.execute(select(func.count(User.id)).where(User.username == username))
        count = result.scalar() or 0
        return count > 0

    async def email_exists(self, email: str) -> bool:
        """Check if email is already registered."""
        result = await self.db.execute(select(func.count(User.id)).where(User.email == email.lower()))
        count = result.scalar() or 0
        return count > 0

    async def create(
        self,
        username: str,
        hashed_password: str,
        email: Optional[str] = None,
        role: UserRole = UserRole.USER,
        created_at: Optional[datetime] = None,
    ) -> User:
        """Create a new user."""
        user = User(
            id=str(uuid4()),
            username=username,
            email=email.lower() if email else None,
            hashed_password=hashed_password,
            role=role.value,
            is_active=True,
        )
        if created_at is not None:
            user.created_at = created_at

        self.db.add(user)
        await self.db.flush()

        return user

    async def update_last_login(self, user_id: str, when: datetime) -> bool:
        """Update user's last login timestamp."""
        result = await self.db.execute(update(User).where(User.id == user_id).values(last_login_at=when))
        return self._get_rowcount(result) > 0

    async def set_active(self, user_id: str, is_active: bool) -> bool:
        """Activate or deactivate a user."""
        result = await self.db.execute(update(User).where(User.id == user_id).values(is_active=is_active))
        return self._get_rowcount(result) > 0

    async def list_users(self, page: int = 1, per_page: int = 20) -> tuple[list[User], int]:
        """List users with pagination."""
        total_result = await self.db.execute(select(func.count(User.id)))
        total = total_result.scalar() or 0

        result = await self.db.execute(
            select(User).order_by(User.created_at.asc()).offset((page - 1) * per_page).limit(per_page)
        )
        return list(result.scalars().all()), total
