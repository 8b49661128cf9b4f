"""
User-related Pydantic schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from models.user import UserRole


class UserCreate(BaseModel):
    """Schema for user registration."""

    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=1, max_length=128)
    email: Optional[EmailStr] = None


class UserResponse(BaseModel):
    """Schema for user responses (public-safe)."""

    id: str
    username: str
    email: Optional[str] = None
    role: UserRole
    is_active: bool
    created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class UserInDB(BaseModel):
    """The authenticated caller as resolved from a bearer token."""

    id: str
    username: str
    role: UserRole
    is_active: bool = True

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class UserActiveUpdate(BaseModel):
    """Admin request to activate or deactivate a user."""

    is_active: bool


class AdminUserCreate(UserCreate):
    """Admin request to create an account with a chosen role."""

    role: UserRole = UserRole.USER


class UserRoleUpdate(BaseModel):
    """Admin request to change a user's role."""

    role: UserRole
