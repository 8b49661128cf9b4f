"""
Authentication-related Pydantic schemas.
"""

from typing import Optional

from pydantic import BaseModel, Field

from schemas.user import UserResponse


class LoginRequest(BaseModel):
    """Username/password login."""

    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1, max_length=128)


class TokenResponse(BaseModel):
    """JWT token response."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Token lifetime in seconds")
    user: Optional[UserResponse] = None
