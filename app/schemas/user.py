"""
Pydantic schemas for User model.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

from app.schemas.common import CamelModel


class UserBase(CamelModel):
    """Base user schema."""

    email: EmailStr
    full_name: str = Field(..., min_length=1)


class UserCreate(UserBase):
    """Schema for user creation."""

    password: str = Field(..., min_length=6)


class UserInDB(UserBase):
    """Schema for user in database."""

    id: int
    role: str
    is_active: bool
    created_at: Optional[datetime] = None


class User(UserInDB):
    """Schema for user response."""

    pass


class Token(BaseModel):
    """Schema for JWT token."""

    access_token: str
    expires_in: int
    token_type: str
