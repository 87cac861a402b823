"""
User Model
Accounts that own chats and messages
"""
from datetime import datetime
from typing import Optional

from beanie import Document
from pydantic import BaseModel, EmailStr, Field


class User(Document):
    """User document model"""

    user_id: int = Field(..., unique=True, index=True)
    username: str = Field(..., unique=True, index=True)
    email: EmailStr = Field(..., unique=True, index=True)
    password_hash: str
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)
    last_login: Optional[datetime] = None

    class Settings:
        name = "users"
        indexes = ["user_id", "username", "email"]


class UserCreate(BaseModel):
    """Registration payload"""
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=8)


class UserResponse(BaseModel):
    """Public user view"""
    id: int
    username: str
    email: EmailStr
    created_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.user_id,
            username=user.username,
            email=user.email,
            created_at=user.created_at,
        )
