"""
Snipply Backend — User Schemas
================================

What:  Registration/login bodies, profile edits and the user payloads
       returned by the API.

Security: no response model declares a password field, so the bcrypt hash
can never be serialized even when an ORM `User` is returned directly.
"""

from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from snipply.schemas.common import CamelModel
from snipply.security import MAX_PASSWORD_BYTES


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class UserCreate(CamelModel):
    """
    Body of POST /api/auth/register.

    Any `rank` key sent by the client is ignored; new accounts are always
    'default'.
    """
    username: str = Field(min_length=1, max_length=50)
    password: str = Field(min_length=6, max_length=MAX_PASSWORD_BYTES)
    email: EmailStr
    display_name: Optional[str] = Field(default=None, max_length=100)
    bio: Optional[str] = Field(default=None, max_length=500)
    location: Optional[str] = Field(default=None, max_length=100)
    website: Optional[str] = Field(default=None, max_length=255)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Username is required")
        if any(ch.isspace() for ch in v) or "/" in v:
            raise ValueError("Username may not contain spaces or slashes")
        return v

    @field_validator("password")
    @classmethod
    def validate_password_bytes(cls, v: str) -> str:
        if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        return v


class LoginRequest(CamelModel):
    username: str = Field(min_length=1, description="Username is required")
    password: str = Field(min_length=1, description="Password is required")


class ProfileUpdate(CamelModel):
    """Body of PATCH /api/profile; only the keys sent are changed."""
    display_name: Optional[str] = Field(default=None, max_length=100)
    bio: Optional[str] = Field(default=None, max_length=500)
    location: Optional[str] = Field(default=None, max_length=100)
    website: Optional[str] = Field(default=None, max_length=255)
    avatar_url: Optional[str] = Field(default=None, max_length=2048)


class ProfilePictureUpdate(CamelModel):
    profile_picture: Optional[str] = None


class RankUpdate(CamelModel):
    rank: Optional[str] = None


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class UserPublic(CamelModel):
    """A user with the password hash stripped."""
    id: str
    username: str
    email: str
    display_name: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    website: Optional[str] = None
    avatar_url: Optional[str] = None
    profile_picture: Optional[str] = None
    rank: str
    created_at: datetime


class UserProfile(UserPublic):
    """Public profile page payload."""
    snippets_count: int = Field(description="Number of public snippets")
    followers_count: int
    following_count: int
    is_following: bool = Field(default=False, description="Whether the session user follows this user")


class UserEnvelope(CamelModel):
    """{"user": {...}} wrapper used by the auth and profile endpoints."""
    user: UserPublic


class RankUpdateResponse(CamelModel):
    message: str
    user: UserPublic
