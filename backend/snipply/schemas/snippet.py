"""
Snipply Backend — Snippet Schemas
===================================

What:  Create/update bodies and the snippet payloads returned by the API.

SnippetWithAuthor is the shape used by every listing: the snippet, a small
author card and, for signed-in viewers, whether they liked it.
"""

from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from snipply.schemas.common import CamelModel


class SnippetCreate(CamelModel):
    """Body of POST /api/snippets."""
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    html: str = Field(default="")
    css: str = Field(default="")
    javascript: str = Field(default="")
    is_public: bool = Field(default=False)

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title is required")
        return v


class SnippetUpdate(CamelModel):
    """
    Body of PATCH /api/snippets/{id}.

    Partial: only keys present in the request are applied. Sending null for
    a non-nullable field (title, bodies, isPublic) leaves it unchanged.
    """
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    html: Optional[str] = None
    css: Optional[str] = None
    javascript: Optional[str] = None
    is_public: Optional[bool] = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Title is required")
        return v

    def changes(self) -> dict:
        """Field → value for every key the client actually sent."""
        sent = self.model_dump(exclude_unset=True)
        return {
            key: value
            for key, value in sent.items()
            if value is not None or key == "description"
        }


class AuthorSummary(CamelModel):
    id: str
    username: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    profile_picture: Optional[str] = None


class SnippetResponse(CamelModel):
    id: str
    title: str
    description: Optional[str] = None
    html: str
    css: str
    javascript: str
    is_public: bool
    author_id: str
    views: int
    likes: int
    created_at: datetime
    updated_at: datetime


class SnippetWithAuthor(SnippetResponse):
    author: AuthorSummary
    is_liked: Optional[bool] = Field(
        default=None,
        description="Set for signed-in viewers; null for anonymous requests",
    )
