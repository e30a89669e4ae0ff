"""
Snipply Backend — Snippet, Like and View Models
=================================================

What:  ORM models for `snippets`, `snippet_likes` and `snippet_views`.

Table Design:
    snippets
        - html / css / javascript: TEXT bodies, empty string by default
        - is_public: private snippets are visible to the author and admins
        - views / likes: denormalized counters kept in step with the
          snippet_views / snippet_likes rows
        - created_at DESC index: public listing and trending window
    snippet_likes
        - UNIQUE(snippet_id, user_id): one like per user per snippet
    snippet_views
        - one row per counted view; the identity is user_id when the viewer
          is signed in, ip_address otherwise
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    TIMESTAMP,
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from snipply.database import Base
from snipply.models.columns import new_id, utcnow


class Snippet(Base):
    """
    A saved HTML/CSS/JS code sample.

    Lifecycle:
        1. Created by a signed-in user (views=0, likes=0)
        2. Edited by its author only (updated_at refreshed)
        3. Counters change on views and likes
        4. Deleted by its author or an admin
    """

    __tablename__ = "snippets"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    html: Mapped[str] = mapped_column(Text, nullable=False, default="")
    css: Mapped[str] = mapped_column(Text, nullable=False, default="")
    javascript: Mapped[str] = mapped_column(Text, nullable=False, default="")
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    author_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    likes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("idx_snippets_created_at", created_at.desc()),
        Index("idx_snippets_public_created", "is_public", "created_at"),
    )

    @property
    def score(self) -> int:
        """Trending score."""
        return self.likes + self.views

    def __repr__(self) -> str:
        return (
            f"<Snippet(id={self.id}, title='{self.title}', "
            f"public={self.is_public}, likes={self.likes}, views={self.views})>"
        )


class SnippetLike(Base):
    __tablename__ = "snippet_likes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    snippet_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("snippets.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        UniqueConstraint("snippet_id", "user_id", name="uq_snippet_likes_snippet_user"),
        Index("idx_snippet_likes_user", "user_id"),
    )


class SnippetView(Base):
    __tablename__ = "snippet_views"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    snippet_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("snippets.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=True
    )
    ip_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        Index("idx_snippet_views_snippet_user", "snippet_id", "user_id"),
        Index("idx_snippet_views_snippet_ip", "snippet_id", "ip_address"),
    )
