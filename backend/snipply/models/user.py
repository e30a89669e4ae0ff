"""
Snipply Backend — User SQLAlchemy Model
=========================================

What:  ORM model for the `users` table.
Who:   Read and written by both storage implementations; the in-memory
       storage keeps transient instances of the same class.

Table Design:
    - id: UUID4 string primary key
    - username / email: unique
    - password: bcrypt hash (attribute `password_hash`), never serialized
    - rank: 'default' | 'admin' (PostgreSQL enum `user_rank`)
    - created_at: UTC, indexed for the admin listing (newest first)
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import TIMESTAMP, Enum, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from snipply.database import Base
from snipply.models.columns import new_id, utcnow

RANK_DEFAULT = "default"
RANK_ADMIN = "admin"
USER_RANKS = (RANK_DEFAULT, RANK_ADMIN)


class User(Base):
    """
    A registered account.

    Lifecycle:
        1. Created at registration (rank='default', display_name=username)
        2. Mutated by profile edits and admin rank changes
        3. Deleted by an admin together with everything the user owns
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    username: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column("password", Text, nullable=False)
    email: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    display_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    location: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    website: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    avatar_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Inline data URL or external http(s) URL
    profile_picture: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rank: Mapped[str] = mapped_column(
        Enum(*USER_RANKS, name="user_rank"),
        nullable=False,
        default=RANK_DEFAULT,
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=utcnow,
    )

    __table_args__ = (
        Index("idx_users_created_at", created_at.desc()),
    )

    @property
    def is_admin(self) -> bool:
        return self.rank == RANK_ADMIN

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}', rank='{self.rank}')>"
