"""Create Snipply schema

Revision ID: 001
Revises: None
Create Date: 2026-10-18 00:00:00.000000+00:00

What:  Creates users, snippets, snippet_likes, snippet_views, follows and
       notifications with their constraints and indexes.

Server defaults mirror the Python-side defaults in snipply.models so rows
inserted outside the application get the same values.

Rollback: downgrade() drops every table and the user_rank enum (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

NOW = sa.text("CURRENT_TIMESTAMP")


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("username", sa.Text(), nullable=False),
        sa.Column("password", sa.Text(), nullable=False, comment="bcrypt hash"),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("display_name", sa.Text(), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("location", sa.Text(), nullable=True),
        sa.Column("website", sa.Text(), nullable=True),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("profile_picture", sa.Text(), nullable=True),
        sa.Column(
            "rank",
            sa.Enum("default", "admin", name="user_rank"),
            nullable=False,
            server_default=sa.text("'default'"),
        ),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=NOW),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("username"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("idx_users_created_at", "users", [sa.text("created_at DESC")])

    # ── snippets ──────────────────────────────────────────────────────────
    op.create_table(
        "snippets",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("html", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("css", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("javascript", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("author_id", sa.String(36), nullable=False),
        sa.Column("views", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("likes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=NOW),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=NOW),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["author_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_snippets_author_id", "snippets", ["author_id"])
    op.create_index("idx_snippets_created_at", "snippets", [sa.text("created_at DESC")])
    op.create_index("idx_snippets_public_created", "snippets", ["is_public", "created_at"])

    # ── snippet_likes ─────────────────────────────────────────────────────
    op.create_table(
        "snippet_likes",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("snippet_id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=NOW),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["snippet_id"], ["snippets.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("snippet_id", "user_id", name="uq_snippet_likes_snippet_user"),
    )
    op.create_index("idx_snippet_likes_user", "snippet_likes", ["user_id"])

    # ── snippet_views ─────────────────────────────────────────────────────
    op.create_table(
        "snippet_views",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("snippet_id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=NOW),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["snippet_id"], ["snippets.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_snippet_views_snippet_user", "snippet_views", ["snippet_id", "user_id"])
    op.create_index("idx_snippet_views_snippet_ip", "snippet_views", ["snippet_id", "ip_address"])

    # ── follows ───────────────────────────────────────────────────────────
    op.create_table(
        "follows",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("follower_id", sa.String(36), nullable=False),
        sa.Column("following_id", sa.String(36), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=NOW),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["follower_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["following_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("follower_id", "following_id", name="uq_follows_pair"),
        sa.CheckConstraint("follower_id <> following_id", name="ck_follows_not_self"),
    )
    op.create_index("idx_follows_following", "follows", ["following_id"])

    # ── notifications ─────────────────────────────────────────────────────
    op.create_table(
        "notifications",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("snippet_id", sa.String(36), nullable=True),
        sa.Column("from_user_id", sa.String(36), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False, server_default=NOW),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["snippet_id"], ["snippets.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["from_user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "idx_notifications_user_created",
        "notifications",
        ["user_id", sa.text("created_at DESC")],
    )


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("follows")
    op.drop_table("snippet_views")
    op.drop_table("snippet_likes")
    op.drop_table("snippets")
    op.drop_table("users")
    sa.Enum(name="user_rank").drop(op.get_bind(), checkfirst=True)
