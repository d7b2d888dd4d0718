"""Create event log and community settings tables

Revision ID: 5c1e0a7d2b94
Revises:
Create Date: 2026-10-19 09:12:41.508113

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '5c1e0a7d2b94'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create messages, reactions, memberships and community_settings."""

    # --- messages ---
    op.create_table(
        "messages",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("community_id", sa.BigInteger, nullable=False),
        sa.Column("author_id", sa.BigInteger, nullable=False),
        sa.Column("channel_id", sa.BigInteger, nullable=False),
        sa.Column("content_length", sa.Integer, nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_messages_community_time", "messages", ["community_id", "occurred_at"])
    op.create_index("ix_messages_author_time", "messages", ["author_id", "occurred_at"])
    op.create_index("ix_messages_channel_time", "messages", ["channel_id", "occurred_at"])

    # --- reactions ---
    op.create_table(
        "reactions",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("community_id", sa.BigInteger, nullable=False),
        sa.Column("actor_id", sa.BigInteger, nullable=False),
        sa.Column("emoji_label", sa.String(100), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_reactions_community_time", "reactions", ["community_id", "occurred_at"])

    # --- memberships ---
    op.create_table(
        "memberships",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("community_id", sa.BigInteger, nullable=False),
        sa.Column("member_id", sa.BigInteger, nullable=False),
        sa.Column("action", sa.String(6), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_memberships_community_time", "memberships", ["community_id", "occurred_at"],
    )

    # --- community_settings ---
    op.create_table(
        "community_settings",
        sa.Column("community_id", sa.BigInteger, primary_key=True, autoincrement=False),
        sa.Column("tracking_enabled", sa.Boolean, nullable=False, server_default="1"),
        sa.Column("report_channel_id", sa.BigInteger, nullable=True),
        sa.Column("tracked_channel_ids", sa.JSON, nullable=False, server_default="[]"),
        sa.Column("notifications_enabled", sa.Boolean, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("community_settings")
    op.drop_index("ix_memberships_community_time", table_name="memberships")
    op.drop_table("memberships")
    op.drop_index("ix_reactions_community_time", table_name="reactions")
    op.drop_table("reactions")
    op.drop_index("ix_messages_channel_time", table_name="messages")
    op.drop_index("ix_messages_author_time", table_name="messages")
    op.drop_index("ix_messages_community_time", table_name="messages")
    op.drop_table("messages")
