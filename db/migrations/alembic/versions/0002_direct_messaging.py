"""direct renter-owner messaging

Revision ID: 0002_direct_messaging
Revises: 0001_init_schema
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0002_direct_messaging"
down_revision = "0001_init_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("conversations", sa.Column("participant_id", sa.Text(), nullable=True))
    op.add_column("conversations", sa.Column("property_id", postgresql.UUID(as_uuid=True), nullable=True))
    op.create_foreign_key(
        "fk_conversations_property",
        "conversations",
        "properties",
        ["property_id"],
        ["property_id"],
        ondelete="SET NULL",
    )
    op.create_check_constraint(
        "ck_conversations_type", "conversations", "type IN ('ai_chat', 'renter_owner')"
    )
    op.create_check_constraint(
        "ck_conversations_participant",
        "conversations",
        "(type = 'ai_chat') = (participant_id IS NULL)",
    )

    op.add_column("messages", sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()))
    op.add_column("messages", sa.Column("read_at", sa.DateTime(timezone=True), nullable=True))

    op.create_index("idx_conversations_participant", "conversations", ["participant_id", "last_message_at"])


def downgrade() -> None:
    op.drop_index("idx_conversations_participant", table_name="conversations")

    op.drop_column("messages", "read_at")
    op.drop_column("messages", "read")

    op.drop_constraint("ck_conversations_participant", "conversations", type_="check")
    op.drop_constraint("ck_conversations_type", "conversations", type_="check")
    op.drop_constraint("fk_conversations_property", "conversations", type_="foreignkey")
    op.drop_column("conversations", "property_id")
    op.drop_column("conversations", "participant_id")
