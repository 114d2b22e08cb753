"""init schema

Revision ID: 0001_init_schema
Revises: None
Create Date: 2026-10-19
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_init_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "properties",
        sa.Column("property_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column("owner_name", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("location", sa.Text(), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("bedrooms", sa.Integer(), nullable=False),
        sa.Column("bathrooms", sa.Integer(), nullable=False),
        sa.Column("area_sqft", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("image", sa.Text(), nullable=True),
        sa.Column("amenities", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("verified", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("type IN ('house', 'flat_apartment')", name="ck_properties_type"),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="ck_properties_status"),
        sa.CheckConstraint("price > 0", name="ck_properties_price_positive"),
    )

    op.create_table(
        "bookings",
        sa.Column("booking_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "property_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("properties.property_id"), nullable=False
        ),
        sa.Column("renter_id", sa.Text(), nullable=False),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column("check_in", sa.Date(), nullable=False),
        sa.Column("check_out", sa.Date(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("status IN ('pending', 'confirmed', 'cancelled')", name="ck_bookings_status"),
        sa.CheckConstraint("check_out > check_in", name="ck_bookings_range"),
    )

    op.create_table(
        "conversations",
        sa.Column("conversation_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("last_message", sa.Text(), nullable=False),
        sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "messages",
        sa.Column("message_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "conversation_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("conversations.conversation_id"),
            nullable=False,
        ),
        sa.Column("sender_id", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("message_type", sa.Text(), nullable=False),
        sa.Column("is_ai", sa.Boolean(), nullable=False),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_index("idx_properties_status_active", "properties", ["status", "is_active"])
    op.create_index("idx_properties_location", "properties", ["location"])
    op.create_index("idx_properties_price", "properties", ["price"])
    op.create_index("idx_properties_owner", "properties", ["owner_id"])

    op.create_index("idx_bookings_property_dates", "bookings", ["property_id", "check_in", "check_out"])
    op.create_index("idx_bookings_renter", "bookings", ["renter_id"])
    op.create_index("idx_bookings_owner", "bookings", ["owner_id"])

    op.create_index("idx_conversations_user", "conversations", ["user_id", "last_message_at"])
    op.create_index("idx_messages_conversation_created", "messages", ["conversation_id", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_messages_conversation_created", table_name="messages")
    op.drop_index("idx_conversations_user", table_name="conversations")

    op.drop_index("idx_bookings_owner", table_name="bookings")
    op.drop_index("idx_bookings_renter", table_name="bookings")
    op.drop_index("idx_bookings_property_dates", table_name="bookings")

    op.drop_index("idx_properties_owner", table_name="properties")
    op.drop_index("idx_properties_price", table_name="properties")
    op.drop_index("idx_properties_location", table_name="properties")
    op.drop_index("idx_properties_status_active", table_name="properties")

    op.drop_table("messages")
    op.drop_table("conversations")
    op.drop_table("bookings")
    op.drop_table("properties")
