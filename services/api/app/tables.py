from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID


METADATA = sa.MetaData()

properties = sa.Table(
    "properties",
    METADATA,
    sa.Column("property_id", UUID(as_uuid=True), primary_key=True),
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
    sa.Column("amenities", JSONB, nullable=False),
    sa.Column("status", sa.Text(), nullable=False),
    sa.Column("verified", sa.Boolean(), nullable=False),
    sa.Column("is_active", sa.Boolean(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
)

bookings = sa.Table(
    "bookings",
    METADATA,
    sa.Column("booking_id", UUID(as_uuid=True), primary_key=True),
    sa.Column("property_id", UUID(as_uuid=True), sa.ForeignKey("properties.property_id"), nullable=False),
    sa.Column("renter_id", sa.Text(), nullable=False),
    sa.Column("owner_id", sa.Text(), nullable=False),
    sa.Column("check_in", sa.Date(), nullable=False),
    sa.Column("check_out", sa.Date(), nullable=False),
    sa.Column("status", sa.Text(), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
)

conversations = sa.Table(
    "conversations",
    METADATA,
    sa.Column("conversation_id", UUID(as_uuid=True), primary_key=True),
    sa.Column("user_id", sa.Text(), nullable=False),
    sa.Column("type", sa.Text(), nullable=False),
    sa.Column("participant_id", sa.Text(), nullable=True),
    sa.Column(
        "property_id",
        UUID(as_uuid=True),
        sa.ForeignKey("properties.property_id", ondelete="SET NULL"),
        nullable=True,
    ),
    sa.Column("last_message", sa.Text(), nullable=False),
    sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=False),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
)

messages = sa.Table(
    "messages",
    METADATA,
    sa.Column("message_id", UUID(as_uuid=True), primary_key=True),
    sa.Column(
        "conversation_id", UUID(as_uuid=True), sa.ForeignKey("conversations.conversation_id"), nullable=False
    ),
    sa.Column("sender_id", sa.Text(), nullable=False),
    sa.Column("content", sa.Text(), nullable=False),
    sa.Column("message_type", sa.Text(), nullable=False),
    sa.Column("is_ai", sa.Boolean(), nullable=False),
    sa.Column("metadata", JSONB, nullable=False),
    sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
    sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
    sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
)
