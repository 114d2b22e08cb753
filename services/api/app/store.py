"""
Record types and the storage contracts the marketplace logic is written against.

Search, the assistant and the booking rules only ever see these protocols; the SQL
implementations live in `repository.py` and tests use in-memory doubles.
"""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Protocol
from uuid import UUID


PROPERTY_TYPES = ("house", "flat_apartment")
LISTING_STATUSES = ("pending", "approved", "rejected")
BOOKING_STATUSES = ("pending", "confirmed", "cancelled")
CONVERSATION_TYPES = ("ai_chat", "renter_owner")


@dataclass(frozen=True)
class PropertyRecord:
    property_id: UUID
    owner_id: str
    title: str
    type: str
    location: str
    price: int
    bedrooms: int
    bathrooms: int
    area_sqft: int
    owner_name: str = ""
    description: str = ""
    image: str | None = None
    amenities: tuple[str, ...] = ()
    status: str = "pending"
    verified: bool = False
    is_active: bool = True
    created_at: datetime | None = None

    @property
    def is_live(self) -> bool:
        return self.status == "approved" and self.is_active


@dataclass(frozen=True)
class BookingRecord:
    booking_id: UUID
    property_id: UUID
    renter_id: str
    owner_id: str
    check_in: date
    check_out: date
    status: str = "pending"
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class ConversationRecord:
    conversation_id: UUID
    user_id: str
    type: str = "ai_chat"
    # Second party of a renter_owner conversation; None for ai_chat.
    participant_id: str | None = None
    property_id: UUID | None = None
    last_message: str = ""
    last_message_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def participants(self) -> tuple[str, ...]:
        return (self.user_id,) if self.participant_id is None else (self.user_id, self.participant_id)


@dataclass(frozen=True)
class MessageRecord:
    message_id: UUID
    conversation_id: UUID
    sender_id: str
    content: str
    message_type: str = "text"
    is_ai: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)
    read: bool = False
    read_at: datetime | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class PropertyFilters:
    location: str | None = None
    min_price: int | None = None
    max_price: int | None = None
    type: str | None = None
    min_bedrooms: int | None = None
    verified_only: bool = False


@dataclass(frozen=True)
class NewProperty:
    owner_id: str
    owner_name: str
    title: str
    type: str
    location: str
    price: int
    bedrooms: int
    bathrooms: int
    area_sqft: int
    description: str
    image: str | None = None
    amenities: tuple[str, ...] = ()


@dataclass(frozen=True)
class ListingStats:
    total: int = 0
    approved: int = 0
    pending: int = 0
    rejected: int = 0
    active: int = 0
    new_this_month: int = 0


@dataclass(frozen=True)
class BookingStats:
    total: int = 0
    pending: int = 0
    confirmed: int = 0
    cancelled: int = 0
    this_month: int = 0


class PropertyStore(Protocol):
    async def count_live(self) -> int: ...

    async def find_live(
        self,
        filters: PropertyFilters,
        *,
        limit: int,
        offset: int = 0,
        sort_by: str = "newest",
    ) -> list[PropertyRecord]: ...

    async def count_live_matching(self, filters: PropertyFilters) -> int: ...

    async def get_property(self, property_id: UUID) -> PropertyRecord | None: ...

    async def list_by_owner(self, owner_id: str) -> list[PropertyRecord]: ...

    async def list_by_status(self, status: str | None) -> list[PropertyRecord]: ...

    async def create_property(self, new: NewProperty) -> PropertyRecord: ...

    async def set_listing_status(
        self, property_id: UUID, status: str, verified: bool | None = None
    ) -> PropertyRecord | None: ...

    def listing_lock(self, property_id: UUID) -> AbstractAsyncContextManager[None]:
        """Hold the same per-property lock booking writes take, so a delete cannot race a new booking."""
        ...

    async def update_property(self, property_id: UUID, changes: dict[str, Any]) -> PropertyRecord | None: ...

    async def has_open_bookings(self, property_id: UUID, today: date) -> bool: ...

    async def delete_property(self, property_id: UUID) -> None: ...

    async def listing_stats(self, since: datetime) -> ListingStats: ...


class BookingStore(Protocol):
    def property_lock(self, property_id: UUID) -> AbstractAsyncContextManager[None]:
        """Serialize booking writes for one property until the block exits."""
        ...

    async def get_property(self, property_id: UUID) -> PropertyRecord | None: ...

    async def find_overlapping(
        self,
        property_id: UUID,
        check_in: date,
        check_out: date,
        exclude_booking_id: UUID | None = None,
    ) -> BookingRecord | None: ...

    async def create_booking(
        self, property_id: UUID, renter_id: str, owner_id: str, check_in: date, check_out: date
    ) -> BookingRecord: ...

    async def get_booking(self, booking_id: UUID) -> BookingRecord | None: ...

    async def set_booking_status(self, booking_id: UUID, status: str) -> BookingRecord: ...

    async def list_for_renter(self, renter_id: str) -> list[BookingRecord]: ...

    async def list_for_owner(self, owner_id: str) -> list[BookingRecord]: ...

    async def list_for_property(self, property_id: UUID) -> list[BookingRecord]: ...

    async def list_all(self, status: str | None, *, limit: int, offset: int) -> tuple[list[BookingRecord], int]: ...

    async def booking_stats(self, since: datetime) -> BookingStats: ...


class ConversationStore(Protocol):
    async def get_conversation(self, conversation_id: UUID) -> ConversationRecord | None: ...

    async def create_conversation(
        self,
        user_id: str,
        first_message: str,
        *,
        type: str = "ai_chat",
        participant_id: str | None = None,
        property_id: UUID | None = None,
    ) -> ConversationRecord: ...

    async def find_direct_conversation(
        self, user_a: str, user_b: str, property_id: UUID | None
    ) -> ConversationRecord | None: ...

    async def list_conversations(self, user_id: str, type: str | None = None) -> list[ConversationRecord]: ...

    async def append_message(
        self,
        conversation_id: UUID,
        sender_id: str,
        content: str,
        *,
        message_type: str,
        is_ai: bool,
        metadata: dict[str, Any] | None = None,
    ) -> MessageRecord: ...

    async def touch_conversation(self, conversation_id: UUID, last_message: str) -> ConversationRecord: ...

    async def list_messages(
        self, conversation_id: UUID, *, limit: int | None = None, offset: int = 0
    ) -> list[MessageRecord]: ...

    async def count_messages(self, conversation_id: UUID) -> int: ...

    async def get_message(self, message_id: UUID) -> MessageRecord | None: ...

    async def mark_read(self, message_id: UUID) -> MessageRecord: ...
