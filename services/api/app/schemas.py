from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


# --- Assistant ---


class AssistantQueryRequest(StrictModel):
    query: str = Field(min_length=3, max_length=500)


class ChatRequest(StrictModel):
    message: str = Field(min_length=1, max_length=500)
    conversation_id: UUID | None = None


class FairFlexOut(StrictModel):
    has_fair_flex: bool
    duration: int
    discount_rate: float
    discounted_price: int
    monthly_savings: int
    total_savings: int


class PropertyOut(StrictModel):
    property_id: UUID
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
    amenities: list[str] = Field(default_factory=list)
    status: str
    verified: bool
    is_active: bool
    created_at: datetime | None = None

    # Derived on every read; never stored.
    confidence_score: int | None = None
    best_for: str | None = None
    fair_flex_savings: FairFlexOut | None = None


class ParsedQueryOut(StrictModel):
    location: str | None = None
    min_price: int | None = None
    max_price: int | None = None
    type: str | None = None
    bedrooms: int | None = None
    duration: int | None = None
    preferences: list[str] = Field(default_factory=list)


class AssistantReplyOut(StrictModel):
    type: str
    message: str
    properties: list[PropertyOut] = Field(default_factory=list)
    parsed_query: ParsedQueryOut | None = None


class ConversationOut(StrictModel):
    conversation_id: UUID
    user_id: str
    type: str
    participant_id: str | None = None
    property_id: UUID | None = None
    last_message: str
    last_message_at: datetime | None = None
    created_at: datetime | None = None


class MessageOut(StrictModel):
    message_id: UUID
    conversation_id: UUID
    sender_id: str
    content: str
    message_type: str
    is_ai: bool
    metadata: dict = Field(default_factory=dict)
    read: bool = False
    read_at: datetime | None = None
    created_at: datetime | None = None


class ChatResponse(StrictModel):
    conversation: ConversationOut
    user_message: MessageOut
    ai_message: MessageOut
    response: AssistantReplyOut


class MessageListResponse(StrictModel):
    conversation_id: UUID
    messages: list[MessageOut]


# --- Listings ---


class PropertyCreateRequest(StrictModel):
    title: str = Field(min_length=1, max_length=100)
    type: Literal["house", "flat_apartment"]
    location: str = Field(min_length=1, max_length=100)
    price: Annotated[int, Field(gt=0)]
    bedrooms: Annotated[int, Field(ge=0, le=50)]
    bathrooms: Annotated[int, Field(ge=0, le=50)]
    area_sqft: Annotated[int, Field(gt=0)]
    description: str = Field(min_length=1, max_length=2000)
    owner_name: str = Field(min_length=1, max_length=100)
    image: str | None = None
    amenities: list[str] = Field(default_factory=list)


class PropertyListResponse(StrictModel):
    count: int
    total: int
    page: int
    pages: int
    properties: list[PropertyOut]


class PropertyUpdateRequest(StrictModel):
    title: str | None = Field(default=None, min_length=1, max_length=100)
    type: Literal["house", "flat_apartment"] | None = None
    location: str | None = Field(default=None, min_length=1, max_length=100)
    price: Annotated[int, Field(gt=0)] | None = None
    bedrooms: Annotated[int, Field(ge=0, le=50)] | None = None
    bathrooms: Annotated[int, Field(ge=0, le=50)] | None = None
    area_sqft: Annotated[int, Field(gt=0)] | None = None
    description: str | None = Field(default=None, min_length=1, max_length=2000)
    image: str | None = None
    amenities: list[str] | None = None
    is_active: bool | None = None


class ListingStatusRequest(StrictModel):
    status: Literal["approved", "rejected"]
    verified: bool | None = None


# --- Bookings ---


class BookingCreateRequest(StrictModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    property: UUID
    check_in_date: date = Field(alias="checkInDate")
    check_out_date: date = Field(alias="checkOutDate")


class BookingStatusRequest(StrictModel):
    # Plain string: legacy aliases ("approved"/"rejected") are mapped by the booking rules.
    status: str = Field(min_length=1, max_length=32)


class BookingOut(StrictModel):
    booking_id: UUID
    property_id: UUID
    renter_id: str
    owner_id: str
    check_in: date
    check_out: date
    status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class BookingListResponse(StrictModel):
    count: int
    bookings: list[BookingOut]


class AdminBookingListResponse(StrictModel):
    count: int
    total: int
    page: int
    pages: int
    bookings: list[BookingOut]




class ListingStatsOut(StrictModel):
    total: int
    approved: int
    pending: int
    rejected: int
    active: int
    new_this_month: int


class BookingStatsOut(StrictModel):
    total: int
    pending: int
    confirmed: int
    cancelled: int
    this_month: int


class AdminStatsOut(StrictModel):
    properties: ListingStatsOut
    bookings: BookingStatsOut


# --- Direct messaging ---


class ConversationCreateRequest(StrictModel):
    participant_id: str = Field(min_length=1, max_length=128)
    property_id: UUID | None = None


class ConversationListResponse(StrictModel):
    count: int
    conversations: list[ConversationOut]


class MessageCreateRequest(StrictModel):
    conversation_id: UUID
    content: str = Field(min_length=1, max_length=2000)


class MessagePageResponse(StrictModel):
    count: int
    total: int
    page: int
    pages: int
    messages: list[MessageOut]
