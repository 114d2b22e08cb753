from __future__ import annotations

import math
import time
from dataclasses import asdict
from datetime import UTC, date, datetime
from typing import Literal
from uuid import UUID, uuid4

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession

from services.api.app.assistant import AssistantReply, generate_reply
from services.api.app.bookings import BookingRejected, create_booking, update_booking_status
from services.api.app.db import ENGINE, get_session, ping
from services.api.app.listings import (
    ListingRejected,
    browse_listings,
    delete_listing,
    ensure_visible,
    moderate_listing,
    update_listing,
)
from services.api.app.logging import bind_request_context, configure_logging, logger
from services.api.app.messaging import (
    MessagingRejected,
    ensure_participant,
    list_conversation_messages,
    mark_message_read,
    open_direct_conversation,
    send_message,
)
from services.api.app.observability import (
    ASSISTANT_REPLY_TOTAL,
    BOOKING_CREATED_TOTAL,
    BOOKING_REJECTED_TOTAL,
    SEARCH_LATENCY,
    add_metrics_middleware,
    instrument_sqlalchemy,
    setup_tracing,
)
from services.api.app.query_parser import STAY_DURATIONS
from services.api.app.repository import SqlBookingStore, SqlConversationStore, SqlPropertyStore
from services.api.app.schemas import (
    AdminBookingListResponse,
    AdminStatsOut,
    AssistantQueryRequest,
    AssistantReplyOut,
    BookingCreateRequest,
    BookingListResponse,
    BookingOut,
    BookingStatsOut,
    BookingStatusRequest,
    ChatRequest,
    ChatResponse,
    ConversationCreateRequest,
    ConversationListResponse,
    ConversationOut,
    FairFlexOut,
    ListingStatsOut,
    ListingStatusRequest,
    MessageCreateRequest,
    MessageListResponse,
    MessageOut,
    MessagePageResponse,
    ParsedQueryOut,
    PropertyCreateRequest,
    PropertyListResponse,
    PropertyOut,
    PropertyUpdateRequest,
)
from services.api.app.scoring import ScoredProperty, score_property
from services.api.app.settings import SETTINGS
from services.api.app.store import (
    BookingRecord,
    BookingStore,
    ConversationRecord,
    ConversationStore,
    MessageRecord,
    NewProperty,
    PropertyFilters,
    PropertyRecord,
    PropertyStore,
)


app = FastAPI(title="RentNest API", version="0.1.0")
configure_logging(SETTINGS.log_level)
if SETTINGS.otel_enabled:
    setup_tracing(app, service_name="rentnest-api")
    instrument_sqlalchemy(ENGINE)
add_metrics_middleware(app, service_name="rentnest-api")

app.add_middleware(
    CORSMiddleware,
    allow_origins=SETTINGS.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or uuid4().hex
    bind_request_context(
        request_id, method=request.method, path=request.url.path, user_id=request.headers.get("x-user-id")
    )
    response = await call_next(request)
    response.headers["X-Request-Id"] = request_id
    return response


# --- Dependencies ---


def get_property_store(session: AsyncSession = Depends(get_session)) -> PropertyStore:
    return SqlPropertyStore(session)


def get_booking_store(session: AsyncSession = Depends(get_session)) -> BookingStore:
    return SqlBookingStore(session)


def get_conversation_store(session: AsyncSession = Depends(get_session)) -> ConversationStore:
    return SqlConversationStore(session)


def require_user(x_user_id: str | None = Header(default=None)) -> str:
    # Identity is established by the upstream gateway and forwarded as a header.
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Not authorized to access this route")
    return x_user_id.strip()


def optional_user(x_user_id: str | None = Header(default=None)) -> str | None:
    return x_user_id.strip() if x_user_id and x_user_id.strip() else None


def _is_admin(x_admin_token: str | None) -> bool:
    return bool(x_admin_token) and x_admin_token == SETTINGS.admin_token


def _require_admin(x_admin_token: str | None) -> None:
    if not _is_admin(x_admin_token):
        raise HTTPException(status_code=403, detail="forbidden")


# --- Payload mapping ---


def _scored_out(scored: ScoredProperty) -> PropertyOut:
    p = scored.record
    return PropertyOut(
        property_id=p.property_id,
        owner_id=p.owner_id,
        owner_name=p.owner_name,
        title=p.title,
        type=p.type,
        location=p.location,
        price=p.price,
        bedrooms=p.bedrooms,
        bathrooms=p.bathrooms,
        area_sqft=p.area_sqft,
        description=p.description,
        image=p.image,
        amenities=list(p.amenities),
        status=p.status,
        verified=p.verified,
        is_active=p.is_active,
        created_at=p.created_at,
        confidence_score=scored.confidence_score,
        best_for=scored.best_for,
        fair_flex_savings=FairFlexOut(**scored.fair_flex_savings.to_dict()),
    )


def _stay_months(duration: int | None) -> int:
    if duration is None:
        return SETTINGS.default_stay_months
    if duration not in STAY_DURATIONS:
        raise HTTPException(status_code=400, detail="duration must be one of 1, 3, 6, 12 months")
    return duration


def _record_out(prop: PropertyRecord, duration: int | None = None) -> PropertyOut:
    return _scored_out(score_property(prop, duration or SETTINGS.default_stay_months))


def _reply_out(reply: AssistantReply) -> AssistantReplyOut:
    return AssistantReplyOut(
        type=reply.type,
        message=reply.message,
        properties=[_scored_out(s) for s in reply.properties],
        parsed_query=ParsedQueryOut(**reply.parsed_query.to_dict()) if reply.parsed_query else None,
    )


def _booking_out(b: BookingRecord) -> BookingOut:
    return BookingOut(
        booking_id=b.booking_id,
        property_id=b.property_id,
        renter_id=b.renter_id,
        owner_id=b.owner_id,
        check_in=b.check_in,
        check_out=b.check_out,
        status=b.status,
        created_at=b.created_at,
        updated_at=b.updated_at,
    )


def _conversation_out(c: ConversationRecord) -> ConversationOut:
    return ConversationOut(
        conversation_id=c.conversation_id,
        user_id=c.user_id,
        type=c.type,
        participant_id=c.participant_id,
        property_id=c.property_id,
        last_message=c.last_message,
        last_message_at=c.last_message_at,
        created_at=c.created_at,
    )


def _message_out(m: MessageRecord) -> MessageOut:
    return MessageOut(
        message_id=m.message_id,
        conversation_id=m.conversation_id,
        sender_id=m.sender_id,
        content=m.content,
        message_type=m.message_type,
        is_ai=m.is_ai,
        metadata=m.metadata,
        read=m.read,
        read_at=m.read_at,
        created_at=m.created_at,
    )


def _booking_http_error(e: BookingRejected, **ctx) -> HTTPException:
    BOOKING_REJECTED_TOTAL.labels(e.code).inc()
    logger.info("booking_rejected", reason=e.code, status_code=e.status_code, **ctx)
    return HTTPException(status_code=e.status_code, detail=e.reason)


async def _assistant_reply(store: PropertyStore, text: str) -> AssistantReply:
    t0 = time.perf_counter()
    reply = await generate_reply(
        store,
        text,
        max_results=SETTINGS.max_search_results,
        max_attached=SETTINGS.max_reply_properties,
        default_duration=SETTINGS.default_stay_months,
    )
    SEARCH_LATENCY.labels("assistant").observe((time.perf_counter() - t0) * 1000.0)
    ASSISTANT_REPLY_TOTAL.labels(reply.type).inc()
    logger.info("assistant_reply", response_type=reply.type, properties=len(reply.properties))
    return reply


# --- Health ---


@app.get("/healthz")
async def healthz(session: AsyncSession = Depends(get_session)) -> dict:
    await ping(session)
    return {"ok": True}


# --- Assistant ---


@app.post("/ai/search", response_model=AssistantReplyOut)
async def ai_search(req: AssistantQueryRequest, store: PropertyStore = Depends(get_property_store)) -> AssistantReplyOut:
    reply = await _assistant_reply(store, req.query)
    return _reply_out(reply)


@app.post("/ai/chat", response_model=ChatResponse)
async def ai_chat(
    req: ChatRequest,
    user_id: str = Depends(require_user),
    store: PropertyStore = Depends(get_property_store),
    conversations: ConversationStore = Depends(get_conversation_store),
) -> ChatResponse:
    conversation = None
    if req.conversation_id:
        conversation = await conversations.get_conversation(req.conversation_id)
        if conversation is None or conversation.type != "ai_chat" or conversation.user_id != user_id:
            raise HTTPException(status_code=404, detail="Conversation not found")

    # Reply before any write: a failed turn must not leave an empty conversation behind.
    reply = await _assistant_reply(store, req.message)
    if conversation is None:
        conversation = await conversations.create_conversation(user_id, req.message)

    user_message = await conversations.append_message(
        conversation.conversation_id, user_id, req.message, message_type="text", is_ai=False
    )
    # AI messages are attributed to the conversation's user; is_ai marks the author.
    ai_message = await conversations.append_message(
        conversation.conversation_id,
        user_id,
        reply.message,
        message_type="property_suggestion" if reply.type == "property_search" else "ai_response",
        is_ai=True,
        metadata={
            "response_type": reply.type,
            "property_ids": [str(s.record.property_id) for s in reply.properties],
        },
    )
    conversation = await conversations.touch_conversation(conversation.conversation_id, reply.message)

    logger.info("chat_turn_saved", conversation_id=str(conversation.conversation_id), response_type=reply.type)
    return ChatResponse(
        conversation=_conversation_out(conversation),
        user_message=_message_out(user_message),
        ai_message=_message_out(ai_message),
        response=_reply_out(reply),
    )


@app.get("/ai/conversations/{conversation_id}/messages", response_model=MessageListResponse)
async def ai_conversation_messages(
    conversation_id: UUID,
    user_id: str = Depends(require_user),
    conversations: ConversationStore = Depends(get_conversation_store),
) -> MessageListResponse:
    conversation = await conversations.get_conversation(conversation_id)
    if conversation is None or conversation.user_id != user_id:
        raise HTTPException(status_code=404, detail="Conversation not found")
    msgs = await conversations.list_messages(conversation_id)
    return MessageListResponse(conversation_id=conversation_id, messages=[_message_out(m) for m in msgs])


# --- Listings ---


@app.post("/properties", response_model=PropertyOut, status_code=201)
async def create_property(
    req: PropertyCreateRequest,
    owner_id: str = Depends(require_user),
    store: PropertyStore = Depends(get_property_store),
) -> PropertyOut:
    prop = await store.create_property(
        NewProperty(
            owner_id=owner_id,
            owner_name=req.owner_name,
            title=req.title.strip(),
            type=req.type,
            location=req.location.strip(),
            price=req.price,
            bedrooms=req.bedrooms,
            bathrooms=req.bathrooms,
            area_sqft=req.area_sqft,
            description=req.description.strip(),
            image=req.image,
            amenities=tuple(req.amenities),
        )
    )
    logger.info("property_created", property_id=str(prop.property_id), owner_id=owner_id)
    return _record_out(prop)


@app.get("/properties", response_model=PropertyListResponse)
async def list_properties(
    type: Literal["house", "flat_apartment"] | None = None,
    location: str | None = Query(default=None, max_length=100),
    min_price: int | None = Query(default=None, ge=0),
    max_price: int | None = Query(default=None, ge=0),
    bedrooms: int | None = Query(default=None, ge=0),
    verified: bool = False,
    sort_by: Literal["newest", "oldest", "price_asc", "price_desc"] = "newest",
    duration: int | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=SETTINGS.default_page_size, ge=1, le=SETTINGS.max_page_size),
    store: PropertyStore = Depends(get_property_store),
) -> PropertyListResponse:
    filters = PropertyFilters(
        location=location.strip() if location and location.strip() else None,
        min_price=min_price,
        max_price=max_price,
        type=type,
        min_bedrooms=bedrooms,
        verified_only=verified,
    )
    t0 = time.perf_counter()
    try:
        scored, total = await browse_listings(
            store,
            filters,
            sort_by=sort_by,
            page=page,
            limit=limit,
            duration=_stay_months(duration),
        )
    except ListingRejected as e:
        raise HTTPException(status_code=e.status_code, detail=e.reason) from e
    SEARCH_LATENCY.labels("browse").observe((time.perf_counter() - t0) * 1000.0)
    return PropertyListResponse(
        count=len(scored),
        total=total,
        page=page,
        pages=math.ceil(total / limit),
        properties=[_scored_out(s) for s in scored],
    )


@app.get("/properties/mine", response_model=list[PropertyOut])
async def list_my_properties(
    owner_id: str = Depends(require_user),
    store: PropertyStore = Depends(get_property_store),
) -> list[PropertyOut]:
    return [_record_out(p) for p in await store.list_by_owner(owner_id)]


@app.get("/properties/{property_id}", response_model=PropertyOut)
async def get_property(
    property_id: UUID,
    duration: int | None = None,
    viewer_id: str | None = Depends(optional_user),
    x_admin_token: str | None = Header(default=None),
    store: PropertyStore = Depends(get_property_store),
) -> PropertyOut:
    try:
        prop = ensure_visible(await store.get_property(property_id), viewer_id, is_admin=_is_admin(x_admin_token))
    except ListingRejected as e:
        raise HTTPException(status_code=e.status_code, detail=e.reason) from e
    return _record_out(prop, _stay_months(duration))


@app.put("/properties/{property_id}", response_model=PropertyOut)
async def update_property(
    property_id: UUID,
    req: PropertyUpdateRequest,
    user_id: str = Depends(require_user),
    x_admin_token: str | None = Header(default=None),
    store: PropertyStore = Depends(get_property_store),
) -> PropertyOut:
    changes = req.model_dump(exclude_none=True)
    for key in ("title", "location", "description"):
        if key in changes:
            changes[key] = changes[key].strip()
    try:
        prop = await update_listing(store, property_id, user_id, changes, is_admin=_is_admin(x_admin_token))
    except ListingRejected as e:
        raise HTTPException(status_code=e.status_code, detail=e.reason) from e
    logger.info("property_updated", property_id=str(property_id), fields=sorted(changes))
    return _record_out(prop)


@app.delete("/properties/{property_id}", status_code=204)
async def delete_property(
    property_id: UUID,
    user_id: str = Depends(require_user),
    x_admin_token: str | None = Header(default=None),
    store: PropertyStore = Depends(get_property_store),
) -> None:
    try:
        await delete_listing(
            store, property_id, user_id, today=date.today(), is_admin=_is_admin(x_admin_token)
        )
    except ListingRejected as e:
        raise HTTPException(status_code=e.status_code, detail=e.reason) from e
    logger.info("property_deleted", property_id=str(property_id), user_id=user_id)


# --- Bookings ---


@app.post("/bookings", response_model=BookingOut, status_code=201)
async def post_booking(
    req: BookingCreateRequest,
    renter_id: str = Depends(require_user),
    store: BookingStore = Depends(get_booking_store),
) -> BookingOut:
    try:
        booking = await create_booking(store, renter_id, req.property, req.check_in_date, req.check_out_date)
    except BookingRejected as e:
        raise _booking_http_error(e, property_id=str(req.property)) from e
    BOOKING_CREATED_TOTAL.inc()
    logger.info("booking_created", booking_id=str(booking.booking_id), property_id=str(booking.property_id))
    return _booking_out(booking)


@app.get("/bookings/my", response_model=BookingListResponse)
async def my_bookings(
    renter_id: str = Depends(require_user),
    store: BookingStore = Depends(get_booking_store),
) -> BookingListResponse:
    data = await store.list_for_renter(renter_id)
    return BookingListResponse(count=len(data), bookings=[_booking_out(b) for b in data])


@app.get("/bookings/owner", response_model=BookingListResponse)
async def owner_bookings(
    owner_id: str = Depends(require_user),
    store: BookingStore = Depends(get_booking_store),
) -> BookingListResponse:
    data = await store.list_for_owner(owner_id)
    return BookingListResponse(count=len(data), bookings=[_booking_out(b) for b in data])


@app.get("/bookings/property/{property_id}", response_model=BookingListResponse)
async def property_bookings(
    property_id: UUID,
    user_id: str = Depends(require_user),
    x_admin_token: str | None = Header(default=None),
    store: BookingStore = Depends(get_booking_store),
) -> BookingListResponse:
    prop = await store.get_property(property_id)
    if prop is None:
        raise HTTPException(status_code=404, detail="Property not found")
    if prop.owner_id != user_id and not _is_admin(x_admin_token):
        raise HTTPException(status_code=403, detail="You do not have permission to view bookings for this property")
    data = await store.list_for_property(property_id)
    return BookingListResponse(count=len(data), bookings=[_booking_out(b) for b in data])


@app.patch("/bookings/{booking_id}/status", response_model=BookingOut)
async def patch_booking_status(
    booking_id: UUID,
    req: BookingStatusRequest,
    user_id: str = Depends(require_user),
    x_admin_token: str | None = Header(default=None),
    store: BookingStore = Depends(get_booking_store),
) -> BookingOut:
    try:
        booking = await update_booking_status(
            store, booking_id, user_id, req.status, is_admin=_is_admin(x_admin_token)
        )
    except BookingRejected as e:
        raise _booking_http_error(e, booking_id=str(booking_id)) from e
    logger.info("booking_status_updated", booking_id=str(booking_id), status=booking.status)
    return _booking_out(booking)


# --- Admin ---


@app.get("/admin/properties", response_model=list[PropertyOut])
async def admin_properties(
    status: Literal["pending", "approved", "rejected"] | None = None,
    x_admin_token: str | None = Header(default=None),
    store: PropertyStore = Depends(get_property_store),
) -> list[PropertyOut]:
    _require_admin(x_admin_token)
    return [_record_out(p) for p in await store.list_by_status(status)]


@app.patch("/admin/properties/{property_id}/status", response_model=PropertyOut)
async def admin_moderate_property(
    property_id: UUID,
    req: ListingStatusRequest,
    x_admin_token: str | None = Header(default=None),
    store: PropertyStore = Depends(get_property_store),
) -> PropertyOut:
    _require_admin(x_admin_token)
    try:
        prop = await moderate_listing(store, property_id, req.status, req.verified)
    except ListingRejected as e:
        raise HTTPException(status_code=e.status_code, detail=e.reason) from e
    logger.info("property_moderated", property_id=str(property_id), status=prop.status, verified=prop.verified)
    return _record_out(prop)


@app.get("/admin/bookings", response_model=AdminBookingListResponse)
async def admin_bookings(
    status: Literal["pending", "confirmed", "cancelled"] | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=SETTINGS.default_page_size, ge=1, le=SETTINGS.max_page_size),
    x_admin_token: str | None = Header(default=None),
    store: BookingStore = Depends(get_booking_store),
) -> AdminBookingListResponse:
    _require_admin(x_admin_token)
    data, total = await store.list_all(status, limit=limit, offset=(page - 1) * limit)
    return AdminBookingListResponse(
        count=len(data),
        total=total,
        page=page,
        pages=math.ceil(total / limit),
        bookings=[_booking_out(b) for b in data],
    )


def _month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


@app.get("/admin/stats", response_model=AdminStatsOut)
async def admin_stats(
    x_admin_token: str | None = Header(default=None),
    properties: PropertyStore = Depends(get_property_store),
    bookings: BookingStore = Depends(get_booking_store),
) -> AdminStatsOut:
    _require_admin(x_admin_token)
    since = _month_start(datetime.now(tz=UTC))
    listing = await properties.listing_stats(since)
    booking = await bookings.booking_stats(since)
    return AdminStatsOut(
        properties=ListingStatsOut(**asdict(listing)),
        bookings=BookingStatsOut(**asdict(booking)),
    )


# --- Direct messaging ---


def _messaging_http_error(e: MessagingRejected) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.reason)


@app.post("/conversations", response_model=ConversationOut, status_code=201)
async def create_conversation(
    req: ConversationCreateRequest,
    response: Response,
    user_id: str = Depends(require_user),
    properties: PropertyStore = Depends(get_property_store),
    conversations: ConversationStore = Depends(get_conversation_store),
) -> ConversationOut:
    try:
        conversation, created = await open_direct_conversation(
            conversations, properties, user_id, req.participant_id, req.property_id
        )
    except MessagingRejected as e:
        raise _messaging_http_error(e) from e
    if created:
        logger.info("conversation_created", conversation_id=str(conversation.conversation_id))
    else:
        response.status_code = 200
    return _conversation_out(conversation)


@app.get("/conversations", response_model=ConversationListResponse)
async def list_conversations(
    type: Literal["ai_chat", "renter_owner"] | None = None,
    user_id: str = Depends(require_user),
    conversations: ConversationStore = Depends(get_conversation_store),
) -> ConversationListResponse:
    data = await conversations.list_conversations(user_id, type)
    return ConversationListResponse(count=len(data), conversations=[_conversation_out(c) for c in data])


@app.get("/conversations/{conversation_id}", response_model=ConversationOut)
async def get_conversation(
    conversation_id: UUID,
    user_id: str = Depends(require_user),
    conversations: ConversationStore = Depends(get_conversation_store),
) -> ConversationOut:
    try:
        conversation = ensure_participant(
            await conversations.get_conversation(conversation_id), user_id, "view this conversation"
        )
    except MessagingRejected as e:
        raise _messaging_http_error(e) from e
    return _conversation_out(conversation)


@app.post("/messages", response_model=MessageOut, status_code=201)
async def post_message(
    req: MessageCreateRequest,
    user_id: str = Depends(require_user),
    conversations: ConversationStore = Depends(get_conversation_store),
) -> MessageOut:
    try:
        message = await send_message(conversations, req.conversation_id, user_id, req.content)
    except MessagingRejected as e:
        raise _messaging_http_error(e) from e
    logger.info("message_sent", conversation_id=str(req.conversation_id), message_id=str(message.message_id))
    return _message_out(message)


@app.get("/messages", response_model=MessagePageResponse)
async def list_messages(
    conversation_id: UUID,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=100),
    user_id: str = Depends(require_user),
    conversations: ConversationStore = Depends(get_conversation_store),
) -> MessagePageResponse:
    try:
        data, total = await list_conversation_messages(
            conversations, conversation_id, user_id, page=page, limit=limit
        )
    except MessagingRejected as e:
        raise _messaging_http_error(e) from e
    return MessagePageResponse(
        count=len(data),
        total=total,
        page=page,
        pages=math.ceil(total / limit),
        messages=[_message_out(m) for m in data],
    )


@app.put("/messages/{message_id}/read", response_model=MessageOut)
async def read_message(
    message_id: UUID,
    user_id: str = Depends(require_user),
    conversations: ConversationStore = Depends(get_conversation_store),
) -> MessageOut:
    try:
        message = await mark_message_read(conversations, message_id, user_id)
    except MessagingRejected as e:
        raise _messaging_http_error(e) from e
    return _message_out(message)
