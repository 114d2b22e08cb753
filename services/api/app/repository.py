from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID, uuid4

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from services.api.app.store import (
    BookingRecord,
    BookingStats,
    ConversationRecord,
    ListingStats,
    MessageRecord,
    NewProperty,
    PropertyFilters,
    PropertyRecord,
)
from services.api.app.tables import bookings, conversations, messages, properties


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _property_from_row(r: Any) -> PropertyRecord:
    return PropertyRecord(
        property_id=r.property_id,
        owner_id=r.owner_id,
        owner_name=r.owner_name,
        title=r.title,
        type=r.type,
        location=r.location,
        price=int(r.price),
        bedrooms=int(r.bedrooms),
        bathrooms=int(r.bathrooms),
        area_sqft=int(r.area_sqft),
        description=r.description,
        image=r.image,
        amenities=tuple(r.amenities or ()),
        status=r.status,
        verified=bool(r.verified),
        is_active=bool(r.is_active),
        created_at=r.created_at,
    )


def _booking_from_row(r: Any) -> BookingRecord:
    return BookingRecord(
        booking_id=r.booking_id,
        property_id=r.property_id,
        renter_id=r.renter_id,
        owner_id=r.owner_id,
        check_in=r.check_in,
        check_out=r.check_out,
        status=r.status,
        created_at=r.created_at,
        updated_at=r.updated_at,
    )


def _conversation_from_row(r: Any) -> ConversationRecord:
    return ConversationRecord(
        conversation_id=r.conversation_id,
        user_id=r.user_id,
        type=r.type,
        participant_id=r.participant_id,
        property_id=r.property_id,
        last_message=r.last_message,
        last_message_at=r.last_message_at,
        created_at=r.created_at,
    )


def _message_from_row(r: Any) -> MessageRecord:
    return MessageRecord(
        message_id=r.message_id,
        conversation_id=r.conversation_id,
        sender_id=r.sender_id,
        content=r.content,
        message_type=r.message_type,
        is_ai=bool(r.is_ai),
        metadata=dict(r._mapping["metadata"] or {}),
        read=bool(r.read),
        read_at=r.read_at,
        created_at=r.created_at,
    )


@asynccontextmanager
async def _locked_property(session: AsyncSession, property_id: UUID) -> AsyncIterator[None]:
    # Row lock on the property; concurrent writers for the same property queue here
    # until this transaction commits or rolls back.
    await session.execute(
        sa.select(properties.c.property_id).where(properties.c.property_id == property_id).with_for_update()
    )
    try:
        yield
    except BaseException:
        await session.rollback()
        raise
    await session.commit()


_LIVE = sa.and_(properties.c.status == "approved", properties.c.is_active.is_(True))

_SORTS: dict[str, tuple[Any, ...]] = {
    "newest": (properties.c.created_at.desc(),),
    "oldest": (properties.c.created_at.asc(),),
    "price_asc": (properties.c.price.asc(), properties.c.created_at.desc()),
    "price_desc": (properties.c.price.desc(), properties.c.created_at.desc()),
}


def _filter_clauses(filters: PropertyFilters) -> list[Any]:
    """
    Translate search filters into WHERE clauses.

    Centralizing this keeps the assistant search and the listing endpoint on the same semantics.
    """
    where: list[Any] = [_LIVE]
    if filters.location:
        where.append(properties.c.location.icontains(filters.location, autoescape=True))
    if filters.min_price is not None:
        where.append(properties.c.price >= filters.min_price)
    if filters.max_price is not None:
        where.append(properties.c.price <= filters.max_price)
    if filters.type:
        where.append(properties.c.type == filters.type)
    if filters.min_bedrooms is not None:
        where.append(properties.c.bedrooms >= filters.min_bedrooms)
    if filters.verified_only:
        where.append(properties.c.verified.is_(True))
    return where


class SqlPropertyStore:
    def __init__(self, session: AsyncSession):
        self._session = session

    async def count_live(self) -> int:
        q = sa.select(sa.func.count()).select_from(properties).where(_LIVE)
        return int((await self._session.execute(q)).scalar_one())

    async def count_live_matching(self, filters: PropertyFilters) -> int:
        q = sa.select(sa.func.count()).select_from(properties).where(sa.and_(*_filter_clauses(filters)))
        return int((await self._session.execute(q)).scalar_one())

    async def find_live(
        self,
        filters: PropertyFilters,
        *,
        limit: int,
        offset: int = 0,
        sort_by: str = "newest",
    ) -> list[PropertyRecord]:
        q = (
            sa.select(properties)
            .where(sa.and_(*_filter_clauses(filters)))
            .order_by(*_SORTS.get(sort_by, _SORTS["newest"]))
            .limit(limit)
            .offset(offset)
        )
        rows = (await self._session.execute(q)).all()
        return [_property_from_row(r) for r in rows]

    async def get_property(self, property_id: UUID) -> PropertyRecord | None:
        q = sa.select(properties).where(properties.c.property_id == property_id)
        row = (await self._session.execute(q)).first()
        return _property_from_row(row) if row else None

    async def list_by_owner(self, owner_id: str) -> list[PropertyRecord]:
        q = sa.select(properties).where(properties.c.owner_id == owner_id).order_by(properties.c.created_at.desc())
        return [_property_from_row(r) for r in (await self._session.execute(q)).all()]

    async def list_by_status(self, status: str | None) -> list[PropertyRecord]:
        q = sa.select(properties).order_by(properties.c.created_at.desc())
        if status:
            q = q.where(properties.c.status == status)
        return [_property_from_row(r) for r in (await self._session.execute(q)).all()]

    async def create_property(self, new: NewProperty) -> PropertyRecord:
        now = _now()
        q = (
            sa.insert(properties)
            .values(
                property_id=uuid4(),
                owner_id=new.owner_id,
                owner_name=new.owner_name,
                title=new.title,
                type=new.type,
                location=new.location,
                price=new.price,
                bedrooms=new.bedrooms,
                bathrooms=new.bathrooms,
                area_sqft=new.area_sqft,
                description=new.description,
                image=new.image,
                amenities=list(new.amenities),
                status="pending",
                verified=False,
                is_active=True,
                created_at=now,
                updated_at=now,
            )
            .returning(properties)
        )
        row = (await self._session.execute(q)).one()
        await self._session.commit()
        return _property_from_row(row)

    async def set_listing_status(
        self, property_id: UUID, status: str, verified: bool | None = None
    ) -> PropertyRecord | None:
        values: dict[str, Any] = {"status": status, "updated_at": _now()}
        if verified is not None:
            values["verified"] = verified
        q = (
            sa.update(properties)
            .where(properties.c.property_id == property_id)
            .values(**values)
            .returning(properties)
        )
        row = (await self._session.execute(q)).first()
        await self._session.commit()
        return _property_from_row(row) if row else None

    def listing_lock(self, property_id: UUID):
        return _locked_property(self._session, property_id)

    async def update_property(self, property_id: UUID, changes: dict[str, Any]) -> PropertyRecord | None:
        values = dict(changes, updated_at=_now())
        if "amenities" in values:
            values["amenities"] = list(values["amenities"])
        q = (
            sa.update(properties)
            .where(properties.c.property_id == property_id)
            .values(**values)
            .returning(properties)
        )
        row = (await self._session.execute(q)).first()
        await self._session.commit()
        return _property_from_row(row) if row else None

    async def has_open_bookings(self, property_id: UUID, today: date) -> bool:
        q = (
            sa.select(bookings.c.booking_id)
            .where(
                bookings.c.property_id == property_id,
                bookings.c.status != "cancelled",
                bookings.c.check_out > today,
            )
            .limit(1)
        )
        return (await self._session.execute(q)).first() is not None

    async def delete_property(self, property_id: UUID) -> None:
        # Runs inside listing_lock; the lock commits. Conversations keep their rows (FK sets NULL).
        await self._session.execute(sa.delete(bookings).where(bookings.c.property_id == property_id))
        await self._session.execute(sa.delete(properties).where(properties.c.property_id == property_id))

    async def listing_stats(self, since: datetime) -> ListingStats:
        count = sa.func.count
        q = sa.select(
            count().label("total"),
            count().filter(properties.c.status == "approved").label("approved"),
            count().filter(properties.c.status == "pending").label("pending"),
            count().filter(properties.c.status == "rejected").label("rejected"),
            count().filter(_LIVE).label("active"),
            count().filter(properties.c.created_at >= since).label("new_this_month"),
        ).select_from(properties)
        row = (await self._session.execute(q)).one()
        return ListingStats(**row._asdict())


class SqlBookingStore:
    def __init__(self, session: AsyncSession):
        self._session = session

    def property_lock(self, property_id: UUID):
        return _locked_property(self._session, property_id)

    async def get_property(self, property_id: UUID) -> PropertyRecord | None:
        q = sa.select(properties).where(properties.c.property_id == property_id)
        row = (await self._session.execute(q)).first()
        return _property_from_row(row) if row else None

    async def find_overlapping(
        self,
        property_id: UUID,
        check_in: date,
        check_out: date,
        exclude_booking_id: UUID | None = None,
    ) -> BookingRecord | None:
        where = [
            bookings.c.property_id == property_id,
            bookings.c.status != "cancelled",
            bookings.c.check_in < check_out,
            bookings.c.check_out > check_in,
        ]
        if exclude_booking_id is not None:
            where.append(bookings.c.booking_id != exclude_booking_id)
        q = sa.select(bookings).where(sa.and_(*where)).limit(1)
        row = (await self._session.execute(q)).first()
        return _booking_from_row(row) if row else None

    async def create_booking(
        self, property_id: UUID, renter_id: str, owner_id: str, check_in: date, check_out: date
    ) -> BookingRecord:
        now = _now()
        q = (
            sa.insert(bookings)
            .values(
                booking_id=uuid4(),
                property_id=property_id,
                renter_id=renter_id,
                owner_id=owner_id,
                check_in=check_in,
                check_out=check_out,
                status="pending",
                created_at=now,
                updated_at=now,
            )
            .returning(bookings)
        )
        return _booking_from_row((await self._session.execute(q)).one())

    async def get_booking(self, booking_id: UUID) -> BookingRecord | None:
        q = sa.select(bookings).where(bookings.c.booking_id == booking_id)
        row = (await self._session.execute(q)).first()
        return _booking_from_row(row) if row else None

    async def set_booking_status(self, booking_id: UUID, status: str) -> BookingRecord:
        q = (
            sa.update(bookings)
            .where(bookings.c.booking_id == booking_id)
            .values(status=status, updated_at=_now())
            .returning(bookings)
        )
        return _booking_from_row((await self._session.execute(q)).one())

    async def list_for_renter(self, renter_id: str) -> list[BookingRecord]:
        q = sa.select(bookings).where(bookings.c.renter_id == renter_id).order_by(bookings.c.created_at.desc())
        return [_booking_from_row(r) for r in (await self._session.execute(q)).all()]

    async def list_for_owner(self, owner_id: str) -> list[BookingRecord]:
        q = sa.select(bookings).where(bookings.c.owner_id == owner_id).order_by(bookings.c.created_at.desc())
        return [_booking_from_row(r) for r in (await self._session.execute(q)).all()]

    async def list_for_property(self, property_id: UUID) -> list[BookingRecord]:
        q = sa.select(bookings).where(bookings.c.property_id == property_id).order_by(bookings.c.check_in.desc())
        return [_booking_from_row(r) for r in (await self._session.execute(q)).all()]

    async def list_all(self, status: str | None, *, limit: int, offset: int) -> tuple[list[BookingRecord], int]:
        total_q = sa.select(sa.func.count()).select_from(bookings)
        q = sa.select(bookings).order_by(bookings.c.created_at.desc()).limit(limit).offset(offset)
        if status:
            total_q = total_q.where(bookings.c.status == status)
            q = q.where(bookings.c.status == status)
        total = int((await self._session.execute(total_q)).scalar_one())
        return [_booking_from_row(r) for r in (await self._session.execute(q)).all()], total

    async def booking_stats(self, since: datetime) -> BookingStats:
        count = sa.func.count
        q = sa.select(
            count().label("total"),
            count().filter(bookings.c.status == "pending").label("pending"),
            count().filter(bookings.c.status == "confirmed").label("confirmed"),
            count().filter(bookings.c.status == "cancelled").label("cancelled"),
            count().filter(bookings.c.created_at >= since).label("this_month"),
        ).select_from(bookings)
        row = (await self._session.execute(q)).one()
        return BookingStats(**row._asdict())


class SqlConversationStore:
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_conversation(self, conversation_id: UUID) -> ConversationRecord | None:
        q = sa.select(conversations).where(conversations.c.conversation_id == conversation_id)
        row = (await self._session.execute(q)).first()
        return _conversation_from_row(row) if row else None

    async def create_conversation(
        self,
        user_id: str,
        first_message: str,
        *,
        type: str = "ai_chat",
        participant_id: str | None = None,
        property_id: UUID | None = None,
    ) -> ConversationRecord:
        now = _now()
        q = (
            sa.insert(conversations)
            .values(
                conversation_id=uuid4(),
                user_id=user_id,
                type=type,
                participant_id=participant_id,
                property_id=property_id,
                last_message=first_message,
                last_message_at=now,
                created_at=now,
            )
            .returning(conversations)
        )
        row = (await self._session.execute(q)).one()
        await self._session.commit()
        return _conversation_from_row(row)

    async def find_direct_conversation(
        self, user_a: str, user_b: str, property_id: UUID | None
    ) -> ConversationRecord | None:
        c = conversations.c
        pair = sa.or_(
            sa.and_(c.user_id == user_a, c.participant_id == user_b),
            sa.and_(c.user_id == user_b, c.participant_id == user_a),
        )
        about = c.property_id.is_(None) if property_id is None else c.property_id == property_id
        q = (
            sa.select(conversations)
            .where(c.type == "renter_owner", pair, about)
            .order_by(c.created_at.asc())
            .limit(1)
        )
        row = (await self._session.execute(q)).first()
        return _conversation_from_row(row) if row else None

    async def list_conversations(self, user_id: str, type: str | None = None) -> list[ConversationRecord]:
        c = conversations.c
        q = (
            sa.select(conversations)
            .where(sa.or_(c.user_id == user_id, c.participant_id == user_id))
            .order_by(c.last_message_at.desc())
        )
        if type:
            q = q.where(c.type == type)
        return [_conversation_from_row(r) for r in (await self._session.execute(q)).all()]

    async def append_message(
        self,
        conversation_id: UUID,
        sender_id: str,
        content: str,
        *,
        message_type: str,
        is_ai: bool,
        metadata: dict[str, Any] | None = None,
    ) -> MessageRecord:
        q = (
            sa.insert(messages)
            .values(
                message_id=uuid4(),
                conversation_id=conversation_id,
                sender_id=sender_id,
                content=content,
                message_type=message_type,
                is_ai=is_ai,
                metadata=metadata or {},
                read=False,
                created_at=_now(),
            )
            .returning(messages)
        )
        row = (await self._session.execute(q)).one()
        await self._session.commit()
        return _message_from_row(row)

    async def touch_conversation(self, conversation_id: UUID, last_message: str) -> ConversationRecord:
        q = (
            sa.update(conversations)
            .where(conversations.c.conversation_id == conversation_id)
            .values(last_message=last_message, last_message_at=_now())
            .returning(conversations)
        )
        row = (await self._session.execute(q)).one()
        await self._session.commit()
        return _conversation_from_row(row)

    async def list_messages(
        self, conversation_id: UUID, *, limit: int | None = None, offset: int = 0
    ) -> list[MessageRecord]:
        q = (
            sa.select(messages)
            .where(messages.c.conversation_id == conversation_id)
            .order_by(messages.c.created_at.asc())
            .offset(offset)
        )
        if limit is not None:
            q = q.limit(limit)
        return [_message_from_row(r) for r in (await self._session.execute(q)).all()]

    async def count_messages(self, conversation_id: UUID) -> int:
        q = sa.select(sa.func.count()).select_from(messages).where(messages.c.conversation_id == conversation_id)
        return int((await self._session.execute(q)).scalar_one())

    async def get_message(self, message_id: UUID) -> MessageRecord | None:
        q = sa.select(messages).where(messages.c.message_id == message_id)
        row = (await self._session.execute(q)).first()
        return _message_from_row(row) if row else None

    async def mark_read(self, message_id: UUID) -> MessageRecord:
        # First read wins; read_at is not moved by later calls.
        q = (
            sa.update(messages)
            .where(messages.c.message_id == message_id)
            .values(read=True, read_at=sa.func.coalesce(messages.c.read_at, _now()))
            .returning(messages)
        )
        row = (await self._session.execute(q)).one()
        await self._session.commit()
        return _message_from_row(row)
