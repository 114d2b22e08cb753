from __future__ import annotations

from datetime import date
from uuid import UUID

from services.api.app.store import BookingRecord, BookingStore, PropertyRecord


STATUS_ALIASES: dict[str, str] = {"approved": "confirmed", "rejected": "cancelled"}

# cancelled is terminal; nothing moves back to pending.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"confirmed", "cancelled"}),
    "confirmed": frozenset({"cancelled"}),
    "cancelled": frozenset(),
}

PROPERTY_NOT_FOUND = "Property not found"
PROPERTY_UNAVAILABLE = "Property is not available for booking"
OWN_PROPERTY = "You cannot book your own property"
CHECK_IN_IN_PAST = "Check-in date must be today or later"
CHECK_OUT_NOT_AFTER_CHECK_IN = "Check-out date must be after check-in date"
DATES_TAKEN = "This property is already booked for the selected dates. Please choose different dates."
BOOKING_NOT_FOUND = "Booking not found"
INVALID_STATUS = 'Invalid status. Use "confirmed" or "cancelled"'
NOT_BOOKING_OWNER = "You do not have permission to update this booking"


class BookingRejected(ValueError):
    def __init__(self, reason: str, status_code: int = 400, code: str = "invalid_request"):
        self.reason = reason
        self.status_code = status_code
        # Stable short label for metrics/logs.
        self.code = code
        super().__init__(reason)


def intervals_overlap(a_in: date, a_out: date, b_in: date, b_out: date) -> bool:
    """Half-open [in, out) intersection: a stay ending on a day does not clash with one starting that day."""
    return a_in < b_out and a_out > b_in


async def has_overlapping_booking(
    store: BookingStore,
    property_id: UUID,
    check_in: date,
    check_out: date,
    exclude_booking_id: UUID | None = None,
) -> bool:
    existing = await store.find_overlapping(property_id, check_in, check_out, exclude_booking_id)
    return existing is not None


def validate_booking_request(
    prop: PropertyRecord | None,
    renter_id: str,
    check_in: date,
    check_out: date,
    today: date,
) -> PropertyRecord:
    if prop is None:
        raise BookingRejected(PROPERTY_NOT_FOUND, 404, "property_not_found")
    if not prop.is_live:
        raise BookingRejected(PROPERTY_UNAVAILABLE, 400, "property_unavailable")
    if prop.owner_id == renter_id:
        raise BookingRejected(OWN_PROPERTY, 400, "own_property")
    if check_in < today:
        raise BookingRejected(CHECK_IN_IN_PAST, 400, "check_in_in_past")
    if check_out <= check_in:
        raise BookingRejected(CHECK_OUT_NOT_AFTER_CHECK_IN, 400, "invalid_range")
    return prop


async def create_booking(
    store: BookingStore,
    renter_id: str,
    property_id: UUID,
    check_in: date,
    check_out: date,
    *,
    today: date | None = None,
) -> BookingRecord:
    today = today or date.today()
    async with store.property_lock(property_id):
        prop = validate_booking_request(await store.get_property(property_id), renter_id, check_in, check_out, today)
        if await has_overlapping_booking(store, property_id, check_in, check_out):
            raise BookingRejected(DATES_TAKEN, 409, "overlap")
        return await store.create_booking(property_id, renter_id, prop.owner_id, check_in, check_out)


def normalize_status(raw: str | None) -> str:
    status = (raw or "").strip().lower()
    status = STATUS_ALIASES.get(status, status)
    if status not in ("confirmed", "cancelled"):
        raise BookingRejected(INVALID_STATUS, 400, "invalid_status")
    return status


async def update_booking_status(
    store: BookingStore,
    booking_id: UUID,
    actor_id: str | None,
    raw_status: str | None,
    *,
    is_admin: bool = False,
) -> BookingRecord:
    status = normalize_status(raw_status)

    booking = await store.get_booking(booking_id)
    if booking is None:
        raise BookingRejected(BOOKING_NOT_FOUND, 404, "booking_not_found")
    if not is_admin and booking.owner_id != actor_id:
        raise BookingRejected(NOT_BOOKING_OWNER, 403, "forbidden")

    async with store.property_lock(booking.property_id):
        # Re-read under the lock; another request may have moved it already.
        booking = await store.get_booking(booking_id)
        if booking is None:
            raise BookingRejected(BOOKING_NOT_FOUND, 404, "booking_not_found")
        if status not in ALLOWED_TRANSITIONS.get(booking.status, frozenset()):
            raise BookingRejected(f"Booking is already {booking.status}", 400, "invalid_transition")
        if status == "confirmed" and await has_overlapping_booking(
            store, booking.property_id, booking.check_in, booking.check_out, exclude_booking_id=booking.booking_id
        ):
            raise BookingRejected(DATES_TAKEN, 409, "overlap")
        return await store.set_booking_status(booking_id, status)
