from __future__ import annotations

from datetime import date
from typing import Any
from uuid import UUID

from services.api.app.scoring import ScoredProperty, score_property
from services.api.app.store import PROPERTY_TYPES, PropertyFilters, PropertyRecord, PropertyStore


SORT_OPTIONS = ("newest", "oldest", "price_asc", "price_desc")
MODERATION_STATUSES = ("approved", "rejected")
# Owners edit listing details; status and verification stay with moderation.
EDITABLE_FIELDS = frozenset(
    {
        "title",
        "type",
        "location",
        "price",
        "bedrooms",
        "bathrooms",
        "area_sqft",
        "description",
        "image",
        "amenities",
        "is_active",
    }
)


class ListingRejected(ValueError):
    def __init__(self, reason: str, status_code: int = 400):
        self.reason = reason
        self.status_code = status_code
        super().__init__(reason)


def ensure_visible(prop: PropertyRecord | None, viewer_id: str | None, *, is_admin: bool = False) -> PropertyRecord:
    """Non-live listings are only shown to their owner and admins."""
    if prop is None:
        raise ListingRejected("Property not found", 404)
    if not prop.is_live and not is_admin and prop.owner_id != viewer_id:
        raise ListingRejected("Property not found", 404)
    return prop


async def browse_listings(
    store: PropertyStore,
    filters: PropertyFilters,
    *,
    sort_by: str = "newest",
    page: int = 1,
    limit: int = 20,
    duration: int = 6,
) -> tuple[list[ScoredProperty], int]:
    if sort_by not in SORT_OPTIONS:
        raise ListingRejected(f"Invalid sort option: {sort_by}")
    offset = (max(page, 1) - 1) * limit
    records = await store.find_live(filters, limit=limit, offset=offset, sort_by=sort_by)
    total = await store.count_live_matching(filters)
    return [score_property(r, duration) for r in records], total


async def moderate_listing(
    store: PropertyStore, property_id: UUID, status: str, verified: bool | None = None
) -> PropertyRecord:
    if status not in MODERATION_STATUSES:
        raise ListingRejected('Invalid status. Use "approved" or "rejected"')
    updated = await store.set_listing_status(property_id, status, verified)
    if updated is None:
        raise ListingRejected("Property not found", 404)
    return updated


def _ensure_can_manage(prop: PropertyRecord | None, user_id: str, is_admin: bool, action: str) -> PropertyRecord:
    if prop is None:
        raise ListingRejected("Property not found", 404)
    if prop.owner_id != user_id and not is_admin:
        raise ListingRejected(f"Not authorized to {action} this property", 403)
    return prop


async def update_listing(
    store: PropertyStore,
    property_id: UUID,
    user_id: str,
    changes: dict[str, Any],
    *,
    is_admin: bool = False,
) -> PropertyRecord:
    unknown = sorted(set(changes) - EDITABLE_FIELDS)
    if unknown:
        raise ListingRejected(f"Fields cannot be updated: {', '.join(unknown)}")
    if not changes:
        raise ListingRejected("No fields to update")
    if "type" in changes and changes["type"] not in PROPERTY_TYPES:
        raise ListingRejected(f"Invalid property type: {changes['type']}")
    _ensure_can_manage(await store.get_property(property_id), user_id, is_admin, "update")

    if "amenities" in changes:
        changes = dict(changes, amenities=tuple(changes["amenities"]))
    updated = await store.update_property(property_id, changes)
    if updated is None:
        raise ListingRejected("Property not found", 404)
    return updated


async def delete_listing(
    store: PropertyStore,
    property_id: UUID,
    user_id: str,
    *,
    today: date,
    is_admin: bool = False,
) -> None:
    """
    Remove a listing and its booking history.

    Refused while a pending or confirmed stay has not ended yet. The check and the delete run
    under the property lock that booking creation also takes.
    """
    async with store.listing_lock(property_id):
        _ensure_can_manage(await store.get_property(property_id), user_id, is_admin, "delete")
        if await store.has_open_bookings(property_id, today):
            raise ListingRejected("Property has active bookings. Cancel them before deleting.", 409)
        await store.delete_property(property_id)
