from __future__ import annotations

from services.api.app.query_parser import ParsedQuery
from services.api.app.scoring import ScoredProperty, score_property
from services.api.app.store import PropertyFilters, PropertyStore


def filters_from_query(parsed: ParsedQuery) -> PropertyFilters:
    return PropertyFilters(
        location=parsed.location,
        min_price=parsed.min_price,
        max_price=parsed.max_price,
        type=parsed.type,
        min_bedrooms=parsed.bedrooms,
        verified_only=parsed.has_preference("verified"),
    )


async def search_properties(
    store: PropertyStore,
    parsed: ParsedQuery,
    *,
    limit: int = 20,
    default_duration: int = 6,
) -> list[ScoredProperty]:
    """
    Run a parsed query against live listings (approved and active), newest first.

    Each result carries its derived scoring fields; FairFlex savings use the requested
    stay length, or `default_duration` months when none was asked for.
    """
    records = await store.find_live(filters_from_query(parsed), limit=limit, sort_by="newest")
    duration = parsed.duration or default_duration
    return [score_property(r, duration) for r in records]
