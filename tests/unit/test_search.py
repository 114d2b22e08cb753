from __future__ import annotations

import pytest

from tests.store_stub import InMemoryPropertyStore, make_property


def test_filters_from_query_maps_parsed_fields() -> None:
    from services.api.app.query_parser import ParsedQuery
    from services.api.app.search import filters_from_query

    f = filters_from_query(
        ParsedQuery(location="Pokhara", max_price=25000, type="house", bedrooms=3, preferences=("verified",))
    )
    assert f.location == "Pokhara"
    assert f.max_price == 25000
    assert f.min_price is None
    assert f.type == "house"
    assert f.min_bedrooms == 3
    assert f.verified_only is True


@pytest.mark.asyncio
async def test_search_only_returns_live_matching_listings_newest_first() -> None:
    from services.api.app.query_parser import parse_query
    from services.api.app.search import search_properties

    older = make_property(location="Pokhara", type="house", bedrooms=3, price=22000)
    newer = make_property(location="Pokhara", type="house", bedrooms=4, price=24000)
    store = InMemoryPropertyStore(
        [
            older,
            newer,
            make_property(location="Pokhara", type="house", bedrooms=3, price=21000, status="pending"),
            make_property(location="Pokhara", type="house", bedrooms=3, price=21000, is_active=False),
            make_property(location="Pokhara", type="flat_apartment", bedrooms=3, price=21000),
            make_property(location="Kathmandu", type="house", bedrooms=3, price=21000),
            make_property(location="Pokhara", type="house", bedrooms=3, price=26000),
        ]
    )

    results = await search_properties(store, parse_query("3 bedroom house in Pokhara under 25000"))
    assert [r.record.property_id for r in results] == [newer.property_id, older.property_id]


@pytest.mark.asyncio
async def test_search_location_is_case_insensitive_substring() -> None:
    from services.api.app.query_parser import ParsedQuery
    from services.api.app.search import search_properties

    prop = make_property(location="Lalitpur, Jawalakhel")
    store = InMemoryPropertyStore([prop])
    results = await search_properties(store, ParsedQuery(location="lalitpur"))
    assert [r.record.property_id for r in results] == [prop.property_id]


@pytest.mark.asyncio
async def test_search_verified_preference_filters_unverified() -> None:
    from services.api.app.query_parser import parse_query
    from services.api.app.search import search_properties

    verified = make_property(verified=True)
    store = InMemoryPropertyStore([verified, make_property(verified=False)])
    results = await search_properties(store, parse_query("verified flat in Kathmandu"))
    assert [r.record.property_id for r in results] == [verified.property_id]


@pytest.mark.asyncio
async def test_search_scores_with_requested_or_default_duration() -> None:
    from services.api.app.query_parser import parse_query
    from services.api.app.search import search_properties

    store = InMemoryPropertyStore([make_property(price=20000)])

    asked = await search_properties(store, parse_query("flat in Kathmandu for 12 months"))
    assert asked[0].fair_flex_savings.duration == 12
    assert asked[0].fair_flex_savings.total_savings == 36000

    default = await search_properties(store, parse_query("flat in Kathmandu"), default_duration=3)
    assert default[0].fair_flex_savings.duration == 3


@pytest.mark.asyncio
async def test_search_respects_limit() -> None:
    from services.api.app.query_parser import parse_query
    from services.api.app.search import search_properties

    store = InMemoryPropertyStore([make_property() for _ in range(30)])
    results = await search_properties(store, parse_query("flat in Kathmandu"), limit=20)
    assert len(results) == 20
