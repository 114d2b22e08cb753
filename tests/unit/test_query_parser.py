from __future__ import annotations

import pytest


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("flats under 20k", 20000),
        ("house under 20000", 20000),
        ("something below 25", 25000),
        ("max rs 30000 please", 30000),
        ("budget of npr 15000", 15000),
        ("12000 per month", 12000),
    ],
)
def test_parse_query_max_price(text: str, expected: int) -> None:
    from services.api.app.query_parser import parse_query

    parsed = parse_query(text)
    assert parsed.max_price == expected
    assert parsed.min_price is None


def test_parse_query_min_price_only_sets_lower_bound() -> None:
    from services.api.app.query_parser import parse_query

    parsed = parse_query("apartment above 15000 in Kathmandu")
    assert parsed.min_price == 15000
    assert parsed.max_price is None


def test_parse_query_first_price_pattern_wins() -> None:
    from services.api.app.query_parser import parse_query

    # "under" is checked before "above"; only one bound is ever set.
    parsed = parse_query("above 10000 and under 20000")
    assert parsed.max_price == 20000
    assert parsed.min_price is None


@pytest.mark.parametrize(
    ("text", "location"),
    [
        ("house in Pokhara", "Pokhara"),
        ("flat near Thamel", "Kathmandu"),
        ("something in patan", "Lalitpur"),
        ("room by the lakeside", "Pokhara"),
        ("durbar marg apartment", "Kathmandu"),
        ("anything in Biratnagar", None),
    ],
)
def test_parse_query_location_gazetteer(text: str, location: str | None) -> None:
    from services.api.app.query_parser import parse_query

    assert parse_query(text).location == location


def test_parse_query_type_and_bedrooms() -> None:
    from services.api.app.query_parser import parse_query

    house = parse_query("3 bedroom house in Kathmandu")
    assert house.type == "house"
    assert house.bedrooms == 3

    flat = parse_query("2bhk flats in Lalitpur")
    assert flat.type == "flat_apartment"
    assert flat.bedrooms == 2

    studio = parse_query("a studio near college")
    assert studio.type == "flat_apartment"
    assert studio.bedrooms == 1


def test_parse_query_duration_only_accepts_offered_stays() -> None:
    from services.api.app.query_parser import parse_query

    assert parse_query("flat for 6 months").duration == 6
    assert parse_query("house for 12 month").duration == 12
    assert parse_query("flat for 5 months").duration is None
    assert parse_query("flat in Kathmandu").duration is None


def test_parse_query_preferences_in_fixed_order() -> None:
    from services.api.app.query_parser import parse_query

    parsed = parse_query("Verified quiet place for my family with kids, furnished")
    assert parsed.preferences == ("family", "quiet", "verified", "furnished")
    assert parsed.has_preference("verified")
    assert not parsed.has_preference("students")


def test_parse_query_is_total() -> None:
    from services.api.app.query_parser import ParsedQuery, is_search_query, parse_query

    assert parse_query("") == ParsedQuery()
    assert parse_query("🙂 ??? ###") == ParsedQuery()
    assert not is_search_query(parse_query("what can you do"))


def test_is_search_query_counts_preferences_and_zero_values() -> None:
    from services.api.app.query_parser import ParsedQuery, is_search_query

    assert is_search_query(ParsedQuery(preferences=("students",)))
    assert is_search_query(ParsedQuery(bedrooms=0))
    assert not is_search_query(ParsedQuery(duration=6))


def test_parsed_query_to_dict() -> None:
    from services.api.app.query_parser import parse_query

    d = parse_query("3 bedroom house in Pokhara under 25000 for 12 months").to_dict()
    assert d == {
        "location": "Pokhara",
        "min_price": None,
        "max_price": 25000,
        "type": "house",
        "bedrooms": 3,
        "duration": 12,
        "preferences": [],
    }
