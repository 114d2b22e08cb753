from __future__ import annotations


def _search_reply(**overrides) -> dict:
    data = {
        "type": "property_search",
        "message": "I found 1 property matching your search.\n\n📍 Pokhara | 🛏️ 2 Beds | 💰 NPR 18,000/month",
        "properties": [
            {
                "property_id": "p1",
                "price": 18000,
                "type": "flat_apartment",
                "bedrooms": 2,
                "location": "Pokhara",
                "status": "approved",
                "is_active": True,
                "fair_flex_savings": {"total_savings": 10800},
            }
        ],
        "parsed_query": {"location": "Pokhara", "max_price": 20000, "type": "flat_apartment", "preferences": []},
    }
    data.update(overrides)
    return data


def test_clean_search_reply_passes_all_checks() -> None:
    from evals.metrics import (
        check_attachment_bounds,
        check_grounding_no_invented_amounts,
        check_parsed_fields,
        check_response_type,
        check_results_match_filters,
    )

    data = _search_reply()
    assert check_response_type(data, ["property_search", "no_results"]) == []
    assert check_parsed_fields(data, {"location": "Pokhara", "max_price": 20000}) == []
    assert check_attachment_bounds(data) == []
    assert check_results_match_filters(data) == []
    assert check_grounding_no_invented_amounts(data) == []


def test_invented_amount_is_flagged() -> None:
    from evals.metrics import check_grounding_no_invented_amounts

    data = _search_reply(message="Only NPR 12,500/month!")
    assert check_grounding_no_invented_amounts(data) == ["ungrounded_amount=NPR 12,500"]


def test_attachment_and_filter_violations() -> None:
    from evals.metrics import check_attachment_bounds, check_results_match_filters

    too_many = _search_reply(properties=_search_reply()["properties"] * 6)
    assert check_attachment_bounds(too_many) == ["too_many_properties=6"]

    over_budget = _search_reply(parsed_query={"max_price": 15000})
    assert check_results_match_filters(over_budget) == ["over_budget=p1"]


def test_parsed_field_and_type_mismatch() -> None:
    from evals.metrics import check_parsed_fields, check_response_type

    data = _search_reply()
    assert check_response_type(data, "greeting") == ["type_expected=['greeting'] actual=property_search"]
    assert check_parsed_fields(data, {"bedrooms": 2}) == ["parsed_bedrooms_expected=2 actual=None"]
    assert check_parsed_fields(data, {"preferences": ["quiet"]}) == ["parsed_preferences_missing=['quiet']"]
