from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any


NPR_RE = re.compile(r"NPR ([0-9]{1,3}(?:,[0-9]{3})*)")

MAX_ATTACHED = 5


@dataclass
class EvalResult:
    case_name: str
    passed: bool
    failures: list[str]


def check_response_type(data: dict[str, Any], expected: str | list[str] | None) -> list[str]:
    if not expected:
        return []
    allowed = [expected] if isinstance(expected, str) else list(expected)
    actual = data.get("type")
    if actual not in allowed:
        return [f"type_expected={allowed} actual={actual}"]
    return []


def check_parsed_fields(data: dict[str, Any], expected: dict[str, Any] | None) -> list[str]:
    if not expected:
        return []
    parsed = data.get("parsed_query") or {}
    failures = []
    for k, want in expected.items():
        got = parsed.get(k)
        if k == "preferences":
            missing = [p for p in want if p not in (got or [])]
            if missing:
                failures.append(f"parsed_preferences_missing={missing}")
        elif got != want:
            failures.append(f"parsed_{k}_expected={want} actual={got}")
    return failures


def check_attachment_bounds(data: dict[str, Any]) -> list[str]:
    props = data.get("properties") or []
    if len(props) > MAX_ATTACHED:
        return [f"too_many_properties={len(props)}"]
    if data.get("type") == "property_search" and not props:
        return ["property_search_without_properties"]
    if data.get("type") != "property_search" and props:
        return [f"unexpected_properties_for_type={data.get('type')}"]
    return []


def check_results_match_filters(data: dict[str, Any]) -> list[str]:
    parsed = data.get("parsed_query") or {}
    failures = []
    for p in data.get("properties") or []:
        if p.get("status") != "approved" or not p.get("is_active"):
            failures.append(f"non_live_property={p.get('property_id')}")
        if parsed.get("max_price") is not None and p["price"] > parsed["max_price"]:
            failures.append(f"over_budget={p.get('property_id')}")
        if parsed.get("min_price") is not None and p["price"] < parsed["min_price"]:
            failures.append(f"under_min_price={p.get('property_id')}")
        if parsed.get("type") and p["type"] != parsed["type"]:
            failures.append(f"wrong_type={p.get('property_id')}")
        if parsed.get("bedrooms") is not None and p["bedrooms"] < parsed["bedrooms"]:
            failures.append(f"too_few_bedrooms={p.get('property_id')}")
        if parsed.get("location") and parsed["location"].lower() not in p["location"].lower():
            failures.append(f"wrong_location={p.get('property_id')}")
    return failures


def check_grounding_no_invented_amounts(data: dict[str, Any]) -> list[str]:
    # Every NPR amount quoted in a search reply must come from the top recommendation.
    props = data.get("properties") or []
    if data.get("type") != "property_search" or not props:
        return []
    top = props[0]
    allowed = {top["price"]}
    savings = top.get("fair_flex_savings") or {}
    if "total_savings" in savings:
        allowed.add(savings["total_savings"])
    failures = []
    for m in NPR_RE.finditer(data.get("message") or ""):
        v = int(m.group(1).replace(",", ""))
        if v not in allowed:
            failures.append(f"ungrounded_amount=NPR {m.group(1)}")
    return failures
