from __future__ import annotations

import re
from dataclasses import dataclass


# Scanned in order; the first token found in the text wins.
LOCATION_TOKENS: tuple[str, ...] = (
    "kathmandu",
    "lalitpur",
    "bhaktapur",
    "pokhara",
    "chitwan",
    "thamel",
    "baneshwor",
    "patan",
    "jawalakhel",
    "kupondole",
    "lazimpat",
    "tokha",
    "durbar marg",
    "buddhanagar",
    "lakeside",
)

NEIGHBORHOOD_CITY: dict[str, str] = {
    "thamel": "Kathmandu",
    "baneshwor": "Kathmandu",
    "lazimpat": "Kathmandu",
    "tokha": "Kathmandu",
    "durbar marg": "Kathmandu",
    "buddhanagar": "Kathmandu",
    "patan": "Lalitpur",
    "jawalakhel": "Lalitpur",
    "kupondole": "Lalitpur",
    "lakeside": "Pokhara",
}

_CURRENCY = r"(?:rs\.?|npr|rupees?)?"

# (pattern, bound) pairs; the first pattern that matches sets the only price bound.
_PRICE_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(rf"(?:under|below|less than|max|up to|maximum)\s*{_CURRENCY}\s*(\d+)(?:k|000)?"), "max"),
    (re.compile(rf"(?:above|over|more than|min|minimum|at least)\s*{_CURRENCY}\s*(\d+)(?:k|000)?"), "min"),
    (re.compile(rf"(?:budget|price|cost)\s*(?:of|is|around)?\s*{_CURRENCY}\s*(\d+)(?:k|000)?"), "max"),
    (re.compile(rf"(\d+)(?:k|000)?\s*{_CURRENCY}\s*(?:per month|monthly|pm)"), "max"),
)

_HOUSE_RE = re.compile(r"\b(?:house|villa|home|bungalow)s?\b")
_FLAT_RE = re.compile(r"\b(?:flat_apartment|flat|apartment|studio)s?\b")

_BEDROOMS_RE = re.compile(r"\b(\d+)\s*(?:bedrooms?|beds?|bhk)\b")
_SINGLE_ROOM_RE = re.compile(r"\b(?:studio|single)\b")

_DURATION_RE = re.compile(r"\b(\d+)\s*months?\b")
STAY_DURATIONS: frozenset[int] = frozenset({1, 3, 6, 12})

_PREFERENCE_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("family", re.compile(r"\b(?:family|families|kids|children)\b")),
    ("students", re.compile(r"\b(?:student|students|college|university)\b")),
    ("professionals", re.compile(r"\b(?:professionals?|working|office|job)\b")),
    ("quiet", re.compile(r"\b(?:quiet|peaceful|calm|tranquil)\b")),
    ("verified", re.compile(r"\b(?:verified|trusted)\b")),
    ("furnished", re.compile(r"\b(?:furnished|furniture)\b")),
)


@dataclass(frozen=True)
class ParsedQuery:
    location: str | None = None
    min_price: int | None = None
    max_price: int | None = None
    type: str | None = None
    bedrooms: int | None = None
    duration: int | None = None
    preferences: tuple[str, ...] = ()

    def has_preference(self, tag: str) -> bool:
        return tag in self.preferences

    def to_dict(self) -> dict:
        return {
            "location": self.location,
            "min_price": self.min_price,
            "max_price": self.max_price,
            "type": self.type,
            "bedrooms": self.bedrooms,
            "duration": self.duration,
            "preferences": list(self.preferences),
        }


def _parse_location(text: str) -> str | None:
    for token in LOCATION_TOKENS:
        if token in text:
            return NEIGHBORHOOD_CITY.get(token) or token.title()
    return None


def _parse_price(text: str) -> tuple[int | None, int | None]:
    """
    Returns (min_price, max_price); at most one of them is set.

    Small numbers and a "k" suffix are read as thousands of rupees ("under 20" -> 20000).
    """
    for pattern, bound in _PRICE_PATTERNS:
        m = pattern.search(text)
        if not m:
            continue
        price = int(m.group(1))
        if "k" in m.group(0) or price < 100:
            price *= 1000
        return (None, price) if bound == "max" else (price, None)
    return None, None


def _parse_type(text: str) -> str | None:
    if _HOUSE_RE.search(text):
        return "house"
    if _FLAT_RE.search(text):
        return "flat_apartment"
    return None


def _parse_bedrooms(text: str) -> int | None:
    m = _BEDROOMS_RE.search(text)
    if m:
        return int(m.group(1))
    if _SINGLE_ROOM_RE.search(text):
        return 1
    return None


def _parse_duration(text: str) -> int | None:
    m = _DURATION_RE.search(text)
    if not m:
        return None
    months = int(m.group(1))
    return months if months in STAY_DURATIONS else None


def _parse_preferences(text: str) -> tuple[str, ...]:
    return tuple(tag for tag, pattern in _PREFERENCE_PATTERNS if pattern.search(text))


def parse_query(text: str) -> ParsedQuery:
    """
    Extract structured search filters from free text.

    Never raises: anything that is not recognised is left unset.
    """
    lowered = (text or "").lower()
    min_price, max_price = _parse_price(lowered)
    return ParsedQuery(
        location=_parse_location(lowered),
        min_price=min_price,
        max_price=max_price,
        type=_parse_type(lowered),
        bedrooms=_parse_bedrooms(lowered),
        duration=_parse_duration(lowered),
        preferences=_parse_preferences(lowered),
    )


def is_search_query(parsed: ParsedQuery) -> bool:
    return (
        parsed.location is not None
        or parsed.min_price is not None
        or parsed.max_price is not None
        or parsed.type is not None
        or parsed.bedrooms is not None
        or bool(parsed.preferences)
    )
