from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field

from services.api.app.query_parser import ParsedQuery, is_search_query, parse_query
from services.api.app.scoring import ScoredProperty
from services.api.app.search import search_properties
from services.api.app.store import PropertyStore


GREETINGS = (
    "hi",
    "hello",
    "hey",
    "greetings",
    "good morning",
    "good afternoon",
    "good evening",
    "namaste",
    "namaskar",
)

_FAIRFLEX_RE = re.compile(r"\b(?:fairflex|fair flex|pricing|discount|save|savings|why.*expensive|cheaper)\b")
_BOOKING_RE = re.compile(r"\b(?:book|booking|how.*book|process|steps|guide)\b")

GREETING_MESSAGE = (
    "Hello! 👋 How can I help you find a property today?\n\n"
    "I can help you:\n"
    "• Search for properties by location, price, or type\n"
    "• Understand FairFlex pricing\n"
    "• Get booking guidance\n\n"
    'Try asking: "Show me houses in Kathmandu" or "What is FairFlex?"'
)

FAIRFLEX_MESSAGE = (
    "FairFlex is our flexible pricing model that rewards longer stays:\n\n"
    "• 1 month: Standard rate (no discount)\n"
    "• 3 months: 5% discount per month\n"
    "• 6 months: 10% discount per month\n"
    "• 12 months: 15% discount per month\n\n"
    "The longer you stay, the more you save! This helps property owners get stable tenants "
    "while giving you better rates. Properties under NPR 20,000/month or with 3+ bedrooms "
    "typically offer FairFlex pricing."
)

BOOKING_GUIDANCE_MESSAGE = (
    "Here's how to book a property on RentNest:\n\n"
    "1. **Browse Properties**: Search and filter properties by location, price, bedrooms, etc.\n"
    "2. **View Details**: Click on a property to see full details, photos, and amenities\n"
    "3. **Select Duration**: Choose your stay duration (1, 3, 6, or 12 months)\n"
    "4. **Submit Booking Request**: Pick your check-in and check-out dates\n"
    "5. **Wait for Confirmation**: The property owner will review and confirm or cancel your request\n"
    "6. **Confirmation**: Once confirmed, you'll receive the owner's payment details\n\n"
    "**Cancellation Policy**: Owners can cancel pending or confirmed bookings; "
    "a cancelled booking cannot be reopened.\n\n"
    "**Verification**: Verified properties have been checked by our team for accuracy and trustworthiness."
)

NO_PROPERTIES_MESSAGE = (
    "Currently no properties available. Please check back later.\n\n"
    "We're working on adding more properties to our platform. In the meantime, you can:\n"
    "• Check back later for new listings\n"
    "• Contact us if you're a property owner looking to list"
)

GENERAL_HELP_MESSAGE = (
    "I can help you find properties! Here are some ways to search:\n\n"
    '• **By location**: "Show me properties in Kathmandu" or "Houses in Pokhara"\n'
    '• **By budget**: "Properties under 20000" or "Budget 15000"\n'
    '• **By type**: "2 bedroom house" or "Flat in Kathmandu"\n'
    '• **Combined**: "3 bedroom house in Pokhara under 25000"\n\n'
    "You can also ask about:\n"
    "• FairFlex pricing\n"
    "• How to book a property\n"
    "• Property verification"
)

GENERIC_REASON = "This property matches your search criteria."

CONFIDENCE_HIGHLIGHT = 70


@dataclass(frozen=True)
class AssistantReply:
    type: str
    message: str
    properties: list[ScoredProperty] = field(default_factory=list)
    parsed_query: ParsedQuery | None = None


@dataclass(frozen=True)
class CannedIntent:
    response_type: str
    matches: Callable[[str], bool]
    message: str


def is_greeting(text: str) -> bool:
    lowered = text.lower().strip()
    return any(lowered == g or lowered.startswith(g + " ") for g in GREETINGS)


def is_fairflex_question(text: str) -> bool:
    return bool(_FAIRFLEX_RE.search(text.lower()))


def is_booking_question(text: str) -> bool:
    return bool(_BOOKING_RE.search(text.lower()))


# Evaluated in order before any storage access; the first match answers.
CANNED_INTENTS: tuple[CannedIntent, ...] = (
    CannedIntent("greeting", is_greeting, GREETING_MESSAGE),
    CannedIntent("fairflex_explanation", is_fairflex_question, FAIRFLEX_MESSAGE),
    CannedIntent("booking_guidance", is_booking_question, BOOKING_GUIDANCE_MESSAGE),
)


def _npr(amount: int) -> str:
    return f"NPR {amount:,}"


def explain_recommendation(scored: ScoredProperty, parsed: ParsedQuery) -> str:
    prop = scored.record
    reasons: list[str] = []

    if parsed.has_preference("family") and scored.best_for == "Family":
        reasons.append(f"Perfect for families with {prop.bedrooms} bedrooms and spacious layout")
    if parsed.has_preference("students") and scored.best_for == "Students":
        reasons.append("Ideal for students with affordable pricing and compact size")
    if parsed.has_preference("professionals") and scored.best_for == "Professionals":
        reasons.append("Great for professionals in a prime location")

    if scored.confidence_score >= CONFIDENCE_HIGHLIGHT:
        reasons.append(
            f"High Rent Confidence Score ({scored.confidence_score}/100) indicates trustworthy listing"
        )

    savings = scored.fair_flex_savings
    if savings.has_fair_flex and parsed.duration:
        reasons.append(
            f"FairFlex pricing available - save {_npr(savings.total_savings)} on {parsed.duration}-month stay"
        )

    if parsed.max_price is not None and prop.price <= parsed.max_price:
        reasons.append(f"Within your budget at {_npr(prop.price)}/month")

    if parsed.location and parsed.location.lower() in prop.location.lower():
        reasons.append(f"Located in {prop.location}")

    if not reasons:
        return GENERIC_REASON
    return ". ".join(reasons) + "."


def no_results_message(parsed: ParsedQuery) -> str:
    suggestions: list[str] = []
    if parsed.location:
        suggestions.append("Trying a different location")
    if parsed.min_price is not None or parsed.max_price is not None:
        suggestions.append("Adjusting your budget range")
    if parsed.type:
        suggestions.append("Trying a different property type (house or flat)")
    if parsed.bedrooms is not None:
        suggestions.append("Adjusting the number of bedrooms")
    if parsed.has_preference("verified"):
        suggestions.append("Including listings that are not verified yet")
    suggestions.append("Removing some filters to see more options")
    lines = "\n".join(f"• {s}" for s in suggestions)
    return f"No properties found for this search. Please try:\n\n{lines}"


def search_results_message(results: list[ScoredProperty], parsed: ParsedQuery) -> str:
    top = results[0]
    prop = top.record
    noun = "property" if len(results) == 1 else "properties"

    message = f"I found {len(results)} {noun} matching your search.\n\n"
    message += f"**Top Recommendation:** {prop.title}\n"
    message += f"📍 {prop.location} | 🛏️ {prop.bedrooms} Beds | 💰 {_npr(prop.price)}/month\n\n"
    message += f"**Why this property?**\n{explain_recommendation(top, parsed)}"
    if len(results) > 1:
        more = len(results) - 1
        message += f"\n\nI found {more} more matching {'property' if more == 1 else 'properties'}. Would you like to see them?"
    return message


async def generate_reply(
    store: PropertyStore,
    text: str,
    *,
    max_results: int = 20,
    max_attached: int = 5,
    default_duration: int = 6,
) -> AssistantReply:
    """
    Answer a free-text message.

    Order matters: canned intents first, then the empty-inventory check, then search.
    Every input ends in exactly one reply type.
    """
    for intent in CANNED_INTENTS:
        if intent.matches(text):
            return AssistantReply(type=intent.response_type, message=intent.message)

    if await store.count_live() == 0:
        return AssistantReply(type="no_properties", message=NO_PROPERTIES_MESSAGE)

    parsed = parse_query(text)
    if not is_search_query(parsed):
        return AssistantReply(type="general_help", message=GENERAL_HELP_MESSAGE, parsed_query=parsed)

    results = await search_properties(store, parsed, limit=max_results, default_duration=default_duration)
    if not results:
        return AssistantReply(type="no_results", message=no_results_message(parsed), parsed_query=parsed)

    return AssistantReply(
        type="property_search",
        message=search_results_message(results, parsed),
        properties=results[:max_attached],
        parsed_query=parsed,
    )
