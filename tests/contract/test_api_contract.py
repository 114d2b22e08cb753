from __future__ import annotations

from datetime import date, timedelta

import httpx
import pytest

from tests.store_stub import (
    InMemoryBookingStore,
    InMemoryConversationStore,
    InMemoryPropertyStore,
    make_property,
)


@pytest.fixture()
def stores():
    properties = InMemoryPropertyStore()
    return properties, InMemoryBookingStore(properties), InMemoryConversationStore()


@pytest.fixture()
def api_app(stores):
    from services.api.app import main

    properties, bookings, conversations = stores
    main.app.dependency_overrides[main.get_property_store] = lambda: properties
    main.app.dependency_overrides[main.get_booking_store] = lambda: bookings
    main.app.dependency_overrides[main.get_conversation_store] = lambda: conversations
    yield main.app
    main.app.dependency_overrides.clear()


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    from services.api.app.settings import SETTINGS

    return {"X-Admin-Token": SETTINGS.admin_token}


def _client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio
async def test_ai_search_rejects_short_query_and_extra_fields(api_app):
    async with _client(api_app) as client:
        r = await client.post("/ai/search", json={"query": "hi"})
        assert r.status_code == 422
        r = await client.post("/ai/search", json={"query": "hello", "extra": "nope"})
        assert r.status_code == 422


@pytest.mark.asyncio
async def test_ai_search_greeting(api_app):
    async with _client(api_app) as client:
        r = await client.post("/ai/search", json={"query": "hello"})
        assert r.status_code == 200
        data = r.json()
        assert data["type"] == "greeting"
        assert data["properties"] == []
        assert data["parsed_query"] is None


@pytest.mark.asyncio
async def test_ai_search_returns_scored_properties(api_app, stores):
    properties, _, _ = stores
    for i in range(3):
        properties.add(make_property(title=f"Lakeside flat {i}", location="Pokhara", price=15000 + i * 1000))

    async with _client(api_app) as client:
        r = await client.post("/ai/search", json={"query": "flat in Pokhara under 20k for 12 months"})
        assert r.status_code == 200
        data = r.json()
        assert data["type"] == "property_search"
        assert data["parsed_query"]["location"] == "Pokhara"
        assert data["parsed_query"]["max_price"] == 20000
        assert data["parsed_query"]["duration"] == 12
        assert len(data["properties"]) == 3
        top = data["properties"][0]
        assert top["title"] == "Lakeside flat 2"
        assert 0 <= top["confidence_score"] <= 100
        assert top["best_for"] in ("Family", "Students", "Professionals", "Quiet Living")
        assert top["fair_flex_savings"]["duration"] == 12
        assert top["fair_flex_savings"]["discount_rate"] == 0.15

        metrics = await client.get("/metrics")
        assert 'assistant_reply_total{response_type="property_search"}' in metrics.text
        assert 'property_search_latency_ms_count{source="assistant"}' in metrics.text


@pytest.mark.asyncio
async def test_ai_chat_requires_identity(api_app):
    async with _client(api_app) as client:
        r = await client.post("/ai/chat", json={"message": "hello"})
        assert r.status_code == 401


@pytest.mark.asyncio
async def test_ai_chat_persists_both_sides_of_the_turn(api_app, stores):
    properties, _, conversations = stores
    prop = properties.add(make_property(location="Kathmandu"))
    headers = {"X-User-Id": "renter_1"}

    async with _client(api_app) as client:
        r1 = await client.post("/ai/chat", json={"message": "flat in Kathmandu"}, headers=headers)
        assert r1.status_code == 200
        d1 = r1.json()
        conversation_id = d1["conversation"]["conversation_id"]
        assert d1["conversation"]["type"] == "ai_chat"
        assert d1["user_message"]["is_ai"] is False
        assert d1["ai_message"]["is_ai"] is True
        assert d1["ai_message"]["message_type"] == "property_suggestion"
        assert d1["ai_message"]["metadata"]["property_ids"] == [str(prop.property_id)]
        assert d1["conversation"]["last_message"] == d1["response"]["message"]

        r2 = await client.post(
            "/ai/chat", json={"message": "what is fairflex?", "conversation_id": conversation_id}, headers=headers
        )
        assert r2.status_code == 200
        d2 = r2.json()
        assert d2["conversation"]["conversation_id"] == conversation_id
        assert d2["ai_message"]["message_type"] == "ai_response"
        assert d2["ai_message"]["metadata"]["response_type"] == "fairflex_explanation"

        msgs = await client.get(f"/ai/conversations/{conversation_id}/messages", headers=headers)
        assert msgs.status_code == 200
        assert [m["is_ai"] for m in msgs.json()["messages"]] == [False, True, False, True]

        other = await client.get(f"/ai/conversations/{conversation_id}/messages", headers={"X-User-Id": "renter_2"})
        assert other.status_code == 404

        hijack = await client.post(
            "/ai/chat", json={"message": "hello", "conversation_id": conversation_id}, headers={"X-User-Id": "renter_2"}
        )
        assert hijack.status_code == 404

    assert len(conversations.conversations) == 1


@pytest.mark.asyncio
async def test_listing_moderation_flow(api_app, admin_headers):
    owner = {"X-User-Id": "owner_5"}
    payload = {
        "title": "3 BHK House in Jawalakhel",
        "type": "house",
        "location": "Lalitpur",
        "price": 32000,
        "bedrooms": 3,
        "bathrooms": 2,
        "area_sqft": 1900,
        "description": "Quiet lane, garden and parking.",
        "owner_name": "Ram Maharjan",
    }
    async with _client(api_app) as client:
        created = await client.post("/properties", json=payload, headers=owner)
        assert created.status_code == 201
        prop = created.json()
        assert prop["status"] == "pending"
        assert prop["verified"] is False
        assert prop["best_for"] == "Family"

        listed = await client.get("/properties", params={"location": "lalitpur"})
        assert listed.json()["total"] == 0

        assert (await client.get(f"/properties/{prop['property_id']}")).status_code == 404
        assert (await client.get(f"/properties/{prop['property_id']}", headers=owner)).status_code == 200
        mine = await client.get("/properties/mine", headers=owner)
        assert [p["property_id"] for p in mine.json()] == [prop["property_id"]]

        forbidden = await client.patch(f"/admin/properties/{prop['property_id']}/status", json={"status": "approved"})
        assert forbidden.status_code == 403

        approved = await client.patch(
            f"/admin/properties/{prop['property_id']}/status",
            json={"status": "approved", "verified": True},
            headers=admin_headers,
        )
        assert approved.status_code == 200
        assert approved.json()["verified"] is True

        listed = await client.get("/properties", params={"location": "lalitpur", "verified": "true"})
        body = listed.json()
        assert body["total"] == 1
        assert body["pages"] == 1
        assert body["properties"][0]["property_id"] == prop["property_id"]

        detail = await client.get(f"/properties/{prop['property_id']}", params={"duration": 3})
        assert detail.json()["fair_flex_savings"]["discount_rate"] == 0.05
        bad = await client.get(f"/properties/{prop['property_id']}", params={"duration": 4})
        assert bad.status_code == 400


@pytest.mark.asyncio
async def test_admin_routes_require_token(api_app):
    async with _client(api_app) as client:
        assert (await client.get("/admin/properties")).status_code == 403
        assert (await client.get("/admin/bookings", headers={"X-Admin-Token": "wrong"})).status_code == 403


@pytest.mark.asyncio
async def test_booking_lifecycle(api_app, stores, admin_headers):
    properties, bookings, _ = stores
    prop = properties.add(make_property(owner_id="owner_1"))
    check_in = date.today() + timedelta(days=10)
    check_out = check_in + timedelta(days=90)
    renter = {"X-User-Id": "renter_1"}
    owner = {"X-User-Id": "owner_1"}

    async with _client(api_app) as client:
        r = await client.post(
            "/bookings",
            json={"property": str(prop.property_id), "checkInDate": str(check_in), "checkOutDate": str(check_out)},
            headers=renter,
        )
        assert r.status_code == 201
        booking = r.json()
        assert booking["status"] == "pending"
        assert booking["owner_id"] == "owner_1"

        dup = await client.post(
            "/bookings",
            json={"property": str(prop.property_id), "checkInDate": str(check_in), "checkOutDate": str(check_out)},
            headers={"X-User-Id": "renter_2"},
        )
        assert dup.status_code == 409

        own = await client.post(
            "/bookings",
            json={
                "property": str(prop.property_id),
                "checkInDate": str(check_out),
                "checkOutDate": str(check_out + timedelta(days=30)),
            },
            headers=owner,
        )
        assert own.status_code == 400

        assert (await client.get("/bookings/my", headers=renter)).json()["count"] == 1
        assert (await client.get("/bookings/owner", headers=owner)).json()["count"] == 1
        assert (await client.get(f"/bookings/property/{prop.property_id}", headers=renter)).status_code == 403
        assert (await client.get(f"/bookings/property/{prop.property_id}", headers=owner)).json()["count"] == 1

        url = f"/bookings/{booking['booking_id']}/status"
        assert (await client.patch(url, json={"status": "confirmed"}, headers=renter)).status_code == 403

        confirmed = await client.patch(url, json={"status": "approved"}, headers=owner)
        assert confirmed.status_code == 200
        assert confirmed.json()["status"] == "confirmed"

        assert (await client.patch(url, json={"status": "pending"}, headers=owner)).status_code == 400

        cancelled = await client.patch(url, json={"status": "cancelled"}, headers=owner)
        assert cancelled.json()["status"] == "cancelled"
        again = await client.patch(url, json={"status": "confirmed"}, headers=owner)
        assert again.status_code == 400
        assert again.json()["detail"] == "Booking is already cancelled"

        admin = await client.get("/admin/bookings", params={"status": "cancelled"}, headers=admin_headers)
        assert admin.status_code == 200
        assert admin.json()["total"] == 1

        metrics = await client.get("/metrics")
        assert 'booking_rejected_total{reason="overlap"}' in metrics.text

    assert len(bookings.bookings) == 1


@pytest.mark.asyncio
async def test_booking_request_validation(api_app):
    async with _client(api_app) as client:
        r = await client.post(
            "/bookings",
            json={"property": "not-a-uuid", "checkInDate": "2026-01-01", "checkOutDate": "2026-02-01"},
            headers={"X-User-Id": "renter_1"},
        )
        assert r.status_code == 422

        r = await client.post(
            "/bookings",
            json={
                "property": "00000000-0000-0000-0000-000000000000",
                "checkInDate": "2099-01-01",
                "checkOutDate": "2099-02-01",
            },
            headers={"X-User-Id": "renter_1"},
        )
        assert r.status_code == 404


@pytest.mark.asyncio
async def test_request_id_is_echoed_or_generated(api_app):
    async with _client(api_app) as client:
        r = await client.post("/ai/search", json={"query": "hello"}, headers={"X-Request-Id": "req-123"})
        assert r.headers["x-request-id"] == "req-123"
        r = await client.post("/ai/search", json={"query": "hello"})
        assert len(r.headers["x-request-id"]) == 32


class _BrokenPropertyStore(InMemoryPropertyStore):
    async def count_live(self) -> int:
        raise RuntimeError("database unavailable")


@pytest.mark.asyncio
async def test_ai_chat_failure_writes_nothing(api_app, stores):
    from services.api.app import main

    _, _, conversations = stores
    main.app.dependency_overrides[main.get_property_store] = lambda: _BrokenPropertyStore()

    transport = httpx.ASGITransport(app=api_app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        r = await client.post("/ai/chat", json={"message": "flat in Kathmandu"}, headers={"X-User-Id": "renter_1"})
        assert r.status_code == 500

    assert conversations.conversations == {}
    assert conversations.messages == []


@pytest.mark.asyncio
async def test_unmatched_paths_share_one_metrics_label(api_app):
    async with _client(api_app) as client:
        assert (await client.get("/wp-admin/setup.php")).status_code == 404
        metrics = (await client.get("/metrics")).text
        assert 'route="unmatched"' in metrics
        assert "/wp-admin/setup.php" not in metrics


@pytest.mark.asyncio
async def test_owner_updates_and_deletes_listing(api_app, stores, admin_headers):
    properties, _, _ = stores
    prop = properties.add(make_property(owner_id="owner_1", price=18000))
    url = f"/properties/{prop.property_id}"
    owner = {"X-User-Id": "owner_1"}

    async with _client(api_app) as client:
        assert (await client.put(url, json={"price": 17000})).status_code == 401
        assert (await client.put(url, json={"price": 17000}, headers={"X-User-Id": "renter_1"})).status_code == 403
        assert (await client.put(url, json={"status": "approved"}, headers=owner)).status_code == 422
        assert (await client.put(url, json={}, headers=owner)).status_code == 400

        updated = await client.put(url, json={"price": 17000, "title": "  Renovated 2 BHK  "}, headers=owner)
        assert updated.status_code == 200
        assert updated.json()["price"] == 17000
        assert updated.json()["title"] == "Renovated 2 BHK"

        hidden = await client.put(url, json={"is_active": False}, headers=admin_headers | {"X-User-Id": "admin_1"})
        assert hidden.json()["is_active"] is False
        assert (await client.get(url)).status_code == 404

        assert (await client.delete(url, headers={"X-User-Id": "renter_1"})).status_code == 403
        deleted = await client.delete(url, headers=owner)
        assert deleted.status_code == 204
        assert (await client.get(url, headers=owner)).status_code == 404
        assert (await client.delete(url, headers=owner)).status_code == 404


@pytest.mark.asyncio
async def test_listing_with_upcoming_booking_cannot_be_deleted(api_app, stores):
    properties, _, _ = stores
    prop = properties.add(make_property(owner_id="owner_1"))
    check_in = date.today() + timedelta(days=7)

    async with _client(api_app) as client:
        booked = await client.post(
            "/bookings",
            json={
                "property": str(prop.property_id),
                "checkInDate": str(check_in),
                "checkOutDate": str(check_in + timedelta(days=30)),
            },
            headers={"X-User-Id": "renter_1"},
        )
        assert booked.status_code == 201

        r = await client.delete(f"/properties/{prop.property_id}", headers={"X-User-Id": "owner_1"})
        assert r.status_code == 409
        assert prop.property_id in properties.properties


@pytest.mark.asyncio
async def test_admin_stats(api_app, stores, admin_headers):
    from datetime import UTC, datetime

    properties, _, _ = stores
    old = datetime(2020, 1, 1, tzinfo=UTC)
    live = properties.add(make_property(owner_id="owner_1", created_at=old))
    properties.add(make_property(status="pending", created_at=datetime.now(tz=UTC)))
    properties.add(make_property(status="rejected", created_at=old))
    properties.add(make_property(is_active=False, created_at=old))
    check_in = date.today() + timedelta(days=5)

    async with _client(api_app) as client:
        assert (await client.get("/admin/stats")).status_code == 403

        for i, start in enumerate((check_in, check_in + timedelta(days=40))):
            r = await client.post(
                "/bookings",
                json={
                    "property": str(live.property_id),
                    "checkInDate": str(start),
                    "checkOutDate": str(start + timedelta(days=30)),
                },
                headers={"X-User-Id": f"renter_{i}"},
            )
            assert r.status_code == 201
        await client.patch(
            f"/bookings/{r.json()['booking_id']}/status", json={"status": "confirmed"}, headers={"X-User-Id": "owner_1"}
        )

        stats = await client.get("/admin/stats", headers=admin_headers)
        assert stats.status_code == 200
        assert stats.json() == {
            "properties": {"total": 4, "approved": 2, "pending": 1, "rejected": 1, "active": 1, "new_this_month": 1},
            "bookings": {"total": 2, "pending": 1, "confirmed": 1, "cancelled": 0, "this_month": 2},
        }


@pytest.mark.asyncio
async def test_renter_owner_messaging(api_app, stores):
    properties, _, conversations = stores
    prop = properties.add(make_property(owner_id="owner_1"))
    renter = {"X-User-Id": "renter_1"}
    owner = {"X-User-Id": "owner_1"}

    async with _client(api_app) as client:
        opened = await client.post(
            "/conversations", json={"participant_id": "owner_1", "property_id": str(prop.property_id)}, headers=renter
        )
        assert opened.status_code == 201
        conv = opened.json()
        assert conv["type"] == "renter_owner"
        assert conv["participant_id"] == "owner_1"

        reopened = await client.post(
            "/conversations", json={"participant_id": "renter_1", "property_id": str(prop.property_id)}, headers=owner
        )
        assert reopened.status_code == 200
        assert reopened.json()["conversation_id"] == conv["conversation_id"]

        sent = await client.post(
            "/messages",
            json={"conversation_id": conv["conversation_id"], "content": "Is parking included?"},
            headers=renter,
        )
        assert sent.status_code == 201
        message_id = sent.json()["message_id"]
        reply = await client.post(
            "/messages",
            json={"conversation_id": conv["conversation_id"], "content": "Yes, one bike slot."},
            headers=owner,
        )
        assert reply.status_code == 201

        stranger = {"X-User-Id": "renter_9"}
        assert (await client.get(f"/conversations/{conv['conversation_id']}", headers=stranger)).status_code == 403
        assert (
            await client.post(
                "/messages", json={"conversation_id": conv["conversation_id"], "content": "hi"}, headers=stranger
            )
        ).status_code == 403

        inbox = await client.get("/conversations", params={"type": "renter_owner"}, headers=owner)
        assert inbox.json()["count"] == 1
        assert inbox.json()["conversations"][0]["last_message"] == "Yes, one bike slot."

        page = await client.get(
            "/messages", params={"conversation_id": conv["conversation_id"], "limit": 1, "page": 2}, headers=owner
        )
        body = page.json()
        assert (body["total"], body["pages"], body["count"]) == (2, 2, 1)
        assert body["messages"][0]["content"] == "Yes, one bike slot."

        read = await client.put(f"/messages/{message_id}/read", headers=owner)
        assert read.status_code == 200
        assert read.json()["read"] is True
        assert (await client.put(f"/messages/{message_id}/read", headers=stranger)).status_code == 403

    assert len(conversations.messages) == 2
