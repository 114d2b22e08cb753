from __future__ import annotations

import argparse
import hashlib
import json
import os
import random
import uuid
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID

from db.settings import SETTINGS, sync_url


def _now() -> datetime:
    return datetime.now(tz=UTC)


def _det_uuid(*parts: str) -> uuid.UUID:
    h = hashlib.sha256("||".join(parts).encode("utf-8")).hexdigest()
    return uuid.UUID(h[:32])


@dataclass(frozen=True)
class CitySpec:
    city: str
    # Typical monthly rent band (NPR) for a 2-bedroom.
    rent_low: int
    rent_high: int
    neighborhoods: list[str]


CITY_SPECS: list[CitySpec] = [
    CitySpec(
        city="Kathmandu",
        rent_low=15000,
        rent_high=45000,
        neighborhoods=["Thamel", "Baneshwor", "Lazimpat", "Tokha", "Durbar Marg", "Buddhanagar"],
    ),
    CitySpec(
        city="Lalitpur",
        rent_low=14000,
        rent_high=38000,
        neighborhoods=["Patan", "Jawalakhel", "Kupondole", "Sanepa"],
    ),
    CitySpec(
        city="Bhaktapur",
        rent_low=9000,
        rent_high=22000,
        neighborhoods=["Suryabinayak", "Kamalbinayak", "Thimi"],
    ),
    CitySpec(
        city="Pokhara",
        rent_low=10000,
        rent_high=30000,
        neighborhoods=["Lakeside", "Damside", "Bagar", "Chipledhunga"],
    ),
    CitySpec(
        city="Chitwan",
        rent_low=7000,
        rent_high=18000,
        neighborhoods=["Bharatpur", "Sauraha", "Ratnanagar"],
    ),
]


AMENITIES = [
    "wifi",
    "parking",
    "water_tank",
    "solar_backup",
    "furnished",
    "balcony",
    "garden",
    "security",
    "pet_friendly",
    "lift",
]

OWNER_NAMES = [
    "Sita Shrestha",
    "Ram Maharjan",
    "Anita Gurung",
    "Bikash Thapa",
    "Mina Tamang",
    "Suresh Adhikari",
    "Kabita Rai",
    "Prakash Karki",
]

# Listing status mix: mostly live, some awaiting moderation, a few rejected.
STATUS_WEIGHTS = (("approved", 0.75), ("pending", 0.15), ("rejected", 0.10))


def _pick_status(rng: random.Random) -> str:
    x = rng.random()
    acc = 0.0
    for status, weight in STATUS_WEIGHTS:
        acc += weight
        if x < acc:
            return status
    return STATUS_WEIGHTS[-1][0]


def _round_rent(x: float) -> int:
    # Rents are quoted in round hundreds.
    return int(round(x / 500.0)) * 500


def seed(
    database_url: str,
    seed_value: int,
    properties_n: int,
    *,
    owner_count: int = 8,
    bookings_n: int = 0,
) -> dict[str, int]:
    rng = random.Random(seed_value)
    now = _now()

    engine = sa.create_engine(sync_url(database_url), future=True)
    meta = sa.MetaData()

    properties = sa.Table(
        "properties",
        meta,
        sa.Column("property_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column("owner_name", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("location", sa.Text(), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("bedrooms", sa.Integer(), nullable=False),
        sa.Column("bathrooms", sa.Integer(), nullable=False),
        sa.Column("area_sqft", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("image", sa.Text(), nullable=True),
        sa.Column("amenities", JSONB, nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("verified", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    bookings = sa.Table(
        "bookings",
        meta,
        sa.Column("booking_id", UUID(as_uuid=True), primary_key=True),
        sa.Column("property_id", UUID(as_uuid=True), nullable=False),
        sa.Column("renter_id", sa.Text(), nullable=False),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column("check_in", sa.Date(), nullable=False),
        sa.Column("check_out", sa.Date(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    property_rows: list[dict] = []
    for i in range(properties_n):
        city_spec = CITY_SPECS[i % len(CITY_SPECS)]
        neighborhood = rng.choice(city_spec.neighborhoods)
        prop_type = "house" if rng.random() < 0.4 else "flat_apartment"

        if prop_type == "house":
            bedrooms = rng.choice([2, 3, 3, 4, 5])
        else:
            bedrooms = rng.choice([1, 1, 2, 2, 3])
        bathrooms = max(1, bedrooms - rng.choice([0, 1, 1]))
        area_sqft = int(bedrooms * rng.uniform(380, 620)) + (300 if prop_type == "house" else 0)

        base = rng.uniform(city_spec.rent_low, city_spec.rent_high)
        price = max(3000, _round_rent(base * (0.55 + 0.2 * bedrooms)))

        owner_idx = i % owner_count
        property_id = _det_uuid("property", str(seed_value), str(i))
        label = "House" if prop_type == "house" else "Flat"
        created_at = now - timedelta(hours=properties_n - i)

        property_rows.append(
            dict(
                property_id=property_id,
                owner_id=f"owner_{owner_idx}",
                owner_name=OWNER_NAMES[owner_idx % len(OWNER_NAMES)],
                title=f"{bedrooms} BHK {label} in {neighborhood}",
                type=prop_type,
                location=city_spec.city,
                price=price,
                bedrooms=bedrooms,
                bathrooms=bathrooms,
                area_sqft=area_sqft,
                description=f"{label} near {neighborhood}, {city_spec.city}. {bedrooms} bedrooms, {bathrooms} bathrooms.",
                image=f"https://example.invalid/images/{property_id}/cover.jpg",
                amenities=rng.sample(AMENITIES, k=rng.randint(2, 6)),
                status=_pick_status(rng),
                verified=rng.random() < 0.5,
                is_active=rng.random() < 0.95,
                created_at=created_at,
                updated_at=created_at,
            )
        )

    # A few bookings on live listings so owner/renter views are not empty in dev.
    booking_rows: list[dict] = []
    live = [p for p in property_rows if p["status"] == "approved" and p["is_active"]]
    today = date.today()
    for j in range(min(bookings_n, len(live))):
        prop = live[j]
        check_in = today + timedelta(days=7 + 30 * j)
        check_out = check_in + timedelta(days=30 * rng.choice([1, 3, 6]))
        booking_rows.append(
            dict(
                booking_id=_det_uuid("booking", str(seed_value), str(j)),
                property_id=prop["property_id"],
                renter_id=f"renter_{j % 5}",
                owner_id=prop["owner_id"],
                check_in=check_in,
                check_out=check_out,
                status=rng.choice(["pending", "confirmed"]),
                created_at=now,
                updated_at=now,
            )
        )

    # Load into DB (truncate existing rows for deterministic idempotence in dev).
    with engine.begin() as conn:
        conn.execute(sa.text("TRUNCATE TABLE messages, conversations, bookings, properties CASCADE"))
        if property_rows:
            conn.execute(properties.insert(), property_rows)
        if booking_rows:
            conn.execute(bookings.insert(), booking_rows)

        counts = {}
        for table in ["properties", "bookings"]:
            counts[table] = conn.execute(sa.text(f"SELECT COUNT(1) FROM {table}")).scalar_one()
        counts["live_properties"] = conn.execute(
            sa.text("SELECT COUNT(1) FROM properties WHERE status = 'approved' AND is_active")
        ).scalar_one()

    # Verify minimums
    assert counts["properties"] == properties_n, counts

    print(json.dumps({"seed": seed_value, "counts": counts}, indent=2, default=str))
    return counts


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--database-url", default=os.getenv("DATABASE_URL") or SETTINGS.sync_database_url)
    parser.add_argument("--seed", type=int, default=1337)
    parser.add_argument("--properties", type=int, default=120)
    parser.add_argument("--owner-count", type=int, default=8)
    parser.add_argument("--bookings", type=int, default=10)
    args = parser.parse_args()
    seed(
        args.database_url,
        args.seed,
        args.properties,
        owner_count=args.owner_count,
        bookings_n=args.bookings,
    )


if __name__ == "__main__":
    main()
