"""Test data factories using Faker."""

from faker import Faker
from typing import Optional
from datetime import datetime, timezone
from bson import ObjectId
from ulid import ULID

fake = Faker()

CITIES = ["Mumbai", "Pune", "Bengaluru", "Hyderabad", "Chennai"]


def create_listing_data(**overrides) -> dict:
    """Create a listing payload as a client would submit it."""
    data = {
        "title": f"{fake.random_int(min=1, max=4)} BHK apartment in {fake.random_element(CITIES)}",
        "description": fake.text(max_nb_chars=200),
        "price": float(fake.random_int(min=1_000_000, max=40_000_000)),
        "location": {
            "address": fake.street_address(),
            "city": fake.random_element(CITIES),
            "area": fake.street_name(),
            "state": "Maharashtra",
            "pincode": fake.postcode(),
            "coordinates": {
                "type": "Point",
                "coordinates": [
                    float(fake.longitude()),
                    float(fake.latitude()),
                ],
            },
        },
        "bedrooms": fake.random_int(min=1, max=5),
        "bathrooms": fake.random_int(min=1, max=4),
        "area_sqft": float(fake.random_int(min=400, max=4000)),
        "property_type": "apartment",
        "furnishing": "semi-furnished",
        "amenities": ["gym", "pool"],
    }
    data.update(overrides)
    return data


def create_listing_document(
    owner_id: Optional[str] = None,
    status: str = "active",
    **overrides,
) -> dict:
    """Create a listing document as stored in MongoDB."""
    doc = create_listing_data()
    doc.update({
        "_id": ObjectId(),
        "owner_id": owner_id or f"user-{fake.random_int(min=100, max=999)}",
        "status": status,
        "view_count": fake.random_int(min=0, max=500),
        "inquiry_count": fake.random_int(min=0, max=50),
        "share_count": 0,
        "favorite_count": 0,
        "is_featured": False,
        "created_at": datetime(2024, 12, 1, tzinfo=timezone.utc),
        "updated_at": datetime(2024, 12, 1, tzinfo=timezone.utc),
    })
    doc.update(overrides)
    return doc


def create_saved_search_row(user_id: str = "user-1", **overrides) -> dict:
    """Create a saved_searches row as returned by Supabase."""
    row = {
        "id": str(ULID()),
        "user_id": user_id,
        "name": fake.sentence(nb_words=3).rstrip("."),
        "search_query": {"city": fake.random_element(CITIES), "bedrooms": ["2"]},
        "alert_frequency": "weekly",
        "description": None,
        "is_active": True,
        "last_executed_at": None,
        "last_alert_sent_at": None,
        "result_count": 0,
        "created_at": "2024-12-01T10:00:00+00:00",
        "updated_at": "2024-12-01T10:00:00+00:00",
    }
    row.update(overrides)
    return row
