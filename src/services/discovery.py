"""Discovery rankings: popular, trending, featured, similar and nearby listings, plus side-by-side comparison."""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from bson import ObjectId
from pymongo.collection import Collection

from src.services.filter_parser import split_values
from src.models.search import GeoFilter
from src.services.query_plan import PROXIMITY_KM, PUBLIC_STATUSES, contains, geo_predicate
from src.services.recommendations import clamp_limit
from src.utils.errors import ListingStoreError, NotFoundError, ValidationError
from src.utils.logging import StructuredLogger, get_structured_logger
from src.utils.serialization import serialize_document, to_object_id
from src.utils.store_config import StoreConfig

logger = get_structured_logger(__name__)

DEFAULT_POPULAR = 15
DEFAULT_TRENDING = 20
DEFAULT_FEATURED = 10
DEFAULT_SIMILAR = 8
RELATED_SIMILAR = 4
RELATED_NEARBY = 3
MAX_COMPARE = 4

# Trending score weights
VIEW_WEIGHT = 0.3
INQUIRY_WEIGHT = 0.5
SHARE_WEIGHT = 0.2
RECENCY_BONUS = 10
RECENCY_WINDOW = timedelta(days=7)

SIMILAR_PRICE_LOW = 0.6
SIMILAR_PRICE_HIGH = 1.4

ENGAGEMENT_SORT = [("view_count", -1), ("inquiry_count", -1), ("favorite_count", -1), ("_id", -1)]
SIMILAR_SORT = [("view_count", -1), ("created_at", -1), ("_id", -1)]
FEATURED_SORT = [("featured_at", -1), ("_id", -1)]

COMPARE_FIELDS = {
    "title": 1,
    "price": 1,
    "location": 1,
    "bedrooms": 1,
    "bathrooms": 1,
    "area_sqft": 1,
    "amenities": 1,
    "property_type": 1,
    "furnishing": 1,
    "age_in_years": 1,
    "images": 1,
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def popular_filter(city: Optional[str] = None, property_type: Optional[str] = None) -> dict[str, Any]:
    query: dict[str, Any] = {"status": PUBLIC_STATUSES[0]}
    city = next(iter(split_values(city)), None)
    if city:
        query["location.city"] = contains(city)
    property_type = next(iter(split_values(property_type)), None)
    if property_type:
        query["property_type"] = property_type.lower()
    return query


def trending_pipeline(limit: int, now: datetime) -> list[dict[str, Any]]:
    """Score = weighted engagement plus a bonus for listings created in the last week."""
    return [
        {"$match": {"status": PUBLIC_STATUSES[0]}},
        {
            "$addFields": {
                "trending_score": {
                    "$add": [
                        {"$multiply": [{"$ifNull": ["$view_count", 0]}, VIEW_WEIGHT]},
                        {"$multiply": [{"$ifNull": ["$inquiry_count", 0]}, INQUIRY_WEIGHT]},
                        {"$multiply": [{"$ifNull": ["$share_count", 0]}, SHARE_WEIGHT]},
                        {"$cond": [{"$gte": ["$created_at", now - RECENCY_WINDOW]}, RECENCY_BONUS, 0]},
                    ],
                },
            },
        },
        {"$sort": {"trending_score": -1, "view_count": -1, "_id": -1}},
        {"$limit": limit},
    ]


def featured_filter(now: datetime, city: Optional[str] = None) -> dict[str, Any]:
    """Featured active listings whose window has not closed."""
    query: dict[str, Any] = {
        "status": PUBLIC_STATUSES[0],
        "is_featured": True,
        "$or": [{"featured_till": None}, {"featured_till": {"$gte": now}}],
    }
    city = next(iter(split_values(city)), None)
    if city:
        query["location.city"] = contains(city)
    return query


def similar_filter(reference: dict[str, Any]) -> dict[str, Any]:
    """Same city or area, same type or bedrooms within one, price within 60-140%."""
    location = reference.get("location") or {}
    place = [{"location.area": location.get("area")}]
    if location.get("city"):
        place.insert(0, {"location.city": location["city"]})

    kind: list[dict[str, Any]] = [{"property_type": reference.get("property_type")}]
    bedrooms = reference.get("bedrooms")
    if bedrooms is not None:
        kind.append({"bedrooms": {"$in": [bedrooms - 1, bedrooms, bedrooms + 1]}})

    price = reference.get("price") or 0
    return {
        "_id": {"$ne": reference["_id"]},
        "status": PUBLIC_STATUSES[0],
        "$and": [
            {"$or": place},
            {"$or": kind},
            {"price": {"$gte": price * SIMILAR_PRICE_LOW, "$lte": price * SIMILAR_PRICE_HIGH}},
        ],
    }


def nearby_filter(reference: dict[str, Any], radius_km: float = PROXIMITY_KM) -> Optional[dict[str, Any]]:
    """Other active listings within ``radius_km`` of the reference point, or None without coordinates."""
    point = ((reference.get("location") or {}).get("coordinates") or {}).get("coordinates")
    if not point or len(point) != 2:
        return None

    longitude, latitude = point
    predicate = geo_predicate(GeoFilter(longitude=longitude, latitude=latitude, radius_km=radius_km))
    return {"_id": {"$ne": reference["_id"]}, "status": PUBLIC_STATUSES[0], **predicate}


def comparison_metrics(docs: list[dict[str, Any]]) -> dict[str, Any]:
    """Price and area spread plus per-listing price per sq.ft (None without an area)."""
    prices = [doc["price"] for doc in docs if doc.get("price") is not None]
    areas = [doc["area_sqft"] for doc in docs if doc.get("area_sqft")]

    per_sqft = []
    for doc in docs:
        price, area = doc.get("price"), doc.get("area_sqft")
        per_sqft.append({
            "id": str(doc["_id"]),
            "value": round(price / area) if price is not None and area else None,
        })

    return {
        "price_range": {"min": min(prices), "max": max(prices)} if prices else None,
        "area_range": {"min": min(areas), "max": max(areas)} if areas else None,
        "price_per_sqft": per_sqft,
    }


def compare_ids(ids: Any) -> list[ObjectId]:
    """First MAX_COMPARE distinct ids; malformed ids are dropped."""
    object_ids: list[ObjectId] = []
    for token in split_values(ids):
        if not ObjectId.is_valid(token):
            continue
        object_id = ObjectId(token)
        if object_id not in object_ids:
            object_ids.append(object_id)
    return object_ids[:MAX_COMPARE]


class DiscoveryService:
    """Engagement-ranked listing feeds."""

    def __init__(
        self,
        collection: Collection,
        max_time_ms: Optional[int] = None,
        log: Optional[StructuredLogger] = None,
    ):
        self.collection = collection
        self.max_time_ms = max_time_ms if max_time_ms is not None else StoreConfig.SEARCH_MAX_TIME_MS
        self.logger = log or logger

    def _find(self, query: dict[str, Any], sort: list[tuple[str, int]], limit: int) -> list[dict[str, Any]]:
        try:
            docs = list(self.collection.find(query, sort=sort, limit=limit, max_time_ms=self.max_time_ms))
        except Exception as e:
            raise ListingStoreError(f"Discovery query failed: {e}") from e
        return [serialize_document(doc) for doc in docs]

    async def popular(
        self,
        limit: Any = DEFAULT_POPULAR,
        city: Optional[str] = None,
        property_type: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """Active listings ranked by views, then inquiries, then favorites."""
        limit = clamp_limit(limit, DEFAULT_POPULAR)
        return self._find(popular_filter(city, property_type), ENGAGEMENT_SORT, limit)

    async def trending(self, limit: Any = DEFAULT_TRENDING, now: Optional[datetime] = None) -> list[dict[str, Any]]:
        limit = clamp_limit(limit, DEFAULT_TRENDING)
        try:
            docs = list(self.collection.aggregate(
                trending_pipeline(limit, now or _now()),
                maxTimeMS=self.max_time_ms,
            ))
        except Exception as e:
            raise ListingStoreError(f"Trending query failed: {e}") from e
        return [serialize_document(doc) for doc in docs]

    async def featured(
        self,
        limit: Any = DEFAULT_FEATURED,
        city: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> list[dict[str, Any]]:
        limit = clamp_limit(limit, DEFAULT_FEATURED)
        return self._find(featured_filter(now or _now(), city), FEATURED_SORT, limit)

    def _reference(self, listing_id: str) -> dict[str, Any]:
        object_id = to_object_id(listing_id)
        try:
            reference = self.collection.find_one({"_id": object_id})
        except Exception as e:
            raise ListingStoreError(f"Listing lookup failed: {e}") from e
        if not reference:
            raise NotFoundError(f"Listing not found: {listing_id}")
        return reference

    async def similar(self, listing_id: str, limit: Any = DEFAULT_SIMILAR) -> list[dict[str, Any]]:
        """Listings resembling ``listing_id``; NotFoundError if it does not exist."""
        limit = clamp_limit(limit, DEFAULT_SIMILAR)
        similar = self._find(similar_filter(self._reference(listing_id)), SIMILAR_SORT, limit)
        self.logger.debug("Similar listings found", listing_id=listing_id, returned=len(similar))
        return similar

    async def related(self, listing_id: str) -> dict[str, list[dict[str, Any]]]:
        """Short similar and nearby lists shown alongside a listing."""
        reference = self._reference(listing_id)
        similar = self._find(similar_filter(reference), SIMILAR_SORT, RELATED_SIMILAR)

        nearby: list[dict[str, Any]] = []
        query = nearby_filter(reference)
        if query is not None:
            nearby = self._find(query, SIMILAR_SORT, RELATED_NEARBY)

        return {"similar": similar, "nearby": nearby}

    async def compare(self, ids: Any) -> dict[str, Any]:
        """Up to four active listings side by side, in request order."""
        if not split_values(ids):
            raise ValidationError("Listing ids are required")

        object_ids = compare_ids(ids)
        docs: list[dict[str, Any]] = []
        if object_ids:
            try:
                docs = list(self.collection.find(
                    {"_id": {"$in": object_ids}, "status": PUBLIC_STATUSES[0]},
                    COMPARE_FIELDS,
                    max_time_ms=self.max_time_ms,
                ))
            except Exception as e:
                raise ListingStoreError(f"Comparison query failed: {e}") from e
        if not docs:
            raise NotFoundError("No listings found to compare")

        docs.sort(key=lambda doc: object_ids.index(doc["_id"]))
        self.logger.debug("Listings compared", requested=len(object_ids), found=len(docs))
        return {
            "listings": [serialize_document(doc) for doc in docs],
            "metrics": comparison_metrics(docs),
        }
