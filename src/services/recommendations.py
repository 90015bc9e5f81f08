"""Recommendation heuristic.

Preferences are pooled across a user's active saved searches into one
filter; when that yields too few listings the page is padded with the
most-viewed active listings not already selected.
"""

import re
from typing import Any, Iterable, Mapping, Optional
from pydantic import BaseModel, Field
from pymongo.collection import Collection

from src.models.actor import Actor
from src.models.search import PriceBounds
from src.services.filter_parser import MAX_LIMIT, parse_location, parse_price, parse_property, split_values, to_int
from src.services.query_plan import PUBLIC_STATUSES
from src.services.supabase_client import list_active_saved_searches
from src.utils.errors import ListingStoreError
from src.utils.logging import StructuredLogger, get_structured_logger, log_timing, mask_user_id
from src.utils.serialization import serialize_document
from src.utils.store_config import StoreConfig

logger = get_structured_logger(__name__)

DEFAULT_RECOMMENDATIONS = 10
PRICE_PADDING = 0.2

PREFERENCE_SORT = [("created_at", -1), ("view_count", -1), ("_id", -1)]
POPULARITY_SORT = [("view_count", -1), ("_id", -1)]


class Preferences(BaseModel):
    """Coarse preferences pooled from several saved searches."""
    cities: list[str] = Field(default_factory=list)
    property_types: list[str] = Field(default_factory=list)
    bedrooms: list[int] = Field(default_factory=list)
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    has_price: bool = False

    def is_empty(self) -> bool:
        return not (self.cities or self.property_types or self.bedrooms or self.has_price)


def _add_unique(target: list, values: Iterable) -> None:
    for value in values:
        if value not in target:
            target.append(value)


def _upper_bound(price: PriceBounds) -> Optional[float]:
    uppers = [bound for bound in (price.lte, price.lt) if bound is not None]
    return min(uppers) if uppers else None


def extract_preferences(search_queries: Iterable[Mapping[str, Any]]) -> Preferences:
    """Union of cities, types and bedroom counts; envelope of price ranges.

    Each saved filter set goes through the same parser as a live search, so
    price buckets and monthly budgets count toward the envelope. A range
    without a maximum leaves the envelope open-ended.
    """
    prefs = Preferences()
    mins: list[float] = []
    maxes: list[Optional[float]] = []

    for query in search_queries:
        query = query or {}
        location = parse_location(query)
        attributes = parse_property(query)
        _add_unique(prefs.cities, split_values(location.city))
        _add_unique(prefs.property_types, attributes.property_types)
        _add_unique(prefs.bedrooms, attributes.bedrooms)

        price = parse_price(query)
        if not price.is_empty():
            mins.append(price.gte if price.gte is not None else 0)
            maxes.append(_upper_bound(price))

    if mins:
        prefs.has_price = True
        prefs.min_price = min(mins)
        prefs.max_price = None if any(high is None for high in maxes) else max(maxes)

    return prefs


def build_recommendation_filter(prefs: Preferences) -> dict[str, Any]:
    """Active-listing filter matching the pooled preferences."""
    query: dict[str, Any] = {"status": PUBLIC_STATUSES[0]}

    if prefs.cities:
        query["location.city"] = {
            "$in": [re.compile(f"^{re.escape(city)}$", re.IGNORECASE) for city in prefs.cities],
        }
    if prefs.property_types:
        query["property_type"] = {"$in": list(prefs.property_types)}
    if prefs.bedrooms:
        query["bedrooms"] = {"$in": list(prefs.bedrooms)}
    if prefs.has_price:
        price = {"$gte": (prefs.min_price or 0) * (1 - PRICE_PADDING)}
        if prefs.max_price is not None:
            price["$lte"] = prefs.max_price * (1 + PRICE_PADDING)
        query["price"] = price

    return query


def clamp_limit(limit: Any, default: int) -> int:
    value = to_int(limit)
    if value is None or value < 1:
        return default
    return min(value, MAX_LIMIT)


class RecommendationEngine:
    """Personalised listing recommendations."""

    def __init__(
        self,
        collection: Collection,
        max_time_ms: Optional[int] = None,
        log: Optional[StructuredLogger] = None,
    ):
        self.collection = collection
        self.max_time_ms = max_time_ms if max_time_ms is not None else StoreConfig.SEARCH_MAX_TIME_MS
        self.logger = log or logger

    def _find(self, query: dict[str, Any], sort: list[tuple[str, int]], limit: int) -> list[dict]:
        try:
            return list(self.collection.find(query, sort=sort, limit=limit, max_time_ms=self.max_time_ms))
        except Exception as e:
            raise ListingStoreError(f"Recommendation query failed: {e}") from e

    async def recommend(self, user: Actor, limit: Any = DEFAULT_RECOMMENDATIONS) -> list[dict[str, Any]]:
        """Listings matching the user's saved-search preferences, padded by popularity."""
        limit = clamp_limit(limit, DEFAULT_RECOMMENDATIONS)

        with log_timing("recommendations", logger=self.logger):
            rows = await list_active_saved_searches(user.id)
            selected: list[dict] = []

            if rows:
                prefs = extract_preferences(row.get("search_query") or {} for row in rows)
                selected = self._find(build_recommendation_filter(prefs), PREFERENCE_SORT, limit)

            padded = 0
            if len(selected) < limit:
                popular = self._find(
                    {
                        "status": PUBLIC_STATUSES[0],
                        "_id": {"$nin": [doc["_id"] for doc in selected]},
                    },
                    POPULARITY_SORT,
                    limit - len(selected),
                )
                padded = len(popular)
                selected.extend(popular)

        self.logger.info(
            "Recommendations computed",
            user_id=mask_user_id(user.id),
            saved_searches=len(rows),
            returned=len(selected),
            padded=padded,
        )
        return [serialize_document(doc) for doc in selected]
