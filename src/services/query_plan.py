"""Query plan - the store-agnostic representation of one search request.

A plan is an immutable value: predicate groups keyed by concern, an
optional free-text scoring directive, a sort key and pagination. Every
builder step returns a new plan, so there are no partially-built states
and the order in which groups are added never changes the result.
Rendering to a find query or an aggregation pipeline lives in
``src.services.plan_renderers``.
"""

import re
from typing import Any, Iterable, Optional
from pydantic import BaseModel, ConfigDict, Field

from src.models.listing import ListingStatus
from src.models.search import (
    AgeBucket,
    GeoFilter,
    LocationTerms,
    PriceBounds,
    PropertyFilters,
    SearchIntent,
    SortKey,
)
from src.services.filter_parser import DEFAULT_LIMIT, MAX_LIMIT, MIN_TEXT_LENGTH

PUBLIC_STATUSES = (ListingStatus.ACTIVE.value,)

EARTH_RADIUS_KM = 6378.1
MAX_RADIUS_KM = 50.0
PROXIMITY_KM = 2.0

AGE_RANGES = {
    AgeBucket.NEW: {"$lte": 1},
    AgeBucket.RECENT: {"$gte": 1, "$lte": 5},
    AgeBucket.ESTABLISHED: {"$gte": 5, "$lte": 10},
    AgeBucket.OLD: {"$gte": 10},
}

# Fields a free-text term is matched against
TEXT_FIELDS = (
    "title",
    "description",
    "location.address",
    "location.city",
    "location.area",
    "location.state",
)


def contains(term: str) -> dict:
    """Case-insensitive substring predicate; the term is matched literally."""
    return {"$regex": re.escape(term), "$options": "i"}


class TextScoring(BaseModel):
    """Free-text term plus the weights of the relevance score."""

    model_config = ConfigDict(frozen=True)

    term: str
    base_weight: float = 1
    title_weight: float = 5
    city_weight: float = 3


class QueryPlan(BaseModel):
    """Immutable search plan."""

    model_config = ConfigDict(frozen=True)

    statuses: Optional[tuple[str, ...]] = PUBLIC_STATUSES
    groups: dict[str, dict[str, Any]] = Field(default_factory=dict)
    text: Optional[TextScoring] = None
    sort: Optional[SortKey] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT)

    @property
    def is_scored(self) -> bool:
        return self.text is not None

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    def with_statuses(self, statuses: Optional[Iterable[str]]) -> "QueryPlan":
        return self.model_copy(update={"statuses": tuple(statuses) if statuses is not None else None})

    def with_group(self, name: str, predicate: Optional[dict[str, Any]]) -> "QueryPlan":
        if not predicate:
            return self
        return self.model_copy(update={"groups": {**self.groups, name: predicate}})

    def with_text(self, term: Optional[str]) -> "QueryPlan":
        term = term.strip() if term else None
        if not term or len(term) < MIN_TEXT_LENGTH:
            return self
        return self.model_copy(update={"text": TextScoring(term=term)})

    def with_sort(self, sort: Optional[SortKey]) -> "QueryPlan":
        return self.model_copy(update={"sort": sort})

    def with_pagination(self, page: int, limit: int) -> "QueryPlan":
        return self.model_copy(update={
            "page": max(page, 1),
            "limit": min(max(limit, 1), MAX_LIMIT),
        })

    def status_predicate(self) -> Optional[dict[str, Any]]:
        if not self.statuses:
            return None
        if len(self.statuses) == 1:
            return {"status": self.statuses[0]}
        return {"status": {"$in": list(self.statuses)}}

    def base_filter(self) -> dict[str, Any]:
        """Status restriction AND every predicate group, in a canonical order."""
        parts = []
        status = self.status_predicate()
        if status:
            parts.append(status)
        parts.extend(self.groups[name] for name in sorted(self.groups))

        if not parts:
            return {}
        if len(parts) == 1:
            return dict(parts[0])
        return {"$and": parts}


def location_predicate(terms: LocationTerms) -> Optional[dict[str, Any]]:
    predicate = {}
    if terms.city:
        predicate["location.city"] = contains(terms.city)
    if terms.area:
        predicate["location.area"] = contains(terms.area)
    if terms.state:
        predicate["location.state"] = contains(terms.state)
    if terms.pincode:
        predicate["location.pincode"] = contains(terms.pincode)
    if terms.locality:
        predicate["$or"] = [
            {"location.area": contains(terms.locality)},
            {"location.address": contains(terms.locality)},
        ]
    return predicate or None


def price_predicate(bounds: PriceBounds) -> Optional[dict[str, Any]]:
    condition = {}
    if bounds.gte is not None:
        condition["$gte"] = bounds.gte
    if bounds.lt is not None:
        condition["$lt"] = bounds.lt
    if bounds.lte is not None:
        condition["$lte"] = bounds.lte
    return {"price": condition} if condition else None


def _one_or_many(values: list) -> Any:
    return values[0] if len(values) == 1 else {"$in": list(values)}


def property_predicate(filters: PropertyFilters) -> Optional[dict[str, Any]]:
    predicate = {}

    if filters.bedrooms:
        predicate["bedrooms"] = _one_or_many(filters.bedrooms)
    if filters.bathrooms_min is not None:
        predicate["bathrooms"] = {"$gte": filters.bathrooms_min}

    area = {}
    if filters.area_min is not None:
        area["$gte"] = filters.area_min
    if filters.area_max is not None:
        area["$lte"] = filters.area_max
    if area:
        predicate["area_sqft"] = area

    if filters.property_types:
        predicate["property_type"] = _one_or_many(filters.property_types)
    if filters.furnishing:
        predicate["furnishing"] = filters.furnishing
    if filters.parking_min is not None:
        predicate["parking"] = {"$gte": filters.parking_min}
    if filters.age is not None:
        predicate["age_in_years"] = dict(AGE_RANGES[filters.age])
    if filters.facing:
        predicate["facing"] = {"$in": list(filters.facing)}
    if filters.amenities:
        # Every listed amenity must be present
        predicate["amenities"] = {"$all": list(filters.amenities)}

    return predicate or None


def clamp_radius(radius_km: float) -> float:
    return min(radius_km, MAX_RADIUS_KM)


def geo_predicate(geo: GeoFilter) -> Optional[dict[str, Any]]:
    predicate = {}

    if geo.has_point:
        radians = clamp_radius(geo.radius_km) / EARTH_RADIUS_KM
        predicate["location.coordinates"] = {
            "$geoWithin": {
                "$centerSphere": [[geo.longitude, geo.latitude], radians],
            },
        }
    if geo.metro:
        predicate["nearby_metro"] = {
            "$elemMatch": {"station": contains(geo.metro), "distance": {"$lte": PROXIMITY_KM}},
        }
    if geo.landmark:
        predicate["nearby_landmarks"] = {
            "$elemMatch": {"name": contains(geo.landmark), "distance": {"$lte": PROXIMITY_KM}},
        }

    return predicate or None


def text_match_predicate(term: str, fields: Iterable[str] = TEXT_FIELDS) -> dict[str, Any]:
    return {"$or": [{field: contains(term)} for field in fields]}


def _regex_bonus(field: str, term: str, weight: float) -> dict[str, Any]:
    return {
        "$cond": [
            {
                "$regexMatch": {
                    "input": {"$ifNull": [f"${field}", ""]},
                    "regex": re.escape(term),
                    "options": "i",
                },
            },
            weight,
            0,
        ],
    }


def score_expression(scoring: TextScoring) -> dict[str, Any]:
    """Relevance = base weight + title bonus + city bonus."""
    return {
        "$add": [
            scoring.base_weight,
            _regex_bonus("title", scoring.term, scoring.title_weight),
            _regex_bonus("location.city", scoring.term, scoring.city_weight),
        ],
    }


class QueryPlanBuilder:
    """Chainable, immutable plan builder.

    Each step returns a new builder around a new plan::

        plan = (QueryPlanBuilder()
                .search(intent.text)
                .location(intent.location)
                .price(intent.price)
                .build())
    """

    def __init__(self, plan: Optional[QueryPlan] = None):
        self._plan = plan or QueryPlan()

    def _next(self, plan: QueryPlan) -> "QueryPlanBuilder":
        return QueryPlanBuilder(plan)

    def statuses(self, statuses: Optional[Iterable[str]]) -> "QueryPlanBuilder":
        return self._next(self._plan.with_statuses(statuses))

    def owner(self, owner_id: Optional[str]) -> "QueryPlanBuilder":
        return self._next(self._plan.with_group("owner", {"owner_id": owner_id} if owner_id else None))

    def search(self, term: Optional[str]) -> "QueryPlanBuilder":
        return self._next(self._plan.with_text(term))

    def location(self, terms: LocationTerms) -> "QueryPlanBuilder":
        return self._next(self._plan.with_group("location", location_predicate(terms)))

    def price(self, bounds: PriceBounds) -> "QueryPlanBuilder":
        return self._next(self._plan.with_group("price", price_predicate(bounds)))

    def attributes(self, filters: PropertyFilters) -> "QueryPlanBuilder":
        return self._next(self._plan.with_group("property", property_predicate(filters)))

    def geo(self, geo: GeoFilter) -> "QueryPlanBuilder":
        return self._next(self._plan.with_group("geo", geo_predicate(geo)))

    def predicate(self, name: str, predicate: Optional[dict[str, Any]]) -> "QueryPlanBuilder":
        return self._next(self._plan.with_group(name, predicate))

    def sort(self, sort: Optional[SortKey]) -> "QueryPlanBuilder":
        return self._next(self._plan.with_sort(sort))

    def paginate(self, page: int, limit: int) -> "QueryPlanBuilder":
        return self._next(self._plan.with_pagination(page, limit))

    def build(self) -> QueryPlan:
        return self._plan


def build_plan(
    intent: SearchIntent,
    statuses: Optional[Iterable[str]] = PUBLIC_STATUSES,
    owner_id: Optional[str] = None,
) -> QueryPlan:
    """Assemble the plan for a parsed search request."""
    return (
        QueryPlanBuilder()
        .statuses(statuses)
        .owner(owner_id)
        .search(intent.text)
        .location(intent.location)
        .price(intent.price)
        .attributes(intent.property)
        .geo(intent.geo)
        .sort(intent.sort)
        .paginate(intent.page, intent.limit)
        .build()
    )
