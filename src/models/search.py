"""Typed filter intents and search results."""

from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field


class SortKey(str, Enum):
    """Client-selectable sort orders."""
    RELEVANCE = "relevance"
    PRICE_LOW = "price_low"
    PRICE_HIGH = "price_high"
    AREA_LARGE = "area_large"
    AREA_SMALL = "area_small"
    NEWEST = "newest"
    OLDEST = "oldest"
    POPULAR = "popular"


class AgeBucket(str, Enum):
    """Named property-age ranges."""
    NEW = "new"
    RECENT = "recent"
    ESTABLISHED = "established"
    OLD = "old"


class LocationTerms(BaseModel):
    """Case-insensitive substring location filters."""
    city: Optional[str] = None
    area: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None
    locality: Optional[str] = Field(None, description="Matches area or address")

    def is_empty(self) -> bool:
        return not any((self.city, self.area, self.state, self.pincode, self.locality))


class PriceBounds(BaseModel):
    """Price range; upper bounds may be inclusive (lte) and/or exclusive (lt)."""
    gte: Optional[float] = None
    lte: Optional[float] = None
    lt: Optional[float] = None

    def is_empty(self) -> bool:
        return self.gte is None and self.lte is None and self.lt is None


class PropertyFilters(BaseModel):
    """Property attribute filters."""
    bedrooms: list[int] = Field(default_factory=list)
    bathrooms_min: Optional[int] = None
    area_min: Optional[float] = None
    area_max: Optional[float] = None
    property_types: list[str] = Field(default_factory=list)
    furnishing: Optional[str] = None
    parking_min: Optional[int] = None
    age: Optional[AgeBucket] = None
    facing: list[str] = Field(default_factory=list)
    amenities: list[str] = Field(default_factory=list, description="All must be present")

    def is_empty(self) -> bool:
        return self == PropertyFilters()


class GeoFilter(BaseModel):
    """Radius search around a point and/or transit/landmark proximity."""
    longitude: Optional[float] = None
    latitude: Optional[float] = None
    radius_km: Optional[float] = Field(None, description="Requested radius; clamped when the plan is built")
    metro: Optional[str] = None
    landmark: Optional[str] = None

    @property
    def has_point(self) -> bool:
        return self.longitude is not None and self.latitude is not None and self.radius_km is not None

    def is_empty(self) -> bool:
        return not self.has_point and not self.metro and not self.landmark


class SearchIntent(BaseModel):
    """Normalized filter parameters grouped by concern."""
    location: LocationTerms = Field(default_factory=LocationTerms)
    price: PriceBounds = Field(default_factory=PriceBounds)
    property: PropertyFilters = Field(default_factory=PropertyFilters)
    geo: GeoFilter = Field(default_factory=GeoFilter)
    text: Optional[str] = None
    sort: Optional[SortKey] = Field(None, description="None when the caller did not choose")
    statuses: list[str] = Field(default_factory=list, description="Requested statuses (honoured for moderators only)")
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=50)


class SearchResult(BaseModel):
    """A page of listings plus the total match count."""
    items: list[dict[str, Any]] = Field(default_factory=list)
    total: int = Field(default=0, ge=0)
    page: int = 1
    limit: int = 20
    degraded: bool = Field(default=False, description="Internal only; never sent to callers")

    def to_response(self) -> dict:
        return {
            "items": self.items,
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
        }
