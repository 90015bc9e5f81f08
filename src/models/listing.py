"""Listing models."""

from enum import Enum
from typing import Literal, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ListingStatus(str, Enum):
    """Listing lifecycle status."""
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    ACTIVE = "active"
    HOLD = "hold"
    SOLD = "sold"
    REJECTED = "rejected"
    ARCHIVED = "archived"


class PropertyType(str, Enum):
    """Property type values."""
    APARTMENT = "apartment"
    VILLA = "villa"
    PLOT = "plot"
    COMMERCIAL = "commercial"
    PG = "pg"
    OFFICE = "office"
    WAREHOUSE = "warehouse"
    SHOP = "shop"
    STUDIO = "studio"


class Furnishing(str, Enum):
    """Furnishing values."""
    FULLY_FURNISHED = "fully-furnished"
    SEMI_FURNISHED = "semi-furnished"
    UNFURNISHED = "unfurnished"


class Facing(str, Enum):
    """Facing directions."""
    NORTH = "north"
    SOUTH = "south"
    EAST = "east"
    WEST = "west"
    NORTH_EAST = "north-east"
    NORTH_WEST = "north-west"
    SOUTH_EAST = "south-east"
    SOUTH_WEST = "south-west"


class LandmarkType(str, Enum):
    """Nearby landmark categories."""
    HOSPITAL = "hospital"
    SCHOOL = "school"
    MALL = "mall"
    AIRPORT = "airport"
    RAILWAY = "railway"
    BUS_STOP = "bus-stop"
    MARKET = "market"
    PARK = "park"
    TEMPLE = "temple"
    OTHER = "other"


class GeoPoint(BaseModel):
    """GeoJSON point stored as [longitude, latitude]."""
    type: Literal["Point"] = "Point"
    coordinates: list[float] = Field(..., description="[longitude, latitude]")

    @field_validator("coordinates")
    @classmethod
    def check_coordinates(cls, value: list[float]) -> list[float]:
        if len(value) != 2:
            raise ValueError("Coordinates must have [longitude, latitude]")
        lng, lat = value
        if not -180 <= lng <= 180:
            raise ValueError("Longitude must be within [-180, 180]")
        if not -90 <= lat <= 90:
            raise ValueError("Latitude must be within [-90, 90]")
        return value

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

    @property
    def latitude(self) -> float:
        return self.coordinates[1]


class Location(BaseModel):
    """Listing address and geo-point."""
    address: str = Field(..., min_length=1, description="Free-text address")
    city: Optional[str] = Field(None, description="City")
    area: str = Field(..., min_length=1, description="Area / neighbourhood")
    state: Optional[str] = None
    country: str = Field(default="India")
    pincode: Optional[str] = Field(None, description="Postal code")
    coordinates: GeoPoint


class NearbyMetro(BaseModel):
    """Nearby transit station."""
    station: str
    line: Optional[str] = None
    distance: float = Field(..., ge=0, description="Distance in km")


class NearbyLandmark(BaseModel):
    """Nearby landmark."""
    name: str
    type: LandmarkType = LandmarkType.OTHER
    distance: float = Field(..., ge=0, description="Distance in km")


class ListingImage(BaseModel):
    """Listing image; at most one should be the main image."""
    url: str
    alt: Optional[str] = None
    is_main: bool = False


class Listing(BaseModel):
    """Property listing as stored in the listings collection."""

    model_config = ConfigDict(use_enum_values=True)

    id: Optional[str] = Field(None, description="Listing ID (stringified ObjectId)")
    title: str = Field(..., min_length=5, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    price: float = Field(..., gt=0)
    location: Location
    bedrooms: Optional[int] = Field(None, ge=0)
    bathrooms: Optional[int] = Field(None, ge=0)
    area_sqft: float = Field(..., gt=0)
    property_type: PropertyType = PropertyType.APARTMENT
    furnishing: Furnishing = Furnishing.UNFURNISHED
    parking: int = Field(default=0, ge=0)
    age_in_years: float = Field(default=0, ge=0)
    facing: Optional[Facing] = None
    amenities: list[str] = Field(default_factory=list)
    nearby_metro: list[NearbyMetro] = Field(default_factory=list)
    nearby_landmarks: list[NearbyLandmark] = Field(default_factory=list)
    images: list[ListingImage] = Field(default_factory=list)
    status: ListingStatus = ListingStatus.PENDING

    view_count: int = Field(default=0, ge=0)
    inquiry_count: int = Field(default=0, ge=0)
    share_count: int = Field(default=0, ge=0)
    favorite_count: int = Field(default=0, ge=0)

    is_featured: bool = False
    featured_at: Optional[datetime] = None
    featured_till: Optional[datetime] = None

    owner_id: str = Field(..., description="Owning user ID")
    approved_by: Optional[str] = Field(None, description="Moderator who last approved/rejected")
    approved_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None

    price_per_sqft: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("amenities")
    @classmethod
    def normalize_amenities(cls, value: list[str]) -> list[str]:
        seen = []
        for amenity in value:
            amenity = amenity.strip()
            if amenity and amenity not in seen:
                seen.append(amenity)
        return seen

    def to_document(self) -> dict:
        """Document shape written to the listings collection."""
        return self.model_dump(exclude={"id"})
