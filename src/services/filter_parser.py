"""Filter parameter parser - normalize stringly-typed query parameters into a SearchIntent.

Malformed values never raise: the offending filter is simply left out so a
search with a typo still returns results.
"""

import math
from typing import Any, Mapping, Optional

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

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 50
MIN_TEXT_LENGTH = 2

# Monthly budget -> price ceiling: budget * 12 * term / down-payment fraction
BUDGET_TERM_YEARS = 20
BUDGET_DOWN_PAYMENT_FRACTION = 0.8

# id -> (lower inclusive, upper exclusive); None means unbounded
PRICE_BUCKETS = {
    "1": (0, 2_500_000),
    "2": (2_500_000, 5_000_000),
    "3": (5_000_000, 10_000_000),
    "4": (10_000_000, 20_000_000),
    "5": (20_000_000, 50_000_000),
    "6": (50_000_000, None),
}

PRICE_BUCKET_LABELS = {
    "1": "Under 25 Lakh",
    "2": "25L - 50L",
    "3": "50L - 1 Cr",
    "4": "1 Cr - 2 Cr",
    "5": "2 Cr - 5 Cr",
    "6": "Above 5 Cr",
}

AREA_BUCKETS = {
    "1": ("Under 500 sq.ft", 0, 500),
    "2": ("500 - 1000 sq.ft", 500, 1000),
    "3": ("1000 - 1500 sq.ft", 1000, 1500),
    "4": ("1500 - 2000 sq.ft", 1500, 2000),
    "5": ("2000 - 3000 sq.ft", 2000, 3000),
    "6": ("Above 3000 sq.ft", 3000, None),
}


def price_bucket_table() -> list[dict]:
    """Price buckets as exposed to filter UIs."""
    return [
        {"id": bucket_id, "label": PRICE_BUCKET_LABELS[bucket_id], "min": low, "max": high}
        for bucket_id, (low, high) in PRICE_BUCKETS.items()
    ]


def area_bucket_table() -> list[dict]:
    """Area buckets as exposed to filter UIs."""
    return [
        {"id": bucket_id, "label": label, "min": low, "max": high}
        for bucket_id, (label, low, high) in AREA_BUCKETS.items()
    ]


def split_values(value: Any) -> list[str]:
    """Flatten a scalar, comma-joined string or array into trimmed tokens."""
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        tokens = []
        for item in value:
            tokens.extend(split_values(item))
        return tokens
    if isinstance(value, bool):
        return [str(value).lower()]
    return [token.strip() for token in str(value).split(",") if token.strip()]


def _first(value: Any) -> Optional[str]:
    tokens = split_values(value)
    return tokens[0] if tokens else None


def _text(value: Any) -> Optional[str]:
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def to_float(value: Any) -> Optional[float]:
    """Parse a finite number, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def to_int(value: Any) -> Optional[int]:
    """Parse an integral number ("3" or "3.0"), or None."""
    number = to_float(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def _non_negative(number: Optional[float]) -> Optional[float]:
    return number if number is not None and number >= 0 else None


def parse_location(params: Mapping[str, Any]) -> LocationTerms:
    return LocationTerms(
        city=_text(params.get("city")),
        area=_text(params.get("area")),
        state=_text(params.get("state")),
        pincode=_text(params.get("pincode") or params.get("postalCode")),
        locality=_text(params.get("locality")),
    )


def parse_price(params: Mapping[str, Any]) -> PriceBounds:
    """Combine minPrice/maxPrice, a bucket id and a monthly budget into one range.

    When several sources bound the same side the tightest bound wins.
    """
    lowers = []
    upper_inclusive = []
    upper_exclusive = []

    min_price = _non_negative(to_float(_first(params.get("minPrice"))))
    if min_price is not None:
        lowers.append(min_price)

    max_price = _non_negative(to_float(_first(params.get("maxPrice"))))
    if max_price is not None:
        upper_inclusive.append(max_price)

    bucket_id = to_int(_first(params.get("priceRange")))
    bucket = PRICE_BUCKETS.get(str(bucket_id)) if bucket_id is not None else None
    if bucket is not None:
        low, high = bucket
        lowers.append(low)
        if high is not None:
            upper_exclusive.append(high)

    budget = to_float(_first(params.get("budget")))
    if budget is not None and budget > 0:
        upper_inclusive.append(budget * 12 * BUDGET_TERM_YEARS / BUDGET_DOWN_PAYMENT_FRACTION)

    return PriceBounds(
        gte=max(lowers) if lowers else None,
        lte=min(upper_inclusive) if upper_inclusive else None,
        lt=min(upper_exclusive) if upper_exclusive else None,
    )


def parse_property(params: Mapping[str, Any]) -> PropertyFilters:
    bedrooms = []
    for token in split_values(params.get("bedrooms")):
        count = to_int(token)
        if count is not None and count >= 0 and count not in bedrooms:
            bedrooms.append(count)

    # Saved searches store bathrooms as an array; the smallest value is the minimum
    bathroom_values = [to_int(token) for token in split_values(params.get("bathrooms"))]
    bathroom_values = [value for value in bathroom_values if value is not None and value >= 0]

    age = None
    age_token = _first(params.get("age"))
    if age_token:
        try:
            age = AgeBucket(age_token.lower())
        except ValueError:
            age = None

    parking = to_int(_first(params.get("parking")))
    furnishing = _first(params.get("furnishing"))

    return PropertyFilters(
        bedrooms=bedrooms,
        bathrooms_min=min(bathroom_values) if bathroom_values else None,
        area_min=_non_negative(to_float(_first(params.get("minArea")))),
        area_max=_non_negative(to_float(_first(params.get("maxArea")))),
        property_types=_unique(token.lower() for token in split_values(params.get("propertyType"))),
        furnishing=furnishing.lower() if furnishing else None,
        parking_min=parking if parking is not None and parking >= 0 else None,
        age=age,
        facing=_unique(token.lower() for token in split_values(params.get("facing"))),
        amenities=_unique(split_values(params.get("amenities"))),
    )


def parse_geo(params: Mapping[str, Any]) -> GeoFilter:
    latitude = to_float(_first(params.get("lat")))
    longitude = to_float(_first(params.get("lng")))
    radius = to_float(_first(params.get("radius")))

    point_ok = (
        latitude is not None and -90 <= latitude <= 90
        and longitude is not None and -180 <= longitude <= 180
        and radius is not None and radius > 0
    )

    return GeoFilter(
        latitude=latitude if point_ok else None,
        longitude=longitude if point_ok else None,
        radius_km=radius if point_ok else None,
        metro=_text(params.get("metro")),
        landmark=_text(params.get("landmark")),
    )


def parse_text(params: Mapping[str, Any]) -> Optional[str]:
    term = _text(params.get("q")) or _text(params.get("search"))
    if term is None or len(term) < MIN_TEXT_LENGTH:
        return None
    return term


def parse_sort(params: Mapping[str, Any]) -> Optional[SortKey]:
    token = _first(params.get("sortBy") or params.get("sort"))
    if not token:
        return None
    try:
        return SortKey(token.lower())
    except ValueError:
        return None


def parse_pagination(params: Mapping[str, Any]) -> tuple[int, int]:
    """Return (page, limit); page >= 1, 1 <= limit <= MAX_LIMIT."""
    page = to_int(_first(params.get("page")))
    if page is None or page < 1:
        page = DEFAULT_PAGE

    limit = to_int(_first(params.get("limit")))
    if limit is None or limit < 1:
        limit = DEFAULT_LIMIT
    return page, min(limit, MAX_LIMIT)


def parse_statuses(params: Mapping[str, Any]) -> list[str]:
    valid = {status.value for status in ListingStatus}
    return _unique(token.lower() for token in split_values(params.get("status")) if token.lower() in valid)


def _unique(values) -> list:
    result = []
    for value in values:
        if value not in result:
            result.append(value)
    return result


def parse_filter_params(params: Optional[Mapping[str, Any]]) -> SearchIntent:
    """Normalize a flat query-parameter mapping into a SearchIntent."""
    params = params or {}
    page, limit = parse_pagination(params)

    return SearchIntent(
        location=parse_location(params),
        price=parse_price(params),
        property=parse_property(params),
        geo=parse_geo(params),
        text=parse_text(params),
        sort=parse_sort(params),
        statuses=parse_statuses(params),
        page=page,
        limit=limit,
    )
