"""Location autocomplete over active listings."""

import re
from typing import Optional
from pymongo.collection import Collection

from src.services.filter_parser import MIN_TEXT_LENGTH
from src.services.query_plan import PUBLIC_STATUSES
from src.utils.logging import StructuredLogger, get_structured_logger
from src.utils.store_config import StoreConfig

logger = get_structured_logger(__name__)

MAX_SUGGESTIONS = 8


async def suggest_locations(
    collection: Collection,
    term: Optional[str],
    limit: int = MAX_SUGGESTIONS,
    log: Optional[StructuredLogger] = None,
) -> list[str]:
    """Cities and areas starting with ``term``, deduplicated; [] on any failure."""
    log = log or logger
    term = term.strip() if term else ""
    if len(term) < MIN_TEXT_LENGTH:
        return []

    prefix = {"$regex": f"^{re.escape(term)}", "$options": "i"}
    pipeline = [
        {
            "$match": {
                "status": PUBLIC_STATUSES[0],
                "$or": [{"location.city": prefix}, {"location.area": prefix}],
            },
        },
        {
            "$group": {
                "_id": None,
                "cities": {"$addToSet": "$location.city"},
                "areas": {"$addToSet": "$location.area"},
            },
        },
    ]

    try:
        rows = list(collection.aggregate(pipeline, maxTimeMS=StoreConfig.SEARCH_MAX_TIME_MS))
    except Exception as e:
        log.warning("Location suggestions failed", error=str(e), error_type=type(e).__name__)
        return []

    if not rows:
        return []

    lowered = term.lower()
    suggestions = []
    for value in sorted(rows[0].get("cities", [])) + sorted(rows[0].get("areas", [])):
        if value and value.lower().startswith(lowered) and value not in suggestions:
            suggestions.append(value)
    return suggestions[:limit]
