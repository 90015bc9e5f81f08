"""Facet engine - counts-by-bucket for the search filter sidebar.

All branches share one base match (active listings, optionally narrowed by
the free-text term) and normally run in a single ``$facet`` round-trip.
If that round-trip fails, each branch is retried on its own so one bad
branch degrades to an empty list instead of failing the response.
"""

from typing import Any, Optional
from pymongo.collection import Collection

from src.services.filter_parser import MIN_TEXT_LENGTH
from src.services.query_plan import PUBLIC_STATUSES, QueryPlan, text_match_predicate
from src.utils.logging import StructuredLogger, get_structured_logger, log_timing
from src.utils.store_config import StoreConfig

logger = get_structured_logger(__name__)

PRICE_FACET_BOUNDARIES = [0, 2_500_000, 5_000_000, 10_000_000, 20_000_000, 50_000_000]
PRICE_FACET_OVERFLOW = "50000000+"
TOP_CITIES = 10


def facet_branches() -> dict[str, list[dict[str, Any]]]:
    """Sub-pipeline for every facet, keyed by facet name."""
    return {
        "price_ranges": [
            {
                "$bucket": {
                    "groupBy": "$price",
                    "boundaries": list(PRICE_FACET_BOUNDARIES),
                    "default": PRICE_FACET_OVERFLOW,
                    "output": {"count": {"$sum": 1}},
                },
            },
        ],
        "bedrooms": [
            {"$group": {"_id": "$bedrooms", "count": {"$sum": 1}}},
            {"$sort": {"_id": 1}},
        ],
        "cities": [
            {"$group": {"_id": "$location.city", "count": {"$sum": 1}}},
            {"$sort": {"count": -1, "_id": 1}},
            {"$limit": TOP_CITIES},
        ],
        "property_types": [
            {"$group": {"_id": "$property_type", "count": {"$sum": 1}}},
            {"$sort": {"count": -1, "_id": 1}},
        ],
        "furnishing_types": [
            {"$group": {"_id": "$furnishing", "count": {"$sum": 1}}},
            {"$sort": {"count": -1, "_id": 1}},
        ],
    }


def base_stages(text_term: Optional[str] = None) -> list[dict[str, Any]]:
    """Active-listing match, plus a text match when a usable term is given."""
    plan = QueryPlan(statuses=PUBLIC_STATUSES)
    stages = [{"$match": plan.base_filter()}]
    term = text_term.strip() if text_term else None
    if term and len(term) >= MIN_TEXT_LENGTH:
        stages.append({"$match": text_match_predicate(term)})
    return stages


def normalize_buckets(rows: Optional[list[dict[str, Any]]]) -> list[dict[str, Any]]:
    return [{"bucket": row.get("_id"), "count": row.get("count", 0)} for row in rows or []]


class FacetEngine:
    """Computes filter-sidebar facets."""

    def __init__(
        self,
        collection: Collection,
        max_time_ms: Optional[int] = None,
        log: Optional[StructuredLogger] = None,
    ):
        self.collection = collection
        self.max_time_ms = max_time_ms if max_time_ms is not None else StoreConfig.SEARCH_MAX_TIME_MS
        self.logger = log or logger

    async def compute(self, text_term: Optional[str] = None) -> dict[str, list[dict[str, Any]]]:
        """Return ``{facet_name: [{"bucket": ..., "count": n}]}``; never raises."""
        base = base_stages(text_term)
        branches = facet_branches()

        with log_timing("facet_computation", logger=self.logger):
            try:
                rows = list(self.collection.aggregate(
                    base + [{"$facet": branches}],
                    maxTimeMS=self.max_time_ms,
                ))
                combined = rows[0] if rows else {}
                return {name: normalize_buckets(combined.get(name)) for name in branches}
            except Exception as e:
                self.logger.warning(
                    "Combined facet query failed; computing branches separately",
                    error=str(e),
                    error_type=type(e).__name__,
                )

            return {
                name: await self._compute_branch(name, base + stages)
                for name, stages in branches.items()
            }

    async def _compute_branch(self, name: str, pipeline: list[dict[str, Any]]) -> list[dict[str, Any]]:
        try:
            rows = list(self.collection.aggregate(pipeline, maxTimeMS=self.max_time_ms))
        except Exception as e:
            self.logger.warning(
                "Facet branch failed; returning empty buckets",
                facet=name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return []
        return normalize_buckets(rows)
