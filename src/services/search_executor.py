"""Search executor - run a QueryPlan against the listings collection.

The public search entry point never fails: if parsing, plan construction
or execution raises (including the request-level timeout), it logs the
degradation and answers from a minimal fallback query built from a few
well-known raw parameters.
"""

from typing import Any, Iterable, Mapping, Optional
from pymongo.collection import Collection

from src.models.actor import Actor
from src.models.search import SearchResult
from src.services.filter_parser import (
    parse_filter_params,
    parse_pagination,
    parse_statuses,
    split_values,
    to_float,
    to_int,
)
from src.services.plan_renderers import (
    AGGREGATE,
    execution_mode,
    render_count_pipeline,
    render_find,
    render_pipeline,
)
from src.services.query_plan import PUBLIC_STATUSES, QueryPlan, build_plan, contains
from src.utils.errors import DegradedExecutionError
from src.utils.logging import StructuredLogger, get_structured_logger, log_timing, sanitize_query_params
from src.utils.serialization import serialize_document
from src.utils.store_config import StoreConfig

logger = get_structured_logger(__name__)

FALLBACK_SORT = [("created_at", -1), ("_id", -1)]


def visible_statuses(actor: Optional[Actor], params: Optional[Mapping[str, Any]]) -> tuple[str, ...]:
    """Statuses a search may cover: requested ones for moderators, otherwise active only."""
    if actor is not None and actor.is_moderator:
        requested = parse_statuses(params or {})
        if requested:
            return tuple(requested)
    return PUBLIC_STATUSES


def fallback_filter(
    params: Optional[Mapping[str, Any]],
    statuses: Optional[Iterable[str]] = PUBLIC_STATUSES,
    owner_id: Optional[str] = None,
) -> dict[str, Any]:
    """Minimal filter from city, property type, bedrooms and price range."""
    params = params or {}
    query: dict[str, Any] = {}

    statuses = tuple(statuses) if statuses else ()
    if len(statuses) == 1:
        query["status"] = statuses[0]
    elif statuses:
        query["status"] = {"$in": list(statuses)}
    if owner_id:
        query["owner_id"] = owner_id

    city = split_values(params.get("city"))
    if city:
        query["location.city"] = contains(city[0])

    property_type = split_values(params.get("propertyType"))
    if property_type:
        query["property_type"] = property_type[0].lower()

    bedrooms = to_int(next(iter(split_values(params.get("bedrooms"))), None))
    if bedrooms is not None:
        query["bedrooms"] = bedrooms

    price = {}
    min_price = to_float(next(iter(split_values(params.get("minPrice"))), None))
    max_price = to_float(next(iter(split_values(params.get("maxPrice"))), None))
    if min_price is not None:
        price["$gte"] = min_price
    if max_price is not None:
        price["$lte"] = max_price
    if price:
        query["price"] = price

    return query


class SearchExecutor:
    """Executes plans in find or aggregate mode and owns the fallback path."""

    def __init__(
        self,
        collection: Collection,
        max_time_ms: Optional[int] = None,
        log: Optional[StructuredLogger] = None,
    ):
        self.collection = collection
        self.max_time_ms = max_time_ms if max_time_ms is not None else StoreConfig.SEARCH_MAX_TIME_MS
        self.logger = log or logger

    async def execute(self, plan: QueryPlan) -> SearchResult:
        """Run a plan and return one page plus the total count.

        Raises DegradedExecutionError on any store or rendering failure.
        """
        mode = execution_mode(plan)
        try:
            if mode == AGGREGATE:
                docs = list(self.collection.aggregate(render_pipeline(plan), maxTimeMS=self.max_time_ms))
                total = self._aggregate_count(plan)
            else:
                query = render_find(plan)
                cursor = self.collection.find(
                    query.filter,
                    sort=query.sort,
                    skip=query.skip,
                    limit=query.limit,
                    max_time_ms=self.max_time_ms,
                )
                docs = list(cursor)
                total = self.collection.count_documents(query.filter, maxTimeMS=self.max_time_ms)
        except Exception as e:
            raise DegradedExecutionError(
                f"Search plan execution failed: {e}",
                details={"mode": mode, "error_type": type(e).__name__},
            ) from e

        self.logger.debug("Search plan executed", mode=mode, total=total, returned=len(docs))
        return SearchResult(
            items=[serialize_document(doc) for doc in docs],
            total=total,
            page=plan.page,
            limit=plan.limit,
        )

    async def count(self, plan: QueryPlan) -> int:
        """Total matches for a plan, ignoring pagination."""
        try:
            if execution_mode(plan) == AGGREGATE:
                return self._aggregate_count(plan)
            return self.collection.count_documents(plan.base_filter(), maxTimeMS=self.max_time_ms)
        except Exception as e:
            raise DegradedExecutionError(f"Search count failed: {e}") from e

    def _aggregate_count(self, plan: QueryPlan) -> int:
        result = list(self.collection.aggregate(render_count_pipeline(plan), maxTimeMS=self.max_time_ms))
        return int(result[0]["total"]) if result else 0

    async def execute_fallback(
        self,
        params: Optional[Mapping[str, Any]],
        statuses: Optional[Iterable[str]] = PUBLIC_STATUSES,
        owner_id: Optional[str] = None,
    ) -> SearchResult:
        """Minimal safe query; returns an empty page rather than raising."""
        page, limit = parse_pagination(params or {})
        try:
            query = fallback_filter(params, statuses, owner_id)
            cursor = self.collection.find(
                query,
                sort=FALLBACK_SORT,
                skip=(page - 1) * limit,
                limit=limit,
                max_time_ms=self.max_time_ms,
            )
            docs = list(cursor)
            total = self.collection.count_documents(query, maxTimeMS=self.max_time_ms)
        except Exception as e:
            self.logger.error(
                "Fallback search failed; returning empty page",
                error=str(e),
                error_type=type(e).__name__,
            )
            return SearchResult(items=[], total=0, page=page, limit=limit, degraded=True)

        return SearchResult(
            items=[serialize_document(doc) for doc in docs],
            total=total,
            page=page,
            limit=limit,
            degraded=True,
        )

    async def search(
        self,
        params: Optional[Mapping[str, Any]],
        statuses: Optional[Iterable[str]] = PUBLIC_STATUSES,
        owner_id: Optional[str] = None,
    ) -> SearchResult:
        """Parse, plan and execute; degrade to the fallback query on any failure."""
        with log_timing("listing_search", logger=self.logger):
            try:
                intent = parse_filter_params(params)
                plan = build_plan(intent, statuses=statuses, owner_id=owner_id)
                return await self.execute(plan)
            except Exception as e:
                self.logger.warning(
                    "Search degraded to fallback query",
                    error=str(e),
                    error_type=type(e).__name__,
                    params=sanitize_query_params(params),
                )
                return await self.execute_fallback(params, statuses, owner_id)
