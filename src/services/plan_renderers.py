"""Render a QueryPlan for MongoDB.

Unscored plans become a filtered find; scored plans (free-text term
present) become an aggregation pipeline so a per-document score can be
computed and sorted on. ``execution_mode`` is the single place that
decision is made.
"""

from typing import Any, Optional
from pydantic import BaseModel

from src.models.search import SortKey
from src.services.query_plan import QueryPlan, score_expression, text_match_predicate

FIND = "find"
AGGREGATE = "aggregate"

SORT_FIELDS = {
    SortKey.RELEVANCE: [("score", -1), ("created_at", -1)],
    SortKey.PRICE_LOW: [("price", 1)],
    SortKey.PRICE_HIGH: [("price", -1)],
    SortKey.AREA_LARGE: [("area_sqft", -1)],
    SortKey.AREA_SMALL: [("area_sqft", 1)],
    SortKey.NEWEST: [("created_at", -1)],
    SortKey.OLDEST: [("created_at", 1)],
    SortKey.POPULAR: [("view_count", -1), ("created_at", -1)],
}


class FindQuery(BaseModel):
    """Arguments for ``Collection.find`` plus the filter for the total count."""
    filter: dict[str, Any]
    sort: list[tuple[str, int]]
    skip: int
    limit: int


def execution_mode(plan: QueryPlan) -> str:
    return AGGREGATE if plan.is_scored else FIND


def resolve_sort(plan: QueryPlan) -> list[tuple[str, int]]:
    """Sort fields for a plan, always ending in an _id tiebreaker.

    Scored plans default to relevance; an explicit non-relevance key on a
    scored plan uses score as its tiebreaker. Relevance on an unscored plan
    falls back to newest.
    """
    key: Optional[SortKey] = plan.sort
    if key is None:
        key = SortKey.RELEVANCE if plan.is_scored else SortKey.NEWEST
    if key == SortKey.RELEVANCE and not plan.is_scored:
        key = SortKey.NEWEST

    fields = list(SORT_FIELDS[key])
    if plan.is_scored and key != SortKey.RELEVANCE:
        fields.append(("score", -1))
    if not any(field == "_id" for field, _ in fields):
        fields.append(("_id", -1))
    return fields


def render_find(plan: QueryPlan) -> FindQuery:
    return FindQuery(
        filter=plan.base_filter(),
        sort=resolve_sort(plan),
        skip=plan.skip,
        limit=plan.limit,
    )


def _scored_stages(plan: QueryPlan) -> list[dict[str, Any]]:
    """Base-status match, text match, score computation and sort."""
    stages = [{"$match": plan.base_filter()}]
    if plan.is_scored:
        stages.append({"$match": text_match_predicate(plan.text.term)})
        stages.append({"$addFields": {"score": score_expression(plan.text)}})
    stages.append({"$sort": dict(resolve_sort(plan))})
    return stages


def render_pipeline(plan: QueryPlan) -> list[dict[str, Any]]:
    return _scored_stages(plan) + [{"$skip": plan.skip}, {"$limit": plan.limit}]


def render_count_pipeline(plan: QueryPlan) -> list[dict[str, Any]]:
    """Every stage of the page pipeline except skip/limit, then a count."""
    return _scored_stages(plan) + [{"$count": "total"}]
