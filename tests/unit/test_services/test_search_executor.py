"""Tests for search execution and the fallback path."""

import pytest
from unittest.mock import MagicMock
from pymongo.errors import ExecutionTimeout, OperationFailure

from src.models.actor import Actor, Role
from src.services.filter_parser import parse_filter_params
from src.services.query_plan import build_plan, contains
from src.services.search_executor import (
    FALLBACK_SORT,
    SearchExecutor,
    fallback_filter,
    visible_statuses,
)
from src.utils.errors import DegradedExecutionError
from tests.utils.factories import create_listing_document
from tests.utils.helpers import cursor


@pytest.mark.unit
@pytest.mark.asyncio
async def test_execute_unscored_plan_with_find(mock_collection):
    """Test executing an unscored plan."""
    docs = [create_listing_document(), create_listing_document()]
    mock_collection.find.return_value = cursor(docs)
    mock_collection.count_documents.return_value = 12
    plan = build_plan(parse_filter_params({"city": "Pune", "page": "2", "limit": "2"}))

    result = await SearchExecutor(mock_collection, max_time_ms=100).execute(plan)

    assert result.total == 12
    assert result.page == 2
    assert result.limit == 2
    assert [item["id"] for item in result.items] == [str(doc["_id"]) for doc in docs]
    mock_collection.find.assert_called_once_with(
        plan.base_filter(),
        sort=[("created_at", -1), ("_id", -1)],
        skip=2,
        limit=2,
        max_time_ms=100,
    )
    mock_collection.count_documents.assert_called_once_with(plan.base_filter(), maxTimeMS=100)
    mock_collection.aggregate.assert_not_called()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_execute_scored_plan_with_aggregate(mock_collection):
    """Test executing a scored plan."""
    doc = create_listing_document(score=9)
    mock_collection.aggregate.side_effect = [cursor([doc]), cursor([{"total": 7}])]
    plan = build_plan(parse_filter_params({"q": "villa"}))

    result = await SearchExecutor(mock_collection).execute(plan)

    assert result.total == 7
    assert result.items[0]["score"] == 9
    assert mock_collection.aggregate.call_count == 2
    count_pipeline = mock_collection.aggregate.call_args_list[1][0][0]
    assert count_pipeline[-1] == {"$count": "total"}
    mock_collection.find.assert_not_called()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_scored_count_is_zero_without_matches(mock_collection):
    """Test the scored count without matches."""
    mock_collection.aggregate.side_effect = [cursor([]), cursor([])]
    plan = build_plan(parse_filter_params({"q": "villa"}))

    result = await SearchExecutor(mock_collection).execute(plan)

    assert result.total == 0
    assert result.items == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_execute_wraps_store_errors(mock_collection):
    """Test that store errors are wrapped."""
    mock_collection.find.side_effect = OperationFailure("bad $regex")
    plan = build_plan(parse_filter_params({}))

    with pytest.raises(DegradedExecutionError) as exc_info:
        await SearchExecutor(mock_collection).execute(plan)

    assert exc_info.value.details["mode"] == "find"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_count_uses_base_filter_for_unscored_plans(mock_collection):
    """Test counting unscored plans."""
    mock_collection.count_documents.return_value = 4
    plan = build_plan(parse_filter_params({"city": "Pune"}))

    assert await SearchExecutor(mock_collection).count(plan) == 4
    assert mock_collection.count_documents.call_args[0][0] == plan.base_filter()


@pytest.mark.unit
def test_fallback_filter_uses_well_known_params():
    """Test the fallback filter."""
    query = fallback_filter({
        "city": "Pune",
        "propertyType": "Villa",
        "bedrooms": "3",
        "minPrice": "100",
        "maxPrice": "900",
        "amenities": "pool",
        "q": "sea view",
    })

    assert query == {
        "status": "active",
        "location.city": contains("Pune"),
        "property_type": "villa",
        "bedrooms": 3,
        "price": {"$gte": 100.0, "$lte": 900.0},
    }


@pytest.mark.unit
def test_fallback_filter_keeps_owner_and_statuses():
    """Test that the fallback keeps owner and statuses."""
    query = fallback_filter({}, statuses=("pending", "active"), owner_id="user-1")

    assert query == {"status": {"$in": ["pending", "active"]}, "owner_id": "user-1"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_search_falls_back_when_plan_execution_fails(mock_collection):
    """Test falling back when execution fails."""
    doc = create_listing_document()
    # Primary find fails; the fallback find succeeds
    mock_collection.find.side_effect = [ExecutionTimeout("operation exceeded time limit"), cursor([doc])]
    mock_collection.count_documents.return_value = 1

    result = await SearchExecutor(mock_collection).search({"city": "Pune", "amenities": "pool"})

    assert result.degraded
    assert result.total == 1
    assert result.items[0]["id"] == str(doc["_id"])
    fallback_call = mock_collection.find.call_args_list[1]
    assert fallback_call[0][0] == {"status": "active", "location.city": contains("Pune")}
    assert fallback_call[1]["sort"] == FALLBACK_SORT


@pytest.mark.unit
@pytest.mark.asyncio
async def test_search_returns_empty_page_when_fallback_fails_too(mock_collection):
    """Test the empty page when the fallback fails."""
    mock_collection.find.side_effect = OperationFailure("down")

    result = await SearchExecutor(mock_collection).search({"page": "2", "limit": "5"})

    assert result.degraded
    assert result.items == []
    assert result.total == 0
    assert (result.page, result.limit) == (2, 5)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_search_logs_degradation(mock_collection):
    """Test that degradation is logged."""
    mock_collection.find.side_effect = [OperationFailure("bad"), cursor([])]
    log = MagicMock()

    await SearchExecutor(mock_collection, log=log).search({"city": "Pune"})

    log.warning.assert_called_once()
    assert log.warning.call_args[1]["error_type"] == "OperationFailure"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pagination_is_deterministic(mock_collection):
    """Test deterministic pagination."""
    docs = [create_listing_document() for _ in range(3)]
    mock_collection.find.side_effect = lambda *args, **kwargs: cursor(docs)
    mock_collection.count_documents.return_value = 13
    executor = SearchExecutor(mock_collection)

    first = await executor.search({"page": "2", "limit": "10"})
    second = await executor.search({"page": "2", "limit": "10"})

    assert first == second
    assert mock_collection.find.call_args_list[0] == mock_collection.find.call_args_list[1]


@pytest.mark.unit
def test_only_moderators_widen_statuses():
    """Test that only moderators widen statuses."""
    params = {"status": "pending,hold"}

    assert visible_statuses(None, params) == ("active",)
    assert visible_statuses(Actor(id="u", role=Role.AGENT), params) == ("active",)
    assert visible_statuses(Actor(id="a", role=Role.ADMIN), params) == ("pending", "hold")
    assert visible_statuses(Actor(id="a", role=Role.ADMIN), {}) == ("active",)
