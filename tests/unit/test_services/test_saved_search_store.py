"""Tests for the saved search store."""

import pytest
from contextlib import ExitStack
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

from src.models.search import SearchResult
from src.services.saved_searches import SavedSearchStore, generate_saved_search_id, normalize_search_query
from src.utils.errors import DegradedExecutionError, DuplicateNameError, NotFoundError, SupabaseError, ValidationError
from tests.utils.factories import create_saved_search_row

MODULE = "src.services.saved_searches"


@pytest.fixture
def executor():
    executor = MagicMock()
    executor.count = AsyncMock(return_value=0)
    executor.search = AsyncMock(return_value=SearchResult(items=[], total=0))
    return executor


@pytest.fixture
def store(executor):
    return SavedSearchStore(executor)


@pytest.fixture
def supabase():
    """Patch every saved_searches table helper the store uses."""
    names = [
        "find_active_saved_search_by_name",
        "insert_saved_search",
        "list_active_saved_searches",
        "get_saved_search",
        "update_saved_search",
        "delete_saved_search",
        "list_alerting_saved_searches",
    ]
    with ExitStack() as stack:
        mocks = {name: stack.enter_context(patch(f"{MODULE}.{name}", new_callable=AsyncMock)) for name in names}
        mocks["find_active_saved_search_by_name"].return_value = None
        mocks["insert_saved_search"].side_effect = lambda row: row
        mocks["update_saved_search"].side_effect = lambda search_id, updates: {"id": search_id, **updates}
        yield MagicMock(**mocks)


@pytest.mark.unit
def test_generate_saved_search_id():
    """Test saved search ID generation."""
    search_id = generate_saved_search_id()

    assert isinstance(search_id, str)
    assert len(search_id) == 26


@pytest.mark.unit
def test_normalize_search_query():
    """Test filter set normalization."""
    normalized = normalize_search_query({
        "bedrooms": 2,
        "bathrooms": "1, 2",
        "propertyType": ["apartment", "villa"],
        "city": "Pune",
    })

    assert normalized == {
        "bedrooms": ["2"],
        "bathrooms": ["1", "2"],
        "propertyType": ["apartment", "villa"],
        "city": "Pune",
    }


@pytest.mark.unit
def test_normalize_drops_empty_arrays():
    """Test that empty arrays are dropped."""
    assert normalize_search_query({"bedrooms": "", "city": "Pune"}) == {"city": "Pune"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_save_persists_normalized_query(store, executor, supabase, user_actor):
    """Test that save stores the normalized filters."""
    executor.count.return_value = 42

    search = await store.save(user_actor, "  My Search ", {"city": "Pune", "bedrooms": "2,3"}, "daily", "Near work")

    assert search.name == "My Search"
    assert search.search_query == {"city": "Pune", "bedrooms": ["2", "3"]}
    assert search.result_count == 42
    assert search.alert_frequency == "daily"
    assert search.is_active
    supabase.find_active_saved_search_by_name.assert_awaited_once_with("user-1", "My Search")
    row = supabase.insert_saved_search.call_args[0][0]
    assert row["user_id"] == "user-1"
    assert len(row["id"]) == 26


@pytest.mark.unit
@pytest.mark.asyncio
async def test_save_rejects_duplicate_active_name(store, supabase, user_actor):
    """Test that duplicate active names are rejected."""
    supabase.find_active_saved_search_by_name.return_value = create_saved_search_row(name="My Search")

    with pytest.raises(DuplicateNameError):
        await store.save(user_actor, "My Search", {"city": "Pune"})

    supabase.insert_saved_search.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_save_with_different_name_succeeds(store, supabase, user_actor):
    """Test saving under a new name."""
    supabase.find_active_saved_search_by_name.side_effect = [
        create_saved_search_row(name="My Search"),
        None,
    ]

    with pytest.raises(DuplicateNameError):
        await store.save(user_actor, "My Search", {"city": "Pune"})
    search = await store.save(user_actor, "Other Search", {"city": "Pune"})

    assert search.name == "Other Search"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_save_count_failure_stores_zero(store, executor, supabase, user_actor):
    """Test that a failed count stores zero."""
    executor.count.side_effect = DegradedExecutionError("timeout")

    search = await store.save(user_actor, "My Search", {"city": "Pune"})

    assert search.result_count == 0


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize("name,params,frequency", [
    ("   ", {"city": "Pune"}, None),
    ("x" * 101, {"city": "Pune"}, None),
    ("Ok", {}, None),
    ("Ok", {"city": "Pune"}, "hourly"),
])
async def test_save_validation(store, supabase, user_actor, name, params, frequency):
    """Test save input validation."""
    with pytest.raises(ValidationError):
        await store.save(user_actor, name, params, frequency)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_refreshes_counts_and_flags_new_results(store, executor, supabase, user_actor):
    """Test that listing refreshes counts and flags new results."""
    grew = create_saved_search_row(result_count=3)
    same = create_saved_search_row(result_count=5)
    supabase.list_active_saved_searches.return_value = [grew, same]
    executor.count.side_effect = [8, 5]

    searches = await store.list_for_user(user_actor)

    assert [(s.result_count, s.has_new_results) for s in searches] == [(8, True), (5, False)]
    supabase.update_saved_search.assert_awaited_once()
    assert supabase.update_saved_search.call_args[0][0] == grew["id"]
    assert supabase.update_saved_search.call_args[0][1]["result_count"] == 8


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_keeps_stale_count_when_one_entry_fails(store, executor, supabase, user_actor):
    """Test that a failed refresh keeps the stored count."""
    failing = create_saved_search_row(result_count=3)
    working = create_saved_search_row(result_count=1)
    supabase.list_active_saved_searches.return_value = [failing, working]
    executor.count.side_effect = [DegradedExecutionError("timeout"), 2]

    searches = await store.list_for_user(user_actor)

    assert searches[0].result_count == 3
    assert not searches[0].has_new_results
    assert searches[1].result_count == 2
    assert searches[1].has_new_results


@pytest.mark.unit
@pytest.mark.asyncio
async def test_execute_runs_full_search_and_records_execution(store, executor, supabase, user_actor):
    """Test executing a saved search."""
    row = create_saved_search_row(search_query={"city": "Pune", "bedrooms": ["2"]})
    executed_at = datetime(2024, 12, 9, 12, 0, tzinfo=timezone.utc)
    supabase.get_saved_search.return_value = row
    executor.search.return_value = SearchResult(items=[{"id": "a"}], total=9, page=2, limit=5)

    with patch(f"{MODULE}._now", return_value=executed_at):
        search, result = await store.execute(user_actor, row["id"], page=2, limit=5)

    executor.search.assert_awaited_once_with({"city": "Pune", "bedrooms": ["2"], "page": 2, "limit": 5})
    assert result.total == 9
    assert search.result_count == 9
    assert search.last_executed_at == executed_at
    updates = supabase.update_saved_search.call_args[0][1]
    assert updates["result_count"] == 9
    assert updates["last_executed_at"].startswith("2024-12-09T12:00:00")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_execute_unknown_or_inactive_search(store, supabase, user_actor):
    """Test executing unknown or inactive searches."""
    supabase.get_saved_search.return_value = None
    with pytest.raises(NotFoundError):
        await store.execute(user_actor, "missing")

    supabase.get_saved_search.return_value = create_saved_search_row(is_active=False)
    with pytest.raises(NotFoundError):
        await store.execute(user_actor, "inactive")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_rename_checks_uniqueness(store, supabase, user_actor):
    """Test that renaming checks uniqueness."""
    row = create_saved_search_row(name="Old")
    supabase.get_saved_search.return_value = row
    supabase.find_active_saved_search_by_name.return_value = create_saved_search_row(name="Taken")

    with pytest.raises(DuplicateNameError):
        await store.update(user_actor, row["id"], name="Taken")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_reactivation_checks_uniqueness(store, supabase, user_actor):
    """Test that reactivation checks uniqueness."""
    row = create_saved_search_row(name="Mine", is_active=False)
    supabase.get_saved_search.return_value = row
    supabase.update_saved_search.side_effect = lambda search_id, updates: {**row, **updates}

    await store.update(user_actor, row["id"], is_active=True)

    supabase.find_active_saved_search_by_name.assert_awaited_once_with("user-1", "Mine")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_frequency_only(store, supabase, user_actor):
    """Test updating only the alert frequency."""
    row = create_saved_search_row()
    supabase.get_saved_search.return_value = row
    supabase.update_saved_search.side_effect = lambda search_id, updates: {**row, **updates}

    search = await store.update(user_actor, row["id"], alert_frequency="monthly")

    assert search.alert_frequency == "monthly"
    supabase.find_active_saved_search_by_name.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_without_changes_returns_current(store, supabase, user_actor):
    """Test an update with no changes."""
    row = create_saved_search_row()
    supabase.get_saved_search.return_value = row

    search = await store.update(user_actor, row["id"])

    assert search.id == row["id"]
    supabase.update_saved_search.assert_not_awaited()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_delete(store, supabase, user_actor):
    """Test deleting a saved search."""
    supabase.delete_saved_search.return_value = True
    await store.delete(user_actor, "abc")
    supabase.delete_saved_search.assert_awaited_once_with("abc", "user-1")

    supabase.delete_saved_search.return_value = False
    with pytest.raises(NotFoundError):
        await store.delete(user_actor, "abc")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_store_errors_propagate(store, supabase, user_actor):
    """Test that store errors propagate."""
    supabase.list_active_saved_searches.side_effect = SupabaseError("down")

    with pytest.raises(SupabaseError):
        await store.list_for_user(user_actor)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_run_due_alerts(store, executor, supabase):
    """Test the alert run."""
    now = datetime(2024, 12, 9, 12, 0, tzinfo=timezone.utc)
    due = create_saved_search_row(alert_frequency="daily", last_executed_at="2024-12-08T11:00:00+00:00", result_count=2)
    not_due = create_saved_search_row(alert_frequency="weekly", last_executed_at="2024-12-05T12:00:00+00:00")
    never_run = create_saved_search_row(alert_frequency="monthly", result_count=4)
    broken = create_saved_search_row(alert_frequency="daily")
    supabase.list_alerting_saved_searches.return_value = [due, not_due, never_run, broken]
    executor.count.side_effect = [5, 4, DegradedExecutionError("timeout")]

    reports = await store.run_due_alerts(now)

    assert [(r["saved_search_id"], r["new_results"]) for r in reports] == [(due["id"], 3), (never_run["id"], 0)]
    first_updates = supabase.update_saved_search.call_args_list[0][0][1]
    assert first_updates["last_alert_sent_at"] == now.isoformat()
    second_updates = supabase.update_saved_search.call_args_list[1][0][1]
    assert "last_alert_sent_at" not in second_updates


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_rejects_non_boolean_active_flag(store, supabase, user_actor):
    """Test that is_active must be a real boolean."""
    supabase.get_saved_search.return_value = create_saved_search_row()

    with pytest.raises(ValidationError):
        await store.update(user_actor, "abc", is_active="false")

    supabase.update_saved_search.assert_not_awaited()
