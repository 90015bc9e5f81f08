"""Saved search store - persist named filter sets and replay them through the search pipeline."""

from datetime import datetime, timezone
from typing import Any, Mapping, Optional
from ulid import ULID

from src.models.actor import Actor
from src.models.saved_search import AlertFrequency, SavedSearch
from src.models.search import SearchResult
from src.services.filter_parser import parse_filter_params, split_values
from src.services.query_plan import build_plan
from src.services.search_executor import SearchExecutor
from src.services.supabase_client import (
    delete_saved_search,
    find_active_saved_search_by_name,
    get_saved_search,
    insert_saved_search,
    list_active_saved_searches,
    list_alerting_saved_searches,
    update_saved_search,
)
from src.utils.errors import DuplicateNameError, NotFoundError, ValidationError
from src.utils.logging import StructuredLogger, get_structured_logger, mask_user_id

logger = get_structured_logger(__name__)

# Parameters that may arrive as a scalar, a comma-joined string or an array
ARRAY_PARAMS = ("bedrooms", "bathrooms", "propertyType")

MAX_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500


def generate_saved_search_id() -> str:
    """Generate a text-based saved search ID (ULID format)."""
    return str(ULID())


def _now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_search_query(search_query: Mapping[str, Any]) -> dict[str, Any]:
    """Normalize array-shaped parameters to lists of strings."""
    normalized = dict(search_query)
    for key in ARRAY_PARAMS:
        if key not in normalized or normalized[key] is None:
            continue
        values = split_values(normalized[key])
        if values:
            normalized[key] = values
        else:
            del normalized[key]
    return normalized


def _clean_name(name: Optional[str]) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Search name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Search name must be at most {MAX_NAME_LENGTH} characters")
    return name


def _clean_description(description: Optional[str]) -> Optional[str]:
    if description is None:
        return None
    description = description.strip()
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters")
    return description or None


def _frequency(value: Optional[str]) -> str:
    if value is None:
        return AlertFrequency.WEEKLY.value
    try:
        return AlertFrequency(str(value).lower()).value
    except ValueError:
        raise ValidationError(
            f"Invalid alert frequency: {value}",
            details={"allowed": [frequency.value for frequency in AlertFrequency]},
        )


class SavedSearchStore:
    """Saved search operations for one request."""

    def __init__(self, executor: SearchExecutor, log: Optional[StructuredLogger] = None):
        self.executor = executor
        self.logger = log or logger

    async def _live_count(self, search_query: Mapping[str, Any]) -> int:
        plan = build_plan(parse_filter_params(search_query))
        return await self.executor.count(plan)

    async def _initial_count(self, search_query: Mapping[str, Any]) -> int:
        try:
            return await self._live_count(search_query)
        except Exception as e:
            self.logger.warning(
                "Could not count saved search results; storing 0",
                error=str(e),
                error_type=type(e).__name__,
            )
            return 0

    async def _ensure_name_available(self, user_id: str, name: str, exclude_id: Optional[str] = None) -> None:
        existing = await find_active_saved_search_by_name(user_id, name)
        if existing and existing.get("id") != exclude_id:
            raise DuplicateNameError(
                "A search with this name already exists",
                details={"name": name},
            )

    async def _get_owned(self, user: Actor, search_id: str) -> SavedSearch:
        row = await get_saved_search(search_id, user.id)
        if not row:
            raise NotFoundError(f"Saved search not found: {search_id}")
        return SavedSearch(**row)

    async def save(
        self,
        user: Actor,
        name: str,
        filter_params: Mapping[str, Any],
        alert_frequency: Optional[str] = None,
        description: Optional[str] = None,
    ) -> SavedSearch:
        """Persist a named search; rejects a duplicate active name for the user."""
        name = _clean_name(name)
        if not isinstance(filter_params, Mapping) or not filter_params:
            raise ValidationError("Search query is required")
        frequency = _frequency(alert_frequency)
        description = _clean_description(description)

        await self._ensure_name_available(user.id, name)

        search_query = normalize_search_query(filter_params)
        result_count = await self._initial_count(search_query)
        now = _now().isoformat()

        row = await insert_saved_search({
            "id": generate_saved_search_id(),
            "user_id": user.id,
            "name": name,
            "search_query": search_query,
            "alert_frequency": frequency,
            "description": description,
            "is_active": True,
            "result_count": result_count,
            "created_at": now,
            "updated_at": now,
        })

        self.logger.info(
            "Saved search created",
            user_id=mask_user_id(user.id),
            saved_search_id=row.get("id"),
            result_count=result_count,
        )
        return SavedSearch(**row)

    async def list_for_user(self, user: Actor) -> list[SavedSearch]:
        """Active searches with live counts; a failing entry keeps its stored count."""
        searches = [SavedSearch(**row) for row in await list_active_saved_searches(user.id)]

        refreshed = []
        for search in searches:
            try:
                live = await self._live_count(search.search_query)
                if live != search.result_count:
                    await update_saved_search(search.id, {
                        "result_count": live,
                        "updated_at": _now().isoformat(),
                    })
                search = search.model_copy(update={
                    "result_count": live,
                    "has_new_results": live > search.result_count,
                })
            except Exception as e:
                self.logger.warning(
                    "Saved search count refresh failed; keeping stored count",
                    saved_search_id=search.id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
            refreshed.append(search)
        return refreshed

    async def execute(
        self,
        user: Actor,
        search_id: str,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> tuple[SavedSearch, SearchResult]:
        """Re-run a stored search through the full search pipeline."""
        search = await self._get_owned(user, search_id)
        if not search.is_active:
            raise NotFoundError(f"Saved search not found: {search_id}")

        params = dict(search.search_query)
        if page is not None:
            params["page"] = page
        if limit is not None:
            params["limit"] = limit

        result = await self.executor.search(params)
        executed_at = _now()
        await update_saved_search(search.id, {
            "result_count": result.total,
            "last_executed_at": executed_at.isoformat(),
            "updated_at": executed_at.isoformat(),
        })

        return search.model_copy(update={
            "result_count": result.total,
            "last_executed_at": executed_at,
        }), result

    async def update(
        self,
        user: Actor,
        search_id: str,
        name: Optional[str] = None,
        alert_frequency: Optional[str] = None,
        is_active: Optional[bool] = None,
        description: Optional[str] = None,
    ) -> SavedSearch:
        """Edit name, alert frequency, active flag or description."""
        search = await self._get_owned(user, search_id)
        updates: dict[str, Any] = {}

        if name is not None:
            updates["name"] = _clean_name(name)
        if alert_frequency is not None:
            updates["alert_frequency"] = _frequency(alert_frequency)
        if is_active is not None:
            if not isinstance(is_active, bool):
                raise ValidationError("is_active must be true or false")
            updates["is_active"] = is_active
        if description is not None:
            updates["description"] = _clean_description(description)

        if not updates:
            return search

        final_name = updates.get("name", search.name)
        final_active = updates.get("is_active", search.is_active)
        if final_active and (final_name != search.name or not search.is_active):
            await self._ensure_name_available(user.id, final_name, exclude_id=search.id)

        updates["updated_at"] = _now().isoformat()
        row = await update_saved_search(search.id, updates)
        return SavedSearch(**row)

    async def delete(self, user: Actor, search_id: str) -> None:
        """Remove a saved search permanently."""
        deleted = await delete_saved_search(search_id, user.id)
        if not deleted:
            raise NotFoundError(f"Saved search not found: {search_id}")
        self.logger.info("Saved search deleted", saved_search_id=search_id, user_id=mask_user_id(user.id))

    async def run_due_alerts(self, now: Optional[datetime] = None) -> list[dict[str, Any]]:
        """Re-run every due search and report how many new results each has.

        Delivery of the alert itself is left to the caller.
        """
        now = now or _now()
        reports = []

        for row in await list_alerting_saved_searches():
            try:
                search = SavedSearch(**row)
                if not search.is_due(now):
                    continue

                live = await self._live_count(search.search_query)
                new_results = max(live - search.result_count, 0)
                updates = {
                    "result_count": live,
                    "last_executed_at": now.isoformat(),
                    "updated_at": now.isoformat(),
                }
                if new_results:
                    updates["last_alert_sent_at"] = now.isoformat()
                await update_saved_search(search.id, updates)

                reports.append({
                    "saved_search_id": search.id,
                    "user_id": search.user_id,
                    "name": search.name,
                    "result_count": live,
                    "new_results": new_results,
                })
            except Exception as e:
                self.logger.warning(
                    "Saved search alert run failed",
                    saved_search_id=row.get("id"),
                    error=str(e),
                    error_type=type(e).__name__,
                )

        self.logger.info("Saved search alerts processed", due=len(reports))
        return reports
