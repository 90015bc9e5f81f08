"""Saved searches: list (GET), save (POST), update (PATCH), delete (DELETE)."""

from src.services.mongo_client import get_listings_collection
from src.services.saved_searches import SavedSearchStore
from src.services.search_executor import SearchExecutor
from src.utils.errors import ValidationError
from src.utils.http import (
    actor_from_request,
    body_flag,
    handle_request,
    json_response,
    parse_json_body,
    query_params,
    request_method,
)


def _store(log) -> SavedSearchStore:
    return SavedSearchStore(SearchExecutor(get_listings_collection(), log=log), log=log)


def _search_id(request, body=None) -> str:
    search_id = (body or {}).get("id") or query_params(request).get("id")
    if not search_id:
        raise ValidationError("Saved search id is required")
    return search_id


def handler(request):
    """/api/saved_searches"""
    method = request_method(request)
    if method not in ("GET", "POST", "PATCH", "DELETE"):
        return json_response(405, {"error": "MethodNotAllowed", "message": f"{method} not supported"})

    async def saved_searches(log):
        user = actor_from_request(request)
        store = _store(log)

        if method == "GET":
            searches = await store.list_for_user(user)
            return 200, {
                "items": [search.model_dump(mode="json") for search in searches],
                "total": len(searches),
            }

        if method == "DELETE":
            await store.delete(user, _search_id(request))
            return 200, {"ok": True}

        body = parse_json_body(request)

        if method == "POST":
            search = await store.save(
                user,
                name=body.get("name"),
                filter_params=body.get("search_query") or body.get("searchQuery"),
                alert_frequency=body.get("alert_frequency") or body.get("alertFrequency"),
                description=body.get("description"),
            )
            return 201, search.model_dump(mode="json")

        search = await store.update(
            user,
            _search_id(request, body),
            name=body.get("name"),
            alert_frequency=body.get("alert_frequency") or body.get("alertFrequency"),
            is_active=body_flag(body, "is_active", "isActive"),
            description=body.get("description"),
        )
        return 200, search.model_dump(mode="json")

    return handle_request(request, "saved_searches", saved_searches)
