"""Re-run a saved search."""

from src.services.filter_parser import to_int
from src.services.mongo_client import get_listings_collection
from src.services.saved_searches import SavedSearchStore
from src.services.search_executor import SearchExecutor
from src.utils.errors import ValidationError
from src.utils.http import actor_from_request, handle_request, json_response, query_params, request_method


def handler(request):
    """GET|POST /api/saved_searches/execute?id=<saved search id>[&page=&limit=]"""
    if request_method(request) not in ("GET", "POST"):
        return json_response(405, {"error": "MethodNotAllowed", "message": "Use GET or POST"})

    params = query_params(request)

    async def execute(log):
        user = actor_from_request(request)
        if not params.get("id"):
            raise ValidationError("Saved search id is required")

        store = SavedSearchStore(SearchExecutor(get_listings_collection(), log=log), log=log)
        search, result = await store.execute(
            user,
            params["id"],
            page=to_int(params.get("page")),
            limit=to_int(params.get("limit")),
        )
        return 200, {
            "search": search.model_dump(mode="json"),
            **result.to_response(),
        }

    return handle_request(request, "saved_searches.execute", execute)
