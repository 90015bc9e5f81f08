"""Public listing search endpoint.

Never answers with a server error: if even the fallback path cannot run,
an empty page is returned.
"""

from src.models.search import SearchResult
from src.services.filter_parser import parse_pagination, parse_text
from src.services.mongo_client import get_listings_collection
from src.services.search_executor import SearchExecutor, visible_statuses
from src.services.suggestions import suggest_locations
from src.utils.http import actor_from_request, handle_request, json_response, query_params, request_method

# Attach location suggestions when a text search returns fewer items than this
SUGGESTION_THRESHOLD = 5


def handler(request):
    """GET /api/listings/search"""
    if request_method(request) != "GET":
        return json_response(405, {"error": "MethodNotAllowed", "message": "Use GET"})

    params = query_params(request)

    async def search(log):
        actor = actor_from_request(request, required=False)
        collection = get_listings_collection()
        executor = SearchExecutor(collection, log=log)

        result = await executor.search(params, statuses=visible_statuses(actor, params))
        payload = result.to_response()

        term = parse_text(params)
        if term and len(result.items) < SUGGESTION_THRESHOLD:
            payload["suggestions"] = await suggest_locations(collection, term, log=log)
        return 200, payload

    def empty_page(error):
        page, limit = parse_pagination(params)
        return 200, SearchResult(items=[], total=0, page=page, limit=limit, degraded=True).to_response()

    return handle_request(request, "listings.search", search, on_failure=empty_page)
