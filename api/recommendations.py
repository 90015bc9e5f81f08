"""Personalised recommendations for the caller."""

from src.services.mongo_client import get_listings_collection
from src.services.recommendations import DEFAULT_RECOMMENDATIONS, RecommendationEngine
from src.utils.http import actor_from_request, handle_request, json_response, query_params, request_method


def handler(request):
    """GET /api/recommendations[?limit=n]"""
    if request_method(request) != "GET":
        return json_response(405, {"error": "MethodNotAllowed", "message": "Use GET"})

    params = query_params(request)

    async def recommend(log):
        user = actor_from_request(request)
        engine = RecommendationEngine(get_listings_collection(), log=log)
        items = await engine.recommend(user, params.get("limit", DEFAULT_RECOMMENDATIONS))
        return 200, {"items": items, "count": len(items)}

    return handle_request(request, "recommendations", recommend)
