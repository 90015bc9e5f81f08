"""Listings owned by the caller (every owner's, for moderators)."""

from src.services.listings import ListingService
from src.services.mongo_client import get_listings_collection
from src.utils.http import actor_from_request, handle_request, json_response, query_params, request_method


def handler(request):
    """GET /api/listings/mine"""
    if request_method(request) != "GET":
        return json_response(405, {"error": "MethodNotAllowed", "message": "Use GET"})

    params = query_params(request)

    async def mine(log):
        actor = actor_from_request(request)
        service = ListingService(get_listings_collection(), log=log)
        result = await service.list_for_actor(actor, params)
        return 200, result.to_response()

    return handle_request(request, "listings.mine", mine)
