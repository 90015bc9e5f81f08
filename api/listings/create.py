"""Create listing endpoint."""

from src.services.listings import ListingService
from src.services.mongo_client import get_listings_collection
from src.utils.http import actor_from_request, handle_request, json_response, parse_json_body, request_method


def handler(request):
    """POST /api/listings/create"""
    if request_method(request) != "POST":
        return json_response(405, {"error": "MethodNotAllowed", "message": "Use POST"})

    async def create(log):
        actor = actor_from_request(request)
        payload = parse_json_body(request)
        service = ListingService(get_listings_collection(), log=log)
        return 201, await service.create(actor, payload)

    return handle_request(request, "listings.create", create)
