"""Side-by-side comparison of up to four active listings."""

from src.services.discovery import DiscoveryService
from src.services.mongo_client import get_listings_collection
from src.utils.http import handle_request, json_response, query_params, request_method


def handler(request):
    """GET /api/listings/compare?ids=<id>,<id>[,...]"""
    if request_method(request) != "GET":
        return json_response(405, {"error": "MethodNotAllowed", "message": "Use GET"})

    params = query_params(request)

    async def compare(log):
        service = DiscoveryService(get_listings_collection(), log=log)
        return 200, await service.compare(params.get("ids"))

    return handle_request(request, "listings.compare", compare)
