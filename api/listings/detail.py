"""Single listing endpoint with view tracking."""

from src.services.discovery import DiscoveryService
from src.services.listings import ListingService
from src.services.mongo_client import get_listings_collection
from src.utils.errors import ValidationError
from src.utils.http import actor_from_request, handle_request, json_response, query_params, request_method


def _flag(params, name) -> bool:
    return str(params.get(name, "false")).lower() == "true"


def handler(request):
    """GET /api/listings/detail?id=<listing id>[&trackView=true][&related=true]"""
    if request_method(request) != "GET":
        return json_response(405, {"error": "MethodNotAllowed", "message": "Use GET"})

    params = query_params(request)

    async def detail(log):
        listing_id = params.get("id")
        if not listing_id:
            raise ValidationError("Listing id is required")
        actor = actor_from_request(request, required=False)

        collection = get_listings_collection()
        service = ListingService(collection, log=log)
        listing = await service.get(listing_id, actor=actor, track_view=_flag(params, "trackView"))
        if _flag(params, "related"):
            listing["related"] = await DiscoveryService(collection, log=log).related(listing_id)
        return 200, listing

    return handle_request(request, "listings.detail", detail)
