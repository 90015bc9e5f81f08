"""Discovery feeds: popular, trending, featured and similar listings."""

from src.services.discovery import DiscoveryService
from src.services.mongo_client import get_listings_collection
from src.utils.errors import ValidationError
from src.utils.http import handle_request, json_response, query_params, request_method

FEEDS = ("popular", "trending", "featured", "similar")


def handler(request):
    """GET /api/discovery?feed=popular|trending|featured|similar"""
    if request_method(request) != "GET":
        return json_response(405, {"error": "MethodNotAllowed", "message": "Use GET"})

    params = query_params(request)

    async def discover(log):
        feed = str(params.get("feed") or "popular").lower()
        if feed not in FEEDS:
            raise ValidationError(f"Unknown feed: {feed}", details={"allowed": list(FEEDS)})

        service = DiscoveryService(get_listings_collection(), log=log)
        limit = params.get("limit")

        if feed == "popular":
            items = await service.popular(limit, city=params.get("city"), property_type=params.get("propertyType"))
        elif feed == "trending":
            items = await service.trending(limit)
        elif feed == "featured":
            items = await service.featured(limit, city=params.get("city"))
        else:
            if not params.get("id"):
                raise ValidationError("Listing id is required for similar listings")
            items = await service.similar(params["id"], limit)

        return 200, {"feed": feed, "items": items, "count": len(items)}

    return handle_request(request, "discovery", discover)
