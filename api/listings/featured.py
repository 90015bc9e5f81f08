"""Feature / unfeature a listing (moderators)."""

from datetime import datetime

from src.services.listings import ListingService
from src.services.mongo_client import get_listings_collection
from src.utils.errors import ValidationError
from src.utils.http import actor_from_request, body_flag, handle_request, json_response, parse_json_body, request_method


def _parse_until(value):
    if value is None:
        return None
    try:
        until = datetime.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"Invalid featured_till: {value}")
    if until.tzinfo is None:
        raise ValidationError("featured_till must include a timezone offset")
    return until


def handler(request):
    """POST /api/listings/featured  {"id": ..., "featured": true, "featured_till": iso8601}"""
    if request_method(request) != "POST":
        return json_response(405, {"error": "MethodNotAllowed", "message": "Use POST"})

    async def feature(log):
        actor = actor_from_request(request)
        body = parse_json_body(request)
        if not body.get("id"):
            raise ValidationError("Listing id is required")

        service = ListingService(get_listings_collection(), log=log)
        listing = await service.set_featured(
            actor,
            body["id"],
            featured=body_flag(body, "featured", default=True),
            until=_parse_until(body.get("featured_till")),
        )
        return 200, listing

    return handle_request(request, "listings.featured", feature)
