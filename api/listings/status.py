"""Listing status change endpoint.

Body: ``{"id": ..., "status": ...}`` or ``{"id": ..., "action": "hold" | "resume" | "archive"}``.
"""

from src.services.listings import ListingService
from src.services.mongo_client import get_listings_collection
from src.utils.errors import ValidationError
from src.utils.http import actor_from_request, handle_request, json_response, parse_json_body, request_method

ACTIONS = ("hold", "resume", "archive")


def handler(request):
    """POST /api/listings/status"""
    if request_method(request) not in ("POST", "PATCH"):
        return json_response(405, {"error": "MethodNotAllowed", "message": "Use POST"})

    async def change_status(log):
        actor = actor_from_request(request)
        body = parse_json_body(request)
        listing_id = body.get("id") or body.get("listing_id")
        if not listing_id:
            raise ValidationError("Listing id is required")

        service = ListingService(get_listings_collection(), log=log)
        action = body.get("action")
        if action:
            if action not in ACTIONS:
                raise ValidationError(f"Unknown action: {action}", details={"allowed": list(ACTIONS)})
            return 200, await getattr(service, action)(actor, listing_id)

        if not body.get("status"):
            raise ValidationError("Status is required")
        return 200, await service.change_status(actor, listing_id, body["status"])

    return handle_request(request, "listings.status", change_status)
