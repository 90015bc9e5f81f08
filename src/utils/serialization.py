"""Convert MongoDB documents to JSON-safe dicts."""

from datetime import datetime
from typing import Any
from bson import ObjectId
from bson.errors import InvalidId

from src.utils.errors import NotFoundError


def _convert(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _convert(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_convert(item) for item in value]
    return value


def serialize_document(doc: dict) -> dict:
    """Stringify ids and datetimes; ``_id`` is exposed as ``id``."""
    result = {key: _convert(value) for key, value in doc.items() if key != "_id"}
    if "_id" in doc:
        result = {"id": _convert(doc["_id"]), **result}
    return result


def to_object_id(listing_id: str, entity: str = "Listing") -> ObjectId:
    """Parse an id from a request; malformed ids are reported as not found."""
    try:
        return ObjectId(str(listing_id))
    except (InvalidId, TypeError):
        raise NotFoundError(f"{entity} not found: {listing_id}")
