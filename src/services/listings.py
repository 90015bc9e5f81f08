"""Listing service - create, read, moderate and feature listings."""

from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional
from pydantic import ValidationError as PydanticValidationError
from pymongo import ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from src.models.actor import Actor
from src.models.listing import Listing, ListingStatus
from src.models.search import SearchResult
from src.services.filter_parser import parse_statuses
from src.services.listing_status import check_transition, parse_status, transition_updates
from src.services.search_executor import SearchExecutor
from src.utils.errors import (
    AuthenticationRequiredError,
    AuthorizationError,
    ListingStoreError,
    NotFoundError,
    ValidationError,
)
from src.utils.logging import StructuredLogger, get_structured_logger, mask_user_id
from src.utils.serialization import serialize_document, to_object_id

logger = get_structured_logger(__name__)

DEFAULT_FEATURE_DAYS = 30

# Fields a caller can never set directly on create
PROTECTED_FIELDS = frozenset({
    "id",
    "_id",
    "owner_id",
    "status",
    "view_count",
    "inquiry_count",
    "share_count",
    "favorite_count",
    "is_featured",
    "featured_at",
    "featured_till",
    "approved_by",
    "approved_at",
    "archived_at",
    "price_per_sqft",
    "created_at",
    "updated_at",
})

ALL_STATUSES = tuple(status.value for status in ListingStatus)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def validation_details(error: PydanticValidationError) -> dict[str, Any]:
    return {
        "errors": [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
            for err in error.errors()
        ],
    }


class ListingService:
    """Listing operations for one request."""

    def __init__(
        self,
        collection: Collection,
        executor: Optional[SearchExecutor] = None,
        log: Optional[StructuredLogger] = None,
    ):
        self.collection = collection
        self.logger = log or logger
        self.executor = executor or SearchExecutor(collection, log=self.logger)

    def _load(self, listing_id: str) -> dict[str, Any]:
        object_id = to_object_id(listing_id)
        try:
            doc = self.collection.find_one({"_id": object_id})
        except PyMongoError as e:
            raise ListingStoreError(f"Failed to load listing: {e}") from e
        if not doc:
            raise NotFoundError(f"Listing not found: {listing_id}")
        return doc

    def _update(self, doc: dict[str, Any], updates: dict[str, Any], expected_status: Optional[str] = None) -> dict:
        query: dict[str, Any] = {"_id": doc["_id"]}
        if expected_status is not None:
            query["status"] = expected_status
        try:
            updated = self.collection.find_one_and_update(
                query,
                {"$set": updates},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            raise ListingStoreError(f"Failed to update listing: {e}") from e
        if updated is None:
            raise ValidationError(
                "Listing was modified concurrently; reload and retry",
                details={"listing_id": str(doc["_id"])},
            )
        return updated

    async def create(self, actor: Actor, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Validate and insert a listing owned by ``actor``.

        New listings start ``pending``; ``draft`` may be requested instead.
        """
        if not isinstance(payload, Mapping):
            raise ValidationError("Listing payload must be an object")

        data = {key: value for key, value in payload.items() if key not in PROTECTED_FIELDS}
        requested = str(payload.get("status") or "").lower()
        status = ListingStatus.DRAFT if requested == ListingStatus.DRAFT.value else ListingStatus.PENDING
        now = _now()

        try:
            listing = Listing(**data, owner_id=actor.id, status=status, created_at=now, updated_at=now)
        except PydanticValidationError as e:
            raise ValidationError("Invalid listing", details=validation_details(e)) from e
        except TypeError as e:
            raise ValidationError(f"Invalid listing: {e}") from e

        listing.price_per_sqft = round(listing.price / listing.area_sqft, 2)
        doc = listing.to_document()

        try:
            inserted = self.collection.insert_one(doc)
        except PyMongoError as e:
            raise ListingStoreError(f"Failed to create listing: {e}") from e

        self.logger.info(
            "Listing created",
            listing_id=str(inserted.inserted_id),
            owner=mask_user_id(actor.id),
            status=status.value,
        )
        return serialize_document({**doc, "_id": inserted.inserted_id})

    async def get(
        self,
        listing_id: str,
        actor: Optional[Actor] = None,
        track_view: bool = False,
    ) -> dict[str, Any]:
        """Fetch one listing; non-active listings are visible to owner and moderators only."""
        doc = self._load(listing_id)
        status = doc.get("status")

        if status != ListingStatus.ACTIVE.value:
            if actor is None:
                raise AuthenticationRequiredError("Sign in to view this listing")
            if not (actor.is_moderator or actor.owns(doc.get("owner_id"))):
                raise AuthorizationError("This listing is not publicly visible")

        is_owner = actor is not None and actor.owns(doc.get("owner_id"))
        if track_view and status == ListingStatus.ACTIVE.value and not is_owner:
            try:
                self.collection.update_one({"_id": doc["_id"]}, {"$inc": {"view_count": 1}})
                doc["view_count"] = doc.get("view_count", 0) + 1
            except PyMongoError as e:
                self.logger.warning("View count increment failed", listing_id=listing_id, error=str(e))

        return serialize_document(doc)

    async def change_status(self, actor: Actor, listing_id: str, status: Any) -> dict[str, Any]:
        """Move a listing through the status state machine."""
        target = parse_status(status)
        doc = self._load(listing_id)
        current = parse_status(doc.get("status"))

        check_transition(actor, doc.get("owner_id"), current, target)

        updated = self._update(doc, transition_updates(actor, target, _now()), expected_status=current.value)
        self.logger.info(
            "Listing status changed",
            listing_id=listing_id,
            from_status=current.value,
            to_status=target.value,
            actor=mask_user_id(actor.id),
            role=actor.role,
        )
        return serialize_document(updated)

    async def hold(self, actor: Actor, listing_id: str) -> dict[str, Any]:
        return await self.change_status(actor, listing_id, ListingStatus.HOLD)

    async def resume(self, actor: Actor, listing_id: str) -> dict[str, Any]:
        return await self.change_status(actor, listing_id, ListingStatus.ACTIVE)

    async def archive(self, actor: Actor, listing_id: str) -> dict[str, Any]:
        return await self.change_status(actor, listing_id, ListingStatus.ARCHIVED)

    async def set_featured(
        self,
        actor: Actor,
        listing_id: str,
        featured: bool = True,
        until: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        """Feature or unfeature a listing; moderators only."""
        if not actor.is_moderator:
            raise AuthorizationError("Only a moderator can feature listings")

        now = now or _now()
        doc = self._load(listing_id)

        if featured:
            if until is not None and until <= now:
                raise ValidationError("Featured window must end in the future")
            updates = {
                "is_featured": True,
                "featured_at": now,
                "featured_till": until or now + timedelta(days=DEFAULT_FEATURE_DAYS),
                "updated_at": now,
            }
        else:
            updates = {"is_featured": False, "featured_till": None, "updated_at": now}

        updated = self._update(doc, updates)
        self.logger.info("Listing featured flag set", listing_id=listing_id, featured=featured)
        return serialize_document(updated)

    async def list_for_actor(self, actor: Actor, params: Optional[Mapping[str, Any]] = None) -> SearchResult:
        """The actor's own listings in every status; moderators see every owner's."""
        params = params or {}
        statuses = tuple(parse_statuses(params)) or ALL_STATUSES
        owner_id = None if actor.is_moderator else actor.id
        return await self.executor.search(params, statuses=statuses, owner_id=owner_id)
