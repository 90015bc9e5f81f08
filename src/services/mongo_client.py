"""MongoDB client wrapper for the listings collection."""

from typing import Optional
from pymongo import ASCENDING, DESCENDING, GEOSPHERE, TEXT, MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from src.utils.errors import ListingStoreError
from src.utils.store_config import StoreConfig
import logging

logger = logging.getLogger(__name__)

# Global client instance (singleton pattern)
_client: Optional[MongoClient] = None


def get_mongo_client() -> MongoClient:
    """Get or create MongoDB client singleton."""
    global _client

    if _client is None:
        uri = StoreConfig.MONGODB_URI
        if not uri:
            raise ListingStoreError("MONGODB_URI must be set")

        _client = MongoClient(
            uri,
            serverSelectionTimeoutMS=StoreConfig.MONGODB_SERVER_SELECTION_TIMEOUT_MS,
            tz_aware=True,
            appname="marketplace-backend",
        )
        logger.info("MongoDB client initialized", extra={"database": StoreConfig.MONGODB_DATABASE})

    return _client


def close_mongo_client() -> None:
    """Close MongoDB client connections."""
    global _client
    if _client:
        _client.close()
        _client = None
        logger.info("MongoDB client closed")


def get_listings_collection() -> Collection:
    """Listings collection in the configured database."""
    client = get_mongo_client()
    return client[StoreConfig.MONGODB_DATABASE][StoreConfig.LISTINGS_COLLECTION]


def ensure_listing_indexes(collection: Optional[Collection] = None) -> list[str]:
    """Create the geo, text and compound indexes search relies on."""
    collection = collection if collection is not None else get_listings_collection()
    try:
        names = [
            collection.create_index([("location.coordinates", GEOSPHERE)]),
            collection.create_index(
                [
                    ("title", TEXT),
                    ("description", TEXT),
                    ("location.address", TEXT),
                    ("location.city", TEXT),
                    ("location.area", TEXT),
                    ("location.state", TEXT),
                ],
                name="listing_text",
            ),
            collection.create_index([("status", ASCENDING), ("created_at", DESCENDING)]),
            collection.create_index([("location.city", ASCENDING), ("price", ASCENDING)]),
            collection.create_index([("property_type", ASCENDING), ("bedrooms", ASCENDING)]),
            collection.create_index([("price", ASCENDING), ("area_sqft", ASCENDING)]),
            collection.create_index([("is_featured", ASCENDING), ("featured_at", DESCENDING)]),
            collection.create_index([("view_count", DESCENDING), ("created_at", DESCENDING)]),
            collection.create_index([("owner_id", ASCENDING)]),
        ]
    except PyMongoError as e:
        raise ListingStoreError(f"Failed to create listing indexes: {e}")

    logger.info("Listing indexes ensured", extra={"indexes": names})
    return names
