"""Listing store configuration with environment variable support."""

import os


class StoreConfig:
    """MongoDB listing store and query limits."""

    MONGODB_URI = os.environ.get("MONGODB_URI", "")
    MONGODB_DATABASE = os.environ.get("MONGODB_DATABASE", "marketplace")
    LISTINGS_COLLECTION = os.environ.get("LISTINGS_COLLECTION", "listings")
    MONGODB_SERVER_SELECTION_TIMEOUT_MS = int(os.environ.get("MONGODB_SERVER_SELECTION_TIMEOUT_MS", "3000"))

    # Request-level timeout for every listing query; exceeding it degrades search
    SEARCH_MAX_TIME_MS = int(os.environ.get("SEARCH_MAX_TIME_MS", "5000"))

    SAVED_SEARCHES_TABLE = os.environ.get("SAVED_SEARCHES_TABLE", "saved_searches")
