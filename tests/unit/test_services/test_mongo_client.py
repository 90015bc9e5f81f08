"""Tests for the MongoDB client wrapper."""

import pytest
from unittest.mock import MagicMock
from pymongo.errors import OperationFailure

from src.services import mongo_client
from src.services.mongo_client import close_mongo_client, ensure_listing_indexes, get_mongo_client
from src.utils.errors import ListingStoreError
from src.utils.store_config import StoreConfig


@pytest.mark.unit
def test_client_requires_uri(monkeypatch):
    """Test that the client needs MONGODB_URI."""
    monkeypatch.setattr(mongo_client, "_client", None)
    monkeypatch.setattr(StoreConfig, "MONGODB_URI", "")

    with pytest.raises(ListingStoreError):
        get_mongo_client()


@pytest.mark.unit
def test_client_is_a_singleton(monkeypatch):
    """Test that the client is created once."""
    factory = MagicMock()
    monkeypatch.setattr(mongo_client, "_client", None)
    monkeypatch.setattr(mongo_client, "MongoClient", factory)
    monkeypatch.setattr(StoreConfig, "MONGODB_URI", "mongodb://localhost:27017")

    assert get_mongo_client() is get_mongo_client()
    factory.assert_called_once()
    assert factory.call_args[1]["tz_aware"] is True


@pytest.mark.unit
def test_ensure_listing_indexes(mock_collection):
    """Test listing index creation."""
    mock_collection.create_index.side_effect = lambda keys, **kwargs: kwargs.get("name") or "_".join(k for k, _ in keys)

    names = ensure_listing_indexes(mock_collection)

    assert "location.coordinates" in names
    assert "listing_text" in names
    assert "status_created_at" in names


@pytest.mark.unit
def test_ensure_listing_indexes_failure(mock_collection):
    """Test index creation failure."""
    mock_collection.create_index.side_effect = OperationFailure("not authorized")

    with pytest.raises(ListingStoreError):
        ensure_listing_indexes(mock_collection)


@pytest.mark.unit
def test_close_mongo_client(monkeypatch):
    """Test closing the client."""
    client = MagicMock()
    monkeypatch.setattr(mongo_client, "_client", client)

    close_mongo_client()

    client.close.assert_called_once()
    assert mongo_client._client is None
