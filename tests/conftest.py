"""Shared pytest fixtures and configuration."""

import os
import pytest
from unittest.mock import MagicMock
from freezegun import freeze_time

# Set test environment variables
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from src.models.actor import Actor, Role
from tests.utils.factories import create_listing_document


@pytest.fixture
def mock_collection():
    """Mock pymongo listings collection; no calls reach a server."""
    collection = MagicMock()
    collection.find.return_value = iter([])
    collection.aggregate.return_value = iter([])
    collection.count_documents.return_value = 0
    collection.find_one.return_value = None
    return collection


@pytest.fixture
def user_actor():
    return Actor(id="user-1", role=Role.USER)


@pytest.fixture
def agent_actor():
    return Actor(id="agent-1", role=Role.AGENT)


@pytest.fixture
def admin_actor():
    return Actor(id="admin-1", role=Role.ADMIN)


@pytest.fixture
def active_listing():
    """Active listing document owned by agent-1."""
    return create_listing_document(owner_id="agent-1", status="active")


@pytest.fixture
def freeze_time_fixture():
    """Fixture for freezing time in tests."""
    with freeze_time("2024-12-09 12:00:00") as frozen_time:
        yield frozen_time


@pytest.fixture
def mock_vercel_request():
    """Mock Vercel serverless function request."""
    return {
        "method": "GET",
        "path": "/api/listings/search",
        "headers": {"content-type": "application/json"},
        "body": "",
        "query": {},
    }
