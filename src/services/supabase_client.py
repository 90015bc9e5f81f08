"""Supabase client wrapper with async context manager support, and saved_searches table operations."""

import os
from typing import Optional
from supabase import create_client, Client
from supabase.client import ClientOptions
from src.utils.errors import SupabaseError
from src.utils.store_config import StoreConfig
import logging

logger = logging.getLogger(__name__)

# Global client instance (singleton pattern)
_client: Optional[Client] = None


def get_supabase_client() -> Client:
    """Get or create Supabase client singleton."""
    global _client

    if _client is None:
        url = os.environ.get("SUPABASE_URL")
        key = os.environ.get("SUPABASE_SERVICE_ROLE_KEY")

        if not url or not key:
            raise SupabaseError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")

        options = ClientOptions(
            auto_refresh_token=False,
            persist_session=False,
        )

        _client = create_client(url, key, options)
        logger.info("Supabase client initialized", extra={"url": url})

    return _client


async def close_supabase_client() -> None:
    """Drop the Supabase client reference."""
    global _client
    if _client:
        _client = None
        logger.info("Supabase client closed")


class SupabaseClient:
    """Async context manager for Supabase client."""

    def __init__(self):
        self.client: Optional[Client] = None

    async def __aenter__(self) -> Client:
        self.client = get_supabase_client()
        return self.client

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            logger.error(
                "Supabase operation error",
                extra={"error": str(exc_val), "type": exc_type.__name__}
            )
        return False


def _table(client: Client):
    return client.table(StoreConfig.SAVED_SEARCHES_TABLE)


# Saved searches table operations
async def find_active_saved_search_by_name(user_id: str, name: str) -> Optional[dict]:
    """Get the user's active saved search with this exact name."""
    async with SupabaseClient() as client:
        try:
            result = (
                _table(client).select("*")
                .eq("user_id", user_id)
                .eq("name", name)
                .eq("is_active", True)
                .execute()
            )
            return result.data[0] if result.data and len(result.data) > 0 else None
        except Exception as e:
            raise SupabaseError(f"Failed to look up saved search by name: {e}")


async def insert_saved_search(row: dict) -> dict:
    """Create a new saved search row."""
    async with SupabaseClient() as client:
        try:
            result = _table(client).insert(row).execute()
            if result.data and len(result.data) > 0:
                return result.data[0]
            raise SupabaseError("Failed to create saved search: no data returned")
        except SupabaseError:
            raise
        except Exception as e:
            raise SupabaseError(f"Failed to create saved search: {e}")


async def list_active_saved_searches(user_id: str) -> list[dict]:
    """Active saved searches for a user, newest first."""
    async with SupabaseClient() as client:
        try:
            result = (
                _table(client).select("*")
                .eq("user_id", user_id)
                .eq("is_active", True)
                .order("created_at", desc=True)
                .execute()
            )
            return result.data if result.data else []
        except Exception as e:
            raise SupabaseError(f"Failed to list saved searches: {e}")


async def get_saved_search(search_id: str, user_id: str) -> Optional[dict]:
    """Get a saved search owned by the user, active or not."""
    async with SupabaseClient() as client:
        try:
            result = (
                _table(client).select("*")
                .eq("id", search_id)
                .eq("user_id", user_id)
                .execute()
            )
            return result.data[0] if result.data and len(result.data) > 0 else None
        except Exception as e:
            raise SupabaseError(f"Failed to get saved search: {e}")


async def update_saved_search(search_id: str, updates: dict) -> dict:
    """Update a saved search row."""
    async with SupabaseClient() as client:
        try:
            result = _table(client).update(updates).eq("id", search_id).execute()
            if result.data and len(result.data) > 0:
                return result.data[0]
            raise SupabaseError(f"Failed to update saved search: {search_id}")
        except SupabaseError:
            raise
        except Exception as e:
            raise SupabaseError(f"Failed to update saved search: {e}")


async def delete_saved_search(search_id: str, user_id: str) -> bool:
    """Remove a saved search permanently. Returns False if nothing matched."""
    async with SupabaseClient() as client:
        try:
            result = (
                _table(client).delete()
                .eq("id", search_id)
                .eq("user_id", user_id)
                .execute()
            )
            return bool(result.data)
        except Exception as e:
            raise SupabaseError(f"Failed to delete saved search: {e}")


async def list_alerting_saved_searches() -> list[dict]:
    """Active saved searches whose alert frequency is not 'never'."""
    async with SupabaseClient() as client:
        try:
            result = (
                _table(client).select("*")
                .eq("is_active", True)
                .neq("alert_frequency", "never")
                .execute()
            )
            return result.data if result.data else []
        except Exception as e:
            raise SupabaseError(f"Failed to list alerting saved searches: {e}")
