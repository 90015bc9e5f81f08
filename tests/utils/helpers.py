"""Test helper functions."""

import json
from typing import Any, Dict, Iterable, Optional
from unittest.mock import MagicMock


def create_vercel_request(
    method: str = "GET",
    path: str = "/api/listings/search",
    body: Any = None,
    headers: Optional[Dict[str, str]] = None,
    query: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Create a Vercel request object for testing."""
    if headers is None:
        headers = {"content-type": "application/json"}

    return {
        "method": method,
        "path": path,
        "headers": headers,
        "body": json.dumps(body) if isinstance(body, dict) else (body or ""),
        "query": query or {},
    }


def actor_headers(user_id: str = "user-1", role: str = "user") -> Dict[str, str]:
    """Identity headers as injected by the gateway."""
    return {
        "content-type": "application/json",
        "x-user-id": user_id,
        "x-user-role": role,
    }


def response_json(response: Dict[str, Any]) -> Any:
    return json.loads(response["body"])


def mock_supabase_chain(data: Optional[list] = None):
    """Mock client whose table query chain resolves to ``data``.

    Returns (client, table, query); every filter/modifier returns the same
    query mock so any chain ends at ``query.execute``.
    """
    client = MagicMock()
    table = MagicMock()
    query = MagicMock()

    for method in ("select", "eq", "neq", "order", "limit", "insert", "update", "delete"):
        getattr(query, method).return_value = query
        getattr(table, method).return_value = query
    query.execute.return_value = MagicMock(data=data if data is not None else [])
    client.table.return_value = table
    return client, table, query


def cursor(docs: Iterable[dict]):
    """What pymongo's find/aggregate hand back, as far as the services care."""
    return iter(list(docs))
