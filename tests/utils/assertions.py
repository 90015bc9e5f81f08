"""Custom assertion helpers."""

from typing import Any, Dict
import json


def assert_valid_response(response: Dict[str, Any], expected_status: int = 200) -> None:
    """Assert that a Vercel function response is valid."""
    assert 'statusCode' in response
    assert response['statusCode'] == expected_status
    assert 'headers' in response
    assert 'body' in response

    # Try to parse body as JSON if content-type is JSON
    if 'application/json' in response.get('headers', {}).get('Content-Type', ''):
        try:
            json.loads(response['body'])
        except json.JSONDecodeError:
            assert False, "Response body is not valid JSON"


def assert_search_page(body: Dict[str, Any]) -> None:
    """Assert the {items, total, page, limit} search contract."""
    for key in ("items", "total", "page", "limit"):
        assert key in body, f"missing {key}"
    assert isinstance(body["items"], list)
    assert body["total"] >= 0
    assert body["page"] >= 1
    assert 1 <= body["limit"] <= 50


def assert_valid_listing(listing: Dict[str, Any]) -> None:
    """Assert that a serialized listing is valid."""
    assert isinstance(listing.get('id'), str)
    assert '_id' not in listing
    assert listing['price'] > 0
    lng, lat = listing['location']['coordinates']['coordinates']
    assert -180 <= lng <= 180
    assert -90 <= lat <= 90


def assert_error_body(body: Dict[str, Any], error: str) -> None:
    assert body['error'] == error
    assert body['message']
