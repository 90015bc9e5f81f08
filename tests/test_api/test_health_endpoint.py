"""Tests for health check endpoint."""

import pytest
import json
from io import BytesIO
from unittest.mock import Mock, MagicMock, patch
from http.server import BaseHTTPRequestHandler
from pymongo.errors import ServerSelectionTimeoutError

import api.health
from api.health import handler, check_listing_store


class MockSocket:
    """Minimal socket; the handler parses ``request_line`` on construction."""

    def __init__(self, request_line: bytes):
        self.request_line = request_line

    def makefile(self, *args, **kwargs):
        return BytesIO(self.request_line)

    def sendall(self, data):
        pass

    def close(self):
        pass


def run_health(method: str, listings: str = "ok"):
    """Build a handler, re-run ``method`` against captured output, return (status, body)."""
    with patch("api.health.check_listing_store", return_value=listings):
        h = handler(MockSocket(f"{method} /api/health HTTP/1.1\r\n\r\n".encode()), ("127.0.0.1", 8000), None)
        h.wfile = BytesIO()
        h.send_response = Mock()
        h.send_header = Mock()
        h.end_headers = Mock()

        getattr(h, f"do_{method}")()

    h.wfile.seek(0)
    return h.send_response.call_args[0][0], json.loads(h.wfile.read().decode('utf-8'))


@pytest.mark.unit
def test_health_handler_class():
    """Test that handler is a BaseHTTPRequestHandler subclass."""
    assert issubclass(handler, BaseHTTPRequestHandler)


@pytest.mark.unit
def test_health_get_request():
    """Test GET request to health endpoint."""
    status, body = run_health("GET")

    assert status == 200
    assert body["status"] == "ok"
    assert body["service"] == "marketplace-backend"
    assert body["checks"] == {"listings": "ok"}


@pytest.mark.unit
def test_health_post_request():
    """Test POST request to health endpoint."""
    status, body = run_health("POST")

    assert status == 200
    assert body["status"] == "ok"


@pytest.mark.unit
def test_health_degraded_when_store_unreachable():
    """Test health status when MongoDB is unreachable."""
    status, body = run_health("GET", listings="unavailable")

    assert status == 503
    assert body["status"] == "degraded"
    assert body["checks"]["listings"] == "unavailable"


@pytest.mark.unit
def test_check_listing_store():
    """Test the listing store ping."""
    client = MagicMock()

    with patch.object(api.health, "get_mongo_client", return_value=client):
        assert check_listing_store() == "ok"
    client.admin.command.assert_called_once_with("ping")

    client.admin.command.side_effect = ServerSelectionTimeoutError("no primary")
    with patch.object(api.health, "get_mongo_client", return_value=client):
        assert check_listing_store() == "unavailable"
