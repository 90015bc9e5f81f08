"""Health check endpoint."""

from http.server import BaseHTTPRequestHandler
import json

from src.services.mongo_client import get_mongo_client
from src.utils.logging import get_structured_logger

SERVICE_NAME = "marketplace-backend"

logger = get_structured_logger(__name__)


def check_listing_store() -> str:
    """Ping MongoDB; 'ok' or 'unavailable'."""
    try:
        get_mongo_client().admin.command("ping")
        return "ok"
    except Exception as e:
        logger.warning("Listing store health check failed", error=str(e), error_type=type(e).__name__)
        return "unavailable"


class handler(BaseHTTPRequestHandler):
    """Health check handler for Vercel serverless function."""

    def do_GET(self):
        """Handle GET request."""
        listings = check_listing_store()
        healthy = listings == "ok"

        self.send_response(200 if healthy else 503)
        self.send_header('Content-Type', 'application/json')
        self.end_headers()
        response = json.dumps({
            "status": "ok" if healthy else "degraded",
            "service": SERVICE_NAME,
            "checks": {"listings": listings},
        })
        self.wfile.write(response.encode('utf-8'))

    def do_POST(self):
        """Handle POST request (same as GET for health check)."""
        self.do_GET()
