"""Price and area bucket tables for filter UIs."""

from src.services.filter_parser import area_bucket_table, price_bucket_table
from src.utils.http import json_response


def handler(request):
    """GET /api/listings/buckets"""
    return json_response(200, {
        "price_ranges": price_bucket_table(),
        "area_ranges": area_bucket_table(),
    })
