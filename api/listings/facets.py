"""Filter-sidebar facets endpoint."""

from src.services.facet_engine import FacetEngine, facet_branches
from src.services.filter_parser import parse_text
from src.services.mongo_client import get_listings_collection
from src.utils.http import handle_request, json_response, query_params, request_method


def handler(request):
    """GET /api/listings/facets[?q=term]"""
    if request_method(request) != "GET":
        return json_response(405, {"error": "MethodNotAllowed", "message": "Use GET"})

    params = query_params(request)

    async def facets(log):
        engine = FacetEngine(get_listings_collection(), log=log)
        return 200, await engine.compute(parse_text(params))

    def empty_facets(error):
        return 200, {name: [] for name in facet_branches()}

    return handle_request(request, "listings.facets", facets, on_failure=empty_facets)
