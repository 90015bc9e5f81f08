"""Saved search alert run (can be called via Vercel cron)."""

from src.services.mongo_client import get_listings_collection
from src.services.saved_searches import SavedSearchStore
from src.services.search_executor import SearchExecutor
from src.utils.http import handle_request


def handler(request):
    """
    Re-run every due saved search.

    Reports per-search new-result counts; sending the alerts is up to the caller.
    """
    async def run_alerts(log):
        store = SavedSearchStore(SearchExecutor(get_listings_collection(), log=log), log=log)
        reports = await store.run_due_alerts()
        return 200, {"ok": True, "processed": len(reports), "alerts": reports}

    return handle_request(request, "saved_searches.alerts", run_alerts)
