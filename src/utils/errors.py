"""Error handling utilities."""

from typing import Optional


class MarketplaceError(Exception):
    """Base exception for the marketplace backend."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        """Error body returned to API callers."""
        body = {"error": self.__class__.__name__, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(MarketplaceError):
    """Malformed or out-of-range structural input."""
    status_code = 400


class AuthorizationError(MarketplaceError):
    """Actor lacks permission for the requested transition or resource."""
    status_code = 403


class AuthenticationRequiredError(AuthorizationError):
    """No actor was supplied for an operation that needs one."""
    status_code = 401


class NotFoundError(MarketplaceError):
    """Referenced entity does not exist."""
    status_code = 404


class DuplicateNameError(MarketplaceError):
    """User already has an active saved search with this name."""
    status_code = 409


class DegradedExecutionError(MarketplaceError):
    """Plan construction or execution failed internally.

    Never reported to callers of search-family operations; the fallback
    query path is taken instead.
    """
    pass


class ListingStoreError(MarketplaceError):
    """MongoDB listing store operation error."""
    pass


class SupabaseError(MarketplaceError):
    """Supabase operation error."""
    pass
