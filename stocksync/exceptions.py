from typing import Optional


class SyncError(Exception):
    """Base exception for all sync-related errors."""
    pass


class StoreApiError(SyncError):
    """Raised when a call to a store's Admin API fails."""

    def __init__(self, store: str, message: str, status_code: Optional[int] = None,
                 cause: Optional[BaseException] = None):
        super().__init__(f"Shopify API error ({store}): {message}")
        self.store = store
        self.status_code = status_code
        self.cause = cause


class LocationNotFoundError(StoreApiError):
    """Raised when the configured sync location does not exist in a store."""
    pass


class ProductNotFoundError(SyncError):
    """Raised when a manual sync cannot find the product in the source store."""
    pass


class NotEnrolledError(SyncError):
    """Raised when the counterpart store has no product for an identifier."""
    pass
