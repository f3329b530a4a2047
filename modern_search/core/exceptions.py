"""
Exception types raised by the search pipeline.

Only transport failures are raised: malformed responses degrade to
empty results and token resolution failures are logged.
"""


class SearchServiceError(Exception):
    """Base exception for search pipeline errors."""
    pass


class SearchTransportError(SearchServiceError):
    """Raised when a call to the search service fails."""

    def __init__(self, message: str, operation: str = "", status_code: int = 0):
        super().__init__(message)
        self.operation = operation
        self.status_code = status_code


class BatchResponseError(SearchTransportError):
    """Raised when a batch response body cannot be matched to its requests."""
    pass
