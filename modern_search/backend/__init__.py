"""
Backend module for the remote search service.

This module provides the abstraction layer over the search REST
service consumed by the pipeline.

Key operations:
- Structured queries with a paging cursor
- Query suggestions
- List item rendering for page tokens
- OData batches of GET sub-requests
"""

from modern_search.backend.batch import BatchPart, ODataBatch
from modern_search.backend.client import SearchBackendClient, SearchResults, get_search_client

__all__ = [
    "SearchBackendClient",
    "SearchResults",
    "get_search_client",
    "ODataBatch",
    "BatchPart",
]
