"""
Search service client.

This module provides the interface to the remote search REST service:
structured queries with a paging cursor, query suggestions, list item
rendering for page tokens, and OData batches for per-row and
per-vertical sub-requests.

Every failure of the underlying HTTP client is raised as a
SearchTransportError carrying the name of the operation that failed.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import httpx

from modern_search.backend.batch import ODataBatch
from modern_search.core.config import settings
from modern_search.core.exceptions import SearchTransportError

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {"Accept": "application/json; odata=nometadata"}

CULTURE_LCIDS = {
    "en-us": 1033,
    "en-gb": 2057,
    "fr-fr": 1036,
    "de-de": 1031,
    "es-es": 3082,
    "it-it": 1040,
    "nl-nl": 1043,
}


def get_locale_id(culture: Optional[str]) -> int:
    """Map a culture name to its LCID, defaulting to en-US."""
    return CULTURE_LCIDS.get((culture or "").lower(), 1033)


def quote_query_value(value: str) -> str:
    """Quote a string for a REST query-string parameter ('it''s', percent-encoded)."""
    return "'" + quote(value.replace("'", "''"), safe="") + "'"


def build_url(path: str, params: List[Tuple[str, str]]) -> str:
    """Append already-encoded parameters to a path, keeping their order."""
    if not params:
        return path
    return path + "?" + "&".join(f"{key}={value}" for key, value in params)


class SearchResults:
    """
    Raw response of a structured query, usable as a paging cursor.

    Keeps the request that produced it so that any other page can be
    fetched without the caller re-specifying the query.
    """

    def __init__(self, client: Any, request: Dict[str, Any], raw: Dict[str, Any]):
        self._client = client
        self.request = request
        self.raw = raw or {}

    @property
    def primary_result(self) -> Optional[Dict[str, Any]]:
        return self.raw.get("PrimaryQueryResult")

    @property
    def secondary_results(self) -> List[Dict[str, Any]]:
        secondary = self.raw.get("SecondaryQueryResults")
        return secondary if isinstance(secondary, list) else []

    @property
    def total_rows(self) -> int:
        relevant = (self.primary_result or {}).get("RelevantResults") or {}
        try:
            return int(relevant.get("TotalRows") or 0)
        except (TypeError, ValueError):
            return 0

    async def get_page(self, page: int, page_size: int) -> "SearchResults":
        """
        Fetch another page of the same query.

        Args:
            page: One-based page number
            page_size: Rows per page

        Returns:
            The results of the requested page
        """
        request = dict(self.request)
        request["StartRow"] = page_size * (page - 1)
        request["RowLimit"] = page_size
        return await self._client.query(request)


class SearchBackendClient:
    """
    Async client for the search REST endpoints of one site.

    Authentication is the calling context's concern: pass the headers it
    needs (cookies, bearer token) through `headers`.
    """

    def __init__(
        self,
        site_url: Optional[str] = None,
        timeout: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.site_url = (site_url if site_url is not None else settings.SEARCH_SITE_URL).rstrip("/")
        self._http_client = httpx.AsyncClient(
            base_url=self.site_url,
            timeout=timeout if timeout is not None else settings.SEARCH_REQUEST_TIMEOUT,
            headers={**DEFAULT_HEADERS, **(headers or {})},
            transport=transport,
        )

    async def __aenter__(self) -> "SearchBackendClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http_client.aclose()

    async def _request_json(self, operation: str, method: str, url: str, **kwargs) -> Any:
        try:
            response = await self._http_client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise SearchTransportError(
                f"{operation} failed: {e}",
                operation=operation,
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise SearchTransportError(f"{operation} failed: {e}", operation=operation) from e

        try:
            return response.json()
        except ValueError as e:
            raise SearchTransportError(
                f"{operation} returned a non-JSON body", operation=operation
            ) from e

    async def query(self, request: Dict[str, Any]) -> SearchResults:
        """
        Execute a structured query.

        Args:
            request: Query request fields (Querytext, QueryTemplate, RowLimit, ...)

        Returns:
            SearchResults wrapping the raw response and the request
        """
        logger.debug(f"Posting query: {request.get('Querytext')!r}, start row {request.get('StartRow', 0)}")
        raw = await self._request_json(
            "query",
            "POST",
            "/_api/search/postquery",
            json={"request": request},
        )
        return SearchResults(self, request, raw if isinstance(raw, dict) else {})

    async def suggest(
        self,
        text: str,
        count: Optional[int] = None,
        culture: Optional[str] = None,
    ) -> List[str]:
        """
        Retrieve ranked query completions for a partial query.

        Args:
            text: The text typed so far
            count: Maximum number of suggestions (default: from settings)
            culture: Culture name used to rank suggestions (default: from settings)

        Returns:
            Suggested query strings, best first
        """
        params = [
            ("querytext", quote_query_value(text)),
            ("inumberofquerysuggestions", str(count or settings.SEARCH_SUGGESTION_COUNT)),
            ("fprequerysuggestions", "true"),
            ("fhithighlighting", "true"),
            ("fprefixmatchallterms", "true"),
            ("culture", str(get_locale_id(culture or settings.SEARCH_CULTURE))),
        ]
        raw = await self._request_json("suggest", "GET", build_url("/_api/search/suggest", params))
        queries = (raw or {}).get("Queries") or []
        return [entry.get("Query", "") for entry in queries if isinstance(entry, dict)]

    async def render_list_item(self, list_url: str, item_id: int) -> Optional[Dict[str, Any]]:
        """
        Fetch the rendered field values of a list item.

        Args:
            list_url: Server-relative URL of the list
            item_id: Item identifier

        Returns:
            The item row (field name to rendered value), or None if not found
        """
        url = (
            f"/_api/web/GetList(@v1)/RenderExtendedListFormData("
            f"itemId={item_id},formId='viewform',mode='2',options=7)"
            f"?@v1='{list_url}'"
        )
        raw = await self._request_json("render_list_item", "POST", url, json={})
        value = (raw or {}).get("value")
        if not value:
            return None
        try:
            data = json.loads(value) if isinstance(value, str) else value
        except ValueError as e:
            raise SearchTransportError(
                "render_list_item returned an unreadable item", operation="render_list_item"
            ) from e
        rows = ((data or {}).get("Data") or {}).get("Row") or []
        return rows[0] if rows else None

    def create_batch(self) -> ODataBatch:
        """Start a new batch of GET sub-requests against this site."""
        return ODataBatch(self._http_client, self.site_url)


# Module-level singleton
_search_client: Optional[SearchBackendClient] = None


def get_search_client() -> SearchBackendClient:
    """Get or create the singleton SearchBackendClient instance."""
    global _search_client
    if _search_client is None:
        _search_client = SearchBackendClient()
    return _search_client
