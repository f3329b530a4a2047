"""
Batch enrichment of search results.

Some data cannot be selected in the main query and needs one extra
request per item: the file type icon of each result row, or the total
count of each search vertical. Those requests are grouped in a single
OData batch and their responses are merged back by position: the n-th
response always belongs to the n-th input item.
"""

import asyncio
import logging
import re
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

from modern_search.backend.client import SearchBackendClient, build_url, quote_query_value
from modern_search.core.config import settings
from modern_search.core.exceptions import SearchServiceError
from modern_search.core.schemas import SearchVertical, VerticalCount

logger = logging.getLogger(__name__)

ICON_FIELD = "IconSrc"
ICON_IMAGES_PATH = "/_layouts/15/images/"

# Straight and typographic apostrophes break the maptoicon call
_FILENAME_QUOTES = re.compile("['‘’]")


def icon_lookup_key(row: Dict[str, Any]) -> Optional[str]:
    """
    Derive the file name used to resolve a row's icon.

    Uses the Filename property, or ".<FileExtension>" when only the
    extension is known. The query-string part and quote characters are
    removed. Returns None when the row has neither.
    """
    filename = row.get("Filename")
    if not filename:
        extension = row.get("FileExtension")
        if not extension:
            return None
        filename = f".{extension}"

    key = _FILENAME_QUOTES.sub("", str(filename))
    query_string_index = key.find("?")
    if query_string_index != -1:
        # a file name with a query string makes the call fail
        key = key[:query_string_index]
    return key or None


async def _gather_in_order(futures: Sequence["asyncio.Future[Any]"]) -> List[Any]:
    # Results come back aligned with `futures`, whatever their completion order
    results = await asyncio.gather(*futures, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)


class BatchEnricher:
    """Issues correlated sub-requests in one batch and merges them by index."""

    def __init__(self, client: SearchBackendClient):
        self.client = client

    async def enrich(self, rows: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Attach the file type icon URL of each row.

        Args:
            rows: Result rows

        Returns:
            As many rows as given, in the same order. Rows with an icon are
            copies carrying an IconSrc field; the others are returned as is.
        """
        rows = list(rows)
        keys = [icon_lookup_key(row) for row in rows]
        if not any(keys):
            return rows

        batch = self.client.create_batch()
        futures: Dict[int, "asyncio.Future[Any]"] = {}
        for index, key in enumerate(keys):
            if key is None:
                continue
            url = f"/_api/web/maptoicon(filename='{quote(key, safe='')}', progid='', size=1)"
            futures[index] = batch.add(url)

        try:
            await batch.execute()
            responses = await _gather_in_order(list(futures.values()))
        except SearchServiceError as e:
            logger.error(f"[BatchEnricher.enrich] Icon batch failed: {e}")
            raise

        enriched = list(rows)
        for index, response in zip(futures.keys(), responses):
            icon = (response or {}).get("value") if isinstance(response, dict) else None
            if icon:
                row = dict(rows[index])
                row[ICON_FIELD] = f"{self.client.site_url}{ICON_IMAGES_PATH}{icon}"
                enriched[index] = row

        return enriched

    async def vertical_counts(
        self,
        query_text: str,
        verticals: Sequence[SearchVertical],
        enable_query_rules: bool = False,
    ) -> List[VerticalCount]:
        """
        Count the results of the same query text in each vertical.

        Args:
            query_text: User query text
            verticals: Verticals to count, each with its own template and source
            enable_query_rules: Whether query rules apply

        Returns:
            One count per vertical that returned a total, in vertical order.
            Nothing is returned for an empty query text.
        """
        verticals = list(verticals)
        if not verticals:
            return []

        batch = self.client.create_batch()
        futures = [
            batch.add(self._vertical_query_url(query_text, vertical, enable_query_rules))
            for vertical in verticals
        ]

        try:
            await batch.execute()
            responses = await _gather_in_order(futures)
        except SearchServiceError as e:
            logger.error(f"[BatchEnricher.vertical_counts] Vertical count batch failed: {e}")
            raise

        counts: List[VerticalCount] = []
        for vertical, response in zip(verticals, responses):
            primary = (response or {}).get("PrimaryQueryResult") if isinstance(response, dict) else None
            total = ((primary or {}).get("RelevantResults") or {}).get("TotalRows") if primary else None

            # GET queries accept an empty query text, whose count is meaningless
            if total is None or not query_text.strip():
                continue
            try:
                count = int(total)
            except (TypeError, ValueError):
                logger.warning(f"Ignoring unreadable total for vertical {vertical.key}: {total!r}")
                continue
            counts.append(VerticalCount(vertical_key=vertical.key, count=count))

        return counts

    @staticmethod
    def _vertical_query_url(
        query_text: str,
        vertical: SearchVertical,
        enable_query_rules: bool,
    ) -> str:
        # With query rules on, at least one row is needed to get a primary
        # result block and therefore a total
        row_limit = "1" if enable_query_rules else "0"
        params = [
            ("querytext", quote_query_value(query_text)),
            ("rowlimit", row_limit),
            ("querytemplate", quote_query_value(vertical.query_template)),
            ("trimduplicates", "'false'"),
            ("properties", "'EnableDynamicGroups:true,EnableMultiGeoSearch:true'"),
            ("clienttype", f"'{settings.SEARCH_CLIENT_TYPE}'"),
            ("enablequeryrules", "true" if enable_query_rules else "false"),
        ]
        if vertical.result_source_id:
            params.append(("sourceid", f"'{vertical.result_source_id}'"))
        return build_url("/_api/search/query", params)
