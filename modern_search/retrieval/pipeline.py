"""
Search pipeline orchestration.

This module coordinates the full query workflow:
Query text → Synonym expansion → Template token resolution →
Refinement filters → Search service → Result mapping → Icon enrichment

It provides the main entry point for executing searches. Each
QueryOrchestrator owns the page-1 response of the last query it ran
and turns pages from it without repeating the page-1 round trip.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from modern_search.backend.client import SearchBackendClient, SearchResults
from modern_search.core.config import settings
from modern_search.core.exceptions import SearchServiceError
from modern_search.core.formatting import DateFormatter
from modern_search.core.schemas import (
    PaginationInfo,
    SearchQuery,
    SearchResultPage,
    SearchVertical,
    VerticalCount,
)
from modern_search.retrieval.aggregator import (
    map_promoted_results,
    map_refinement_facets,
    map_result_rows,
    sort_facets,
)
from modern_search.retrieval.enrichment import BatchEnricher
from modern_search.retrieval.query_processor import build_query_request
from modern_search.retrieval.refinement_builder import RefinementCompiler, get_refinement_compiler
from modern_search.retrieval.synonyms import SynonymExpander
from modern_search.retrieval.token_resolver import TokenContext, TokenResolver, get_token_resolver

logger = logging.getLogger(__name__)


class QueryOrchestrator:
    """
    Runs searches for one session and caches its page-1 response.

    The cache holds a single (request, response) pair. It is replaced as a
    whole whenever the built request changes (query text, template,
    filters, sort, ...) or a refresh is asked for, and reused as the paging
    cursor for pages beyond the first. Calls on one orchestrator must not
    overlap: a search has to complete before the next one starts.
    """

    def __init__(
        self,
        client: SearchBackendClient,
        synonyms: Optional[SynonymExpander] = None,
        token_resolver: Optional[TokenResolver] = None,
        date_formatter: Optional[DateFormatter] = None,
        compiler: Optional[RefinementCompiler] = None,
        enricher: Optional[BatchEnricher] = None,
        enrich_icons: bool = True,
        culture: Optional[str] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            client: Search service client
            synonyms: Synonym expander applied to the query text (default: none)
            token_resolver: Resolver for template tokens (default: shared instance)
            date_formatter: Formatter for refinement date labels, built once at
                startup and shared (default: one for `culture`)
            compiler: Refinement compiler (default: shared instance)
            enricher: Batch enricher for row icons (default: built on `client`)
            enrich_icons: Whether result rows get their file type icon by default
            culture: Culture used for suggestions and date labels (default: from settings)
        """
        self.client = client
        self.synonyms = synonyms or SynonymExpander()
        self.token_resolver = token_resolver or get_token_resolver()
        self.culture = culture or settings.SEARCH_CULTURE
        self.date_formatter = date_formatter or DateFormatter(self.culture)
        self.compiler = compiler or get_refinement_compiler()
        self.enricher = enricher or BatchEnricher(client)
        self.enrich_icons = enrich_icons

        self._cache: Optional[Tuple[str, SearchResults]] = None

    @property
    def has_cached_results(self) -> bool:
        return self._cache is not None

    def invalidate(self) -> None:
        """Drop the cached page-1 response."""
        self._cache = None

    async def build_request(
        self,
        query: SearchQuery,
        context: Optional[TokenContext] = None,
    ) -> Dict[str, Any]:
        """Build the search service request for a query configuration."""
        query_text = self.synonyms.expand(query.raw_text)
        query_template = await self.token_resolver.resolve(query.query_template, context)
        return build_query_request(query, query_text, query_template, self.compiler)

    async def search(
        self,
        query: SearchQuery,
        page_number: int = 1,
        context: Optional[TokenContext] = None,
        refresh: bool = False,
        enrich_icons: Optional[bool] = None,
    ) -> SearchResultPage:
        """
        Execute a search and return one page of results.

        Args:
            query: Query configuration for this invocation
            page_number: One-based page to return
            context: Context for template token resolution
            refresh: Fetch page 1 again even if the cached one matches
            enrich_icons: Attach file type icons to this page's rows
                (default: the orchestrator's setting)

        Returns:
            The result page; an empty page if the service returned no primary result

        Raises:
            SearchTransportError: if a call to the search service fails
        """
        page = page_number if page_number and page_number > 0 else 1
        page_size = query.row_limit or settings.SEARCH_DEFAULT_ROW_LIMIT
        with_icons = self.enrich_icons if enrich_icons is None else enrich_icons

        result_page = SearchResultPage(
            query_keywords=query.raw_text,
            pagination=PaginationInfo(current_page=page, page_size=page_size, total_rows=0),
        )

        try:
            request = await self.build_request(query, context)
            initial_results = await self._initial_results(request, refresh)

            # An empty or malformed response has no primary block
            if not initial_results.primary_result:
                logger.warning(f"No primary result returned for query: {query.raw_text!r}")
                return result_page

            page_results = initial_results
            if page > 1:
                page_results = await initial_results.get_page(page, page_size)

            primary = page_results.primary_result or {}
            rows = map_result_rows(primary)
            if with_icons and rows:
                rows = await self.enricher.enrich(rows)

        except SearchServiceError as e:
            logger.error(f"[QueryOrchestrator.search] Error: {e}")
            raise

        facets = map_refinement_facets(primary, self.date_formatter)

        result_page.rows = rows
        result_page.refinement_facets = sort_facets(facets, query.refiner_names)
        result_page.promoted_results = map_promoted_results(page_results.secondary_results)
        result_page.pagination.total_rows = initial_results.total_rows

        logger.info(
            f"Search {query.raw_text!r} page {page}: {len(rows)} rows of "
            f"{result_page.pagination.total_rows}, {len(facets)} facets"
        )
        return result_page

    async def _initial_results(self, request: Dict[str, Any], refresh: bool) -> SearchResults:
        cache_key = json.dumps(request, sort_keys=True, default=str)

        if not refresh and self._cache is not None and self._cache[0] == cache_key:
            logger.debug("Reusing cached page-1 response")
            return self._cache[1]

        results = await self.client.query(request)
        self._cache = (cache_key, results)
        return results

    async def suggest(self, text: str) -> List[str]:
        """
        Retrieve query suggestions for a partial query.

        Raises:
            SearchTransportError: if the suggestion call fails
        """
        try:
            return await self.client.suggest(text, culture=self.culture)
        except SearchServiceError as e:
            logger.error(f"[QueryOrchestrator.suggest] Error: {e}")
            raise

    async def vertical_counts(
        self,
        query_text: str,
        verticals: Sequence[SearchVertical],
        enable_query_rules: bool = False,
        selected_vertical: Optional[str] = None,
        current_total: Optional[int] = None,
    ) -> List[VerticalCount]:
        """
        Count results of the query text in every vertical.

        The selected vertical is not queried again: its count is the total of
        the page already displayed, appended after the other verticals.

        Args:
            query_text: User query text
            verticals: All configured verticals
            enable_query_rules: Whether query rules apply
            selected_vertical: Key of the vertical currently displayed
            current_total: Total rows of the current result page
        """
        others = [v for v in verticals if v.key != selected_vertical]
        counts = await self.enricher.vertical_counts(query_text, others, enable_query_rules)

        if selected_vertical is not None and current_total is not None:
            counts.append(VerticalCount(vertical_key=selected_vertical, count=current_total))

        return counts
