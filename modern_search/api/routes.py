"""
API route definitions.

This module defines the HTTP endpoints for the search pipeline:
- POST /v1/search - Execute a paged search with refiners
- GET /v1/suggest - Query suggestions for a partial query
- POST /v1/verticals/counts - Result counts per search vertical
- DELETE /v1/sessions/{session_id} - Drop a search session and its cached page
"""

import logging
from functools import partial
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from modern_search.api.sessions import SessionRegistry, get_session_registry
from modern_search.core.exceptions import SearchTransportError
from modern_search.core.schemas import (
    SearchRequest,
    SearchResultPage,
    SuggestResponse,
    VerticalCount,
    VerticalCountRequest,
)
from modern_search.retrieval.query_processor import build_search_query
from modern_search.retrieval.token_resolver import TokenContext

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["search"])


def _bad_gateway(e: SearchTransportError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=f"Search service call failed ({e.operation or 'unknown'}): {e}",
    )


@router.post("/search", response_model=SearchResultPage)
async def search(
    request: SearchRequest,
    registry: SessionRegistry = Depends(get_session_registry),
):
    """
    Search endpoint.

    Resolves the template tokens against the page context sent by the
    caller, expands synonyms, applies the selected refinement filters
    and returns the requested page. Pages beyond the first reuse the
    session's cached page-1 response.
    """
    orchestrator = registry.get(request.session_id, request.synonyms)

    query = build_search_query(
        raw_text=request.query,
        query_template=request.query_template,
        selected_properties=request.selected_properties,
        result_source_id=request.result_source_id,
        sort_list=request.sort_list,
        enable_query_rules=request.enable_query_rules,
        row_limit=request.row_limit,
        refiners=request.refiners,
        refinement_filters=request.refinement_filters,
    )

    item_loader = None
    if request.list_item is not None:
        item_loader = partial(
            registry.client.render_list_item,
            request.list_item.list_url,
            request.list_item.item_id,
        )

    context = TokenContext(
        page_url=request.page_url,
        page_context=request.page_context,
        item_loader=item_loader,
    )

    try:
        return await orchestrator.search(
            query, request.page, context=context, enrich_icons=request.enrich_icons
        )
    except SearchTransportError as e:
        raise _bad_gateway(e)


@router.get("/suggest", response_model=SuggestResponse)
async def suggest(
    q: str = Query(..., min_length=1),
    session_id: str = "default",
    registry: SessionRegistry = Depends(get_session_registry),
):
    """Query suggestions endpoint."""
    try:
        suggestions = await registry.get(session_id).suggest(q)
    except SearchTransportError as e:
        raise _bad_gateway(e)
    return SuggestResponse(query=q, suggestions=suggestions)


@router.post("/verticals/counts", response_model=List[VerticalCount])
async def vertical_counts(
    request: VerticalCountRequest,
    registry: SessionRegistry = Depends(get_session_registry),
):
    """
    Vertical counts endpoint.

    Counts the query text in every vertical but the selected one, whose
    count is the current total sent by the caller.
    """
    orchestrator = registry.get("verticals")
    try:
        return await orchestrator.vertical_counts(
            request.query,
            request.verticals,
            enable_query_rules=request.enable_query_rules,
            selected_vertical=request.selected_vertical,
            current_total=request.current_total,
        )
    except SearchTransportError as e:
        raise _bad_gateway(e)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def close_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
):
    """Drop a search session and its cached page-1 response."""
    if not registry.close(session_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown session: {session_id}")
