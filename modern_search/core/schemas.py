"""
Pydantic schemas for request/response validation and data models.

This module defines the data structures used throughout the application
for type safety and API documentation. Schemas include:
- Query configuration (sort fields, refiners, synonyms, verticals)
- Refinement filters and the facet values they are built from
- The immutable per-invocation search query
- Result pages, promoted results and vertical counts
- HTTP API request bodies
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SortDirection(int, Enum):
    """Sort direction values understood by the search service."""

    ASCENDING = 0
    DESCENDING = 1


class FilterOperator(str, Enum):
    """Operator combining the values of a multi-value refinement filter."""

    AND = "AND"
    OR = "OR"


class SortField(BaseModel):
    """A single (field, direction) entry of the sort list."""

    model_config = ConfigDict(frozen=True)

    field: str
    direction: SortDirection = SortDirection.ASCENDING


class RefinementValue(BaseModel):
    """
    One value of a refiner.

    Attributes:
        token: Opaque backend-assigned filter token, fed back as a filter.
        name: Label shown in the selected filter bar.
        display_value: Label shown in the filter panel.
        count: Number of results carrying this value.
    """

    model_config = ConfigDict(frozen=True)

    token: str
    name: str = ""
    display_value: str = ""
    count: int = Field(default=0, ge=0)


class RefinementFilter(BaseModel):
    """A refiner with the values the user selected in it."""

    model_config = ConfigDict(frozen=True)

    filter_name: str
    operator: FilterOperator = FilterOperator.OR
    values: List[RefinementValue] = Field(default_factory=list)


class RefinementFacet(BaseModel):
    """A refiner returned by the search service with its available values."""

    filter_name: str
    values: List[RefinementValue] = Field(default_factory=list)


class RefinerConfiguration(BaseModel):
    """Configured refiner: managed property name, label and display position."""

    model_config = ConfigDict(frozen=True)

    refiner_name: str
    display_value: str = ""
    sort_idx: int = 0
    show_expanded: bool = False


class SynonymEntry(BaseModel):
    """
    A configured synonym line.

    Attributes:
        term: The term users type.
        synonyms: Comma-separated synonyms of the term.
        two_ways: When true every synonym also expands to the term.
    """

    term: str
    synonyms: str
    two_ways: bool = False


class SearchVertical(BaseModel):
    """A named query scope presenting the same user query against another slice of the index."""

    model_config = ConfigDict(frozen=True)

    key: str
    display_name: str = ""
    query_template: str = "{searchTerms}"
    result_source_id: Optional[str] = None


class VerticalCount(BaseModel):
    """Total result count of a vertical for the current query text."""

    vertical_key: str
    count: int


class SearchQuery(BaseModel):
    """
    Immutable query configuration for one search invocation.

    Built per request from caller configuration (see
    retrieval/query_processor.py::build_search_query) and never mutated
    while a request is in flight.
    """

    model_config = ConfigDict(frozen=True)

    raw_text: str = ""
    query_template: str = "{searchTerms}"
    selected_properties: List[str] = Field(default_factory=list)
    result_source_id: Optional[str] = None
    sort_list: List[SortField] = Field(default_factory=list)
    enable_query_rules: bool = False
    row_limit: int = Field(default=50, gt=0)
    refiner_names: List[str] = Field(default_factory=list)
    refinement_filters: List[RefinementFilter] = Field(default_factory=list)


class PromotedResult(BaseModel):
    """Editorially curated result (best bet) returned alongside organic matches."""

    title: str = ""
    url: str = ""
    description: Optional[str] = None


class PaginationInfo(BaseModel):
    """Paging metadata of a result page."""

    current_page: int = 1
    page_size: int = 50
    total_rows: int = 0


class SearchResultPage(BaseModel):
    """Structured result set handed back to the caller."""

    query_keywords: str = ""
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    refinement_facets: List[RefinementFacet] = Field(default_factory=list)
    promoted_results: List[PromotedResult] = Field(default_factory=list)
    pagination: PaginationInfo = Field(default_factory=PaginationInfo)


# =============================================================================
# HTTP API
# =============================================================================


class ListItemReference(BaseModel):
    """List item backing the current page, used by {Page.<field>} tokens."""

    list_url: str
    item_id: int


class SearchRequest(BaseModel):
    """Body of POST /v1/search."""

    query: str = ""
    page: int = Field(default=1, ge=1)
    session_id: str = "default"
    query_template: str = "{searchTerms}"
    selected_properties: str = ""
    result_source_id: Optional[str] = None
    sort_list: str = ""
    enable_query_rules: bool = False
    row_limit: Optional[int] = Field(default=None, gt=0)
    refiners: List[RefinerConfiguration] = Field(default_factory=list)
    refinement_filters: List[RefinementFilter] = Field(default_factory=list)
    synonyms: List[SynonymEntry] = Field(default_factory=list)
    page_url: Optional[str] = None
    page_context: Dict[str, Any] = Field(default_factory=dict)
    list_item: Optional[ListItemReference] = None
    enrich_icons: bool = True


class VerticalCountRequest(BaseModel):
    """Body of POST /v1/verticals/counts."""

    query: str = ""
    verticals: List[SearchVertical] = Field(default_factory=list)
    selected_vertical: Optional[str] = None
    current_total: Optional[int] = None
    enable_query_rules: bool = False


class SuggestResponse(BaseModel):
    """Response of GET /v1/suggest."""

    query: str
    suggestions: List[str] = Field(default_factory=list)
