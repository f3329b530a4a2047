"""
Query processing and interpretation.

This module turns caller configuration (the strings and lists an
editing surface stores) into the immutable SearchQuery used for one
search invocation, and builds the backend request from it.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from modern_search.core.config import settings
from modern_search.core.schemas import (
    RefinementFilter,
    RefinerConfiguration,
    SearchQuery,
    SortDirection,
    SortField,
)
from modern_search.retrieval.refinement_builder import RefinementCompiler, get_refinement_compiler

logger = logging.getLogger(__name__)

QUERY_PROPERTY_BOOL_TYPE_INDEX = 3


def parse_sort_list(value: Optional[str]) -> List[SortField]:
    """
    Parse a "Field:direction,Other:direction" sort configuration.

    "ascending" (any case) sorts ascending, anything else descending.
    A field without direction sorts ascending.
    """
    sort_list: List[SortField] = []
    if not value or not value.strip():
        return sort_list

    for pair in value.split(","):
        if not pair.strip():
            continue
        field_name, _, direction = pair.partition(":")
        if not direction:
            sort_direction = SortDirection.ASCENDING
        elif direction.strip().lower() == "ascending":
            sort_direction = SortDirection.ASCENDING
        else:
            sort_direction = SortDirection.DESCENDING
        sort_list.append(SortField(field=field_name.strip(), direction=sort_direction))

    return sort_list


def parse_selected_properties(value: Optional[str]) -> List[str]:
    """Split a comma-separated property list, dropping whitespace and trailing commas."""
    if not value:
        return []
    cleaned = re.sub(r"\s|,+$", "", value)
    return [prop for prop in cleaned.split(",") if prop]


def refiner_names_in_display_order(refiners: Sequence[RefinerConfiguration]) -> List[str]:
    """Refiner names ordered by their configured display position (stable)."""
    return [r.refiner_name for r in sorted(refiners, key=lambda r: r.sort_idx)]


def build_search_query(
    raw_text: str,
    query_template: str = "{searchTerms}",
    selected_properties: Optional[str] = None,
    result_source_id: Optional[str] = None,
    sort_list: Optional[str] = None,
    enable_query_rules: Optional[bool] = None,
    row_limit: Optional[int] = None,
    refiners: Optional[Sequence[RefinerConfiguration]] = None,
    refinement_filters: Optional[Sequence[RefinementFilter]] = None,
) -> SearchQuery:
    """
    Assemble the immutable query configuration of one invocation.

    Args:
        raw_text: User query text
        query_template: Query template, may contain placeholder tokens
        selected_properties: Comma-separated managed properties to return
        result_source_id: Result source to query
        sort_list: "Field:direction" pairs
        enable_query_rules: Whether query rules apply (default: disabled)
        row_limit: Rows per page (default: from settings)
        refiners: Configured refiners
        refinement_filters: Filters selected by the user

    Returns:
        SearchQuery for this invocation
    """
    return SearchQuery(
        raw_text=raw_text or "",
        query_template=query_template or "",
        selected_properties=parse_selected_properties(selected_properties),
        result_source_id=result_source_id or None,
        sort_list=parse_sort_list(sort_list),
        enable_query_rules=bool(enable_query_rules),
        row_limit=row_limit or settings.SEARCH_DEFAULT_ROW_LIMIT,
        refiner_names=refiner_names_in_display_order(refiners or []),
        refinement_filters=list(refinement_filters or []),
    )


def build_query_request(
    query: SearchQuery,
    query_text: str,
    query_template: str,
    compiler: Optional[RefinementCompiler] = None,
) -> Dict[str, Any]:
    """
    Build the structured request sent to the search service.

    Args:
        query: Query configuration
        query_text: Query text after synonym expansion
        query_template: Query template after token resolution
        compiler: Refinement compiler (default: shared instance)

    Returns:
        Request fields for SearchBackendClient.query
    """
    compiler = compiler or get_refinement_compiler()

    request: Dict[str, Any] = {
        "Querytext": query_text,
        "QueryTemplate": query_template,
        "ClientType": settings.SEARCH_CLIENT_TYPE,
        "Properties": [
            {
                "Name": "EnableDynamicGroups",
                "Value": {"BoolVal": True, "QueryPropertyValueTypeIndex": QUERY_PROPERTY_BOOL_TYPE_INDEX},
            },
            {
                "Name": "EnableMultiGeoSearch",
                "Value": {"BoolVal": True, "QueryPropertyValueTypeIndex": QUERY_PROPERTY_BOOL_TYPE_INDEX},
            },
        ],
        "EnableQueryRules": query.enable_query_rules,
        "RowLimit": query.row_limit,
        "SelectProperties": list(query.selected_properties),
        "TrimDuplicates": False,
        "SortList": [
            {"Property": sort.field, "Direction": sort.direction.value} for sort in query.sort_list
        ],
    }

    if query.result_source_id:
        request["SourceId"] = query.result_source_id

    if query.refiner_names:
        request["Refiners"] = ",".join(query.refiner_names)

    if query.refinement_filters:
        conditions = compiler.build(query.refinement_filters)
        if conditions:
            request["RefinementFilters"] = conditions

    return request
