"""
Result mapping and facet ordering.

This module maps the raw blocks of a search response into the result
page model: heterogeneous result rows, refinement facets (with date
labels prettified), promoted results, and the facet order configured
for display.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from modern_search.core.formatting import DateFormatter
from modern_search.core.schemas import PromotedResult, RefinementFacet, RefinementValue

logger = logging.getLogger(__name__)

INTEGER_TYPES = {"Edm.Int16", "Edm.Int32", "Edm.Int64", "Edm.Byte"}
FLOAT_TYPES = {"Edm.Double", "Edm.Single", "Edm.Decimal"}


def coerce_cell_value(value: Any, value_type: Optional[str]) -> Any:
    """
    Convert a cell value according to its Edm type tag.

    Values that are not strings, or that fail conversion, are returned
    unchanged.
    """
    if value is None or not isinstance(value, str) or not value_type:
        return value

    try:
        if value_type in INTEGER_TYPES:
            return int(value)
        if value_type in FLOAT_TYPES:
            return float(value)
        if value_type == "Edm.Boolean":
            return value.strip().lower() == "true"
        if value_type == "Edm.DateTime":
            return datetime.fromisoformat(_normalize_iso(value))
    except ValueError:
        logger.debug(f"Keeping raw {value_type} value: {value!r}")
    return value


def _normalize_iso(value: str) -> str:
    # fromisoformat on older interpreters rejects "Z" and 7-digit fractions
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    if "." in value:
        head, _, tail = value.partition(".")
        digits = ""
        while tail and tail[0].isdigit():
            digits, tail = digits + tail[0], tail[1:]
        value = f"{head}.{digits[:6].ljust(6, '0')}{tail}"
    return value


def map_result_rows(primary_result: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Map raw result rows to dictionaries of managed property values.

    The schema is whatever the query selected: every cell becomes a key,
    in the order the service returned them.
    """
    table = ((primary_result or {}).get("RelevantResults") or {}).get("Table") or {}
    rows: List[Dict[str, Any]] = []

    for raw_row in table.get("Rows") or []:
        row: Dict[str, Any] = {}
        for cell in raw_row.get("Cells") or []:
            key = cell.get("Key")
            if key is None:
                continue
            row[key] = coerce_cell_value(cell.get("Value"), cell.get("ValueType"))
        rows.append(row)

    return rows


def map_refinement_facets(
    primary_result: Dict[str, Any],
    formatter: DateFormatter,
) -> List[RefinementFacet]:
    """
    Map the refiner blocks of a response to facets.

    Date labels are prettified; tokens are kept as returned so they can be
    sent back as refinement filters.
    """
    refinement_results = (primary_result or {}).get("RefinementResults") or {}
    facets: List[RefinementFacet] = []

    for refiner in refinement_results.get("Refiners") or []:
        values: List[RefinementValue] = []
        for entry in refiner.get("Entries") or []:
            values.append(
                RefinementValue(
                    token=entry.get("RefinementToken") or "",
                    # Shown in the selected filter bar
                    name=formatter.prettify(entry.get("RefinementName") or ""),
                    # Shown in the filter panel
                    display_value=formatter.prettify(entry.get("RefinementValue") or ""),
                    count=_parse_count(entry.get("RefinementCount")),
                )
            )
        facets.append(RefinementFacet(filter_name=refiner.get("Name") or "", values=values))

    return facets


def _parse_count(value: Any) -> int:
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        return 0


def map_promoted_results(secondary_results: Sequence[Dict[str, Any]]) -> List[PromotedResult]:
    """Collect best bets from the special term results of the secondary blocks."""
    promoted: List[PromotedResult] = []

    for block in secondary_results or []:
        special_terms = (block or {}).get("SpecialTermResults")
        if not special_terms:
            continue
        for result in special_terms.get("Results") or []:
            promoted.append(
                PromotedResult(
                    title=result.get("Title") or "",
                    url=result.get("Url") or "",
                    description=result.get("Description"),
                )
            )

    return promoted


def sort_facets(facets: List[RefinementFacet], refiner_names: Sequence[str]) -> List[RefinementFacet]:
    """
    Order facets by the position of their name in the configured refiners.

    A facet missing from the configuration gets index -1 and therefore
    comes before every configured one. The sort is stable.
    """
    order = list(refiner_names)

    def position(facet: RefinementFacet) -> int:
        try:
            return order.index(facet.filter_name)
        except ValueError:
            return -1

    return sorted(facets, key=position)
