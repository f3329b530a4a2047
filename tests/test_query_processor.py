"""
Tests for query configuration parsing and request building
"""
import pytest
from pydantic import ValidationError

from modern_search.core.config import settings
from modern_search.core.schemas import (
    RefinementFilter,
    RefinementValue,
    RefinerConfiguration,
    SortDirection,
)
from modern_search.retrieval.query_processor import (
    build_query_request,
    build_search_query,
    parse_selected_properties,
    parse_sort_list,
)


def test_parse_sort_list_directions():
    sort_list = parse_sort_list("LastModifiedTime:descending, Title:Ascending,Size:whatever,Rank")

    assert [(s.field, s.direction) for s in sort_list] == [
        ("LastModifiedTime", SortDirection.DESCENDING),
        ("Title", SortDirection.ASCENDING),
        ("Size", SortDirection.DESCENDING),
        ("Rank", SortDirection.ASCENDING),
    ]


def test_parse_sort_list_empty():
    assert parse_sort_list("") == []
    assert parse_sort_list(None) == []


def test_parse_selected_properties_strips_whitespace_and_trailing_commas():
    assert parse_selected_properties(" Title, Path ,Filename,,") == ["Title", "Path", "Filename"]
    assert parse_selected_properties("") == []


def test_build_search_query_orders_refiners_by_display_position():
    query = build_search_query(
        raw_text="budget",
        refiners=[
            RefinerConfiguration(refiner_name="FileType", sort_idx=2),
            RefinerConfiguration(refiner_name="Author", sort_idx=0),
            RefinerConfiguration(refiner_name="Size", sort_idx=1),
        ],
    )

    assert query.refiner_names == ["Author", "Size", "FileType"]


def test_build_search_query_defaults():
    query = build_search_query(raw_text="budget")

    assert query.query_template == "{searchTerms}"
    assert query.row_limit == settings.SEARCH_DEFAULT_ROW_LIMIT
    assert query.enable_query_rules is False
    assert query.result_source_id is None


def test_search_query_is_immutable():
    query = build_search_query(raw_text="budget")

    with pytest.raises(ValidationError):
        query.raw_text = "other"


def test_build_query_request_fields():
    query = build_search_query(
        raw_text="budget",
        query_template="{searchTerms} Path:https://contoso",
        selected_properties="Title,Path",
        result_source_id="8413cd39-2156-4e00-b54d-11efd9abdb89",
        sort_list="LastModifiedTime:descending",
        enable_query_rules=True,
        row_limit=10,
        refiners=[RefinerConfiguration(refiner_name="FileType"), RefinerConfiguration(refiner_name="Author", sort_idx=1)],
        refinement_filters=[
            RefinementFilter(filter_name="FileType", values=[RefinementValue(token='"docx"')])
        ],
    )

    request = build_query_request(query, "budget OR finance", "{searchTerms} Path:https://contoso")

    assert request["Querytext"] == "budget OR finance"
    assert request["QueryTemplate"] == "{searchTerms} Path:https://contoso"
    assert request["ClientType"] == settings.SEARCH_CLIENT_TYPE
    assert request["EnableQueryRules"] is True
    assert request["RowLimit"] == 10
    assert request["SelectProperties"] == ["Title", "Path"]
    assert request["TrimDuplicates"] is False
    assert request["SortList"] == [{"Property": "LastModifiedTime", "Direction": 1}]
    assert request["SourceId"] == "8413cd39-2156-4e00-b54d-11efd9abdb89"
    assert request["Refiners"] == "FileType,Author"
    assert request["RefinementFilters"] == ['FileType:"docx"']
    assert [p["Name"] for p in request["Properties"]] == ["EnableDynamicGroups", "EnableMultiGeoSearch"]
    assert all(p["Value"]["BoolVal"] is True for p in request["Properties"])


def test_build_query_request_omits_optional_fields():
    request = build_query_request(build_search_query(raw_text="budget"), "budget", "{searchTerms}")

    assert "SourceId" not in request
    assert "Refiners" not in request
    assert "RefinementFilters" not in request
    assert "StartRow" not in request
