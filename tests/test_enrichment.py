"""
Tests for batch enrichment: file type icons and vertical counts
"""
import pytest

from modern_search.core.exceptions import SearchTransportError
from modern_search.core.schemas import SearchVertical
from modern_search.retrieval.enrichment import BatchEnricher, icon_lookup_key
from tests.conftest import SITE_URL


def test_icon_lookup_key_prefers_filename():
    assert icon_lookup_key({"Filename": "plan.docx", "FileExtension": "pdf"}) == "plan.docx"


def test_icon_lookup_key_falls_back_to_extension():
    assert icon_lookup_key({"FileExtension": "xlsx"}) == ".xlsx"


def test_icon_lookup_key_strips_quotes_and_query_string():
    assert icon_lookup_key({"Filename": "John’s 'plan'.docx?web=1"}) == "Johns plan.docx"


def test_icon_lookup_key_without_file_fields():
    assert icon_lookup_key({"Title": "Home"}) is None


async def test_enrich_merges_icons_by_position(backend):
    icons = {"a.docx": "icdocx.png", "b.pdf": "icpdf.png", "c.xlsx": "icxlsx.png"}

    def batch_responder(url):
        for filename, icon in icons.items():
            if f"filename='{filename}'" in url:
                return {"value": icon}
        return {}

    backend.batch_responder = batch_responder
    rows = [{"Filename": name} for name in icons]

    enriched = await BatchEnricher(backend).enrich(rows)

    # The fake batch resolves in reverse order; results still line up
    assert [row["IconSrc"] for row in enriched] == [
        f"{SITE_URL}/_layouts/15/images/icdocx.png",
        f"{SITE_URL}/_layouts/15/images/icpdf.png",
        f"{SITE_URL}/_layouts/15/images/icxlsx.png",
    ]
    # Input rows are not mutated
    assert all("IconSrc" not in row for row in rows)


async def test_enrich_keeps_rows_without_file_in_place(backend):
    backend.batch_responder = lambda url: {"value": "icdocx.png"}
    rows = [{"Title": "Home"}, {"Filename": "a.docx"}, {"Title": "News"}]

    enriched = await BatchEnricher(backend).enrich(rows)

    assert len(enriched) == 3
    assert enriched[0] == {"Title": "Home"}
    assert enriched[1]["IconSrc"].endswith("icdocx.png")
    assert enriched[2] == {"Title": "News"}
    assert len(backend.batches[0]) == 1


async def test_enrich_without_files_sends_no_batch(backend):
    rows = [{"Title": "Home"}]

    assert await BatchEnricher(backend).enrich(rows) == rows
    assert backend.batches == []


async def test_enrich_propagates_sub_request_failure(backend):
    backend.batch_responder = lambda url: SearchTransportError("404 Not Found", operation="batch", status_code=404)

    with pytest.raises(SearchTransportError):
        await BatchEnricher(backend).enrich([{"Filename": "a.docx"}])


async def test_enrich_propagates_batch_failure(backend, caplog):
    backend.batch_error = SearchTransportError("Batch request failed", operation="batch")

    with pytest.raises(SearchTransportError):
        await BatchEnricher(backend).enrich([{"Filename": "a.docx"}])

    assert "[BatchEnricher.enrich]" in caplog.text


async def test_vertical_counts_in_vertical_order(backend):
    totals = {"docs": 5, "people": 0}

    def batch_responder(url):
        key = "docs" if "sourceid='docs'" in url else "people"
        return {"PrimaryQueryResult": {"RelevantResults": {"TotalRows": totals[key]}}}

    backend.batch_responder = batch_responder
    verticals = [
        SearchVertical(key="docs", result_source_id="docs"),
        SearchVertical(key="people", result_source_id="people"),
    ]

    counts = await BatchEnricher(backend).vertical_counts("budget", verticals)

    assert [(c.vertical_key, c.count) for c in counts] == [("docs", 5), ("people", 0)]


async def test_vertical_counts_skip_verticals_without_total(backend):
    backend.batch_responder = lambda url: {} if "sourceid='docs'" in url else {
        "PrimaryQueryResult": {"RelevantResults": {"TotalRows": 9}}
    }
    verticals = [
        SearchVertical(key="docs", result_source_id="docs"),
        SearchVertical(key="people", result_source_id="people"),
    ]

    counts = await BatchEnricher(backend).vertical_counts("budget", verticals)

    assert [(c.vertical_key, c.count) for c in counts] == [("people", 9)]


async def test_vertical_counts_empty_query_text(backend):
    backend.batch_responder = lambda url: {"PrimaryQueryResult": {"RelevantResults": {"TotalRows": 100}}}

    counts = await BatchEnricher(backend).vertical_counts("  ", [SearchVertical(key="docs")])

    assert counts == []


async def test_vertical_query_url_parameters(backend):
    vertical = SearchVertical(key="docs", query_template="{searchTerms} IsDocument:1", result_source_id="abc")

    await BatchEnricher(backend).vertical_counts("it's", [vertical], enable_query_rules=True)

    url = backend.batches[0].urls[0]
    assert url.startswith("/_api/search/query?")
    assert "querytext='it%27%27s'" in url
    assert "rowlimit=1" in url
    assert "enablequeryrules=true" in url
    assert "sourceid='abc'" in url
    assert "querytemplate='%7BsearchTerms%7D%20IsDocument%3A1'" in url


async def test_vertical_query_url_without_query_rules(backend):
    await BatchEnricher(backend).vertical_counts("budget", [SearchVertical(key="all")])

    url = backend.batches[0].urls[0]
    assert "rowlimit=0" in url
    assert "enablequeryrules=false" in url
    assert "sourceid" not in url


async def test_vertical_counts_skip_unreadable_totals(backend):
    totals = {"docs": "n/a", "people": "4"}

    def batch_responder(url):
        key = "docs" if "sourceid='docs'" in url else "people"
        return {"PrimaryQueryResult": {"RelevantResults": {"TotalRows": totals[key]}}}

    backend.batch_responder = batch_responder
    verticals = [
        SearchVertical(key="docs", result_source_id="docs"),
        SearchVertical(key="people", result_source_id="people"),
    ]

    counts = await BatchEnricher(backend).vertical_counts("budget", verticals)

    assert [(c.vertical_key, c.count) for c in counts] == [("people", 4)]
