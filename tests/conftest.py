"""
PyTest configuration and fixtures for the search pipeline tests.

Provides:
- FakeBackend: an in-memory stand-in for SearchBackendClient that records
  every query and answers batches through a responder callable
- Raw response builders shaped like the search service's JSON
- A fixed clock and an en-US date formatter
"""

import asyncio
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import pytest

from modern_search.backend.client import SearchResults
from modern_search.core.formatting import DateFormatter

SITE_URL = "https://contoso.sharepoint.com/sites/search"


def make_row(**cells: Any) -> Dict[str, Any]:
    """Build a raw result row; (value, type) tuples set an Edm value type."""
    raw_cells = []
    for key, value in cells.items():
        if isinstance(value, tuple):
            raw_cells.append({"Key": key, "Value": value[0], "ValueType": value[1]})
        else:
            raw_cells.append({"Key": key, "Value": value, "ValueType": "Edm.String"})
    return {"Cells": raw_cells}


def make_refiner(name: str, *entries: Dict[str, Any]) -> Dict[str, Any]:
    return {"Name": name, "Entries": list(entries)}


def make_entry(token: str, label: str, count: int = 1) -> Dict[str, Any]:
    return {
        "RefinementCount": str(count),
        "RefinementName": label,
        "RefinementToken": token,
        "RefinementValue": label,
    }


def make_raw_response(
    rows: Optional[List[Dict[str, Any]]] = None,
    refiners: Optional[List[Dict[str, Any]]] = None,
    total_rows: int = 0,
    promoted: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    raw: Dict[str, Any] = {
        "PrimaryQueryResult": {
            "RelevantResults": {
                "TotalRows": total_rows,
                "Table": {"Rows": rows or []},
            },
            "RefinementResults": {"Refiners": refiners or []},
        },
        "SecondaryQueryResults": [],
    }
    if promoted is not None:
        raw["SecondaryQueryResults"] = [{"SpecialTermResults": {"Results": promoted}}]
    return raw


class FakeBatch:
    """Batch double resolving its futures in reverse submission order."""

    def __init__(self, backend: "FakeBackend"):
        self._backend = backend
        self._items: List[Any] = []
        self.urls: List[str] = []

    def __len__(self) -> int:
        return len(self._items)

    def add(self, url: str, method: str = "GET") -> "asyncio.Future[Any]":
        future = asyncio.get_running_loop().create_future()
        self._items.append((url, future))
        self.urls.append(url)
        return future

    async def execute(self) -> List[Any]:
        self._backend.batches.append(self)
        if self._backend.batch_error is not None:
            raise self._backend.batch_error
        for url, future in reversed(self._items):
            body = self._backend.batch_responder(url)
            if isinstance(body, BaseException):
                future.set_exception(body)
            else:
                future.set_result(body)
        return [future for _, future in self._items]


class FakeBackend:
    """In-memory search service recording the requests it receives."""

    def __init__(self, responder: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None):
        self.site_url = SITE_URL
        self.requests: List[Dict[str, Any]] = []
        self.responder = responder or (lambda request: make_raw_response())
        self.batch_responder: Callable[[str], Any] = lambda url: {}
        self.batches: List[FakeBatch] = []
        self.batch_error: Optional[BaseException] = None
        self.query_error: Optional[BaseException] = None
        self.suggestions: List[str] = []
        self.list_item: Optional[Dict[str, Any]] = None

    @property
    def page1_requests(self) -> List[Dict[str, Any]]:
        return [r for r in self.requests if "StartRow" not in r]

    async def query(self, request: Dict[str, Any]) -> SearchResults:
        self.requests.append(request)
        if self.query_error is not None:
            raise self.query_error
        return SearchResults(self, request, self.responder(request))

    async def suggest(self, text: str, count: Optional[int] = None, culture: Optional[str] = None) -> List[str]:
        if self.query_error is not None:
            raise self.query_error
        return list(self.suggestions)

    async def render_list_item(self, list_url: str, item_id: int) -> Optional[Dict[str, Any]]:
        return self.list_item

    def create_batch(self) -> FakeBatch:
        return FakeBatch(self)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2024, 3, 1, 9, 30)


@pytest.fixture
def date_formatter() -> DateFormatter:
    return DateFormatter("en-US")
