"""
OData batch transport.

Groups several GET sub-requests into one multipart/mixed POST to the
site's $batch endpoint and hands each sub-response back to the caller
that registered it. Sub-responses come back in submission order, which
is the only correlation between a request and its response: nothing
in the response body identifies the request it answers.
"""

import asyncio
import json
import logging
import re
import uuid
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

import httpx

from modern_search.core.exceptions import BatchResponseError, SearchTransportError

logger = logging.getLogger(__name__)

BATCH_ACCEPT = "application/json; odata=nometadata"

_STATUS_LINE = re.compile(r"^HTTP/\d(?:\.\d)?\s+(\d{3})\s*(.*)$")
_BOUNDARY = re.compile(r'boundary="?([^";]+)"?', re.IGNORECASE)


@dataclass
class BatchPart:
    """One parsed sub-response of a batch."""

    status_code: int
    reason: str
    body: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def build_batch_body(boundary: str, requests: List[Tuple[str, str]]) -> str:
    """
    Serialize sub-requests into a multipart/mixed batch body.

    Args:
        boundary: Multipart boundary, without the leading dashes
        requests: (method, absolute url) pairs in submission order

    Returns:
        The request body
    """
    lines: List[str] = []
    for method, url in requests:
        lines.extend(
            [
                f"--{boundary}",
                "Content-Type: application/http",
                "Content-Transfer-Encoding: binary",
                "",
                f"{method} {url} HTTP/1.1",
                f"Accept: {BATCH_ACCEPT}",
                "",
            ]
        )
    lines.append(f"--{boundary}--")
    lines.append("")
    return "\r\n".join(lines)


def _parse_part(part: str) -> Optional[BatchPart]:
    lines = part.replace("\r\n", "\n").split("\n")

    # Skip the MIME headers of the part until the embedded status line
    index = 0
    while index < len(lines) and not _STATUS_LINE.match(lines[index].strip()):
        index += 1
    if index == len(lines):
        return None

    status_match = _STATUS_LINE.match(lines[index].strip())
    status_code = int(status_match.group(1))
    reason = status_match.group(2)

    # HTTP headers of the sub-response end with a blank line
    index += 1
    while index < len(lines) and lines[index].strip():
        index += 1

    raw_body = "\n".join(lines[index + 1:]).strip()
    body: Any = None
    if raw_body:
        try:
            body = json.loads(raw_body)
        except ValueError:
            body = raw_body
    return BatchPart(status_code=status_code, reason=reason, body=body)


def parse_batch_response(text: str, content_type: str = "") -> List[BatchPart]:
    """
    Parse a multipart/mixed batch response into its sub-responses.

    The boundary is read from the content type when present, otherwise
    from the first delimiter line of the body.

    Raises:
        BatchResponseError: if no boundary can be found
    """
    boundary = None
    match = _BOUNDARY.search(content_type or "")
    if match:
        boundary = match.group(1)
    else:
        for line in text.splitlines():
            if line.startswith("--") and len(line) > 2:
                boundary = line.strip()[2:]
                break
    if not boundary:
        raise BatchResponseError("Batch response has no multipart boundary", operation="batch")

    parts: List[BatchPart] = []
    for chunk in text.split(f"--{boundary}")[1:]:
        if chunk.startswith("--"):
            break
        parsed = _parse_part(chunk)
        if parsed is not None:
            parts.append(parsed)
    return parts


class ODataBatch:
    """
    Collects GET sub-requests and executes them in one round trip.

    Each call to add() returns a future resolved by execute() with the
    JSON body of the matching sub-response, or failed with a
    SearchTransportError when that sub-response is not successful.

    Example:
        batch = client.create_batch()
        futures = [batch.add(url) for url in urls]
        await batch.execute()
        bodies = await asyncio.gather(*futures, return_exceptions=True)
    """

    def __init__(self, http_client: httpx.AsyncClient, site_url: str):
        self._http_client = http_client
        self._site_url = site_url.rstrip("/")
        self._requests: List[Tuple[str, str]] = []
        self._futures: List["asyncio.Future[Any]"] = []
        self.batch_id = str(uuid.uuid4())
        self.executed = False

    def __len__(self) -> int:
        return len(self._requests)

    def _absolute(self, url: str) -> str:
        if url.startswith("http://") or url.startswith("https://"):
            return url
        return f"{self._site_url}/{url.lstrip('/')}"

    def add(self, url: str, method: str = "GET") -> "asyncio.Future[Any]":
        """Register a sub-request; must be called from a running event loop."""
        if self.executed:
            raise RuntimeError("Cannot add requests to a batch that already executed")
        future = asyncio.get_running_loop().create_future()
        self._requests.append((method.upper(), self._absolute(url)))
        self._futures.append(future)
        return future

    async def execute(self) -> List[BatchPart]:
        """
        Send the batch and resolve every registered future in order.

        Returns:
            The parsed sub-responses, aligned with the add() calls

        Raises:
            SearchTransportError: if the batch request itself fails
            BatchResponseError: if the response cannot be aligned with the requests
        """
        self.executed = True
        if not self._requests:
            return []

        boundary = f"batch_{self.batch_id}"
        body = build_batch_body(boundary, self._requests)

        try:
            response = await self._http_client.post(
                "/_api/$batch",
                content=body.encode("utf-8"),
                headers={"Content-Type": f'multipart/mixed; boundary="{boundary}"'},
            )
            response.raise_for_status()
            parts = parse_batch_response(response.text, response.headers.get("content-type", ""))
            if len(parts) != len(self._requests):
                raise BatchResponseError(
                    f"Batch returned {len(parts)} responses for {len(self._requests)} requests",
                    operation="batch",
                )
        except httpx.HTTPStatusError as e:
            self._cancel_pending()
            raise SearchTransportError(
                f"Batch request failed: {e}", operation="batch", status_code=e.response.status_code
            ) from e
        except httpx.HTTPError as e:
            self._cancel_pending()
            raise SearchTransportError(f"Batch request failed: {e}", operation="batch") from e
        except BatchResponseError:
            self._cancel_pending()
            raise

        logger.debug(f"Batch {self.batch_id} executed with {len(parts)} sub-requests")

        for (method, url), future, part in zip(self._requests, self._futures, parts):
            if part.ok:
                future.set_result(part.body)
            else:
                future.set_exception(
                    SearchTransportError(
                        f"{method} {url} failed: {part.status_code} {part.reason}",
                        operation="batch",
                        status_code=part.status_code,
                    )
                )
        return parts

    def _cancel_pending(self) -> None:
        for future in self._futures:
            if not future.done():
                future.cancel()
