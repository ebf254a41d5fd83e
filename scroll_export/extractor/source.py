"""
Cursor Sources - Paginated Record Retrieval

Defines the cursor source interface the export pipeline consumes and its
Elasticsearch implementation based on the scroll API.

Scroll lifecycle:
    POST /{index}[/{type}]/_search?scroll=1m   first page, opens the scroll
    POST /_search/scroll                       every following page
    DELETE /_search/scroll                     releases the server-side context

A page without hits marks the end of data. Every transport, HTTP or protocol
failure surfaces as SourceError; nothing is retried.

Usage:
    async with ElasticsearchScrollSource("http://localhost:9200", "partner") as source:
        total = await source.count(extraction_filter)
        cursor = source.open_cursor(extraction_filter, page_size=100)
        page = await cursor.next_page()
"""

import logging
from typing import Any, Protocol

import httpx
import orjson

from scroll_export.utils.errors import SourceError
from scroll_export.utils.schemas import ExtractionFilter, Page, RawRecord

logger = logging.getLogger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}


class CursorHandle(Protocol):
    """Stateful server-side cursor owned by a single producer."""

    async def next_page(self) -> Page:
        ...

    async def close(self) -> None:
        ...


class CursorSource(Protocol):
    """Remote data source that can count and page through filtered records."""

    async def count(self, extraction_filter: ExtractionFilter) -> int:
        ...

    def open_cursor(self, extraction_filter: ExtractionFilter, page_size: int) -> CursorHandle:
        ...


class ElasticsearchScrollSource:
    """Cursor source backed by the Elasticsearch scroll API."""

    def __init__(
        self,
        base_url: str,
        index: str,
        doc_type: str | None = None,
        scroll_keepalive: str = "1m",
        timeout: float = 30.0,
        auth: tuple[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize scroll source.

        Args:
            base_url: Cluster URL, e.g. http://localhost:9200
            index: Index to read from
            doc_type: Mapping type for clusters that still use one
            scroll_keepalive: How long the server keeps the scroll context between pages
            timeout: Per-request timeout in seconds
            auth: Optional (username, password) for basic auth
            client: Preconfigured client; not closed by this source
        """
        self.index = index
        self.doc_type = doc_type
        self.scroll_keepalive = scroll_keepalive
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout, auth=auth)

    async def __aenter__(self) -> "ElasticsearchScrollSource":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def index_path(self, endpoint: str) -> str:
        parts = [self.index]
        if self.doc_type:
            parts.append(self.doc_type)
        parts.append(endpoint)
        return "/" + "/".join(parts)

    async def count(self, extraction_filter: ExtractionFilter) -> int:
        """Count documents matching the filter.

        Raises:
            SourceError: If the request fails or the response has no count
        """
        body = await self.request(
            "POST",
            self.index_path("_count"),
            body={"query": extraction_filter.to_query()},
        )
        try:
            total = int(body["count"])
        except (KeyError, TypeError, ValueError) as e:
            raise SourceError(f"Malformed count response from index {self.index!r}") from e

        logger.info(
            "Counted matching documents",
            extra={"index": self.index, "filter": extraction_filter.model_dump(), "total": total},
        )
        return total

    def open_cursor(self, extraction_filter: ExtractionFilter, page_size: int) -> "ScrollCursor":
        return ScrollCursor(self, extraction_filter, page_size)

    async def request(
        self,
        method: str,
        url: str,
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send a JSON request and decode the JSON response.

        Raises:
            SourceError: On transport errors, non-2xx status or malformed JSON
        """
        content = orjson.dumps(body) if body is not None else None

        try:
            response = await self._client.request(
                method, url, content=content, params=params, headers=JSON_HEADERS
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise SourceError(
                f"{method} {url} returned HTTP {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise SourceError(f"{method} {url} failed: {e}") from e

        try:
            decoded = orjson.loads(response.content)
        except orjson.JSONDecodeError as e:
            raise SourceError(f"{method} {url} returned malformed JSON") from e

        if not isinstance(decoded, dict):
            raise SourceError(f"{method} {url} returned a non-object JSON body")
        return decoded


class ScrollCursor:
    """One scroll over the documents matching a filter."""

    def __init__(self, source: ElasticsearchScrollSource, extraction_filter: ExtractionFilter, page_size: int) -> None:
        if page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {page_size}")
        self.source = source
        self.extraction_filter = extraction_filter
        self.page_size = page_size
        self.scroll_id: str | None = None
        self.pages_fetched = 0
        self._exhausted = False

    async def next_page(self) -> Page:
        """Fetch the next page; end_of_data is set once a page has no hits.

        Raises:
            SourceError: If the page cannot be fetched or is malformed
        """
        if self._exhausted:
            return Page(end_of_data=True)

        if self.scroll_id is None:
            body = await self.source.request(
                "POST",
                self.source.index_path("_search"),
                params={"scroll": self.source.scroll_keepalive},
                body={
                    "query": self.extraction_filter.to_query(),
                    "size": self.page_size,
                    "sort": ["_doc"],
                },
            )
        else:
            body = await self.source.request(
                "POST",
                "/_search/scroll",
                body={"scroll": self.source.scroll_keepalive, "scroll_id": self.scroll_id},
            )

        self.scroll_id = body.get("_scroll_id") or self.scroll_id
        self.pages_fetched += 1

        hits = self._hits(body)
        if not hits:
            self._exhausted = True
            logger.debug("Scroll exhausted after %d pages", self.pages_fetched)
            return Page(end_of_data=True)

        if self.scroll_id is None:
            raise SourceError("Search response carried hits but no _scroll_id")

        return Page(records=[self._to_record(hit) for hit in hits])

    @staticmethod
    def _hits(body: dict[str, Any]) -> list[Any]:
        # a missing or empty hits block is the end of the scroll
        envelope = body.get("hits")
        if not envelope:
            return []
        if not isinstance(envelope, dict):
            raise SourceError(f"Malformed search response, hits is {type(envelope).__name__}")

        hits = envelope.get("hits")
        if not hits:
            return []
        if not isinstance(hits, list):
            raise SourceError(f"Malformed search response, hits.hits is {type(hits).__name__}")
        return hits

    @staticmethod
    def _to_record(hit: Any) -> RawRecord:
        if not isinstance(hit, dict):
            raise SourceError(f"Malformed hit, expected an object, got {type(hit).__name__}")
        # keep _id alongside the re-encoded _source
        if "_id" not in hit or "_source" not in hit:
            raise SourceError(f"Malformed hit, expected _id and _source: keys={sorted(hit)}")
        return RawRecord(id=str(hit["_id"]), payload=orjson.dumps(hit["_source"]))

    async def close(self) -> None:
        """Release the server-side scroll context.

        Best-effort: failures are logged, not raised, so they never mask the
        outcome of the run.
        """
        if self.scroll_id is None:
            return

        scroll_id, self.scroll_id = self.scroll_id, None
        self._exhausted = True
        try:
            await self.source.request("DELETE", "/_search/scroll", body={"scroll_id": [scroll_id]})
            logger.debug("Cleared scroll context")
        except SourceError as e:
            logger.warning("Failed to clear scroll context: %s", str(e))
