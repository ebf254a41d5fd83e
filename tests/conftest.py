"""
Shared fakes for pipeline tests.
"""

import asyncio
from typing import Iterable

import orjson
import pytest

from scroll_export.utils.errors import PersistenceError, SourceError
from scroll_export.utils.schemas import ExtractionFilter, Page, RawRecord, ResultSet


def make_raw(record_id: str, code: str = "X", **extra: object) -> RawRecord:
    return RawRecord(id=record_id, payload=orjson.dumps({"code": code, **extra}))


def make_records(n: int, prefix: str = "doc") -> list[RawRecord]:
    return [make_raw(f"{prefix}-{i}", code=f"C{i}") for i in range(n)]


def paginate(records: Iterable[RawRecord], page_size: int) -> list[list[RawRecord]]:
    records = list(records)
    return [records[i:i + page_size] for i in range(0, len(records), page_size)]


class FakeCursor:
    def __init__(self, source: "FakeCursorSource", page_size: int) -> None:
        self.source = source
        self.page_size = page_size
        self.index = 0
        self.closed = False

    async def next_page(self) -> Page:
        # yield like a real network call would
        await asyncio.sleep(0)
        self.source.fetch_calls += 1

        if self.index == self.source.fail_on_page:
            raise SourceError(f"page {self.index + 1} unavailable")
        if self.index >= len(self.source.pages):
            return Page(end_of_data=True)

        page = self.source.pages[self.index]
        self.source.served_pages.append(self.index)
        self.index += 1
        return Page(records=page)

    async def close(self) -> None:
        self.closed = True


class FakeCursorSource:
    """In-memory cursor source serving fixed pages."""

    def __init__(
        self,
        pages: list[list[RawRecord]],
        fail_on_page: int | None = None,
        total: int | None = None,
        fail_count: bool = False,
    ) -> None:
        self.pages = pages
        self.fail_on_page = fail_on_page
        self.total = total
        self.fail_count = fail_count
        self.fetch_calls = 0
        self.served_pages: list[int] = []
        self.cursors: list[FakeCursor] = []
        self.filters: list[ExtractionFilter] = []

    @property
    def all_ids(self) -> set[str]:
        return {record.id for page in self.pages for record in page}

    def page_ids(self, index: int) -> set[str]:
        return {record.id for record in self.pages[index]}

    async def count(self, extraction_filter: ExtractionFilter) -> int:
        self.filters.append(extraction_filter)
        if self.fail_count:
            raise SourceError("count unavailable")
        if self.total is not None:
            return self.total
        return sum(len(page) for page in self.pages)

    def open_cursor(self, extraction_filter: ExtractionFilter, page_size: int) -> FakeCursor:
        cursor = FakeCursor(self, page_size)
        self.cursors.append(cursor)
        return cursor


class RecordingProgress:
    def __init__(self) -> None:
        self.total: int | None = None
        self.increments = 0
        self.finished: list[str] = []

    def start(self, total: int) -> None:
        self.total = total

    def increment(self) -> None:
        self.increments += 1

    def finish(self, message: str) -> None:
        self.finished.append(message)


class MemorySink:
    def __init__(self, fail: bool = False) -> None:
        self.writes: list[ResultSet] = []
        self.fail = fail

    async def write(self, result_set: ResultSet) -> None:
        if self.fail:
            raise PersistenceError("disk full")
        self.writes.append(result_set)


@pytest.fixture
def progress() -> RecordingProgress:
    return RecordingProgress()


@pytest.fixture
def sink() -> MemorySink:
    return MemorySink()
