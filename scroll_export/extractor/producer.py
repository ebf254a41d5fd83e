"""
Page Producer

Drives one cursor from first page to end-of-data and publishes every raw
record onto the record channel. The producer is the only writer of that
channel and the only owner of the cursor: both are closed when it exits,
whether it finished, failed or was cancelled.
"""

import logging

from scroll_export.extractor.source import CursorSource
from scroll_export.extractor.state import PipelineState
from scroll_export.utils.schemas import ExtractionFilter

logger = logging.getLogger(__name__)

STAGE = "producer"


async def produce_records(
    source: CursorSource,
    extraction_filter: ExtractionFilter,
    page_size: int,
    state: PipelineState,
) -> int:
    """
    Stream every matching record onto state.records.

    Args:
        source: Cursor source to read from
        extraction_filter: Filter selecting the records
        page_size: Records requested per page
        state: Shared pipeline state

    Returns:
        Number of records published

    Raises:
        SourceError: If a page cannot be fetched
        CancellationError: If the run was cancelled at a poll point
    """
    cursor = source.open_cursor(extraction_filter, page_size)
    published = 0
    pages = 0

    try:
        while True:
            state.context.raise_if_cancelled(STAGE)
            page = await cursor.next_page()
            if page.records:
                pages += 1

            for record in page.records:
                await state.records.send(record)
                published += 1
                state.context.raise_if_cancelled(STAGE)

            if page.end_of_data:
                break

        logger.info(
            "Producer finished",
            extra={"pages": pages, "records": published},
        )
        return published

    finally:
        await state.records.close()
        await cursor.close()
