"""
Export Pipeline - Concurrent Scroll Extraction

    Cursor Source -> producer -> [records] -> N decode workers -> [results] -> aggregator -> sink

One producer walks the scroll and fans raw records out to a fixed pool of
decode workers; the calling task aggregates decoded records until the results
channel closes. A join task closes that channel only after the producer and
every worker have finished, so the aggregator always sees a complete stream
or a cancelled one, never a truncated stream that looks complete.

The first failure anywhere (SourceError or DecodeError) cancels every other
stage. run() then re-raises that cause and the sink is never called: a run
either persists everything or nothing.

Result order is arrival order at the aggregator, not scroll order.
"""

import asyncio
import logging
import time

from scroll_export.extractor.coordination import StageGroup
from scroll_export.extractor.producer import produce_records
from scroll_export.extractor.progress import LoggingProgressReporter, ProgressReporter
from scroll_export.extractor.source import CursorSource
from scroll_export.extractor.state import PipelineState, RunStatus
from scroll_export.saver.sink import PersistenceSink
from scroll_export.transformer.decoder import decode_worker
from scroll_export.utils.config import ExportConfig
from scroll_export.utils.schemas import DecodedRecord, ResultSet

logger = logging.getLogger(__name__)


async def aggregate_results(state: PipelineState) -> list[DecodedRecord]:
    """Collect decoded records until the results channel is closed."""
    collected: list[DecodedRecord] = []
    async for record in state.results:
        collected.append(record)
    return collected


class ExportPipeline:
    """
    One-shot export of every record matching a filter.

    Handles:
    - Counting and progress sizing
    - Producer / decode worker fan-out with first-error-wins cancellation
    - Join barrier and finalization of the result set
    - Handing the result set to the sink on success only
    """

    def __init__(
        self,
        source: CursorSource,
        sink: PersistenceSink,
        config: ExportConfig | None = None,
        progress: ProgressReporter | None = None,
    ) -> None:
        self.source = source
        self.sink = sink
        self.config = config or ExportConfig()
        self.progress = progress or LoggingProgressReporter()
        self.state: PipelineState | None = None

    async def run(self) -> ResultSet:
        """
        Execute one export run.

        Returns:
            The finalized result set that was handed to the sink

        Raises:
            SourceError: If counting or fetching a page failed
            DecodeError: If any record failed to decode
            PersistenceError: If the sink failed to write the result set
        """
        start_time = time.time()
        extraction_filter = self.config.extraction_filter()

        total = await self.source.count(extraction_filter)
        self.progress.start(total)

        state = PipelineState.for_config(self.config)
        self.state = state

        logger.info(
            "Export started",
            extra={
                "filter": extraction_filter.model_dump(),
                "total": total,
                "page_size": self.config.page_size,
                "workers": self.config.worker_count,
            },
        )

        group = StageGroup(state.context)
        group.spawn(
            "producer",
            produce_records(self.source, extraction_filter, self.config.page_size, state),
        )
        for worker_id in range(self.config.worker_count):
            group.spawn(f"decoder-{worker_id}", decode_worker(worker_id, state, self.progress))

        joiner = asyncio.create_task(self._join(group, state), name="join")
        try:
            collected = await aggregate_results(state)
            await joiner
        finally:
            if not joiner.done():
                joiner.cancel()
                await asyncio.gather(joiner, return_exceptions=True)

        cause = state.context.cause
        if cause is not None:
            logger.error(
                "Export failed, nothing persisted",
                extra={
                    "error": str(cause),
                    "error_type": type(cause).__name__,
                    "decoded_before_failure": len(collected),
                },
            )
            raise cause

        result_set: ResultSet = tuple(collected)
        if len(result_set) != total:
            logger.warning(
                "Exported record count differs from initial count: exported=%d, counted=%d",
                len(result_set), total,
            )

        try:
            await self.sink.write(result_set)
        except Exception:
            state.transition(RunStatus.FAILED)
            raise
        state.transition(RunStatus.SUCCEEDED)
        self.progress.finish("Done")

        logger.info(
            "Export complete: records=%d, elapsed=%.3fs",
            len(result_set), time.time() - start_time,
        )
        return result_set

    async def _join(self, group: StageGroup, state: PipelineState) -> None:
        try:
            await group.wait()
            if not state.context.cancelled:
                state.transition(RunStatus.JOINING)
        finally:
            await state.results.close()
