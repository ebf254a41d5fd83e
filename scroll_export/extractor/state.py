"""
Pipeline State

Everything the stages of one export run share: the two channels, the
cancellation context and the processed-record counter. A fresh state is
built for every run and dropped when the run ends.

Run status:
    RUNNING -> JOINING -> SUCCEEDED | FAILED
FAILED is reported as soon as the cancellation context is set, even while
stages are still unwinding.
"""

import logging
from enum import Enum

from scroll_export.extractor.coordination import CancellationContext, Channel
from scroll_export.utils.config import ExportConfig
from scroll_export.utils.schemas import DecodedRecord, RawRecord

logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    RUNNING = "running"
    JOINING = "joining"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class PipelineState:
    """Shared state for a single export run."""

    def __init__(self, record_buffer_size: int, result_buffer_size: int) -> None:
        self.records: Channel[RawRecord] = Channel(record_buffer_size, name="records")
        self.results: Channel[DecodedRecord] = Channel(result_buffer_size, name="results")
        self.context = CancellationContext()
        self._processed = 0
        self._status = RunStatus.RUNNING

    @classmethod
    def for_config(cls, config: ExportConfig) -> "PipelineState":
        return cls(config.record_buffer_size, config.result_buffer_size)

    @property
    def processed(self) -> int:
        return self._processed

    def mark_processed(self) -> int:
        # workers all run on the event loop thread, so this cannot interleave
        self._processed += 1
        return self._processed

    @property
    def status(self) -> RunStatus:
        if self.context.cancelled:
            return RunStatus.FAILED
        return self._status

    def transition(self, status: RunStatus) -> None:
        previous = self.status
        self._status = status
        logger.info("Run status: %s -> %s", previous.value, self.status.value)
