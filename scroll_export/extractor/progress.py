"""
Progress Reporting

Progress is purely observational: reporters never influence the outcome of a
run. The logging reporter emits one line every `every` records instead of
drawing a terminal bar, so it plays well with JSON logs.
"""

import logging
import time
from typing import Protocol

logger = logging.getLogger(__name__)


class ProgressReporter(Protocol):
    def start(self, total: int) -> None:
        ...

    def increment(self) -> None:
        ...

    def finish(self, message: str) -> None:
        ...


class LoggingProgressReporter:
    """Progress reporter that logs periodic checkpoints."""

    def __init__(self, every: int = 1000, name: str = "export") -> None:
        if every < 1:
            raise ValueError(f"every must be >= 1, got {every}")
        self.every = every
        self.name = name
        self.total = 0
        self.current = 0
        self._started_at: float | None = None

    def start(self, total: int) -> None:
        self.total = total
        self.current = 0
        self._started_at = time.monotonic()
        logger.info("Progress started: %s total=%d", self.name, total)

    def increment(self) -> None:
        self.current += 1
        if self.current % self.every == 0:
            logger.info(
                "Progress: %s %d/%d (%.1f%%)",
                self.name, self.current, self.total, self.percent,
            )

    def finish(self, message: str) -> None:
        elapsed = time.monotonic() - self._started_at if self._started_at is not None else 0.0
        logger.info(
            "%s: %s %d/%d, elapsed=%.3fs",
            message, self.name, self.current, self.total, elapsed,
        )

    @property
    def percent(self) -> float:
        if self.total <= 0:
            return 100.0
        return min(100.0, 100.0 * self.current / self.total)
