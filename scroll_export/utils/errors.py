"""
Export Errors

SourceError and DecodeError are root causes: the first one raised by any
stage cancels the whole run and is what ExportPipeline.run() re-raises.
CancellationError is only ever the effect of one of them.
"""


class ExportError(Exception):
    """Base class for all export failures."""


class SourceError(ExportError):
    """The cursor source failed to count or fetch a page."""


class DecodeError(ExportError):
    """A raw record payload does not match the expected schema."""

    def __init__(self, record_id: str, reason: str) -> None:
        super().__init__(f"Failed to decode record {record_id!r}: {reason}")
        self.record_id = record_id
        self.reason = reason


class CancellationError(ExportError):
    """A stage observed that the run was already cancelled."""

    def __init__(self, stage: str) -> None:
        super().__init__(f"Stage {stage!r} stopped: run cancelled")
        self.stage = stage


class PersistenceError(ExportError):
    """The finalized result set could not be written."""


class ChannelClosed(ExportError):
    """Raised when sending to, or receiving from a drained, closed channel."""
