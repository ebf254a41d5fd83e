"""
Decode Workers - Raw Record Transformation

Each worker competes for raw records on the record channel, decodes the
payload against CodeSource and publishes the DecodedRecord on the results
channel. The first payload that fails to decode fails the worker, which
cancels the whole run: there is no skip-and-continue and no retry.
"""

import logging

import orjson
from pydantic import ValidationError

from scroll_export.extractor.progress import ProgressReporter
from scroll_export.extractor.state import PipelineState
from scroll_export.utils.errors import DecodeError
from scroll_export.utils.schemas import CodeSource, DecodedRecord, RawRecord

logger = logging.getLogger(__name__)


def decode_record(raw: RawRecord) -> DecodedRecord:
    """
    Decode a raw record payload into a DecodedRecord.

    A JSON null document decodes like an empty object; any other non-object
    document is rejected.

    Args:
        raw: Record to decode

    Returns:
        Decoded record carrying the raw record's ID

    Raises:
        DecodeError: If the payload is not valid JSON or does not match the schema
    """
    try:
        document = orjson.loads(raw.payload)
    except orjson.JSONDecodeError as e:
        raise DecodeError(raw.id, f"invalid JSON: {e}") from e

    if document is None:
        document = {}
    if not isinstance(document, dict):
        raise DecodeError(raw.id, f"expected a JSON object, got {type(document).__name__}")

    try:
        source = CodeSource.model_validate(document)
    except ValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"])
        raise DecodeError(raw.id, f"{field}: {error['msg']}") from e

    return DecodedRecord(id=raw.id, code=source.code)


async def decode_worker(worker_id: int, state: PipelineState, progress: ProgressReporter) -> int:
    """
    Decode records from state.records until the channel is closed and drained.

    Args:
        worker_id: Index of this worker, used in logs and poll points
        state: Shared pipeline state
        progress: Reporter advanced once per decoded record

    Returns:
        Number of records this worker decoded

    Raises:
        DecodeError: On the first record that fails to decode
        CancellationError: If the run was cancelled at a poll point
    """
    stage = f"decoder-{worker_id}"
    decoded = 0

    async for raw in state.records:
        record = decode_record(raw)
        await state.results.send(record)

        state.mark_processed()
        progress.increment()
        decoded += 1

        state.context.raise_if_cancelled(stage)

    logger.debug("Worker drained record channel: worker=%d, decoded=%d", worker_id, decoded)
    return decoded
