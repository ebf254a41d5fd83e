"""
Persistence Sinks - Export Artifact Writers

A sink receives the finalized result set exactly once, and only when the run
succeeded. JsonFileSink writes it as a JSON array of {"id", "code"} objects.

The file is written to a temporary sibling and renamed into place, so readers
never observe a half-written export.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Protocol

import orjson

from scroll_export.utils.errors import PersistenceError
from scroll_export.utils.schemas import ResultSet

logger = logging.getLogger(__name__)


class PersistenceSink(Protocol):
    async def write(self, result_set: ResultSet) -> None:
        ...


def serialize_result_set(result_set: ResultSet) -> bytes:
    """Encode a result set as a JSON array of {"id", "code"} objects."""
    return orjson.dumps([record.model_dump() for record in result_set])


class JsonFileSink:
    """Writes the result set to a JSON file."""

    def __init__(self, path: str | Path, mode: int = 0o644) -> None:
        self.path = Path(path)
        self.mode = mode

    async def write(self, result_set: ResultSet) -> None:
        """
        Serialize and write the result set.

        Raises:
            PersistenceError: If the file cannot be written
        """
        data = serialize_result_set(result_set)
        await asyncio.to_thread(self._write_bytes, data)

        logger.info(
            "Export written",
            extra={"file_path": str(self.path), "records": len(result_set), "bytes": len(data)},
        )

    def _write_bytes(self, data: bytes) -> None:
        tmp_path = self.path.with_name(f".{self.path.name}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(data)
            os.chmod(tmp_path, self.mode)
            os.replace(tmp_path, self.path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise PersistenceError(f"Failed to write export to {self.path}: {e}") from e
