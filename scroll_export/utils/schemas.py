"""
Pydantic Schemas - Data Validation Models

Defines the schemas that flow through the export pipeline:
- Extraction filter (query sent to the cursor source)
- Raw records and pages produced by the cursor source
- Decoded records and the fixed document schema they are validated against
- Completion events published after a successful export

Usage:
    from scroll_export.utils.schemas import CodeSource

    source = CodeSource.model_validate({"code": "AB12"})
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator, model_validator


class ExtractionFilter(BaseModel):
    """Equality filter on a single document field."""

    model_config = ConfigDict(frozen=True)

    field: str = Field(..., min_length=1, description="Document field to match")
    value: str = Field(..., description="Exact value the field must hold")

    def to_query(self) -> dict[str, Any]:
        """Render the filter as an Elasticsearch bool query."""
        return {"bool": {"must": [{"term": {self.field: self.value}}]}}


class RawRecord(BaseModel):
    """Undecoded document as delivered by the cursor source."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Source-assigned document ID")
    payload: bytes = Field(..., description="Document body in wire encoding")


class Page(BaseModel):
    """One batch of raw records returned by a cursor."""

    model_config = ConfigDict(frozen=True)

    records: list[RawRecord] = Field(default_factory=list)
    end_of_data: bool = Field(default=False)


class CodeSource(BaseModel):
    """Document schema: a single string field.

    Keys match `code` case-insensitively and the last non-null match wins,
    so {"code": "a", "CODE": "b"} decodes to "b" and {"Code": "X"} to "X".
    Missing or null `code` decodes to an empty string; any other non-string
    value is rejected. Unknown fields are ignored.
    """

    code: StrictStr = Field(default="")

    @model_validator(mode="before")
    @classmethod
    def fold_code_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data

        code = None
        for key, value in data.items():
            if not isinstance(key, str) or key.lower() != "code" or value is None:
                continue
            if not isinstance(value, str):
                return {"code": value}
            code = value
        return {"code": code}

    @field_validator("code", mode="before")
    @classmethod
    def null_code_is_empty(cls, v: Any) -> Any:
        return "" if v is None else v


class DecodedRecord(BaseModel):
    """Decoded document paired with its source ID."""

    model_config = ConfigDict(frozen=True)

    id: str
    code: str


# Finalized export, in the order results reached the aggregator
ResultSet = tuple[DecodedRecord, ...]


class ExportEvent(BaseModel):
    """Completion event published after an export file is written.

    {
        "type": "export_created",
        "path": "/data/exports/data.json",
        "records": 1234,
        "ts": "2025-01-15T03:15:02Z"
    }
    """

    type: str = Field(default="export_created", description="Event type")
    path: str = Field(..., description="File path")
    records: int = Field(..., ge=0, description="Number of exported records")
    ts: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), description="Timestamp")
