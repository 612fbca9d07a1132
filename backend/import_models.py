"""
Pydantic models for bulk row imports.
"""

import json
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

ImportType = Literal["assets", "parts", "vendors"]
ImportStatus = Literal["processing", "completed", "failed"]
ImportErrorType = Literal["missing_required", "duplicate", "invalid_value"]


class ImportJobCreate(BaseModel):
    type: ImportType
    file_name: str = Field(default="", max_length=255)
    rows: list[dict[str, Any]] = Field(default_factory=list)
    mappings: dict[str, str] = Field(default_factory=dict)


class ImportRowError(BaseModel):
    row: int
    field: str | None = None
    value: str | None = None
    message: str
    error_type: ImportErrorType


class ImportJobResponse(BaseModel):
    id: int
    org_id: int
    type: ImportType
    file_name: str
    status: ImportStatus
    total_rows: int
    processed_rows: int
    success_rows: int
    error_rows: int
    errors: list[ImportRowError]
    mappings: dict[str, str]
    started_at: str | None
    completed_at: str | None
    created_at: str

    @field_validator("errors", "mappings", mode="before")
    @classmethod
    def _decode_json(cls, value: Any) -> Any:
        if isinstance(value, str):
            return json.loads(value)
        return value
