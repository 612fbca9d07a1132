"""
Pydantic models for PM schedules, DVIRs and feedback.
"""

import json
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from utils import reject_null
from work_order_models import WOPriority

PmIntervalType = Literal["days", "miles", "hours", "cycles"]
DvirStatus = Literal["safe", "defects_noted", "unsafe"]
DefectSeverity = Literal["minor", "major", "critical"]
FeedbackType = Literal["bug", "feature_request", "improvement", "question", "praise"]
FeedbackStatus = Literal["new", "under_review", "planned", "in_progress", "completed", "declined"]
FeedbackPriority = Literal["low", "medium", "high", "urgent"]


class PmScheduleCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: str = ""
    interval_type: PmIntervalType
    interval_value: int = Field(ge=1)
    priority: WOPriority = "medium"
    task_checklist: list[str] = Field(default_factory=list)


class PmScheduleUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    interval_type: PmIntervalType | None = None
    interval_value: int | None = Field(default=None, ge=1)
    priority: WOPriority | None = None
    task_checklist: list[str] | None = None
    is_active: bool | None = None

    @field_validator(
        "name",
        "description",
        "interval_type",
        "interval_value",
        "priority",
        "task_checklist",
        "is_active",
        mode="before",
    )
    @classmethod
    def _reject_null(cls, value: Any) -> Any:
        return reject_null(value)


class PmScheduleResponse(BaseModel):
    id: int
    org_id: int
    name: str
    description: str
    interval_type: PmIntervalType
    interval_value: int
    priority: WOPriority
    task_checklist: list[str]
    is_active: bool
    created_at: str
    updated_at: str

    @field_validator("task_checklist", mode="before")
    @classmethod
    def _decode_checklist(cls, value: Any) -> Any:
        if isinstance(value, str):
            return json.loads(value or "[]")
        return value


class DefectCreate(BaseModel):
    category: str = Field(min_length=1, max_length=80)
    description: str = Field(min_length=1, max_length=1000)
    severity: DefectSeverity


class DefectResponse(BaseModel):
    id: int
    dvir_id: int
    category: str
    description: str
    severity: DefectSeverity
    work_order_id: int | None
    resolved: bool
    resolved_at: str | None
    created_at: str


class DvirCreate(BaseModel):
    asset_id: int = Field(ge=1)
    inspector: str | None = Field(default=None, max_length=120)
    inspection_date: str | None = None
    meter_reading: float | None = Field(default=None, ge=0)
    pre_trip: bool = True
    notes: str = ""
    defects: list[DefectCreate] = Field(default_factory=list)


class DvirResponse(BaseModel):
    id: int
    org_id: int
    asset_id: int
    inspector: str | None
    inspection_date: str
    status: DvirStatus
    meter_reading: float | None
    pre_trip: bool
    notes: str
    created_at: str
    defects: list[DefectResponse] = Field(default_factory=list)


class FeedbackCreate(BaseModel):
    type: FeedbackType
    priority: FeedbackPriority = "medium"
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=5000)
    page_url: str | None = Field(default=None, max_length=500)


class FeedbackResponse(BaseModel):
    id: int
    org_id: int
    type: FeedbackType
    status: FeedbackStatus
    priority: FeedbackPriority
    title: str
    description: str
    page_url: str | None
    votes: int
    created_at: str
    updated_at: str
