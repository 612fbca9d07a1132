"""
Pydantic models for work orders and their lines.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from utils import reject_null

WOType = Literal["corrective", "preventive", "inspection", "emergency"]
WOPriority = Literal["low", "medium", "high", "critical"]
WOStatus = Literal["open", "in_progress", "on_hold", "ready_for_review", "completed", "cancelled"]
WOLineStatus = Literal["pending", "in_progress", "paused", "completed", "rescheduled", "cancelled"]
SortBy = Literal["updated_at", "created_at", "due_date", "priority", "status", "work_order_number"]
SortOrder = Literal["asc", "desc"]


class WOCreate(BaseModel):
    title: str | None = Field(default=None, max_length=200)
    description: str = ""
    type: WOType = "corrective"
    status: WOStatus = "open"
    priority: WOPriority = "medium"
    asset_id: int | None = Field(default=None, ge=1)
    assigned_to: str | None = Field(default=None, max_length=120)
    due_date: str | None = None
    start_date: str | None = None
    estimated_hours: float | None = Field(default=None, ge=0)
    estimated_cost: float | None = Field(default=None, ge=0)
    notes: str = ""


class WOUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    type: WOType | None = None
    status: WOStatus | None = None
    priority: WOPriority | None = None
    asset_id: int | None = Field(default=None, ge=1)
    assigned_to: str | None = Field(default=None, max_length=120)
    due_date: str | None = None
    start_date: str | None = None
    completed_date: str | None = None
    estimated_hours: float | None = Field(default=None, ge=0)
    actual_hours: float | None = Field(default=None, ge=0)
    estimated_cost: float | None = Field(default=None, ge=0)
    actual_cost: float | None = Field(default=None, ge=0)
    notes: str | None = None

    @field_validator("title", "description", "type", "status", "priority", "notes", mode="before")
    @classmethod
    def _reject_null(cls, value: Any) -> Any:
        return reject_null(value)


class WOResponse(BaseModel):
    id: int
    org_id: int
    work_order_number: str
    title: str
    description: str
    type: WOType
    status: WOStatus
    priority: WOPriority
    asset_id: int | None
    assigned_to: str | None
    due_date: str | None
    start_date: str | None
    completed_date: str | None
    estimated_hours: float | None
    actual_hours: float | None
    estimated_cost: float | None
    actual_cost: float | None
    notes: str
    created_at: str
    updated_at: str
    warnings: list[str] = Field(default_factory=list)


class WOLineCreate(BaseModel):
    description: str = Field(min_length=1, max_length=500)
    status: WOLineStatus = "pending"
    vmrs_code: str | None = Field(default=None, max_length=40)
    vmrs_title: str | None = Field(default=None, max_length=200)
    part_id: int | None = Field(default=None, ge=1)
    quantity: float = Field(default=1, ge=0)
    unit_cost: float = Field(default=0, ge=0)
    labor_hours: float | None = Field(default=None, ge=0)
    labor_cost: float | None = Field(default=None, ge=0)
    parts_cost: float | None = Field(default=None, ge=0)
    notes: str = ""


class WOLineUpdate(BaseModel):
    description: str | None = Field(default=None, min_length=1, max_length=500)
    status: WOLineStatus | None = None
    vmrs_code: str | None = Field(default=None, max_length=40)
    vmrs_title: str | None = Field(default=None, max_length=200)
    quantity: float | None = Field(default=None, ge=0)
    unit_cost: float | None = Field(default=None, ge=0)
    labor_hours: float | None = Field(default=None, ge=0)
    labor_cost: float | None = Field(default=None, ge=0)
    parts_cost: float | None = Field(default=None, ge=0)
    notes: str | None = None

    @field_validator("description", "status", "quantity", "unit_cost", "notes", mode="before")
    @classmethod
    def _reject_null(cls, value: Any) -> Any:
        return reject_null(value)


class WOLineResponse(BaseModel):
    id: int
    work_order_id: int
    line_number: int
    description: str
    status: WOLineStatus
    vmrs_code: str | None
    vmrs_title: str | None
    part_id: int | None
    quantity: float
    unit_cost: float
    total_cost: float
    labor_hours: float | None
    labor_cost: float | None
    parts_cost: float | None
    notes: str
    created_at: str
    updated_at: str
