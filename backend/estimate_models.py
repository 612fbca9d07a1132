"""
Pydantic models for estimates and estimate lines.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from utils import reject_null

EstimateStatus = Literal["draft", "pending_approval", "approved", "rejected"]
EstimateLineType = Literal["inventory_part", "zero_stock_part", "non_inventory_item", "labor"]


class EstimateCreate(BaseModel):
    asset_id: int = Field(ge=1)
    title: str = Field(default="", max_length=200)
    description: str = ""
    markup_percent: float = Field(default=0, ge=0, le=1000)
    notes: str = ""
    valid_until: str | None = None


class EstimateUpdate(BaseModel):
    title: str | None = Field(default=None, max_length=200)
    description: str | None = None
    markup_percent: float | None = Field(default=None, ge=0, le=1000)
    notes: str | None = None
    valid_until: str | None = None

    @field_validator("title", "description", "markup_percent", "notes", mode="before")
    @classmethod
    def _reject_null(cls, value: Any) -> Any:
        return reject_null(value)


class EstimateResponse(BaseModel):
    id: int
    org_id: int
    estimate_number: str
    asset_id: int
    title: str
    description: str
    status: EstimateStatus
    parts_total: float
    labor_total: float
    markup_percent: float
    markup_total: float
    grand_total: float
    notes: str
    valid_until: str | None
    converted_to_work_order_id: int | None
    can_convert: bool = False
    created_at: str
    updated_at: str


class EstimateLineCreate(BaseModel):
    line_type: EstimateLineType
    part_id: int | None = Field(default=None, ge=1)
    description: str = Field(min_length=1, max_length=500)
    vmrs_code: str = Field(min_length=1, max_length=40)
    vmrs_title: str | None = Field(default=None, max_length=200)
    quantity: float = Field(gt=0)
    unit_cost: float = Field(ge=0)
    notes: str = ""


class EstimateLineUpdate(BaseModel):
    description: str | None = Field(default=None, min_length=1, max_length=500)
    vmrs_code: str | None = Field(default=None, min_length=1, max_length=40)
    vmrs_title: str | None = Field(default=None, max_length=200)
    quantity: float | None = Field(default=None, gt=0)
    unit_cost: float | None = Field(default=None, ge=0)
    notes: str | None = None

    @field_validator("description", "vmrs_code", "quantity", "unit_cost", "notes", mode="before")
    @classmethod
    def _reject_null(cls, value: Any) -> Any:
        return reject_null(value)


class EstimateLineResponse(BaseModel):
    id: int
    estimate_id: int
    line_number: int
    line_type: EstimateLineType
    part_id: int | None
    part_number: str | None
    description: str
    vmrs_code: str | None
    vmrs_title: str | None
    quantity: float
    unit_cost: float
    total_cost: float
    quantity_on_hand: float | None
    needs_ordering: bool
    notes: str
    created_at: str
    updated_at: str


class EstimateConversion(BaseModel):
    work_order_id: int
    work_order_number: str
    warnings: list[str] = Field(default_factory=list)
