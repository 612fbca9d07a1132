"""
Pydantic models for purchase requisitions and purchase orders.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from utils import reject_null

RequisitionStatus = Literal["draft", "pending_approval", "approved", "rejected", "converted"]
POStatus = Literal["draft", "submitted", "approved", "ordered", "partial", "received", "cancelled"]
POManualStatus = Literal["submitted", "approved", "ordered", "cancelled"]


class RequisitionCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = ""
    vendor_id: int | None = Field(default=None, ge=1)
    requested_by: str | None = Field(default=None, max_length=120)
    notes: str = ""


class RequisitionUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    vendor_id: int | None = Field(default=None, ge=1)
    notes: str | None = None

    @field_validator("title", "description", "notes", mode="before")
    @classmethod
    def _reject_null(cls, value: Any) -> Any:
        return reject_null(value)


class RequisitionResponse(BaseModel):
    id: int
    org_id: int
    requisition_number: str
    title: str
    description: str
    status: RequisitionStatus
    vendor_id: int | None
    requested_by: str | None
    total_amount: float
    notes: str
    approved_at: str | None
    rejected_at: str | None
    created_at: str
    updated_at: str


class RequisitionLineCreate(BaseModel):
    part_id: int | None = Field(default=None, ge=1)
    description: str = Field(min_length=1, max_length=500)
    quantity: float = Field(gt=0)
    unit_cost: float = Field(default=0, ge=0)


class RequisitionLineUpdate(BaseModel):
    description: str | None = Field(default=None, min_length=1, max_length=500)
    quantity: float | None = Field(default=None, gt=0)
    unit_cost: float | None = Field(default=None, ge=0)

    @field_validator("description", "quantity", "unit_cost", mode="before")
    @classmethod
    def _reject_null(cls, value: Any) -> Any:
        return reject_null(value)


class RequisitionLineResponse(BaseModel):
    id: int
    requisition_id: int
    part_id: int | None
    description: str
    quantity: float
    unit_cost: float
    total_cost: float
    created_at: str


class POResponse(BaseModel):
    id: int
    org_id: int
    po_number: str
    requisition_id: int | None
    vendor_id: int | None
    title: str
    status: POStatus
    order_date: str | None
    received_date: str | None
    total_amount: float
    notes: str
    created_at: str
    updated_at: str


class POStatusChange(BaseModel):
    status: POManualStatus


class POLineResponse(BaseModel):
    id: int
    po_id: int
    part_id: int | None
    description: str
    quantity_ordered: float
    quantity_received: float
    unit_cost: float
    total_cost: float
    created_at: str


class POLineReceive(BaseModel):
    quantity: float = Field(gt=0)


class POReceiptResponse(BaseModel):
    line: POLineResponse
    purchase_order: POResponse
