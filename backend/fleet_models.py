"""
Pydantic models for organizations, assets, vendors, parts and dashboard counts.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from utils import reject_null

AssetStatus = Literal["operational", "in_maintenance", "down", "retired", "pending_inspection"]
AssetType = Literal["vehicle", "equipment", "facility", "tool", "other"]
SafetySystem = Literal["brakes", "steering", "tires_wheels", "suspension", "electrical", "hvac", "other"]
SmartClass = Literal["S", "A", "B", "C"]
XyzClass = Literal["X", "Y", "Z"]


class OrganizationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=160)
    slug: str = Field(min_length=1, max_length=80, pattern=r"^[a-z0-9][a-z0-9-]*$")
    require_estimate_approval: bool = False


class OrganizationUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=160)
    require_estimate_approval: bool | None = None

    @field_validator("name", "require_estimate_approval", mode="before")
    @classmethod
    def _reject_null(cls, value: Any) -> Any:
        return reject_null(value)


class OrganizationResponse(BaseModel):
    id: int
    name: str
    slug: str
    require_estimate_approval: bool
    created_at: str
    updated_at: str


class AssetCreate(BaseModel):
    asset_number: str = Field(min_length=1, max_length=60)
    name: str = Field(min_length=1, max_length=200)
    description: str = ""
    type: AssetType = "vehicle"
    status: AssetStatus = "operational"
    manufacturer: str | None = Field(default=None, max_length=120)
    model: str | None = Field(default=None, max_length=120)
    serial_number: str | None = Field(default=None, max_length=120)
    year: int | None = Field(default=None, ge=1900, le=2100)
    meter_type: str | None = Field(default=None, max_length=20)
    current_meter_reading: float | None = Field(default=None, ge=0)
    notes: str = ""


class AssetUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    type: AssetType | None = None
    status: AssetStatus | None = None
    manufacturer: str | None = Field(default=None, max_length=120)
    model: str | None = Field(default=None, max_length=120)
    serial_number: str | None = Field(default=None, max_length=120)
    year: int | None = Field(default=None, ge=1900, le=2100)
    meter_type: str | None = Field(default=None, max_length=20)
    current_meter_reading: float | None = Field(default=None, ge=0)
    notes: str | None = None

    @field_validator("name", "description", "type", "status", "notes", mode="before")
    @classmethod
    def _reject_null(cls, value: Any) -> Any:
        return reject_null(value)


class AssetResponse(BaseModel):
    id: int
    org_id: int
    asset_number: str
    name: str
    description: str
    type: AssetType
    status: AssetStatus
    manufacturer: str | None
    model: str | None
    serial_number: str | None
    year: int | None
    meter_type: str | None
    current_meter_reading: float | None
    notes: str
    created_at: str
    updated_at: str


class VendorCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    code: str | None = Field(default=None, max_length=60)
    contact_name: str | None = Field(default=None, max_length=120)
    email: str | None = Field(default=None, max_length=200)
    phone: str | None = Field(default=None, max_length=40)
    notes: str = ""


class VendorUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    code: str | None = Field(default=None, max_length=60)
    contact_name: str | None = Field(default=None, max_length=120)
    email: str | None = Field(default=None, max_length=200)
    phone: str | None = Field(default=None, max_length=40)
    notes: str | None = None
    is_active: bool | None = None

    @field_validator("name", "notes", "is_active", mode="before")
    @classmethod
    def _reject_null(cls, value: Any) -> Any:
        return reject_null(value)


class VendorResponse(BaseModel):
    id: int
    org_id: int
    name: str
    code: str | None
    contact_name: str | None
    email: str | None
    phone: str | None
    notes: str
    is_active: bool
    created_at: str
    updated_at: str


class PartCreate(BaseModel):
    part_number: str = Field(min_length=1, max_length=80)
    name: str = Field(min_length=1, max_length=200)
    description: str = ""
    category: str | None = Field(default=None, max_length=40)
    unit_of_measure: str = Field(default="each", max_length=20)
    quantity_on_hand: float | None = Field(default=0, ge=0)
    reorder_point: float | None = Field(default=0, ge=0)
    reorder_quantity: float | None = Field(default=0, ge=0)
    unit_cost: float | None = Field(default=None, ge=0)
    barcode: str | None = Field(default=None, max_length=80)
    vendor_id: int | None = Field(default=None, ge=1)
    bin_location: str | None = Field(default=None, max_length=60)
    safety_system: SafetySystem | None = None
    failure_severity: int = Field(default=1, ge=1, le=5)
    compliance_override: bool = False
    traceability_required: bool = False
    lead_time_days: int | None = Field(default=None, ge=0)


class PartUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    category: str | None = Field(default=None, max_length=40)
    unit_of_measure: str | None = Field(default=None, max_length=20)
    quantity_on_hand: float | None = Field(default=None, ge=0)
    reorder_point: float | None = Field(default=None, ge=0)
    reorder_quantity: float | None = Field(default=None, ge=0)
    unit_cost: float | None = Field(default=None, ge=0)
    barcode: str | None = Field(default=None, max_length=80)
    vendor_id: int | None = Field(default=None, ge=1)
    bin_location: str | None = Field(default=None, max_length=60)
    is_active: bool | None = None
    safety_system: SafetySystem | None = None
    failure_severity: int | None = Field(default=None, ge=1, le=5)
    compliance_override: bool | None = None
    traceability_required: bool | None = None
    lead_time_days: int | None = Field(default=None, ge=0)

    @field_validator(
        "name",
        "description",
        "unit_of_measure",
        "is_active",
        "failure_severity",
        "compliance_override",
        "traceability_required",
        mode="before",
    )
    @classmethod
    def _reject_null(cls, value: Any) -> Any:
        return reject_null(value)


class PartResponse(BaseModel):
    id: int
    org_id: int
    part_number: str
    name: str
    description: str
    category: str | None
    unit_of_measure: str
    quantity_on_hand: float | None
    reorder_point: float | None
    reorder_quantity: float | None
    unit_cost: float | None
    barcode: str | None
    vendor_id: int | None
    bin_location: str | None
    safety_system: SafetySystem | None = None
    failure_severity: int = 1
    compliance_override: bool = False
    traceability_required: bool = False
    lead_time_days: int | None = None
    smart_class: SmartClass | None = None
    xyz_class: XyzClass | None = None
    priority_score: float | None = None
    classification_locked: bool = False
    last_classified_at: str | None = None
    is_active: bool
    created_at: str
    updated_at: str


class ClassificationRunRequest(BaseModel):
    window_months: int = Field(default=12, ge=1, le=60)


class PartClassification(BaseModel):
    part_id: int
    part_number: str
    smart_class: SmartClass
    xyz_class: XyzClass
    total_score: float
    cost_score: float
    roadcall_score: float
    safety_score: float
    annual_qty: float
    annual_spend: float
    roadcall_count: int
    downtime_hours: float
    coefficient_of_variation: float | None
    lead_time_bonus: int
    locked: bool = False
    updated: bool = False


class ClassificationRunResponse(BaseModel):
    window_months: int
    parts_processed: int
    parts_updated: int
    results: list[PartClassification]


class ClassificationOverride(BaseModel):
    smart_class: SmartClass
    xyz_class: XyzClass | None = None


class DashboardStats(BaseModel):
    total_assets: int = 0
    operational_assets: int = 0
    in_maintenance_assets: int = 0
    down_assets: int = 0
    open_work_orders: int = 0
    overdue_work_orders: int = 0
    parts_low_stock: int = 0
    pending_requisitions: int = 0
    open_purchase_orders: int = 0
