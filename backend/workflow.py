"""
Status transition tables and pricing rules for the maintenance workflow.

Everything here is pure: callers pass rows (any mapping) and organization
settings in, and get a decision or a computed value back.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from errors import InvalidTransition

REQUISITION_TRANSITIONS: dict[str, frozenset[str]] = {
    "draft": frozenset({"pending_approval"}),
    "pending_approval": frozenset({"approved", "rejected"}),
    "approved": frozenset({"converted"}),
    "rejected": frozenset(),
    "converted": frozenset(),
}

ESTIMATE_TRANSITIONS: dict[str, frozenset[str]] = {
    "draft": frozenset({"pending_approval"}),
    "pending_approval": frozenset({"approved", "rejected"}),
    "approved": frozenset(),
    "rejected": frozenset(),
}

PURCHASE_ORDER_TRANSITIONS: dict[str, frozenset[str]] = {
    "draft": frozenset({"submitted", "cancelled"}),
    "submitted": frozenset({"approved", "cancelled"}),
    "approved": frozenset({"ordered", "cancelled"}),
    "ordered": frozenset({"partial", "received", "cancelled"}),
    "partial": frozenset({"partial", "received", "cancelled"}),
    "received": frozenset(),
    "cancelled": frozenset(),
}

WORK_ORDER_TERMINAL_STATUSES = frozenset({"completed", "cancelled"})
PO_RECEIVABLE_STATUSES = frozenset({"ordered", "partial"})

_MACHINES = {
    "requisition": REQUISITION_TRANSITIONS,
    "estimate": ESTIMATE_TRANSITIONS,
    "purchase_order": PURCHASE_ORDER_TRANSITIONS,
}


def allowed_transitions(entity: str, current: str) -> frozenset[str]:
    return _MACHINES[entity].get(current, frozenset())


def transition(entity: str, current: str, target: str) -> str:
    """
    Validate one status edge and return the new status.

    Raises InvalidTransition when the edge is not in the entity's table.
    """
    if target not in allowed_transitions(entity, current):
        label = entity.replace("_", " ")
        raise InvalidTransition(f"Cannot move {label} from '{current}' to '{target}'")
    return target


def is_terminal_work_order_status(status: str | None) -> bool:
    return status in WORK_ORDER_TERMINAL_STATUSES


def can_convert(
    estimate: Mapping[str, Any],
    organization: Mapping[str, Any],
    lines: Iterable[Any],
) -> bool:
    return conversion_blocker(estimate, organization, lines) is None


def conversion_blocker(
    estimate: Mapping[str, Any],
    organization: Mapping[str, Any],
    lines: Iterable[Any],
) -> str | None:
    """
    Return the reason an estimate cannot become a work order, or None.
    """
    if estimate["converted_to_work_order_id"] is not None:
        return "Estimate has already been converted to a work order"
    if estimate["status"] == "rejected":
        return "Rejected estimates cannot be converted"
    if not list(lines):
        return "Estimate has no lines"
    if bool(organization["require_estimate_approval"]) and estimate["status"] != "approved":
        return "Estimate must be approved before conversion"
    return None


def line_total(quantity: float, unit_cost: float) -> float:
    return round(float(quantity) * float(unit_cost), 2)


def needs_ordering(line_type: str, quantity: float, quantity_on_hand: float | None) -> bool:
    if line_type == "zero_stock_part":
        return True
    if line_type == "inventory_part":
        return float(quantity) > float(quantity_on_hand or 0)
    return False


def estimate_totals(lines: Iterable[Mapping[str, Any]], markup_percent: float | None) -> dict[str, float]:
    parts_total = 0.0
    labor_total = 0.0
    for line in lines:
        cost = float(line["total_cost"] or 0)
        if line["line_type"] == "labor":
            labor_total += cost
        else:
            parts_total += cost

    subtotal = parts_total + labor_total
    markup_total = subtotal * (float(markup_percent or 0) / 100)
    return {
        "parts_total": round(parts_total, 2),
        "labor_total": round(labor_total, 2),
        "markup_total": round(markup_total, 2),
        "grand_total": round(subtotal + markup_total, 2),
    }


def receipt_status(lines: Iterable[Mapping[str, Any]]) -> str | None:
    """
    Derive a purchase order's status from how much of it has arrived.
    """
    total_ordered = 0.0
    total_received = 0.0
    for line in lines:
        total_ordered += float(line["quantity_ordered"] or 0)
        total_received += float(line["quantity_received"] or 0)
    if total_received >= total_ordered and total_ordered > 0:
        return "received"
    if total_received > 0:
        return "partial"
    return None
