"""
Purchase requisitions, their conversion to purchase orders, and receiving.
"""

from __future__ import annotations

import logging
from typing import Any

import aiosqlite

from db import fetch_all, fetch_one, insert_row, update_row, utc_now_iso
from errors import InvalidTransition, NotFound, StorageFailure, ValidationFailed
from numbering import next_number
from org_scope import ensure_reference, get_scoped_row
from workflow import PO_RECEIVABLE_STATUSES, line_total, receipt_status, transition

logger = logging.getLogger(__name__)

EDITABLE_REQUISITION_STATUSES = frozenset({"draft"})


async def get_requisition(db: aiosqlite.Connection, org_id: int, req_id: int):
    return await get_scoped_row(db, "purchase_requisitions", org_id, req_id, "Requisition")


async def get_purchase_order(db: aiosqlite.Connection, org_id: int, po_id: int):
    return await get_scoped_row(db, "purchase_orders", org_id, po_id, "Purchase order")


async def list_requisition_lines(db: aiosqlite.Connection, req_id: int):
    return await fetch_all(
        db,
        "SELECT * FROM purchase_requisition_lines WHERE requisition_id = ? ORDER BY id ASC",
        (req_id,),
    )


async def list_po_lines(db: aiosqlite.Connection, po_id: int):
    return await fetch_all(
        db,
        "SELECT * FROM purchase_order_lines WHERE po_id = ? ORDER BY id ASC",
        (po_id,),
    )


def _ensure_editable(requisition: Any) -> None:
    if requisition["status"] not in EDITABLE_REQUISITION_STATUSES:
        raise InvalidTransition(
            f"Requisition {requisition['requisition_number']} is {requisition['status']} and can no longer be edited"
        )


async def create_requisition(db: aiosqlite.Connection, org_id: int, payload: dict[str, Any]):
    await ensure_reference(db, "vendors", org_id, payload.get("vendor_id"), "vendor_id")
    now = utc_now_iso()
    req_id = await insert_row(
        db,
        "purchase_requisitions",
        {
            **payload,
            "org_id": org_id,
            "requisition_number": await next_number(db, org_id, "purchase_requisitions"),
            "status": "draft",
            "total_amount": 0,
            "created_at": now,
            "updated_at": now,
        },
    )
    return await get_requisition(db, org_id, req_id)


async def update_requisition(db: aiosqlite.Connection, org_id: int, req_id: int, changes: dict[str, Any]):
    requisition = await get_requisition(db, org_id, req_id)
    _ensure_editable(requisition)
    if "vendor_id" in changes:
        await ensure_reference(db, "vendors", org_id, changes["vendor_id"], "vendor_id")
    changes["updated_at"] = utc_now_iso()
    await update_row(db, "purchase_requisitions", req_id, changes)
    return await get_requisition(db, org_id, req_id)


async def change_requisition_status(db: aiosqlite.Connection, org_id: int, req_id: int, target: str):
    """
    Move a requisition along its approval path.

    Approval and rejection stamp `approved_at` / `rejected_at`. Conversion is
    not reachable from here; it goes through `convert_requisition_to_po`.
    """
    if target == "converted":
        raise InvalidTransition("Requisitions are converted through the convert action")

    requisition = await get_requisition(db, org_id, req_id)
    new_status = transition("requisition", requisition["status"], target)
    now = utc_now_iso()
    changes: dict[str, Any] = {"status": new_status, "updated_at": now}
    if new_status == "approved":
        changes["approved_at"] = now
    elif new_status == "rejected":
        changes["rejected_at"] = now
    await update_row(db, "purchase_requisitions", req_id, changes)
    logger.info(
        "Requisition %s moved %s -> %s",
        requisition["requisition_number"],
        requisition["status"],
        new_status,
    )
    return await get_requisition(db, org_id, req_id)


async def recalculate_requisition_total(db: aiosqlite.Connection, req_id: int) -> float:
    row = await fetch_one(
        db,
        "SELECT COALESCE(SUM(total_cost), 0) AS total FROM purchase_requisition_lines WHERE requisition_id = ?",
        (req_id,),
    )
    total = round(float(row["total"] if row else 0), 2)
    await db.execute(
        "UPDATE purchase_requisitions SET total_amount = ?, updated_at = ? WHERE id = ?",
        (total, utc_now_iso(), req_id),
    )
    return total


async def get_requisition_line(db: aiosqlite.Connection, req_id: int, line_id: int):
    row = await fetch_one(
        db,
        "SELECT * FROM purchase_requisition_lines WHERE id = ? AND requisition_id = ?",
        (line_id, req_id),
    )
    if not row:
        raise NotFound("Requisition line not found")
    return row


async def add_requisition_line(db: aiosqlite.Connection, org_id: int, req_id: int, payload: dict[str, Any]):
    requisition = await get_requisition(db, org_id, req_id)
    _ensure_editable(requisition)
    await ensure_reference(db, "parts", org_id, payload.get("part_id"), "part_id")
    line_id = await insert_row(
        db,
        "purchase_requisition_lines",
        {
            **payload,
            "requisition_id": req_id,
            "total_cost": line_total(payload["quantity"], payload.get("unit_cost", 0)),
            "created_at": utc_now_iso(),
        },
    )
    await recalculate_requisition_total(db, req_id)
    return await get_requisition_line(db, req_id, line_id)


async def update_requisition_line(
    db: aiosqlite.Connection,
    org_id: int,
    req_id: int,
    line_id: int,
    changes: dict[str, Any],
):
    requisition = await get_requisition(db, org_id, req_id)
    _ensure_editable(requisition)
    current = await get_requisition_line(db, req_id, line_id)
    if "quantity" in changes or "unit_cost" in changes:
        changes["total_cost"] = line_total(
            changes.get("quantity", current["quantity"]),
            changes.get("unit_cost", current["unit_cost"]),
        )
    await update_row(db, "purchase_requisition_lines", line_id, changes)
    await recalculate_requisition_total(db, req_id)
    return await get_requisition_line(db, req_id, line_id)


async def delete_requisition_line(db: aiosqlite.Connection, org_id: int, req_id: int, line_id: int) -> float:
    requisition = await get_requisition(db, org_id, req_id)
    _ensure_editable(requisition)
    await get_requisition_line(db, req_id, line_id)
    await db.execute("DELETE FROM purchase_requisition_lines WHERE id = ?", (line_id,))
    return await recalculate_requisition_total(db, req_id)


async def convert_requisition_to_po(db: aiosqlite.Connection, org_id: int, req_id: int):
    """
    Turn an approved requisition into a draft purchase order.

    Creates the PO, copies every line and marks the requisition converted on
    the caller's transaction, so either all of it commits or none of it does.
    A requisition converts at most once.
    """
    requisition = await get_requisition(db, org_id, req_id)
    if requisition["status"] == "converted":
        raise InvalidTransition(f"Requisition {requisition['requisition_number']} has already been converted")
    if requisition["status"] != "approved":
        raise InvalidTransition(
            f"Requisition {requisition['requisition_number']} must be approved before conversion"
        )

    lines = await list_requisition_lines(db, req_id)
    if not lines:
        raise InvalidTransition(f"Requisition {requisition['requisition_number']} has no lines")

    now = utc_now_iso()
    total_amount = round(sum(float(line["total_cost"]) for line in lines), 2)
    po_number = await next_number(db, org_id, "purchase_orders")
    try:
        po_id = await insert_row(
            db,
            "purchase_orders",
            {
                "org_id": org_id,
                "po_number": po_number,
                "requisition_id": req_id,
                "vendor_id": requisition["vendor_id"],
                "title": requisition["title"],
                "status": "draft",
                "total_amount": total_amount,
                "notes": requisition["notes"] or "",
                "created_at": now,
                "updated_at": now,
            },
        )
    except aiosqlite.IntegrityError as exc:
        existing = await fetch_one(
            db,
            "SELECT po_number FROM purchase_orders WHERE requisition_id = ?",
            (req_id,),
        )
        if existing:
            raise InvalidTransition(
                f"Requisition {requisition['requisition_number']} has already been converted"
            ) from exc
        logger.exception("Purchase order insert failed for requisition %s", requisition["requisition_number"])
        raise StorageFailure(f"Could not create purchase order {po_number}: {exc}") from exc

    for line in lines:
        await insert_row(
            db,
            "purchase_order_lines",
            {
                "po_id": po_id,
                "part_id": line["part_id"],
                "description": line["description"],
                "quantity_ordered": line["quantity"],
                "quantity_received": 0,
                "unit_cost": line["unit_cost"],
                "total_cost": line["total_cost"],
                "created_at": now,
            },
        )

    await update_row(
        db,
        "purchase_requisitions",
        req_id,
        {"status": transition("requisition", requisition["status"], "converted"), "updated_at": now},
    )
    logger.info(
        "Converted requisition %s into purchase order %s (%d lines)",
        requisition["requisition_number"],
        po_number,
        len(lines),
    )
    return await get_purchase_order(db, org_id, po_id)


async def change_po_status(db: aiosqlite.Connection, org_id: int, po_id: int, target: str):
    purchase_order = await get_purchase_order(db, org_id, po_id)
    new_status = transition("purchase_order", purchase_order["status"], target)
    now = utc_now_iso()
    changes: dict[str, Any] = {"status": new_status, "updated_at": now}
    if new_status == "ordered" and not purchase_order["order_date"]:
        changes["order_date"] = now
    await update_row(db, "purchase_orders", po_id, changes)
    logger.info("Purchase order %s moved %s -> %s", purchase_order["po_number"], purchase_order["status"], new_status)
    return await get_purchase_order(db, org_id, po_id)


async def get_po_line(db: aiosqlite.Connection, po_id: int, line_id: int):
    row = await fetch_one(
        db,
        "SELECT * FROM purchase_order_lines WHERE id = ? AND po_id = ?",
        (line_id, po_id),
    )
    if not row:
        raise NotFound("Purchase order line not found")
    return row


async def receive_po_line(
    db: aiosqlite.Connection,
    org_id: int,
    po_id: int,
    line_id: int,
    quantity: float,
):
    """
    Record goods received against one PO line.

    Stock on the linked part goes up by the received quantity and the PO moves
    to `partial` or `received` depending on what is still outstanding.
    """
    purchase_order = await get_purchase_order(db, org_id, po_id)
    if purchase_order["status"] not in PO_RECEIVABLE_STATUSES:
        raise InvalidTransition(
            f"Purchase order {purchase_order['po_number']} is {purchase_order['status']} and cannot receive goods"
        )

    line = await get_po_line(db, po_id, line_id)
    outstanding = float(line["quantity_ordered"]) - float(line["quantity_received"])
    if float(quantity) > outstanding:
        raise ValidationFailed(
            f"Cannot receive {quantity:g}; only {outstanding:g} outstanding on this line"
        )

    await db.execute(
        "UPDATE purchase_order_lines SET quantity_received = quantity_received + ? WHERE id = ?",
        (quantity, line_id),
    )
    if line["part_id"] is not None:
        await db.execute(
            """
            UPDATE parts
            SET quantity_on_hand = COALESCE(quantity_on_hand, 0) + ?, updated_at = ?
            WHERE id = ?
            """,
            (quantity, utc_now_iso(), line["part_id"]),
        )

    new_status = receipt_status(await list_po_lines(db, po_id))
    if new_status:
        now = utc_now_iso()
        changes: dict[str, Any] = {
            "status": transition("purchase_order", purchase_order["status"], new_status),
            "updated_at": now,
        }
        if new_status == "received":
            changes["received_date"] = now
        await update_row(db, "purchase_orders", po_id, changes)
        logger.info("Purchase order %s is now %s", purchase_order["po_number"], new_status)

    return await get_po_line(db, po_id, line_id), await get_purchase_order(db, org_id, po_id)
