"""
Repair estimates: line pricing, totals, approval and conversion to work orders.
"""

from __future__ import annotations

import logging
from typing import Any

import aiosqlite

from db import fetch_all, fetch_one, insert_row, update_row, utc_now_iso
from errors import InvalidTransition, NotFound, ValidationFailed
from numbering import next_number
from org_scope import ensure_reference, get_organization_row, get_scoped_row
from work_order_service import add_line as add_work_order_line
from work_order_service import create_work_order, next_line_number
from workflow import conversion_blocker, estimate_totals, line_total, needs_ordering, transition

logger = logging.getLogger(__name__)


async def get_estimate(db: aiosqlite.Connection, org_id: int, est_id: int):
    return await get_scoped_row(db, "estimates", org_id, est_id, "Estimate")


async def list_estimate_lines(db: aiosqlite.Connection, est_id: int):
    return await fetch_all(
        db,
        "SELECT * FROM estimate_lines WHERE estimate_id = ? ORDER BY line_number ASC, id ASC",
        (est_id,),
    )


async def get_estimate_line(db: aiosqlite.Connection, est_id: int, line_id: int):
    row = await fetch_one(
        db,
        "SELECT * FROM estimate_lines WHERE id = ? AND estimate_id = ?",
        (line_id, est_id),
    )
    if not row:
        raise NotFound("Estimate line not found")
    return row


async def estimate_can_convert(db: aiosqlite.Connection, org_id: int, estimate: Any) -> bool:
    organization = await get_organization_row(db, org_id)
    lines = await list_estimate_lines(db, int(estimate["id"]))
    return conversion_blocker(estimate, organization, lines) is None


def _ensure_not_converted(estimate: Any) -> None:
    if estimate["converted_to_work_order_id"] is not None:
        raise InvalidTransition(f"Estimate {estimate['estimate_number']} has already been converted")


async def recalculate_estimate_totals(db: aiosqlite.Connection, est_id: int) -> dict[str, float]:
    estimate = await fetch_one(db, "SELECT markup_percent FROM estimates WHERE id = ?", (est_id,))
    totals = estimate_totals(await list_estimate_lines(db, est_id), estimate["markup_percent"])
    await update_row(db, "estimates", est_id, {**totals, "updated_at": utc_now_iso()})
    return totals


async def create_estimate(db: aiosqlite.Connection, org_id: int, payload: dict[str, Any]):
    await ensure_reference(db, "assets", org_id, payload["asset_id"], "asset_id")
    now = utc_now_iso()
    est_id = await insert_row(
        db,
        "estimates",
        {
            **payload,
            "org_id": org_id,
            "estimate_number": await next_number(db, org_id, "estimates"),
            "status": "draft",
            "created_at": now,
            "updated_at": now,
        },
    )
    return await get_estimate(db, org_id, est_id)


async def update_estimate(db: aiosqlite.Connection, org_id: int, est_id: int, changes: dict[str, Any]):
    estimate = await get_estimate(db, org_id, est_id)
    _ensure_not_converted(estimate)
    changes["updated_at"] = utc_now_iso()
    await update_row(db, "estimates", est_id, changes)
    if "markup_percent" in changes:
        await recalculate_estimate_totals(db, est_id)
    return await get_estimate(db, org_id, est_id)


async def change_estimate_status(db: aiosqlite.Connection, org_id: int, est_id: int, target: str):
    estimate = await get_estimate(db, org_id, est_id)
    _ensure_not_converted(estimate)
    new_status = transition("estimate", estimate["status"], target)
    await update_row(db, "estimates", est_id, {"status": new_status, "updated_at": utc_now_iso()})
    logger.info("Estimate %s moved %s -> %s", estimate["estimate_number"], estimate["status"], new_status)
    return await get_estimate(db, org_id, est_id)


async def _part_snapshot(db: aiosqlite.Connection, org_id: int, line_type: str, part_id: int | None):
    if line_type == "inventory_part" and part_id is None:
        raise ValidationFailed("part_id is required for inventory_part lines")
    return await ensure_reference(db, "parts", org_id, part_id, "part_id")


async def add_estimate_line(db: aiosqlite.Connection, org_id: int, est_id: int, payload: dict[str, Any]):
    """
    Price a new estimate line and refresh the estimate totals.

    Part lines record the part's stock level at the time of pricing and are
    flagged for ordering when that stock cannot cover the quantity.
    """
    estimate = await get_estimate(db, org_id, est_id)
    _ensure_not_converted(estimate)
    part = await _part_snapshot(db, org_id, payload["line_type"], payload.get("part_id"))
    quantity_on_hand = float(part["quantity_on_hand"] or 0) if part else None

    now = utc_now_iso()
    line_id = await insert_row(
        db,
        "estimate_lines",
        {
            **payload,
            "estimate_id": est_id,
            "line_number": await next_line_number(db, "estimate_lines", "estimate_id", est_id),
            "part_number": part["part_number"] if part else None,
            "total_cost": line_total(payload["quantity"], payload["unit_cost"]),
            "quantity_on_hand": quantity_on_hand,
            "needs_ordering": int(needs_ordering(payload["line_type"], payload["quantity"], quantity_on_hand)),
            "created_at": now,
            "updated_at": now,
        },
    )
    await recalculate_estimate_totals(db, est_id)
    return await get_estimate_line(db, est_id, line_id)


async def update_estimate_line(
    db: aiosqlite.Connection,
    org_id: int,
    est_id: int,
    line_id: int,
    changes: dict[str, Any],
):
    estimate = await get_estimate(db, org_id, est_id)
    _ensure_not_converted(estimate)
    current = await get_estimate_line(db, est_id, line_id)

    quantity = changes.get("quantity", current["quantity"])
    unit_cost = changes.get("unit_cost", current["unit_cost"])
    quantity_on_hand = current["quantity_on_hand"]
    if current["part_id"] is not None:
        part = await fetch_one(db, "SELECT quantity_on_hand FROM parts WHERE id = ?", (current["part_id"],))
        if part:
            quantity_on_hand = float(part["quantity_on_hand"] or 0)

    changes.update(
        {
            "total_cost": line_total(quantity, unit_cost),
            "quantity_on_hand": quantity_on_hand,
            "needs_ordering": int(needs_ordering(current["line_type"], quantity, quantity_on_hand)),
            "updated_at": utc_now_iso(),
        }
    )
    await update_row(db, "estimate_lines", line_id, changes)
    await recalculate_estimate_totals(db, est_id)
    return await get_estimate_line(db, est_id, line_id)


async def delete_estimate_line(db: aiosqlite.Connection, org_id: int, est_id: int, line_id: int) -> dict[str, float]:
    estimate = await get_estimate(db, org_id, est_id)
    _ensure_not_converted(estimate)
    await get_estimate_line(db, est_id, line_id)
    await db.execute("DELETE FROM estimate_lines WHERE id = ?", (line_id,))
    return await recalculate_estimate_totals(db, est_id)


async def list_unfulfilled_lines(db: aiosqlite.Connection, org_id: int, est_id: int):
    await get_estimate(db, org_id, est_id)
    return await fetch_all(
        db,
        """
        SELECT *
        FROM estimate_lines
        WHERE estimate_id = ? AND needs_ordering = 1
        ORDER BY line_number ASC, id ASC
        """,
        (est_id,),
    )


def _work_order_line_payload(line: Any) -> dict[str, Any]:
    is_labor = line["line_type"] == "labor"
    return {
        "description": line["description"],
        "status": "pending",
        "vmrs_code": line["vmrs_code"],
        "vmrs_title": line["vmrs_title"],
        "part_id": line["part_id"],
        "quantity": line["quantity"],
        "unit_cost": line["unit_cost"],
        "labor_hours": line["quantity"] if is_labor else None,
        "labor_cost": line["total_cost"] if is_labor else None,
        "parts_cost": None if is_labor else line["total_cost"],
        "notes": line["notes"] or "",
    }


async def convert_estimate_to_work_order(
    db: aiosqlite.Connection,
    org_id: int,
    est_id: int,
) -> dict[str, Any]:
    """
    Create an open work order from an estimate and link the two.

    Conversion is re-checked here against the organization's approval policy,
    whatever the client saw. The work order, its lines and the link on the
    estimate are written on the caller's transaction.
    """
    estimate = await get_estimate(db, org_id, est_id)
    organization = await get_organization_row(db, org_id)
    lines = await list_estimate_lines(db, est_id)
    blocker = conversion_blocker(estimate, organization, lines)
    if blocker:
        raise InvalidTransition(blocker)

    work_order, warnings = await create_work_order(
        db,
        org_id,
        {
            "title": estimate["title"] or None,
            "description": estimate["description"] or "",
            "type": "corrective",
            "status": "open",
            "priority": "medium",
            "asset_id": estimate["asset_id"],
            "estimated_cost": estimate["grand_total"],
            "notes": f"Created from estimate {estimate['estimate_number']}",
        },
    )
    wo_id = int(work_order["id"])
    for line in lines:
        await add_work_order_line(db, org_id, wo_id, _work_order_line_payload(line), recalculate=False)

    await update_row(
        db,
        "estimates",
        est_id,
        {"converted_to_work_order_id": wo_id, "updated_at": utc_now_iso()},
    )
    logger.info(
        "Converted estimate %s into work order %s (%d lines)",
        estimate["estimate_number"],
        work_order["work_order_number"],
        len(lines),
    )
    return {
        "work_order_id": wo_id,
        "work_order_number": work_order["work_order_number"],
        "warnings": warnings,
    }
