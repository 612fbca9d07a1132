"""
Work-order lifecycle and the asset status it drives.
"""

from __future__ import annotations

import logging
from typing import Any

import aiosqlite

from db import fetch_all, fetch_one, insert_row, savepoint, update_row, utc_now_iso
from errors import NotFound
from numbering import next_number
from org_scope import ensure_reference, get_scoped_row
from workflow import is_terminal_work_order_status, line_total

logger = logging.getLogger(__name__)

ASSET_SYNC_WARNING = "asset_status_sync_failed"


async def get_work_order(db: aiosqlite.Connection, org_id: int, wo_id: int):
    return await get_scoped_row(db, "work_orders", org_id, wo_id, "Work order")


async def set_asset_status(db: aiosqlite.Connection, asset_id: int, status: str) -> None:
    await db.execute(
        "UPDATE assets SET status = ?, updated_at = ? WHERE id = ?",
        (status, utc_now_iso(), asset_id),
    )


async def count_other_open_work_orders(db: aiosqlite.Connection, asset_id: int, wo_id: int) -> int:
    row = await fetch_one(
        db,
        """
        SELECT COUNT(*) AS count
        FROM work_orders
        WHERE asset_id = ?
          AND id != ?
          AND status NOT IN ('completed', 'cancelled')
        """,
        (asset_id, wo_id),
    )
    return int(row["count"] if row else 0)


async def _sync_asset(db: aiosqlite.Connection, asset_id: int, wo_id: int, wo_status: str) -> list[str]:
    """
    Bring the asset in line with its work orders.

    Runs in a savepoint: if the asset write fails, only that write is undone
    and the caller gets a warning instead of an error.
    """
    try:
        async with savepoint(db, "asset_sync"):
            if not is_terminal_work_order_status(wo_status):
                await set_asset_status(db, asset_id, "in_maintenance")
                logger.info("Asset %s in maintenance for work order %s", asset_id, wo_id)
            elif await count_other_open_work_orders(db, asset_id, wo_id) == 0:
                await set_asset_status(db, asset_id, "operational")
                logger.info("Asset %s back to operational after work order %s", asset_id, wo_id)
            else:
                logger.info("Asset %s stays in maintenance; other work orders still open", asset_id)
    except aiosqlite.Error:
        logger.exception("Asset status sync failed for asset %s (work order %s)", asset_id, wo_id)
        return [ASSET_SYNC_WARNING]
    return []


async def create_work_order(
    db: aiosqlite.Connection,
    org_id: int,
    payload: dict[str, Any],
) -> tuple[Any, list[str]]:
    asset = await ensure_reference(db, "assets", org_id, payload.get("asset_id"), "asset_id")
    now = utc_now_iso()
    work_order_number = await next_number(db, org_id, "work_orders")

    title = (payload.get("title") or "").strip()
    if not title:
        title = f"{work_order_number} | {asset['asset_number']}" if asset else work_order_number

    values = {
        **payload,
        "org_id": org_id,
        "work_order_number": work_order_number,
        "title": title,
        "completed_date": now if payload.get("status") == "completed" else None,
        "created_at": now,
        "updated_at": now,
    }
    wo_id = await insert_row(db, "work_orders", values)

    warnings: list[str] = []
    status = values.get("status") or "open"
    if asset and not is_terminal_work_order_status(status):
        warnings = await _sync_asset(db, int(asset["id"]), wo_id, status)

    return await get_work_order(db, org_id, wo_id), warnings


async def update_work_order(
    db: aiosqlite.Connection,
    org_id: int,
    wo_id: int,
    changes: dict[str, Any],
) -> tuple[Any, list[str]]:
    current = await get_work_order(db, org_id, wo_id)
    if "asset_id" in changes:
        await ensure_reference(db, "assets", org_id, changes["asset_id"], "asset_id")

    now = utc_now_iso()
    status = changes.get("status")
    if status == "completed" and "completed_date" not in changes:
        changes["completed_date"] = (current["status"] == "completed" and current["completed_date"]) or now
    elif status and status != "completed" and "completed_date" not in changes:
        changes["completed_date"] = None

    changes["updated_at"] = now
    await update_row(db, "work_orders", wo_id, changes)
    updated = await get_work_order(db, org_id, wo_id)

    # A terminal status in the patch always re-checks the asset, even when
    # the work order was already closed.
    warnings: list[str] = []
    asset_id = updated["asset_id"]
    if asset_id and status is not None:
        reopened = is_terminal_work_order_status(current["status"]) and not is_terminal_work_order_status(status)
        if is_terminal_work_order_status(status) or reopened:
            warnings = await _sync_asset(db, int(asset_id), wo_id, status)

    return updated, warnings


async def list_lines(db: aiosqlite.Connection, wo_id: int):
    return await fetch_all(
        db,
        """
        SELECT *
        FROM work_order_lines
        WHERE work_order_id = ?
        ORDER BY line_number ASC, id ASC
        """,
        (wo_id,),
    )


async def get_line(db: aiosqlite.Connection, org_id: int, wo_id: int, line_id: int):
    row = await fetch_one(
        db,
        """
        SELECT l.*
        FROM work_order_lines AS l
        JOIN work_orders AS w ON w.id = l.work_order_id
        WHERE l.id = ? AND l.work_order_id = ? AND w.org_id = ?
        """,
        (line_id, wo_id, org_id),
    )
    if not row:
        raise NotFound("Work order line not found")
    return row


async def next_line_number(db: aiosqlite.Connection, table_name: str, parent_column: str, parent_id: int) -> int:
    row = await fetch_one(
        db,
        f"SELECT COALESCE(MAX(line_number), 0) + 1 AS next_line FROM {table_name} WHERE {parent_column} = ?",
        (parent_id,),
    )
    return int(row["next_line"] if row else 1)


async def recalculate_actual_cost(db: aiosqlite.Connection, wo_id: int) -> float:
    row = await fetch_one(
        db,
        "SELECT COALESCE(SUM(total_cost), 0) AS total FROM work_order_lines WHERE work_order_id = ?",
        (wo_id,),
    )
    total = round(float(row["total"] if row else 0), 2)
    await db.execute(
        "UPDATE work_orders SET actual_cost = ?, updated_at = ? WHERE id = ?",
        (total, utc_now_iso(), wo_id),
    )
    return total


async def add_line(
    db: aiosqlite.Connection,
    org_id: int,
    wo_id: int,
    payload: dict[str, Any],
    recalculate: bool = True,
):
    """
    Append a line to a work order.

    With ``recalculate`` off the work order's actual cost is left untouched,
    as when lines are copied from an estimate before any work is done.
    """
    await get_work_order(db, org_id, wo_id)
    await ensure_reference(db, "parts", org_id, payload.get("part_id"), "part_id")
    now = utc_now_iso()
    values = {
        **payload,
        "work_order_id": wo_id,
        "line_number": await next_line_number(db, "work_order_lines", "work_order_id", wo_id),
        "total_cost": line_total(payload.get("quantity", 1), payload.get("unit_cost", 0)),
        "created_at": now,
        "updated_at": now,
    }
    line_id = await insert_row(db, "work_order_lines", values)
    if recalculate:
        await recalculate_actual_cost(db, wo_id)
    return await get_line(db, org_id, wo_id, line_id)


async def update_line(
    db: aiosqlite.Connection,
    org_id: int,
    wo_id: int,
    line_id: int,
    changes: dict[str, Any],
):
    current = await get_line(db, org_id, wo_id, line_id)
    if "quantity" in changes or "unit_cost" in changes:
        changes["total_cost"] = line_total(
            changes.get("quantity", current["quantity"]),
            changes.get("unit_cost", current["unit_cost"]),
        )
    changes["updated_at"] = utc_now_iso()
    await update_row(db, "work_order_lines", line_id, changes)
    await recalculate_actual_cost(db, wo_id)
    return await get_line(db, org_id, wo_id, line_id)


async def delete_line(db: aiosqlite.Connection, org_id: int, wo_id: int, line_id: int) -> float:
    """
    Remove a line and return the work order's recomputed actual cost.

    The work order's status is left alone.
    """
    await get_line(db, org_id, wo_id, line_id)
    await db.execute("DELETE FROM work_order_lines WHERE id = ?", (line_id,))
    return await recalculate_actual_cost(db, wo_id)
