"""
Run SMART classification over an organization's parts and store the results.

Part usage comes from work-order lines that reference the part; lines on
emergency work orders count as roadcalls, with the work order's actual hours
as downtime. Cancelled work orders are ignored.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any

import aiosqlite

from classification import month_keys, score_parts
from db import fetch_all, update_row, utc_now_iso
from org_scope import get_scoped_row

logger = logging.getLogger(__name__)


async def _usage_by_part(db: aiosqlite.Connection, org_id: int, since: str) -> dict[int, dict[str, float]]:
    rows = await fetch_all(
        db,
        """
        SELECT l.part_id,
               COALESCE(SUM(l.quantity), 0) AS qty,
               COALESCE(SUM(l.total_cost), 0) AS spend
        FROM work_order_lines AS l
        JOIN work_orders AS w ON w.id = l.work_order_id
        WHERE w.org_id = ?
          AND w.status != 'cancelled'
          AND l.part_id IS NOT NULL
          AND l.created_at >= ?
        GROUP BY l.part_id
        """,
        (org_id, since),
    )
    return {int(row["part_id"]): {"qty": float(row["qty"]), "spend": float(row["spend"])} for row in rows}


async def _roadcalls_by_part(db: aiosqlite.Connection, org_id: int, since: str) -> dict[int, dict[str, float]]:
    rows = await fetch_all(
        db,
        """
        SELECT part_id, COUNT(*) AS count, COALESCE(SUM(hours), 0) AS downtime_hours
        FROM (
            SELECT DISTINCT l.part_id, w.id AS work_order_id, COALESCE(w.actual_hours, 0) AS hours
            FROM work_order_lines AS l
            JOIN work_orders AS w ON w.id = l.work_order_id
            WHERE w.org_id = ?
              AND w.type = 'emergency'
              AND w.status != 'cancelled'
              AND l.part_id IS NOT NULL
              AND w.created_at >= ?
        )
        GROUP BY part_id
        """,
        (org_id, since),
    )
    return {
        int(row["part_id"]): {"count": int(row["count"]), "downtime_hours": float(row["downtime_hours"])}
        for row in rows
    }


async def _monthly_usage_by_part(
    db: aiosqlite.Connection,
    org_id: int,
    months: list[str],
) -> dict[int, list[float]]:
    rows = await fetch_all(
        db,
        """
        SELECT l.part_id, SUBSTR(l.created_at, 1, 7) AS month, COALESCE(SUM(l.quantity), 0) AS qty
        FROM work_order_lines AS l
        JOIN work_orders AS w ON w.id = l.work_order_id
        WHERE w.org_id = ?
          AND w.status != 'cancelled'
          AND l.part_id IS NOT NULL
          AND l.created_at >= ?
        GROUP BY l.part_id, month
        """,
        (org_id, f"{months[0]}-01"),
    )
    position = {month: index for index, month in enumerate(months)}
    monthly: dict[int, list[float]] = {}
    for row in rows:
        index = position.get(row["month"])
        if index is None:
            continue
        series = monthly.setdefault(int(row["part_id"]), [0.0] * len(months))
        series[index] += float(row["qty"])
    return monthly


async def run_classification(db: aiosqlite.Connection, org_id: int, window_months: int) -> dict[str, Any]:
    """
    Score every active part and write the new classes back.

    Parts with a locked classification are scored and reported but keep their
    stored classes.
    """
    months = month_keys(datetime.now(timezone.utc), window_months)
    since = f"{months[0]}-01"

    parts = await fetch_all(
        db,
        "SELECT * FROM parts WHERE org_id = ? AND is_active = 1 ORDER BY part_number COLLATE NOCASE ASC, id ASC",
        (org_id,),
    )
    scores = score_parts(
        parts,
        await _usage_by_part(db, org_id, since),
        await _roadcalls_by_part(db, org_id, since),
        await _monthly_usage_by_part(db, org_id, months),
    )

    now = utc_now_iso()
    stored = {int(part["id"]): part for part in parts}
    results = []
    parts_updated = 0
    for score in scores:
        part = stored[score.part_id]
        locked = bool(part["classification_locked"])
        changed = part["smart_class"] != score.smart_class or part["xyz_class"] != score.xyz_class
        if not locked:
            await update_row(
                db,
                "parts",
                score.part_id,
                {
                    "smart_class": score.smart_class,
                    "xyz_class": score.xyz_class,
                    "priority_score": score.total_score,
                    "last_classified_at": now,
                    "updated_at": now,
                },
            )
            if changed:
                parts_updated += 1
        results.append({**asdict(score), "locked": locked, "updated": changed and not locked})

    logger.info(
        "Classified %d parts for organization %s (%d changed, window %d months)",
        len(scores),
        org_id,
        parts_updated,
        window_months,
    )
    return {
        "window_months": window_months,
        "parts_processed": len(scores),
        "parts_updated": parts_updated,
        "results": results,
    }


async def override_classification(
    db: aiosqlite.Connection,
    org_id: int,
    part_id: int,
    smart_class: str,
    xyz_class: str | None,
):
    """Set a part's classes by hand and lock them against later runs."""
    await get_scoped_row(db, "parts", org_id, part_id, "Part")
    now = utc_now_iso()
    changes: dict[str, Any] = {
        "smart_class": smart_class,
        "classification_locked": 1,
        "last_classified_at": now,
        "updated_at": now,
    }
    if xyz_class:
        changes["xyz_class"] = xyz_class
    await update_row(db, "parts", part_id, changes)
    logger.info("Part %s classification locked at %s", part_id, smart_class)
    return await get_scoped_row(db, "parts", org_id, part_id, "Part")


async def unlock_classification(db: aiosqlite.Connection, org_id: int, part_id: int):
    await get_scoped_row(db, "parts", org_id, part_id, "Part")
    await update_row(db, "parts", part_id, {"classification_locked": 0, "updated_at": utc_now_iso()})
    return await get_scoped_row(db, "parts", org_id, part_id, "Part")
