"""
Driver vehicle inspection reports (DVIRs) and their defects.
"""

from __future__ import annotations

import logging
from typing import Any

import aiosqlite

from db import fetch_all, fetch_one, insert_row, update_row, utc_now_iso
from errors import InvalidTransition, NotFound
from org_scope import ensure_reference, get_scoped_row
from work_order_service import create_work_order

logger = logging.getLogger(__name__)

DEFECT_PRIORITIES = {
    "critical": "critical",
    "major": "high",
    "minor": "medium",
}


def dvir_status(defects: list[dict[str, Any]]) -> str:
    if any(defect["severity"] == "critical" for defect in defects):
        return "unsafe"
    if defects:
        return "defects_noted"
    return "safe"


async def list_defects(db: aiosqlite.Connection, dvir_id: int):
    return await fetch_all(
        db,
        "SELECT * FROM dvir_defects WHERE dvir_id = ? ORDER BY id ASC",
        (dvir_id,),
    )


async def get_dvir(db: aiosqlite.Connection, org_id: int, dvir_id: int):
    return await get_scoped_row(db, "dvirs", org_id, dvir_id, "DVIR")


async def get_defect(db: aiosqlite.Connection, org_id: int, defect_id: int):
    row = await fetch_one(
        db,
        """
        SELECT d.*, v.asset_id
        FROM dvir_defects AS d
        JOIN dvirs AS v ON v.id = d.dvir_id
        WHERE d.id = ? AND v.org_id = ?
        """,
        (defect_id, org_id),
    )
    if not row:
        raise NotFound("Defect not found")
    return row


async def create_dvir(db: aiosqlite.Connection, org_id: int, payload: dict[str, Any]):
    await ensure_reference(db, "assets", org_id, payload["asset_id"], "asset_id")
    defects = payload.pop("defects", [])
    now = utc_now_iso()
    dvir_id = await insert_row(
        db,
        "dvirs",
        {
            **payload,
            "org_id": org_id,
            "inspection_date": payload.get("inspection_date") or now,
            "status": dvir_status(defects),
            "pre_trip": int(payload.get("pre_trip", True)),
            "created_at": now,
        },
    )
    for defect in defects:
        await insert_row(db, "dvir_defects", {**defect, "dvir_id": dvir_id, "created_at": now})

    if defects:
        logger.info("DVIR %s on asset %s recorded %d defects", dvir_id, payload["asset_id"], len(defects))
    return await get_dvir(db, org_id, dvir_id)


async def resolve_defect(db: aiosqlite.Connection, org_id: int, defect_id: int):
    defect = await get_defect(db, org_id, defect_id)
    if defect["resolved"]:
        raise InvalidTransition("Defect is already resolved")
    await update_row(db, "dvir_defects", defect_id, {"resolved": 1, "resolved_at": utc_now_iso()})
    return await get_defect(db, org_id, defect_id)


async def create_work_order_from_defect(db: aiosqlite.Connection, org_id: int, defect_id: int):
    """
    Open a corrective work order for a reported defect and link it back.
    """
    defect = await get_defect(db, org_id, defect_id)
    if defect["work_order_id"] is not None:
        raise InvalidTransition("Defect already has a work order")
    if defect["resolved"]:
        raise InvalidTransition("Defect is already resolved")

    work_order, warnings = await create_work_order(
        db,
        org_id,
        {
            "title": f"DVIR defect: {defect['category']}",
            "description": defect["description"],
            "type": "corrective",
            "status": "open",
            "priority": DEFECT_PRIORITIES[defect["severity"]],
            "asset_id": defect["asset_id"],
            "notes": f"Reported on DVIR {defect['dvir_id']}",
        },
    )
    await update_row(db, "dvir_defects", defect_id, {"work_order_id": int(work_order["id"])})
    logger.info("Defect %s opened work order %s", defect_id, work_order["work_order_number"])
    return work_order, warnings
