"""
Create and update helpers for assets, vendors and parts.
"""

from __future__ import annotations

from typing import Any

import aiosqlite

from db import fetch_one, insert_row, update_row, utc_now_iso
from errors import ValidationFailed
from org_scope import ensure_reference, get_scoped_row

BOOLEAN_COLUMNS = ("is_active", "compliance_override", "traceability_required", "classification_locked")


def _to_storage(values: dict[str, Any]) -> dict[str, Any]:
    return {key: int(value) if key in BOOLEAN_COLUMNS and value is not None else value for key, value in values.items()}


async def find_by_natural_key(
    db: aiosqlite.Connection,
    table_name: str,
    column: str,
    org_id: int,
    value: str,
):
    return await fetch_one(
        db,
        f"SELECT id FROM {table_name} WHERE org_id = ? AND {column} = ? COLLATE NOCASE LIMIT 1",
        (org_id, value.strip()),
    )


async def create_asset(db: aiosqlite.Connection, org_id: int, payload: dict[str, Any]):
    asset_number = payload["asset_number"].strip()
    if await find_by_natural_key(db, "assets", "asset_number", org_id, asset_number):
        raise ValidationFailed(f"Asset number '{asset_number}' already exists")
    now = utc_now_iso()
    asset_id = await insert_row(
        db,
        "assets",
        {**payload, "asset_number": asset_number, "org_id": org_id, "created_at": now, "updated_at": now},
    )
    return await get_scoped_row(db, "assets", org_id, asset_id, "Asset")


async def update_asset(db: aiosqlite.Connection, org_id: int, asset_id: int, changes: dict[str, Any]):
    await get_scoped_row(db, "assets", org_id, asset_id, "Asset")
    changes["updated_at"] = utc_now_iso()
    await update_row(db, "assets", asset_id, changes)
    return await get_scoped_row(db, "assets", org_id, asset_id, "Asset")


async def create_vendor(db: aiosqlite.Connection, org_id: int, payload: dict[str, Any]):
    name = payload["name"].strip()
    if await find_by_natural_key(db, "vendors", "name", org_id, name):
        raise ValidationFailed(f"Vendor '{name}' already exists")
    now = utc_now_iso()
    vendor_id = await insert_row(
        db,
        "vendors",
        {**payload, "name": name, "org_id": org_id, "created_at": now, "updated_at": now},
    )
    return await get_scoped_row(db, "vendors", org_id, vendor_id, "Vendor")


async def update_vendor(db: aiosqlite.Connection, org_id: int, vendor_id: int, changes: dict[str, Any]):
    await get_scoped_row(db, "vendors", org_id, vendor_id, "Vendor")
    changes["updated_at"] = utc_now_iso()
    await update_row(db, "vendors", vendor_id, _to_storage(changes))
    return await get_scoped_row(db, "vendors", org_id, vendor_id, "Vendor")


async def create_part(db: aiosqlite.Connection, org_id: int, payload: dict[str, Any]):
    part_number = payload["part_number"].strip()
    if await find_by_natural_key(db, "parts", "part_number", org_id, part_number):
        raise ValidationFailed(f"Part number '{part_number}' already exists")
    await ensure_reference(db, "vendors", org_id, payload.get("vendor_id"), "vendor_id")
    now = utc_now_iso()
    part_id = await insert_row(
        db,
        "parts",
        _to_storage({**payload, "part_number": part_number, "org_id": org_id, "created_at": now, "updated_at": now}),
    )
    return await get_scoped_row(db, "parts", org_id, part_id, "Part")


async def update_part(db: aiosqlite.Connection, org_id: int, part_id: int, changes: dict[str, Any]):
    await get_scoped_row(db, "parts", org_id, part_id, "Part")
    if "vendor_id" in changes:
        await ensure_reference(db, "vendors", org_id, changes["vendor_id"], "vendor_id")
    changes["updated_at"] = utc_now_iso()
    await update_row(db, "parts", part_id, _to_storage(changes))
    return await get_scoped_row(db, "parts", org_id, part_id, "Part")
