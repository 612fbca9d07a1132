"""
Helpers for organization lookup and tenant-scoped row access.
"""

from __future__ import annotations

from typing import Any

import aiosqlite

from db import fetch_one, get_db
from errors import NotFound, ValidationFailed


async def get_organization_row(db: aiosqlite.Connection, org_id: int):
    return await fetch_one(
        db,
        """
        SELECT id, name, slug, require_estimate_approval, created_at, updated_at
        FROM organizations
        WHERE id = ?
        LIMIT 1
        """,
        (org_id,),
    )


async def ensure_org_exists(org_id: int) -> None:
    db = await get_db()
    try:
        row = await get_organization_row(db, org_id)
    finally:
        await db.close()
    if not row:
        raise NotFound("Organization not found")


async def require_org(org_id: int) -> int:
    """
    Route dependency: resolve `{org_id}` or answer 404.
    """
    await ensure_org_exists(org_id)
    return org_id


async def get_scoped_row(
    db: aiosqlite.Connection,
    table_name: str,
    org_id: int,
    row_id: int,
    label: str,
):
    row = await fetch_one(
        db,
        f"SELECT * FROM {table_name} WHERE org_id = ? AND id = ? LIMIT 1",
        (org_id, row_id),
    )
    if not row:
        raise NotFound(f"{label} not found")
    return row


async def ensure_reference(
    db: aiosqlite.Connection,
    table_name: str,
    org_id: int,
    row_id: int | None,
    field_name: str,
) -> Any:
    """
    Check that an optional foreign key points at a row of the same organization.
    """
    if row_id is None:
        return None
    row = await fetch_one(
        db,
        f"SELECT * FROM {table_name} WHERE org_id = ? AND id = ? LIMIT 1",
        (org_id, row_id),
    )
    if not row:
        raise ValidationFailed(f"{field_name} does not reference an existing record")
    return row
