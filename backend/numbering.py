"""
Human-readable document numbers (WO-2026-0001, PO-2026-0001, ...).
"""

from __future__ import annotations

from datetime import datetime, timezone

import aiosqlite

NUMBERED_COLUMNS = {
    "work_orders": "work_order_number",
    "purchase_requisitions": "requisition_number",
    "purchase_orders": "po_number",
    "estimates": "estimate_number",
}

PREFIXES = {
    "work_orders": "WO",
    "purchase_requisitions": "REQ",
    "purchase_orders": "PO",
    "estimates": "EST",
}


async def next_number(db: aiosqlite.Connection, org_id: int, table_name: str) -> str:
    """
    Allocate the next per-organization, per-year sequence number for a table.

    Must run inside the caller's write transaction so the read and the insert
    that uses the number are not interleaved with another writer.
    """
    column = NUMBERED_COLUMNS[table_name]
    year_prefix = f"{PREFIXES[table_name]}-{datetime.now(timezone.utc).year}-"
    cursor = await db.execute(
        f"""
        SELECT COALESCE(MAX(CAST(SUBSTR({column}, ?) AS INTEGER)), 0) + 1 AS next_seq
        FROM {table_name}
        WHERE org_id = ? AND {column} LIKE ?
        """,
        (len(year_prefix) + 1, org_id, f"{year_prefix}%"),
    )
    row = await cursor.fetchone()
    await cursor.close()
    next_seq = int(row["next_seq"] if row else 1)
    return f"{year_prefix}{next_seq:04d}"
