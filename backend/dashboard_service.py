"""
Per-organization dashboard counts.
"""

from __future__ import annotations

import aiosqlite

from db import fetch_all, utc_now_iso
from fleet_models import DashboardStats

OPEN_WORK_ORDER_STATUSES = ("open", "in_progress")
PENDING_REQUISITION_STATUSES = ("draft", "pending_approval", "approved")
OPEN_PURCHASE_ORDER_STATUSES = ("draft", "submitted", "approved", "ordered", "partial")


async def compute_dashboard_stats(db: aiosqlite.Connection, org_id: int) -> DashboardStats:
    """
    Count assets, work orders, stock and procurement for one organization.

    Rows are loaded and counted here on every call; nothing is cached.
    Missing stock figures count as zero.
    """
    stats = DashboardStats()
    now = utc_now_iso()

    for asset in await fetch_all(db, "SELECT status FROM assets WHERE org_id = ?", (org_id,)):
        stats.total_assets += 1
        if asset["status"] == "operational":
            stats.operational_assets += 1
        elif asset["status"] == "in_maintenance":
            stats.in_maintenance_assets += 1
        elif asset["status"] == "down":
            stats.down_assets += 1

    work_orders = await fetch_all(db, "SELECT status, due_date FROM work_orders WHERE org_id = ?", (org_id,))
    for work_order in work_orders:
        if work_order["status"] not in OPEN_WORK_ORDER_STATUSES:
            continue
        stats.open_work_orders += 1
        if work_order["due_date"] and work_order["due_date"] < now:
            stats.overdue_work_orders += 1

    parts = await fetch_all(
        db,
        "SELECT quantity_on_hand, reorder_point FROM parts WHERE org_id = ? AND is_active = 1",
        (org_id,),
    )
    for part in parts:
        if float(part["quantity_on_hand"] or 0) <= float(part["reorder_point"] or 0):
            stats.parts_low_stock += 1

    for requisition in await fetch_all(db, "SELECT status FROM purchase_requisitions WHERE org_id = ?", (org_id,)):
        if requisition["status"] in PENDING_REQUISITION_STATUSES:
            stats.pending_requisitions += 1

    for purchase_order in await fetch_all(db, "SELECT status FROM purchase_orders WHERE org_id = ?", (org_id,)):
        if purchase_order["status"] in OPEN_PURCHASE_ORDER_STATUSES:
            stats.open_purchase_orders += 1

    return stats
