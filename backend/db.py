"""
SQLite database helpers for the fleet maintenance store.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from datetime import datetime, timezone
from typing import AsyncIterator

import aiosqlite

from config import DB_PATH

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS organizations (
    id                        INTEGER PRIMARY KEY AUTOINCREMENT,
    name                      TEXT    NOT NULL,
    slug                      TEXT    NOT NULL UNIQUE COLLATE NOCASE,
    require_estimate_approval INTEGER NOT NULL DEFAULT 0,
    created_at                TEXT    NOT NULL,
    updated_at                TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS assets (
    id                    INTEGER PRIMARY KEY AUTOINCREMENT,
    org_id                INTEGER NOT NULL,
    asset_number          TEXT    NOT NULL,
    name                  TEXT    NOT NULL,
    description           TEXT    DEFAULT '',
    type                  TEXT    NOT NULL DEFAULT 'vehicle',
    status                TEXT    NOT NULL DEFAULT 'operational',
    manufacturer          TEXT,
    model                 TEXT,
    serial_number         TEXT,
    year                  INTEGER,
    meter_type            TEXT,
    current_meter_reading REAL,
    notes                 TEXT    DEFAULT '',
    created_at            TEXT    NOT NULL,
    updated_at            TEXT    NOT NULL,
    FOREIGN KEY (org_id) REFERENCES organizations(id) ON DELETE CASCADE
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_assets_org_number
ON assets(org_id, asset_number COLLATE NOCASE);

CREATE INDEX IF NOT EXISTS idx_assets_org_status
ON assets(org_id, status);

CREATE TABLE IF NOT EXISTS vendors (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    org_id       INTEGER NOT NULL,
    name         TEXT    NOT NULL,
    code         TEXT,
    contact_name TEXT,
    email        TEXT,
    phone        TEXT,
    notes        TEXT    DEFAULT '',
    is_active    INTEGER NOT NULL DEFAULT 1,
    created_at   TEXT    NOT NULL,
    updated_at   TEXT    NOT NULL,
    FOREIGN KEY (org_id) REFERENCES organizations(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS parts (
    id                    INTEGER PRIMARY KEY AUTOINCREMENT,
    org_id                INTEGER NOT NULL,
    part_number           TEXT    NOT NULL,
    name                  TEXT    NOT NULL,
    description           TEXT    DEFAULT '',
    category              TEXT,
    unit_of_measure       TEXT    NOT NULL DEFAULT 'each',
    quantity_on_hand      REAL,
    reorder_point         REAL,
    reorder_quantity      REAL,
    unit_cost             REAL,
    barcode               TEXT,
    vendor_id             INTEGER,
    bin_location          TEXT,
    safety_system         TEXT,
    failure_severity      INTEGER NOT NULL DEFAULT 1,
    compliance_override   INTEGER NOT NULL DEFAULT 0,
    traceability_required INTEGER NOT NULL DEFAULT 0,
    lead_time_days        INTEGER,
    smart_class           TEXT,
    xyz_class             TEXT,
    priority_score        REAL,
    classification_locked INTEGER NOT NULL DEFAULT 0,
    last_classified_at    TEXT,
    is_active             INTEGER NOT NULL DEFAULT 1,
    created_at            TEXT    NOT NULL,
    updated_at            TEXT    NOT NULL,
    FOREIGN KEY (org_id) REFERENCES organizations(id) ON DELETE CASCADE,
    FOREIGN KEY (vendor_id) REFERENCES vendors(id) ON DELETE SET NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_parts_org_number
ON parts(org_id, part_number COLLATE NOCASE);

CREATE TABLE IF NOT EXISTS work_orders (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    org_id            INTEGER NOT NULL,
    work_order_number TEXT    NOT NULL,
    title             TEXT    NOT NULL,
    description       TEXT    DEFAULT '',
    type              TEXT    NOT NULL DEFAULT 'corrective',
    status            TEXT    NOT NULL DEFAULT 'open',
    priority          TEXT    NOT NULL DEFAULT 'medium',
    asset_id          INTEGER,
    assigned_to       TEXT,
    due_date          TEXT,
    start_date        TEXT,
    completed_date    TEXT,
    estimated_hours   REAL,
    actual_hours      REAL,
    estimated_cost    REAL,
    actual_cost       REAL,
    notes             TEXT    DEFAULT '',
    created_at        TEXT    NOT NULL,
    updated_at        TEXT    NOT NULL,
    FOREIGN KEY (org_id) REFERENCES organizations(id) ON DELETE CASCADE,
    FOREIGN KEY (asset_id) REFERENCES assets(id) ON DELETE SET NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_wo_org_number_unique
ON work_orders(org_id, work_order_number);

CREATE INDEX IF NOT EXISTS idx_wo_org_status
ON work_orders(org_id, status);

CREATE INDEX IF NOT EXISTS idx_wo_asset
ON work_orders(asset_id);

CREATE TABLE IF NOT EXISTS work_order_lines (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    work_order_id INTEGER NOT NULL,
    line_number   INTEGER NOT NULL,
    description   TEXT    NOT NULL,
    status        TEXT    NOT NULL DEFAULT 'pending',
    vmrs_code     TEXT,
    vmrs_title    TEXT,
    part_id       INTEGER,
    quantity      REAL    NOT NULL DEFAULT 1,
    unit_cost     REAL    NOT NULL DEFAULT 0,
    total_cost    REAL    NOT NULL DEFAULT 0,
    labor_hours   REAL,
    labor_cost    REAL,
    parts_cost    REAL,
    notes         TEXT    DEFAULT '',
    created_at    TEXT    NOT NULL,
    updated_at    TEXT    NOT NULL,
    FOREIGN KEY (work_order_id) REFERENCES work_orders(id) ON DELETE CASCADE,
    FOREIGN KEY (part_id) REFERENCES parts(id) ON DELETE SET NULL
);

CREATE INDEX IF NOT EXISTS idx_wo_lines_parent
ON work_order_lines(work_order_id, line_number);

CREATE TABLE IF NOT EXISTS purchase_requisitions (
    id                 INTEGER PRIMARY KEY AUTOINCREMENT,
    org_id             INTEGER NOT NULL,
    requisition_number TEXT    NOT NULL,
    title              TEXT    NOT NULL,
    description        TEXT    DEFAULT '',
    status             TEXT    NOT NULL DEFAULT 'draft',
    vendor_id          INTEGER,
    requested_by       TEXT,
    total_amount       REAL    NOT NULL DEFAULT 0,
    notes              TEXT    DEFAULT '',
    approved_at        TEXT,
    rejected_at        TEXT,
    created_at         TEXT    NOT NULL,
    updated_at         TEXT    NOT NULL,
    FOREIGN KEY (org_id) REFERENCES organizations(id) ON DELETE CASCADE,
    FOREIGN KEY (vendor_id) REFERENCES vendors(id) ON DELETE SET NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_req_org_number_unique
ON purchase_requisitions(org_id, requisition_number);

CREATE TABLE IF NOT EXISTS purchase_requisition_lines (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    requisition_id INTEGER NOT NULL,
    part_id        INTEGER,
    description    TEXT    NOT NULL,
    quantity       REAL    NOT NULL,
    unit_cost      REAL    NOT NULL DEFAULT 0,
    total_cost     REAL    NOT NULL DEFAULT 0,
    created_at     TEXT    NOT NULL,
    FOREIGN KEY (requisition_id) REFERENCES purchase_requisitions(id) ON DELETE CASCADE,
    FOREIGN KEY (part_id) REFERENCES parts(id) ON DELETE SET NULL
);

CREATE TABLE IF NOT EXISTS purchase_orders (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    org_id         INTEGER NOT NULL,
    po_number      TEXT    NOT NULL,
    requisition_id INTEGER,
    vendor_id      INTEGER,
    title          TEXT    DEFAULT '',
    status         TEXT    NOT NULL DEFAULT 'draft',
    order_date     TEXT,
    received_date  TEXT,
    total_amount   REAL    NOT NULL DEFAULT 0,
    notes          TEXT    DEFAULT '',
    created_at     TEXT    NOT NULL,
    updated_at     TEXT    NOT NULL,
    FOREIGN KEY (org_id) REFERENCES organizations(id) ON DELETE CASCADE,
    FOREIGN KEY (requisition_id) REFERENCES purchase_requisitions(id),
    FOREIGN KEY (vendor_id) REFERENCES vendors(id) ON DELETE SET NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_po_org_number_unique
ON purchase_orders(org_id, po_number);

CREATE UNIQUE INDEX IF NOT EXISTS idx_po_requisition_unique
ON purchase_orders(requisition_id)
WHERE requisition_id IS NOT NULL;

CREATE TABLE IF NOT EXISTS purchase_order_lines (
    id                INTEGER PRIMARY KEY AUTOINCREMENT,
    po_id             INTEGER NOT NULL,
    part_id           INTEGER,
    description       TEXT    NOT NULL,
    quantity_ordered  REAL    NOT NULL,
    quantity_received REAL    NOT NULL DEFAULT 0,
    unit_cost         REAL    NOT NULL DEFAULT 0,
    total_cost        REAL    NOT NULL DEFAULT 0,
    created_at        TEXT    NOT NULL,
    FOREIGN KEY (po_id) REFERENCES purchase_orders(id) ON DELETE CASCADE,
    FOREIGN KEY (part_id) REFERENCES parts(id) ON DELETE SET NULL
);

CREATE TABLE IF NOT EXISTS estimates (
    id                         INTEGER PRIMARY KEY AUTOINCREMENT,
    org_id                     INTEGER NOT NULL,
    estimate_number            TEXT    NOT NULL,
    asset_id                   INTEGER NOT NULL,
    title                      TEXT    DEFAULT '',
    description                TEXT    DEFAULT '',
    status                     TEXT    NOT NULL DEFAULT 'draft',
    parts_total                REAL    NOT NULL DEFAULT 0,
    labor_total                REAL    NOT NULL DEFAULT 0,
    markup_percent             REAL    NOT NULL DEFAULT 0,
    markup_total               REAL    NOT NULL DEFAULT 0,
    grand_total                REAL    NOT NULL DEFAULT 0,
    notes                      TEXT    DEFAULT '',
    valid_until                TEXT,
    converted_to_work_order_id INTEGER,
    created_at                 TEXT    NOT NULL,
    updated_at                 TEXT    NOT NULL,
    FOREIGN KEY (org_id) REFERENCES organizations(id) ON DELETE CASCADE,
    FOREIGN KEY (asset_id) REFERENCES assets(id),
    FOREIGN KEY (converted_to_work_order_id) REFERENCES work_orders(id)
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_est_org_number_unique
ON estimates(org_id, estimate_number);

CREATE TABLE IF NOT EXISTS estimate_lines (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    estimate_id      INTEGER NOT NULL,
    line_number      INTEGER NOT NULL,
    line_type        TEXT    NOT NULL,
    part_id          INTEGER,
    part_number      TEXT,
    description      TEXT    NOT NULL,
    vmrs_code        TEXT,
    vmrs_title       TEXT,
    quantity         REAL    NOT NULL,
    unit_cost        REAL    NOT NULL,
    total_cost       REAL    NOT NULL,
    quantity_on_hand REAL,
    needs_ordering   INTEGER NOT NULL DEFAULT 0,
    notes            TEXT    DEFAULT '',
    created_at       TEXT    NOT NULL,
    updated_at       TEXT    NOT NULL,
    FOREIGN KEY (estimate_id) REFERENCES estimates(id) ON DELETE CASCADE,
    FOREIGN KEY (part_id) REFERENCES parts(id) ON DELETE SET NULL
);

CREATE INDEX IF NOT EXISTS idx_est_lines_parent
ON estimate_lines(estimate_id, line_number);

CREATE TABLE IF NOT EXISTS pm_schedules (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    org_id         INTEGER NOT NULL,
    name           TEXT    NOT NULL,
    description    TEXT    DEFAULT '',
    interval_type  TEXT    NOT NULL,
    interval_value INTEGER NOT NULL,
    priority       TEXT    NOT NULL DEFAULT 'medium',
    task_checklist TEXT    NOT NULL DEFAULT '[]',
    is_active      INTEGER NOT NULL DEFAULT 1,
    created_at     TEXT    NOT NULL,
    updated_at     TEXT    NOT NULL,
    FOREIGN KEY (org_id) REFERENCES organizations(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS dvirs (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    org_id          INTEGER NOT NULL,
    asset_id        INTEGER NOT NULL,
    inspector       TEXT,
    inspection_date TEXT    NOT NULL,
    status          TEXT    NOT NULL DEFAULT 'safe',
    meter_reading   REAL,
    pre_trip        INTEGER NOT NULL DEFAULT 1,
    notes           TEXT    DEFAULT '',
    created_at      TEXT    NOT NULL,
    FOREIGN KEY (org_id) REFERENCES organizations(id) ON DELETE CASCADE,
    FOREIGN KEY (asset_id) REFERENCES assets(id)
);

CREATE TABLE IF NOT EXISTS dvir_defects (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    dvir_id       INTEGER NOT NULL,
    category      TEXT    NOT NULL,
    description   TEXT    NOT NULL,
    severity      TEXT    NOT NULL,
    work_order_id INTEGER,
    resolved      INTEGER NOT NULL DEFAULT 0,
    resolved_at   TEXT,
    created_at    TEXT    NOT NULL,
    FOREIGN KEY (dvir_id) REFERENCES dvirs(id) ON DELETE CASCADE,
    FOREIGN KEY (work_order_id) REFERENCES work_orders(id) ON DELETE SET NULL
);

CREATE TABLE IF NOT EXISTS feedback (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    org_id      INTEGER NOT NULL,
    type        TEXT    NOT NULL,
    status      TEXT    NOT NULL DEFAULT 'new',
    priority    TEXT    NOT NULL DEFAULT 'medium',
    title       TEXT    NOT NULL,
    description TEXT    NOT NULL,
    page_url    TEXT,
    votes       INTEGER NOT NULL DEFAULT 0,
    created_at  TEXT    NOT NULL,
    updated_at  TEXT    NOT NULL,
    FOREIGN KEY (org_id) REFERENCES organizations(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS import_jobs (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    org_id         INTEGER NOT NULL,
    type           TEXT    NOT NULL,
    file_name      TEXT    DEFAULT '',
    status         TEXT    NOT NULL DEFAULT 'processing',
    total_rows     INTEGER NOT NULL DEFAULT 0,
    processed_rows INTEGER NOT NULL DEFAULT 0,
    success_rows   INTEGER NOT NULL DEFAULT 0,
    error_rows     INTEGER NOT NULL DEFAULT 0,
    errors         TEXT    NOT NULL DEFAULT '[]',
    mappings       TEXT    NOT NULL DEFAULT '{}',
    started_at     TEXT,
    completed_at   TEXT,
    created_at     TEXT    NOT NULL,
    FOREIGN KEY (org_id) REFERENCES organizations(id) ON DELETE CASCADE
);
"""


async def _column_exists(db: aiosqlite.Connection, table_name: str, column_name: str) -> bool:
    cursor = await db.execute(f"PRAGMA table_info({table_name})")
    rows = await cursor.fetchall()
    await cursor.close()
    return any(str(row["name"]) == column_name for row in rows)


async def _ensure_column_exists(
    db: aiosqlite.Connection,
    table_name: str,
    column_name: str,
    definition_sql: str,
) -> None:
    if await _column_exists(db, table_name, column_name):
        return
    await db.execute(f"ALTER TABLE {table_name} ADD COLUMN {column_name} {definition_sql}")


async def _ensure_legacy_columns(db: aiosqlite.Connection) -> None:
    # Databases created before rejection stamps and approval policy existed.
    await _ensure_column_exists(db, "purchase_requisitions", "rejected_at", "TEXT")
    await _ensure_column_exists(
        db,
        "organizations",
        "require_estimate_approval",
        "INTEGER NOT NULL DEFAULT 0",
    )
    # Parts tables created before SMART classification.
    for column_name, definition_sql in (
        ("safety_system", "TEXT"),
        ("failure_severity", "INTEGER NOT NULL DEFAULT 1"),
        ("compliance_override", "INTEGER NOT NULL DEFAULT 0"),
        ("traceability_required", "INTEGER NOT NULL DEFAULT 0"),
        ("lead_time_days", "INTEGER"),
        ("smart_class", "TEXT"),
        ("xyz_class", "TEXT"),
        ("priority_score", "REAL"),
        ("classification_locked", "INTEGER NOT NULL DEFAULT 0"),
        ("last_classified_at", "TEXT"),
    ):
        await _ensure_column_exists(db, "parts", column_name, definition_sql)


async def get_db() -> aiosqlite.Connection:
    """
    Open a configured SQLite connection.
    """
    db = await aiosqlite.connect(Path(DB_PATH))
    db.row_factory = aiosqlite.Row
    await db.execute("PRAGMA foreign_keys = ON")
    await db.execute("PRAGMA journal_mode = WAL")
    await db.execute("PRAGMA synchronous = NORMAL")
    await db.execute("PRAGMA cache_size = -8000")
    await db.execute("PRAGMA busy_timeout = 5000")
    return db


@asynccontextmanager
async def unit_of_work() -> AsyncIterator[aiosqlite.Connection]:
    """
    Open a connection inside one write transaction.

    Everything executed on the yielded connection commits together when the
    block exits normally and rolls back when it raises.
    """
    db = await get_db()
    try:
        await db.execute("BEGIN IMMEDIATE")
        try:
            yield db
        except BaseException:
            await db.rollback()
            raise
        await db.commit()
    finally:
        await db.close()


@asynccontextmanager
async def savepoint(db: aiosqlite.Connection, name: str) -> AsyncIterator[None]:
    """
    Nest a rollback scope inside an open transaction.
    """
    await db.execute(f"SAVEPOINT {name}")
    try:
        yield
    except BaseException:
        await db.execute(f"ROLLBACK TO SAVEPOINT {name}")
        await db.execute(f"RELEASE SAVEPOINT {name}")
        raise
    await db.execute(f"RELEASE SAVEPOINT {name}")


async def init_db() -> None:
    """
    Initialize database schema at application startup.
    """
    db = await get_db()
    try:
        await db.executescript(SCHEMA_SQL)
        await _ensure_legacy_columns(db)
        await db.commit()
    finally:
        await db.close()


async def fetch_one(db: aiosqlite.Connection, query: str, params=()):
    cursor = await db.execute(query, params)
    row = await cursor.fetchone()
    await cursor.close()
    return row


async def fetch_all(db: aiosqlite.Connection, query: str, params=()):
    cursor = await db.execute(query, params)
    rows = await cursor.fetchall()
    await cursor.close()
    return rows


async def insert_row(db: aiosqlite.Connection, table_name: str, values: dict) -> int:
    columns = ", ".join(values.keys())
    placeholders = ", ".join("?" for _ in values)
    cursor = await db.execute(
        f"INSERT INTO {table_name} ({columns}) VALUES ({placeholders})",
        list(values.values()),
    )
    new_id = int(cursor.lastrowid)
    await cursor.close()
    return new_id


async def update_row(db: aiosqlite.Connection, table_name: str, row_id: int, changes: dict) -> int:
    if not changes:
        return 0
    set_clause = ", ".join(f"{key} = ?" for key in changes.keys())
    cursor = await db.execute(
        f"UPDATE {table_name} SET {set_clause} WHERE id = ?",
        [*changes.values(), row_id],
    )
    changed_rows = cursor.rowcount
    await cursor.close()
    return changed_rows


def utc_now_iso() -> str:
    """
    Return current UTC timestamp as ISO 8601.
    """
    return datetime.now(timezone.utc).isoformat()
