"""
Bulk import of assets, parts and vendors from spreadsheet rows.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import aiosqlite
from pydantic import ValidationError

from config import MAX_IMPORT_ROWS
from db import fetch_all, insert_row, savepoint, update_row, utc_now_iso
from errors import ValidationFailed
import fleet_service
from fleet_models import AssetCreate, PartCreate, VendorCreate
from org_scope import get_scoped_row
from utils import clean_number, clean_text

logger = logging.getLogger(__name__)

MAX_STORED_ERRORS = 500

REQUIRED_FIELDS: dict[str, tuple[str, ...]] = {
    "assets": ("asset_number", "name"),
    "parts": ("part_number", "name"),
    "vendors": ("name",),
}

# Natural keys checked for duplicates, case-insensitively.
UNIQUE_FIELDS: dict[str, tuple[str, ...]] = {
    "assets": ("asset_number",),
    "parts": ("part_number", "barcode"),
    "vendors": ("name",),
}

NUMERIC_FIELDS: dict[str, dict[str, bool]] = {
    "assets": {"year": True, "current_meter_reading": False},
    "parts": {
        "unit_cost": False,
        "quantity_on_hand": True,
        "reorder_point": True,
        "reorder_quantity": True,
    },
    "vendors": {},
}

CREATE_MODELS = {
    "assets": AssetCreate,
    "parts": PartCreate,
    "vendors": VendorCreate,
}

CREATORS = {
    "assets": fleet_service.create_asset,
    "parts": fleet_service.create_part,
    "vendors": fleet_service.create_vendor,
}


def map_row(row: dict[str, Any], mappings: dict[str, str]) -> dict[str, Any]:
    """
    Rename source columns to field names, dropping blank cells.

    Without mappings the row's own keys are taken as field names.
    """
    pairs = mappings.items() if mappings else ((key, key) for key in row)
    mapped: dict[str, Any] = {}
    for source_column, field_name in pairs:
        value = row.get(source_column)
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        mapped[field_name] = value.strip() if isinstance(value, str) else value
    return mapped


def _row_error(row_number: int, message: str, error_type: str, field: str | None = None, value: Any = None):
    return {
        "row": row_number,
        "field": field,
        "value": None if value is None else clean_text(value),
        "message": message,
        "error_type": error_type,
    }


async def _existing_keys(db: aiosqlite.Connection, import_type: str, org_id: int) -> dict[str, set[str]]:
    keys: dict[str, set[str]] = {}
    for field_name in UNIQUE_FIELDS[import_type]:
        rows = await fetch_all(
            db,
            f"SELECT {field_name} AS value FROM {import_type} WHERE org_id = ? AND {field_name} IS NOT NULL",
            (org_id,),
        )
        keys[field_name] = {clean_text(row["value"]).lower() for row in rows}
    return keys


def _validation_errors(row_number: int, exc: ValidationError, mapped: dict[str, Any]) -> list[dict[str, Any]]:
    errors = []
    for error in exc.errors():
        field = str(error["loc"][0]) if error.get("loc") else None
        errors.append(
            _row_error(row_number, error["msg"], "invalid_value", field, mapped.get(field) if field else None)
        )
    return errors


async def run_import(db: aiosqlite.Connection, org_id: int, payload: dict[str, Any]):
    """
    Import every row of a batch and record the outcome as an import job.

    Rows are checked for required fields, duplicates (against stored records
    and earlier rows of the same batch) and field validity; each good row is
    written in its own savepoint so a bad one never takes the batch down.
    """
    import_type = payload["type"]
    rows = payload["rows"]
    mappings = payload.get("mappings") or {}
    if len(rows) > MAX_IMPORT_ROWS:
        raise ValidationFailed(f"Import is limited to {MAX_IMPORT_ROWS} rows per job")

    now = utc_now_iso()
    job_id = await insert_row(
        db,
        "import_jobs",
        {
            "org_id": org_id,
            "type": import_type,
            "file_name": payload.get("file_name") or "",
            "status": "processing",
            "total_rows": len(rows),
            "mappings": json.dumps(mappings),
            "started_at": now,
            "created_at": now,
        },
    )

    known_keys = await _existing_keys(db, import_type, org_id)
    errors: list[dict[str, Any]] = []
    success_rows = 0
    error_rows = 0

    for index, row in enumerate(rows):
        row_number = index + 1
        mapped = map_row(row, mappings)

        missing = [
            _row_error(row_number, f"{field_name} is required", "missing_required", field_name)
            for field_name in REQUIRED_FIELDS[import_type]
            if not clean_text(mapped.get(field_name))
        ]
        if missing:
            errors.extend(missing)
            error_rows += 1
            continue

        duplicate = None
        for field_name in UNIQUE_FIELDS[import_type]:
            key = clean_text(mapped.get(field_name)).lower()
            if key and key in known_keys[field_name]:
                duplicate = _row_error(
                    row_number,
                    f'Duplicate {field_name}: "{mapped[field_name]}" already exists',
                    "duplicate",
                    field_name,
                    mapped[field_name],
                )
                break
        if duplicate:
            errors.append(duplicate)
            error_rows += 1
            continue

        for field_name, integer in NUMERIC_FIELDS[import_type].items():
            if field_name in mapped:
                mapped[field_name] = clean_number(mapped[field_name], integer=integer)

        try:
            record = CREATE_MODELS[import_type](**mapped)
        except ValidationError as exc:
            errors.extend(_validation_errors(row_number, exc, mapped))
            error_rows += 1
            continue

        try:
            async with savepoint(db, "import_row"):
                await CREATORS[import_type](db, org_id, record.model_dump())
        except (ValidationFailed, aiosqlite.Error) as exc:
            errors.append(_row_error(row_number, str(exc), "invalid_value"))
            error_rows += 1
            continue

        for field_name in UNIQUE_FIELDS[import_type]:
            key = clean_text(mapped.get(field_name)).lower()
            if key:
                known_keys[field_name].add(key)
        success_rows += 1

    status = "failed" if success_rows == 0 and errors else "completed"
    await update_row(
        db,
        "import_jobs",
        job_id,
        {
            "status": status,
            "processed_rows": len(rows),
            "success_rows": success_rows,
            "error_rows": error_rows,
            "errors": json.dumps(errors[:MAX_STORED_ERRORS]),
            "completed_at": utc_now_iso(),
        },
    )
    logger.info(
        "Import job %s (%s): %d imported, %d rejected, status %s",
        job_id,
        import_type,
        success_rows,
        error_rows,
        status,
    )
    return await get_scoped_row(db, "import_jobs", org_id, job_id, "Import job")
