"""
FastAPI router for organizations and their workflow settings.
"""

from __future__ import annotations

import logging

import aiosqlite
from fastapi import APIRouter, Depends

from db import get_db, insert_row, unit_of_work, update_row, utc_now_iso
from errors import ValidationFailed
from fleet_models import OrganizationCreate, OrganizationResponse, OrganizationUpdate
from org_scope import get_organization_row, require_org

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orgs", tags=["organizations"])


@router.post("", response_model=OrganizationResponse, status_code=201)
async def create_organization(payload: OrganizationCreate):
    now = utc_now_iso()
    try:
        async with unit_of_work() as db:
            org_id = await insert_row(
                db,
                "organizations",
                {
                    "name": payload.name.strip(),
                    "slug": payload.slug,
                    "require_estimate_approval": int(payload.require_estimate_approval),
                    "created_at": now,
                    "updated_at": now,
                },
            )
            row = await get_organization_row(db, org_id)
    except aiosqlite.IntegrityError as exc:
        raise ValidationFailed(f"Organization slug '{payload.slug}' is already taken") from exc

    logger.info("Created organization %s (%s)", org_id, payload.slug)
    return OrganizationResponse(**dict(row))


@router.get("/{org_id}", response_model=OrganizationResponse)
async def get_organization(org_id: int = Depends(require_org)):
    db = await get_db()
    try:
        return OrganizationResponse(**dict(await get_organization_row(db, org_id)))
    finally:
        await db.close()


@router.patch("/{org_id}", response_model=OrganizationResponse)
async def update_organization(payload: OrganizationUpdate, org_id: int = Depends(require_org)):
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationFailed("No update fields provided")
    if "require_estimate_approval" in changes:
        changes["require_estimate_approval"] = int(changes["require_estimate_approval"])
    changes["updated_at"] = utc_now_iso()

    async with unit_of_work() as db:
        await update_row(db, "organizations", org_id, changes)
        row = await get_organization_row(db, org_id)
    return OrganizationResponse(**dict(row))
