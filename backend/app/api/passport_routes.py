"""
Passport API — CRUD, completion detail and BAMB JSON export.

Every write runs the same pipeline: merge the validated changes into the
record, recompute derived fields, score completion, derive the status, then
persist.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import ensure_authorized, get_current_user, require_operation
from app.db import get_db
from app.errors import NotFoundError, ValidationError
from app.models.orm_models import Component, MaterialPassport, User
from app.models.passport_schema import (
    CompletionDetailOut,
    PassportCreate,
    PassportOut,
    PassportUpdate,
    completion_detail_out,
    passport_out,
)
from app.services.access_policy import Operation, owner_filter
from app.services.completion_engine import compute_completion, derive_status
from app.services.derivation_engine import recompute_derived_fields
from app.services.export_engine import build_bamb_export, export_filename

logger = logging.getLogger("passport-api.passports")

router = APIRouter(prefix="/api/passports", tags=["Material Passports"])

# Stored columns the derivation engine reads
_DERIVATION_INPUTS = ("density", "volume", "gwp_a1", "gwp_a2", "gwp_a3", "gwp_total", "stage_d_reduction")


def _apply_changes(passport: MaterialPassport, changes: dict) -> None:
    """Merge client changes, then recompute derived fields, completion and status."""
    requested_status = changes.pop("status", None)
    for key in ("name", "category"):
        if key in changes and changes[key] is None:
            raise ValidationError(f"{key.capitalize()} cannot be empty")

    for key, value in changes.items():
        setattr(passport, key, value)

    record = {name: getattr(passport, name) for name in _DERIVATION_INPUTS}
    for key, value in recompute_derived_fields(record).items():
        setattr(passport, key, value)

    completion = compute_completion(passport)
    passport.status = derive_status(completion, requested=requested_status, current=passport.status)


async def _get_passport(db: AsyncSession, passport_id: int) -> MaterialPassport:
    passport = await db.get(MaterialPassport, passport_id)
    if passport is None:
        raise NotFoundError("Passport not found")
    return passport


@router.get("", response_model=List[PassportOut])
async def list_passports(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    query = select(MaterialPassport).order_by(MaterialPassport.updated_at.desc(), MaterialPassport.id.desc())
    owner_id = owner_filter(current_user.role, Operation.LIST, current_user.id)
    if owner_id is not None:
        query = query.where(MaterialPassport.author_id == owner_id)
    result = await db.execute(query)
    return [passport_out(p) for p in result.scalars().all()]


@router.get("/{passport_id}", response_model=PassportOut)
async def get_passport(
    passport_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    passport = await _get_passport(db, passport_id)
    ensure_authorized(current_user, Operation.READ, passport.author_id)
    return passport_out(passport)


@router.post("", response_model=PassportOut, status_code=201)
async def create_passport(
    payload: PassportCreate,
    current_user: User = Depends(require_operation(Operation.CREATE, "Viewers cannot create passports")),
    db: AsyncSession = Depends(get_db),
):
    passport = MaterialPassport(author_id=current_user.id)
    _apply_changes(passport, payload.changes())
    db.add(passport)
    await db.commit()
    await db.refresh(passport)

    logger.info(f"Passport created ({passport.status})", extra={"passport_id": passport.id})
    return passport_out(passport)


@router.put("/{passport_id}", response_model=PassportOut)
async def update_passport(
    passport_id: int,
    payload: PassportUpdate,
    current_user: User = Depends(require_operation(Operation.UPDATE, "Viewers cannot edit passports")),
    db: AsyncSession = Depends(get_db),
):
    passport = await _get_passport(db, passport_id)
    ensure_authorized(current_user, Operation.UPDATE, passport.author_id, "You can only edit your own passports")

    _apply_changes(passport, payload.changes())
    await db.commit()
    await db.refresh(passport)

    logger.info(f"Passport updated ({passport.status})", extra={"passport_id": passport.id})
    return passport_out(passport)


@router.delete("/{passport_id}", status_code=204)
async def delete_passport(
    passport_id: int,
    current_user: User = Depends(require_operation(Operation.DELETE, "Only authors can delete passports")),
    db: AsyncSession = Depends(get_db),
):
    passport = await _get_passport(db, passport_id)
    ensure_authorized(current_user, Operation.DELETE, passport.author_id, "Only authors can delete passports")

    # Components outlive their passport; only the link is cleared
    await db.execute(
        update(Component).where(Component.passport_id == passport_id).values(passport_id=None)
    )
    await db.delete(passport)
    await db.commit()

    logger.info("Passport deleted", extra={"passport_id": passport_id})
    return Response(status_code=204)


@router.get("/{passport_id}/completion", response_model=CompletionDetailOut)
async def get_completion(
    passport_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    passport = await _get_passport(db, passport_id)
    ensure_authorized(current_user, Operation.READ, passport.author_id)
    return completion_detail_out(passport)


@router.get("/{passport_id}/export/json")
async def export_passport_json(
    passport_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    passport = await _get_passport(db, passport_id)
    ensure_authorized(current_user, Operation.READ, passport.author_id)

    document = build_bamb_export(passport)
    logger.info("Passport exported", extra={"passport_id": passport_id})
    return JSONResponse(
        content=document,
        headers={"Content-Disposition": f'attachment; filename="{export_filename(passport_id)}"'},
    )
