"""Component library API — list and create building components."""
import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import ensure_can_link_passport, get_current_user, require_operation
from app.db import get_db
from app.models.orm_models import Component, User
from app.models.passport_schema import ComponentCreate, ComponentOut
from app.services.access_policy import Operation, owner_filter

logger = logging.getLogger("passport-api.components")

router = APIRouter(prefix="/api/components", tags=["Components"])


@router.get("", response_model=List[ComponentOut])
async def list_components(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    query = select(Component).order_by(Component.created_at.desc(), Component.id.desc())
    owner_id = owner_filter(current_user.role, Operation.LIST, current_user.id)
    if owner_id is not None:
        query = query.where(Component.author_id == owner_id)
    result = await db.execute(query)
    return [ComponentOut.model_validate(c) for c in result.scalars().all()]


@router.post("", response_model=ComponentOut, status_code=201)
async def create_component(
    payload: ComponentCreate,
    current_user: User = Depends(require_operation(Operation.CREATE, "Viewers cannot create components")),
    db: AsyncSession = Depends(get_db),
):
    await ensure_can_link_passport(db, current_user, payload.passport_id)

    component = Component(
        name=payload.name,
        category=payload.category,
        description=payload.description,
        ifc_guid=payload.ifc_guid,
        passport_id=payload.passport_id,
        author_id=current_user.id,
    )
    db.add(component)
    await db.commit()
    await db.refresh(component)

    logger.info(f"Component {component.id} created", extra={"passport_id": component.passport_id})
    return ComponentOut.model_validate(component)
