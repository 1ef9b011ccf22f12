"""
Consignments router: POST /v1/consignments, GET /v1/consignments
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fleetdesk.database import get_db
from fleetdesk.middleware.auth import CurrentUser, require_roles
from fleetdesk.models.consignment import Consignment
from fleetdesk.schemas.schemas import ConsignmentCreateRequest, ConsignmentResponse, ConsignmentStatusEnum
from fleetdesk.services.assignment import create_consignment

router = APIRouter(prefix="/v1/consignments", tags=["Consignments"])


@router.post("", response_model=ConsignmentResponse, status_code=status.HTTP_201_CREATED)
async def create(
    payload: ConsignmentCreateRequest,
    user: CurrentUser = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
):
    """Book a consignment. It stays pending until a trip is assigned."""
    return await create_consignment(
        db,
        code=payload.code,
        consignment_type=payload.type.value,
        vehicle_type=payload.vehicle_type,
        weight=payload.weight,
        pickup_location=payload.pickup_location,
        drop_location=payload.drop_location,
        description=payload.description,
    )


@router.get("", response_model=list[ConsignmentResponse])
async def list_consignments(
    status_filter: Optional[ConsignmentStatusEnum] = Query(default=None, alias="status"),
    user: CurrentUser = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
):
    query = select(Consignment).order_by(Consignment.created_at.desc())
    if status_filter is not None:
        query = query.where(Consignment.status == status_filter.value)
    result = await db.execute(query)
    return result.scalars().all()
