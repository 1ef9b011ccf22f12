"""
Settlements router: GET /v1/settlements/reconciliations
"""
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fleetdesk.database import get_db
from fleetdesk.middleware.auth import CurrentUser, require_roles
from fleetdesk.models.reconciliation import SettlementReconciliation
from fleetdesk.schemas.schemas import ReconciliationResponse

router = APIRouter(prefix="/v1/settlements", tags=["Settlements"])


@router.get("/reconciliations", response_model=list[ReconciliationResponse])
async def list_reconciliations(
    user: CurrentUser = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
):
    """Settlements that stopped part-way and still need attention."""
    result = await db.execute(
        select(SettlementReconciliation)
        .where(SettlementReconciliation.resolved_at.is_(None))
        .order_by(SettlementReconciliation.created_at.desc())
    )
    return [
        ReconciliationResponse(
            id=r.id,
            trip_id=r.trip_id,
            failed_step=r.failed_step,
            pending_steps=[s for s in r.pending_steps.split(",") if s],
            error=r.error,
            created_at=r.created_at,
        )
        for r in result.scalars().all()
    ]
