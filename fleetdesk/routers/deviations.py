"""
Deviations router: GET /v1/deviations, POST /v1/deviations/{id}/acknowledge
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fleetdesk.database import get_db
from fleetdesk.middleware.auth import CurrentUser, require_roles
from fleetdesk.models.driver import Driver
from fleetdesk.models.route_deviation import RouteDeviationWarning
from fleetdesk.schemas.schemas import DeviationNotification, DeviationWarningResponse
from fleetdesk.services.deviation import format_notification

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/v1/deviations", tags=["Deviations"])


@router.get("", response_model=list[DeviationNotification])
async def list_deviations(
    limit: int = 100,
    user: CurrentUser = Depends(require_roles("admin")),
    db: AsyncSession = Depends(get_db),
):
    """Admin notification feed, newest first."""
    result = await db.execute(
        select(RouteDeviationWarning)
        .order_by(RouteDeviationWarning.timestamp.desc())
        .limit(min(max(limit, 1), 500))
    )
    warnings = result.scalars().all()

    driver_ids = {w.driver_id for w in warnings if w.driver_id}
    names: dict[str, str] = {}
    if driver_ids:
        rows = await db.execute(select(Driver.id, Driver.name).where(Driver.id.in_(driver_ids)))
        names = {row.id: row.name for row in rows}

    return [
        DeviationNotification(
            id=w.id,
            message=format_notification(w, names.get(w.driver_id) if w.driver_id else None),
            timestamp=w.timestamp,
            warning=DeviationWarningResponse.model_validate(w),
        )
        for w in warnings
    ]


@router.post("/{warning_id}/acknowledge", response_model=DeviationWarningResponse)
async def acknowledge(
    warning_id: str,
    user: CurrentUser = Depends(require_roles("admin", "driver")),
    db: AsyncSession = Depends(get_db),
):
    """Stamp the admin or driver acknowledgement; an existing stamp is kept."""
    warning = await db.get(RouteDeviationWarning, warning_id)
    if warning is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Warning not found")

    now = datetime.now(timezone.utc)
    if user.role == "admin":
        if warning.acknowledged_by_admin_at is None:
            warning.acknowledged_by_admin_at = now
    else:
        if warning.driver_id != user.id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not your warning")
        if warning.acknowledged_by_driver_at is None:
            warning.acknowledged_by_driver_at = now

    await db.commit()
    logger.info("Warning %s acknowledged by %s %s", warning_id, user.role, user.id)
    return DeviationWarningResponse.model_validate(warning)
