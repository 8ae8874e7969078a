"""
Admin Operations API Endpoints.

Dead letter queue inspection and retry of parked arbitration follow-ups.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import List, Optional

from brokerage.app.db.session import get_db
from brokerage.app.models.dlq import DeadLetterQueue, DLQStatus
from brokerage.app.models.enums import UserRole
from brokerage.app.core.dependencies import get_arbitration_service
from brokerage.app.core.guards import require_role
from brokerage.app.domain.arbitration.arbitration_service import ArbitrationService, FOLLOWUP_TASK
from brokerage.app.schemas.arbitration import ArbitrationResponse
from brokerage.app.schemas.ops import DLQEntryResponse

router = APIRouter(prefix="/admin/ops", tags=["Admin - Ops"])


@router.get("/dlq", response_model=List[DLQEntryResponse])
async def list_dlq_items(
    status_filter: Optional[DLQStatus] = Query(None, alias="status"),
    transport_request_id: Optional[int] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """List dead letter entries, newest first."""
    query = select(DeadLetterQueue).order_by(DeadLetterQueue.created_at.desc(), DeadLetterQueue.id.desc())
    if status_filter:
        query = query.where(DeadLetterQueue.status == status_filter)
    if transport_request_id:
        query = query.where(DeadLetterQueue.transport_request_id == transport_request_id)

    result = await db.execute(query.limit(limit))
    return [DLQEntryResponse.model_validate(item) for item in result.scalars().all()]


@router.post("/dlq/{dlq_id}/retry", response_model=ArbitrationResponse)
async def retry_dlq_item(
    dlq_id: int = Path(..., description="DLQ Item ID"),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    arbitration_service: ArbitrationService = Depends(get_arbitration_service),
    db: AsyncSession = Depends(get_db)
):
    """
    Retry a parked task from the Dead Letter Queue.

    Arbitration follow-ups are retried by reconciling their request.
    """
    item = await db.get(DeadLetterQueue, dlq_id)

    if not item:
        raise HTTPException(status_code=404, detail="DLQ item not found")
    if item.task_name != FOLLOWUP_TASK:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"No retry handler for task '{item.task_name}'"
        )
    if item.status not in (DLQStatus.FAILED, DLQStatus.RETRYING):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"DLQ item is already {item.status.value}"
        )

    result = await arbitration_service.reconcile(db, item.transport_request_id, current_user=current_user)
    return ArbitrationResponse.model_validate(result)
