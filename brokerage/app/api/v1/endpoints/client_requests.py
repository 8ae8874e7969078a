"""
Client Transport Request API Endpoints.

Clients submit transport requests (priced on creation), follow them,
cancel them and read their tracking log and invoices.
"""

from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException, status, Query, Path
from sqlalchemy.ext.asyncio import AsyncSession

from brokerage.app.db.session import get_db
from brokerage.app.core.dependencies import get_invoice_service, get_pricing_engine
from brokerage.app.core.guards import require_role, OwnershipGuard
from brokerage.app.domain.billing.invoice_service import InvoiceService
from brokerage.app.domain.lifecycle.request_lifecycle import RequestLifecycle
from brokerage.app.domain.pricing.pricing_engine import PackageDimensions, PricingEngine
from brokerage.app.domain.tracking.tracking_service import TrackingService
from brokerage.app.models.enums import UserRole
from brokerage.app.models.request_enums import RequestStatus
from brokerage.app.schemas.invoice import InvoiceResponse
from brokerage.app.schemas.tracking import TrackingUpdateResponse
from brokerage.app.schemas.transport_request import (
    TransportRequestCreate, TransportRequestResponse, TransportRequestListResponse
)

router = APIRouter(prefix="/client", tags=["Client - Transport Requests"])
ownership_guard = OwnershipGuard()


def parse_status_filter(value: Optional[str]) -> Optional[RequestStatus]:
    """Read a status query parameter, accepting legacy spellings."""
    if value is None:
        return None
    try:
        return RequestStatus.parse(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown status '{value}'"
        )


@router.post("/requests", response_model=TransportRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_transport_request(
    request_data: TransportRequestCreate,
    current_user: dict = Depends(require_role([UserRole.CLIENT])),
    engine: PricingEngine = Depends(get_pricing_engine),
    db: AsyncSession = Depends(get_db)
):
    """
    Submit a transport request (Client only).

    The request is priced before it is stored; geocoding or routing
    failures reject the submission.
    """
    dims = PackageDimensions(
        height_cm=request_data.height_cm,
        width_cm=request_data.width_cm,
        depth_cm=request_data.depth_cm,
    )
    estimate = await engine.estimate(
        request_data.pickup_address,
        request_data.destination_address,
        dims,
        request_data.weight_kg,
    )

    transport_request = await RequestLifecycle.create(
        db,
        client_id=current_user["user_id"],
        pickup_address=request_data.pickup_address,
        destination_address=request_data.destination_address,
        dims=dims,
        weight_kg=request_data.weight_kg,
        estimate=estimate,
        package_type=request_data.package_type,
        description=request_data.description,
        pickup_date=request_data.pickup_date,
        delivery_date=request_data.delivery_date,
        current_user=current_user,
    )
    await db.commit()
    await db.refresh(transport_request)

    return TransportRequestResponse.model_validate(transport_request)


@router.get("/requests", response_model=TransportRequestListResponse)
async def list_my_requests(
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    current_user: dict = Depends(require_role([UserRole.CLIENT])),
    db: AsyncSession = Depends(get_db)
):
    """List the client's own requests, newest first."""
    requests, total = await RequestLifecycle.list_requests(
        db,
        client_id=current_user["user_id"],
        status=parse_status_filter(status_filter),
        page=page,
        page_size=page_size,
    )
    return TransportRequestListResponse(
        requests=[TransportRequestResponse.model_validate(r) for r in requests],
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/requests/{request_id}", response_model=TransportRequestResponse)
async def get_my_request(
    request_id: int = Path(..., description="Transport Request ID"),
    current_user: dict = Depends(require_role([UserRole.CLIENT])),
    db: AsyncSession = Depends(get_db)
):
    transport_request = await RequestLifecycle.get(db, request_id)
    ownership_guard.enforce(current_user, client_id=transport_request.client_id, resource_name="transport request")
    return TransportRequestResponse.model_validate(transport_request)


@router.post("/requests/{request_id}/cancel", response_model=TransportRequestResponse)
async def cancel_my_request(
    request_id: int = Path(..., description="Transport Request ID"),
    current_user: dict = Depends(require_role([UserRole.CLIENT])),
    db: AsyncSession = Depends(get_db)
):
    """
    Cancel a pending or accepted request (Client only).

    Pending offers on the request are rejected.
    """
    transport_request = await RequestLifecycle.get(db, request_id)
    ownership_guard.enforce(current_user, client_id=transport_request.client_id, resource_name="transport request")

    await RequestLifecycle.cancel(db, transport_request, current_user=current_user)
    await db.commit()

    return TransportRequestResponse.model_validate(transport_request)


@router.get("/requests/{request_id}/tracking", response_model=List[TrackingUpdateResponse])
async def get_my_request_tracking(
    request_id: int = Path(..., description="Transport Request ID"),
    current_user: dict = Depends(require_role([UserRole.CLIENT])),
    db: AsyncSession = Depends(get_db)
):
    """Tracking log of one of the client's requests, oldest first."""
    transport_request = await RequestLifecycle.get(db, request_id)
    ownership_guard.enforce(current_user, client_id=transport_request.client_id, resource_name="transport request")

    updates = await TrackingService.list_updates(db, request_id)
    return [TrackingUpdateResponse.model_validate(u) for u in updates]


@router.get("/invoices", response_model=List[InvoiceResponse])
async def list_my_invoices(
    current_user: dict = Depends(require_role([UserRole.CLIENT])),
    invoice_service: InvoiceService = Depends(get_invoice_service),
    db: AsyncSession = Depends(get_db)
):
    invoices = await invoice_service.list_invoices(db, client_id=current_user["user_id"])
    return [InvoiceResponse.model_validate(i) for i in invoices]
