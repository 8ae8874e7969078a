"""
Admin Request API Endpoints.

Admins review requests and their offers, arbitrate the winning offer,
reconcile partially completed arbitrations, cancel requests and refuse
single offers.
"""

from typing import Optional, List

from fastapi import APIRouter, Depends, Header, Query, Path
from sqlalchemy.ext.asyncio import AsyncSession

from brokerage.app.db.session import get_db
from brokerage.app.core.dependencies import get_arbitration_service
from brokerage.app.core.guards import require_role
from brokerage.app.domain.arbitration.arbitration_service import ArbitrationResult, ArbitrationService
from brokerage.app.domain.lifecycle.request_lifecycle import RequestLifecycle
from brokerage.app.domain.offers.offer_book import OfferBook
from brokerage.app.models.enums import UserRole
from brokerage.app.api.v1.endpoints.client_requests import parse_status_filter
from brokerage.app.schemas.arbitration import ArbitrateRequest, ArbitrationResponse
from brokerage.app.schemas.offer import OfferResponse
from brokerage.app.schemas.transport_request import TransportRequestResponse, TransportRequestListResponse

router = APIRouter(prefix="/admin", tags=["Admin - Requests"])


def _arbitration_response(result: ArbitrationResult) -> ArbitrationResponse:
    return ArbitrationResponse.model_validate(result)


@router.get("/requests", response_model=TransportRequestListResponse)
async def list_requests(
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by status ('validated' accepted)"),
    client_id: Optional[int] = Query(None, description="Filter by client"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    requests, total = await RequestLifecycle.list_requests(
        db,
        client_id=client_id,
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


@router.get("/requests/{request_id}/offers", response_model=List[OfferResponse])
async def list_request_offers(
    request_id: int = Path(..., description="Transport Request ID"),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """All offers on a request, newest first."""
    await RequestLifecycle.get(db, request_id)
    offers = await OfferBook.list_offers(db, request_id)
    return [OfferResponse.model_validate(o) for o in offers]


@router.post("/requests/{request_id}/arbitrate", response_model=ArbitrationResponse)
async def arbitrate_request(
    request_id: int = Path(..., description="Transport Request ID"),
    arbitrate_data: ArbitrateRequest = ...,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key", max_length=100),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    arbitration_service: ArbitrationService = Depends(get_arbitration_service),
    db: AsyncSession = Depends(get_db)
):
    """
    Select the winning offer of a pending request (Admin only).

    Repeating the call with the same Idempotency-Key returns the original
    outcome. A lost race answers 409 ERR_CONCURRENT_ARBITRATION; a failed
    follow-up answers 500 ERR_ARBITRATION_RECONCILE and is fixed with
    the reconcile endpoint.
    """
    result = await arbitration_service.arbitrate(
        db,
        request_id=request_id,
        offer_id=arbitrate_data.offer_id,
        admin_id=current_user["user_id"],
        idempotency_key=idempotency_key,
        current_user=current_user,
    )
    return _arbitration_response(result)


@router.post("/requests/{request_id}/reconcile", response_model=ArbitrationResponse)
async def reconcile_request(
    request_id: int = Path(..., description="Transport Request ID"),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    arbitration_service: ArbitrationService = Depends(get_arbitration_service),
    db: AsyncSession = Depends(get_db)
):
    """Re-run the arbitration follow-ups of an accepted request."""
    result = await arbitration_service.reconcile(db, request_id, current_user=current_user)
    return _arbitration_response(result)


@router.post("/requests/{request_id}/cancel", response_model=TransportRequestResponse)
async def cancel_request(
    request_id: int = Path(..., description="Transport Request ID"),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    """Refuse a pending request or cancel an accepted one."""
    transport_request = await RequestLifecycle.get(db, request_id)
    await RequestLifecycle.cancel(db, transport_request, current_user=current_user)
    await db.commit()
    return TransportRequestResponse.model_validate(transport_request)


@router.post("/offers/{offer_id}/reject", response_model=OfferResponse)
async def reject_offer(
    offer_id: int = Path(..., description="Offer ID"),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    db: AsyncSession = Depends(get_db)
):
    offer = await OfferBook.reject_offer(db, offer_id, current_user=current_user)
    await db.commit()
    await db.refresh(offer)
    return OfferResponse.model_validate(offer)
