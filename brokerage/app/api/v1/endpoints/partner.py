"""
Partner API Endpoints.

Partners browse open requests, bid on them, manage their offers, report
tracking on the requests assigned to them and read their invoices.
"""

from typing import List

from fastapi import APIRouter, Depends, status, Query, Path, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from brokerage.app.db.session import get_db
from brokerage.app.core.dependencies import get_invoice_service, get_offer_book, get_tracking_service
from brokerage.app.core.exceptions import NotAssignedPartnerError
from brokerage.app.core.guards import require_role
from brokerage.app.domain.billing.invoice_service import InvoiceService
from brokerage.app.domain.lifecycle.request_lifecycle import RequestLifecycle
from brokerage.app.domain.offers.offer_book import OfferBook
from brokerage.app.domain.tracking.tracking_service import TrackingService
from brokerage.app.models.assignment import Assignment
from brokerage.app.models.enums import UserRole
from brokerage.app.schemas.invoice import InvoiceResponse
from brokerage.app.schemas.offer import AssignmentResponse, OfferCreate, OfferResponse
from brokerage.app.schemas.tracking import TrackingUpdateCreate, TrackingUpdateResponse
from brokerage.app.schemas.transport_request import TransportRequestResponse

router = APIRouter(prefix="/partner", tags=["Partner"])


@router.get("/requests/available", response_model=List[TransportRequestResponse])
async def list_available_requests(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    current_user: dict = Depends(require_role([UserRole.PARTNER])),
    db: AsyncSession = Depends(get_db)
):
    """Requests still open for offers, newest first."""
    requests = await OfferBook.list_open_requests(db, skip=skip, limit=limit)
    return [TransportRequestResponse.model_validate(r) for r in requests]


@router.post("/requests/{request_id}/offers", response_model=OfferResponse, status_code=status.HTTP_201_CREATED)
async def submit_offer(
    request_id: int = Path(..., description="Transport Request ID"),
    offer_data: OfferCreate = ...,
    current_user: dict = Depends(require_role([UserRole.PARTNER])),
    offer_book: OfferBook = Depends(get_offer_book),
    db: AsyncSession = Depends(get_db)
):
    """
    Bid on a pending request (Partner only).

    Fails with ERR_REQUEST_NOT_OPEN once the request has left `pending`
    and with ERR_OFFER_PRICE for a non-positive price.
    """
    offer = await offer_book.submit_offer(
        db,
        request_id=request_id,
        partner_id=current_user["user_id"],
        price=offer_data.price,
        message=offer_data.message,
        partner_company_name=offer_data.partner_company_name,
        current_user=current_user,
    )
    await db.commit()
    await db.refresh(offer)
    return OfferResponse.model_validate(offer)


@router.get("/offers", response_model=List[OfferResponse])
async def list_my_offers(
    current_user: dict = Depends(require_role([UserRole.PARTNER])),
    db: AsyncSession = Depends(get_db)
):
    offers = await OfferBook.list_partner_offers(db, current_user["user_id"])
    return [OfferResponse.model_validate(o) for o in offers]


@router.delete("/offers/{offer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def withdraw_my_offer(
    offer_id: int = Path(..., description="Offer ID"),
    current_user: dict = Depends(require_role([UserRole.PARTNER])),
    db: AsyncSession = Depends(get_db)
):
    """
    Remove one of the partner's offers.

    Only possible once the request is no longer pending; the winning offer
    is never removed.
    """
    await OfferBook.withdraw_offer(db, offer_id, current_user["user_id"], current_user=current_user)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/assignments", response_model=List[AssignmentResponse])
async def list_my_assignments(
    current_user: dict = Depends(require_role([UserRole.PARTNER])),
    db: AsyncSession = Depends(get_db)
):
    result = await db.execute(
        select(Assignment)
        .where(Assignment.partner_id == current_user["user_id"])
        .order_by(Assignment.assigned_at.desc(), Assignment.id.desc())
    )
    return [AssignmentResponse.model_validate(a) for a in result.scalars().all()]


@router.post(
    "/requests/{request_id}/tracking",
    response_model=TrackingUpdateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_tracking_update(
    request_id: int = Path(..., description="Transport Request ID"),
    update_data: TrackingUpdateCreate = ...,
    current_user: dict = Depends(require_role([UserRole.PARTNER])),
    tracking_service: TrackingService = Depends(get_tracking_service),
    db: AsyncSession = Depends(get_db)
):
    """
    Report progress on an assigned request (assigned Partner only).

    `pickup` and `in_transit` move an accepted request to in_progress,
    `delivered` moves an in-progress request to delivered.
    """
    update = await tracking_service.add_update(
        db,
        request_id=request_id,
        partner_id=current_user["user_id"],
        status_label=update_data.status_label,
        location_name=update_data.location_name,
        notes=update_data.notes,
        photos=update_data.photos,
        current_user=current_user,
    )
    await db.commit()
    await db.refresh(update)
    return TrackingUpdateResponse.model_validate(update)


@router.get("/requests/{request_id}/tracking", response_model=List[TrackingUpdateResponse])
async def get_tracking_updates(
    request_id: int = Path(..., description="Transport Request ID"),
    current_user: dict = Depends(require_role([UserRole.PARTNER])),
    db: AsyncSession = Depends(get_db)
):
    await RequestLifecycle.get(db, request_id)
    assigned_partner = await db.scalar(
        select(Assignment.partner_id).where(Assignment.transport_request_id == request_id)
    )
    if assigned_partner != current_user["user_id"]:
        raise NotAssignedPartnerError(request_id, current_user["user_id"])

    updates = await TrackingService.list_updates(db, request_id)
    return [TrackingUpdateResponse.model_validate(u) for u in updates]


@router.get("/invoices", response_model=List[InvoiceResponse])
async def list_my_invoices(
    current_user: dict = Depends(require_role([UserRole.PARTNER])),
    invoice_service: InvoiceService = Depends(get_invoice_service),
    db: AsyncSession = Depends(get_db)
):
    invoices = await invoice_service.list_invoices(db, partner_id=current_user["user_id"])
    return [InvoiceResponse.model_validate(i) for i in invoices]
