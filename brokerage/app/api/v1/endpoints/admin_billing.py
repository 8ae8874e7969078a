"""
Admin Billing API Endpoints.

Invoice listing and payment-gateway callbacks.
"""

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from brokerage.app.db.session import get_db
from brokerage.app.models.billing_enums import InvoiceStatus
from brokerage.app.models.enums import UserRole
from brokerage.app.schemas.invoice import InvoiceResponse, PaymentEventRequest
from brokerage.app.core.dependencies import get_invoice_service
from brokerage.app.core.guards import require_role
from brokerage.app.domain.billing.invoice_service import InvoiceService

router = APIRouter(prefix="/admin", tags=["Admin - Billing"])


@router.get("/invoices", response_model=List[InvoiceResponse])
async def list_invoices(
    status_filter: Optional[InvoiceStatus] = Query(None, alias="status"),
    client_id: Optional[int] = Query(None),
    partner_id: Optional[int] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    invoice_service: InvoiceService = Depends(get_invoice_service),
    db: AsyncSession = Depends(get_db)
):
    invoices = await invoice_service.list_invoices(
        db, client_id=client_id, partner_id=partner_id, status=status_filter, skip=skip, limit=limit
    )
    return [InvoiceResponse.model_validate(i) for i in invoices]


@router.post("/invoices/{invoice_id}/payment-events", response_model=InvoiceResponse)
async def apply_payment_event(
    invoice_id: int = Path(..., description="Invoice ID"),
    event_data: PaymentEventRequest = ...,
    current_user: dict = Depends(require_role([UserRole.ADMIN])),
    invoice_service: InvoiceService = Depends(get_invoice_service),
    db: AsyncSession = Depends(get_db)
):
    """
    Record a payment-gateway event on an invoice.

    pending -> paid | cancelled, paid -> refunded. Anything else answers
    409 ERR_PAYMENT_TRANSITION.
    """
    invoice = await invoice_service.apply_payment_event(
        db, invoice_id, event_data.event, reference=event_data.reference, current_user=current_user
    )
    await db.commit()
    return InvoiceResponse.model_validate(invoice)
