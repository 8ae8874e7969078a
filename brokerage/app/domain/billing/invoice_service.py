"""
Invoice Service (Domain Logic).

Derives the billing record of a transport request from its accepted price
and applies payment-gateway events to it. Writes are flushed, the caller
owns the transaction.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from brokerage.app.core.config import settings
from brokerage.app.core.exceptions import (
    InvalidPaymentTransitionError, InvalidTransitionError, InvariantViolationError,
    InvoiceNotFoundError,
)
from brokerage.app.domain.billing.commission import CommissionPolicy
from brokerage.app.models.assignment import Assignment
from brokerage.app.models.billing_enums import InvoiceStatus, PaymentEvent, PaymentStatus
from brokerage.app.models.invoice import Invoice
from brokerage.app.models.offer import Offer
from brokerage.app.models.request_enums import PRICED_STATUSES, RequestStatus
from brokerage.app.models.transport_request import TransportRequest
from brokerage.app.services.audit import AuditAction, log_actor_event, log_event

logger = logging.getLogger(__name__)

# (current status, event) -> new status
PAYMENT_TRANSITIONS = {
    (InvoiceStatus.PENDING, PaymentEvent.PAID): InvoiceStatus.PAID,
    (InvoiceStatus.PENDING, PaymentEvent.CANCELLED): InvoiceStatus.CANCELLED,
    (InvoiceStatus.PAID, PaymentEvent.REFUNDED): InvoiceStatus.REFUNDED,
}


class InvoiceService:

    def __init__(self, policy: CommissionPolicy, trigger: str = "accepted", currency: str = None):
        self.policy = policy
        self.trigger = RequestStatus(trigger)
        self.currency = currency or settings.currency

    def should_invoice_on(self, status: RequestStatus) -> bool:
        return status == self.trigger

    async def get_for_request(self, db: AsyncSession, request_id: int) -> Optional[Invoice]:
        result = await db.execute(
            select(Invoice).where(Invoice.transport_request_id == request_id)
        )
        return result.scalar_one_or_none()

    async def derive_invoice(self, db: AsyncSession, request: TransportRequest) -> Invoice:
        """
        Create the invoice for a priced request.

        Flow:
        1. Validate the request carries an accepted price
        2. Idempotency check (existing invoice for the request)
        3. Resolve the payee from the assignment (or the selected offer)
        4. Split amount into platform fee and partner share
        5. Persist as PENDING and mirror payment_status on the request

        Args:
            db: Database session (caller commits)
            request: Request in accepted, in_progress or delivered status

        Returns:
            The new or already existing Invoice
        """
        # 1. Validate
        if request.status not in PRICED_STATUSES or request.final_price is None:
            raise InvalidTransitionError(request.status.value, "invoiced", request.id)

        # 2. Idempotency
        existing = await self.get_for_request(db, request.id)
        if existing:
            return existing

        # 3. Payee
        partner_id = await self._resolve_partner(db, request)

        # 4. Split
        amount, fee, partner_amount = self.policy.split(request.final_price)
        if fee + partner_amount != amount:
            raise InvariantViolationError(
                "Invoice split does not sum to amount",
                details={"amount": str(amount), "fee": str(fee), "partner_amount": str(partner_amount)},
            )

        # 5. Persist
        invoice = Invoice(
            transport_request_id=request.id,
            client_id=request.client_id,
            partner_id=partner_id,
            amount=amount,
            platform_fee=fee,
            partner_amount=partner_amount,
            currency=self.currency,
            status=InvoiceStatus.PENDING,
        )
        db.add(invoice)
        request.payment_status = PaymentStatus.PENDING
        await db.flush()

        log_event(
            db,
            AuditAction.INVOICE_CREATED,
            transport_request_id=request.id,
            metadata={
                "invoice_id": invoice.id,
                "amount": str(amount),
                "platform_fee": str(fee),
                "partner_amount": str(partner_amount),
            },
        )
        logger.info("Invoice %s derived for request %s (amount=%s)", invoice.id, request.id, amount)
        return invoice

    async def _resolve_partner(self, db: AsyncSession, request: TransportRequest) -> int:
        result = await db.execute(
            select(Assignment.partner_id).where(Assignment.transport_request_id == request.id)
        )
        partner_id = result.scalar_one_or_none()
        if partner_id is not None:
            return partner_id

        if request.selected_offer_id is not None:
            offer = await db.get(Offer, request.selected_offer_id)
            if offer is not None:
                return offer.partner_id

        raise InvariantViolationError(
            f"Transport request {request.id} is priced but has no winning partner",
            details={"request_id": request.id},
        )

    async def apply_payment_event(
        self,
        db: AsyncSession,
        invoice_id: int,
        event: PaymentEvent,
        reference: Optional[str] = None,
        current_user: Optional[dict] = None,
    ) -> Invoice:
        """
        Apply a payment-gateway callback to an invoice.

        Raises:
            InvoiceNotFoundError: unknown invoice
            InvalidPaymentTransitionError: event not valid from the current status
        """
        invoice = await db.get(Invoice, invoice_id)
        if not invoice:
            raise InvoiceNotFoundError(invoice_id)

        event = PaymentEvent(event)
        new_status = PAYMENT_TRANSITIONS.get((invoice.status, event))
        if new_status is None:
            raise InvalidPaymentTransitionError(invoice.id, invoice.status.value, event.value)

        previous = invoice.status
        invoice.status = new_status
        if reference:
            invoice.payment_reference = reference
        if new_status == InvoiceStatus.PAID:
            invoice.payment_date = datetime.now(timezone.utc)

        request = await db.get(TransportRequest, invoice.transport_request_id)
        if request is not None:
            request.payment_status = PaymentStatus(new_status.value)

        log_actor_event(
            db,
            AuditAction.INVOICE_PAYMENT_EVENT,
            current_user,
            transport_request_id=invoice.transport_request_id,
            metadata={
                "invoice_id": invoice.id,
                "event": event.value,
                "from": previous.value,
                "to": new_status.value,
                "reference": reference,
            },
        )
        await db.flush()
        logger.info("Invoice %s %s -> %s", invoice.id, previous.value, new_status.value)
        return invoice

    @staticmethod
    async def list_invoices(
        db: AsyncSession,
        client_id: Optional[int] = None,
        partner_id: Optional[int] = None,
        status: Optional[InvoiceStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[Invoice]:
        query = select(Invoice).order_by(Invoice.created_at.desc(), Invoice.id.desc())
        if client_id is not None:
            query = query.where(Invoice.client_id == client_id)
        if partner_id is not None:
            query = query.where(Invoice.partner_id == partner_id)
        if status is not None:
            query = query.where(Invoice.status == status)
        result = await db.execute(query.offset(skip).limit(limit))
        return list(result.scalars().all())
