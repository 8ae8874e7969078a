"""
Arbitration Service (Domain Logic).

An admin picks the winning offer of a pending request. The work is a saga
over several records:

1. Load request and offer
2. Accept the request (conditional write, committed on its own)
3. Settle offers: winner accepted, pending siblings rejected
4. Create the assignment
5. Derive the invoice when invoicing is triggered on acceptance

Step 2 is the single linearization point. Steps 3-5 are idempotent; when
one fails the acceptance stands, the failure is parked in the dead letter
queue and `reconcile` re-runs them.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from brokerage.app.core.exceptions import (
    ArbitrationReconciliationError, InvalidTransitionError, OfferMismatchError, OfferNotFoundError,
)
from brokerage.app.domain.billing.invoice_service import InvoiceService
from brokerage.app.domain.lifecycle.request_lifecycle import RequestLifecycle
from brokerage.app.domain.offers.offer_book import OfferBook
from brokerage.app.models.assignment import Assignment
from brokerage.app.models.dlq import DeadLetterQueue, DLQStatus
from brokerage.app.models.invoice import Invoice
from brokerage.app.models.offer import Offer
from brokerage.app.models.request_enums import PRICED_STATUSES, RequestStatus
from brokerage.app.models.transport_request import TransportRequest
from brokerage.app.services.audit import AuditAction, log_actor_event, log_event

logger = logging.getLogger(__name__)

FOLLOWUP_TASK = "arbitration_followup"
OPEN_DLQ_STATUSES = (DLQStatus.FAILED, DLQStatus.RETRYING)


@dataclass
class ArbitrationResult:
    request: TransportRequest
    offer: Offer
    assignment: Assignment
    invoice: Optional[Invoice] = None
    replayed: bool = False


class ArbitrationService:

    def __init__(self, offer_book: OfferBook, invoice_service: InvoiceService):
        self.offer_book = offer_book
        self.invoice_service = invoice_service

    async def arbitrate(
        self,
        db: AsyncSession,
        request_id: int,
        offer_id: int,
        admin_id: int,
        idempotency_key: Optional[str] = None,
        current_user: Optional[dict] = None,
    ) -> ArbitrationResult:
        """
        Select the winning offer of a request.

        A call repeating the idempotency key of the arbitration that already
        accepted this offer re-runs the follow-ups and returns the same
        outcome with `replayed=True`.

        Raises:
            RequestNotFoundError, OfferNotFoundError, OfferMismatchError
            InvalidTransitionError: request no longer pending
            ConcurrentArbitrationError: another arbitration won the race
            ArbitrationReconciliationError: accepted, but a follow-up failed
        """
        # 1. Load
        request = await RequestLifecycle.get(db, request_id)
        offer = await db.get(Offer, offer_id)
        if not offer:
            raise OfferNotFoundError(offer_id)
        if offer.transport_request_id != request.id:
            raise OfferMismatchError(offer.id, request.id, offer.transport_request_id)

        replayed = (
            idempotency_key is not None
            and request.arbitration_key == idempotency_key
            and request.selected_offer_id == offer.id
            and request.status in PRICED_STATUSES
        )

        if not replayed:
            # 2. Linearization point
            await RequestLifecycle.accept(db, request, offer, arbitration_key=idempotency_key)
            log_actor_event(
                db,
                AuditAction.REQUEST_ARBITRATED,
                current_user,
                transport_request_id=request.id,
                metadata={
                    "offer_id": offer.id,
                    "partner_id": offer.partner_id,
                    "final_price": request.final_price,
                    "idempotency_key": idempotency_key,
                },
            )
            await db.commit()
            logger.info("Request %s accepted offer %s (admin %s)", request.id, offer.id, admin_id)
        else:
            logger.info("Replaying arbitration %r on request %s", idempotency_key, request.id)

        # 3-5. Follow-ups
        result = await self._complete(db, request, offer, admin_id)
        result.replayed = replayed
        return result

    async def reconcile(
        self,
        db: AsyncSession,
        request_id: int,
        current_user: Optional[dict] = None,
    ) -> ArbitrationResult:
        """
        Re-run the follow-ups of an accepted request and close its open
        dead letter entries.
        """
        request = await RequestLifecycle.get(db, request_id)
        if request.status not in PRICED_STATUSES or request.selected_offer_id is None:
            raise InvalidTransitionError(request.status.value, "reconciled", request.id)

        offer = await db.get(Offer, request.selected_offer_id)
        if not offer:
            raise OfferNotFoundError(request.selected_offer_id)

        open_entries = await self._open_dlq_entries(db, request.id)
        admin_id = self._admin_from_entries(open_entries)
        if admin_id is None:
            admin_id = (current_user or {}).get("user_id")

        result = await self._complete(db, request, offer, admin_id)

        now = datetime.now(timezone.utc)
        for entry in open_entries:
            entry.status = DLQStatus.PROCESSED
            entry.retry_count += 1
            entry.last_retry_at = now
        log_actor_event(
            db,
            AuditAction.ARBITRATION_RECONCILED,
            current_user,
            transport_request_id=request_id,
            metadata={"dlq_ids": [entry.id for entry in open_entries]},
        )
        await db.commit()
        logger.info("Request %s reconciled (%s dead letter entries closed)", request_id, len(open_entries))
        return result

    async def _complete(
        self,
        db: AsyncSession,
        request: TransportRequest,
        offer: Offer,
        admin_id: Optional[int],
    ) -> ArbitrationResult:
        # Plain values survive a rollback, ORM attributes do not
        request_id, offer_id = request.id, offer.id
        step = "settle_offers"
        try:
            offer = await self.offer_book.settle(db, request_id, offer_id)

            step = "create_assignment"
            assignment = await self._ensure_assignment(db, request, offer, admin_id)

            step = "derive_invoice"
            if self.invoice_service.trigger == RequestStatus.ACCEPTED:
                invoice = await self.invoice_service.derive_invoice(db, request)
            else:
                invoice = await self.invoice_service.get_for_request(db, request_id)

            step = "check_invariants"
            await RequestLifecycle.check_invariants(db, request)
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error(
                "Arbitration follow-up '%s' failed for request %s: %s",
                step, request_id, e, exc_info=True,
            )
            dlq_id = await self._park_failure(db, request_id, offer_id, admin_id, step, e)
            raise ArbitrationReconciliationError(request_id, step, str(e), dlq_id) from e

        return ArbitrationResult(request=request, offer=offer, assignment=assignment, invoice=invoice)

    @staticmethod
    async def _ensure_assignment(
        db: AsyncSession,
        request: TransportRequest,
        offer: Offer,
        admin_id: Optional[int],
    ) -> Assignment:
        result = await db.execute(
            select(Assignment).where(Assignment.transport_request_id == request.id)
        )
        assignment = result.scalar_one_or_none()
        if assignment:
            return assignment

        assignment = Assignment(
            transport_request_id=request.id,
            offer_id=offer.id,
            partner_id=offer.partner_id,
            admin_id=admin_id,
            accepted_price=request.final_price,
            arbitration_key=request.arbitration_key,
            assigned_at=datetime.now(timezone.utc),
        )
        db.add(assignment)
        await db.flush()
        return assignment

    @staticmethod
    async def _open_dlq_entries(db: AsyncSession, request_id: int) -> list[DeadLetterQueue]:
        result = await db.execute(
            select(DeadLetterQueue)
            .where(
                DeadLetterQueue.task_name == FOLLOWUP_TASK,
                DeadLetterQueue.transport_request_id == request_id,
                DeadLetterQueue.status.in_(OPEN_DLQ_STATUSES),
            )
            .order_by(DeadLetterQueue.created_at, DeadLetterQueue.id)
        )
        return list(result.scalars().all())

    @staticmethod
    def _admin_from_entries(entries: list[DeadLetterQueue]) -> Optional[int]:
        for entry in entries:
            admin_id = (entry.payload or {}).get("admin_id")
            if admin_id is not None:
                return admin_id
        return None

    async def _park_failure(
        self,
        db: AsyncSession,
        request_id: int,
        offer_id: int,
        admin_id: Optional[int],
        step: str,
        error: Exception,
    ) -> int:
        """Record or bump the dead letter entry of a failed follow-up."""
        entries = await self._open_dlq_entries(db, request_id)
        if entries:
            entry = entries[0]
            entry.status = DLQStatus.RETRYING
            entry.retry_count += 1
            entry.last_retry_at = datetime.now(timezone.utc)
            entry.error_message = str(error)
            entry.payload = {**(entry.payload or {}), "step": step}
        else:
            entry = DeadLetterQueue(
                task_name=FOLLOWUP_TASK,
                transport_request_id=request_id,
                error_message=str(error),
                payload={"offer_id": offer_id, "admin_id": admin_id, "step": step},
                status=DLQStatus.FAILED,
                retry_count=0,
            )
            db.add(entry)

        log_event(
            db,
            AuditAction.ARBITRATION_FOLLOWUP_FAILED,
            actor_id=admin_id,
            transport_request_id=request_id,
            metadata={"step": step, "error": str(error)},
        )
        await db.flush()
        dlq_id = entry.id
        await db.commit()
        return dlq_id
