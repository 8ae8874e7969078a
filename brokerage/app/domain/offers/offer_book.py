"""
Offer Book (Domain Logic).

Partner bids per transport request. Submissions are independent inserts;
they only contend with an arbitration closing the same request, which is
resolved by locking the request row while it is still pending.
"""

import logging
import math
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from brokerage.app.core.exceptions import (
    InsufficientPermissionsError, InvalidPriceError, InvariantViolationError,
    OfferLockedError, OfferNotFoundError, RequestNotFoundError, RequestNotOpenError,
)
from brokerage.app.models.offer import Offer
from brokerage.app.models.request_enums import OfferStatus, RequestStatus
from brokerage.app.models.transport_request import TransportRequest
from brokerage.app.services.audit import AuditAction, log_actor_event

logger = logging.getLogger(__name__)


class OfferBook:

    def __init__(self, resubmission_policy: str = "append"):
        if resubmission_policy not in ("append", "upsert"):
            raise ValueError(f"Unknown resubmission policy: {resubmission_policy}")
        self.resubmission_policy = resubmission_policy

    async def submit_offer(
        self,
        db: AsyncSession,
        request_id: int,
        partner_id: int,
        price: float,
        message: Optional[str] = None,
        partner_company_name: Optional[str] = None,
        current_user: Optional[dict] = None,
    ) -> Offer:
        """
        Place a bid on a pending transport request.

        With the "upsert" policy a partner's still-pending offer on the same
        request is updated in place instead of adding a new one.

        Raises:
            RequestNotFoundError: unknown request
            RequestNotOpenError: request is not pending
            InvalidPriceError: price is not a finite number above zero
        """
        request = await db.get(TransportRequest, request_id)
        if not request:
            raise RequestNotFoundError(request_id)
        if request.status != RequestStatus.PENDING:
            raise RequestNotOpenError(request_id, request.status.value)
        if price is None or not math.isfinite(price) or price <= 0:
            raise InvalidPriceError(price)

        # Lock the row while pending; a concurrent acceptance makes this match nothing
        locked = await db.execute(
            update(TransportRequest)
            .where(TransportRequest.id == request_id, TransportRequest.status == RequestStatus.PENDING)
            .values(version=TransportRequest.version)
            .execution_options(synchronize_session=False)
        )
        if locked.rowcount != 1:
            raise RequestNotOpenError(request_id, "closed")

        offer = None
        if self.resubmission_policy == "upsert":
            result = await db.execute(
                select(Offer).where(
                    Offer.transport_request_id == request_id,
                    Offer.partner_id == partner_id,
                    Offer.status == OfferStatus.PENDING,
                )
            )
            offer = result.scalars().first()

        if offer:
            offer.price = price
            offer.message = message
            if partner_company_name:
                offer.partner_company_name = partner_company_name
        else:
            offer = Offer(
                transport_request_id=request_id,
                partner_id=partner_id,
                price=price,
                message=message,
                partner_company_name=partner_company_name,
                status=OfferStatus.PENDING,
            )
            db.add(offer)
        await db.flush()

        log_actor_event(
            db,
            AuditAction.OFFER_SUBMITTED,
            current_user,
            transport_request_id=request_id,
            metadata={"offer_id": offer.id, "partner_id": partner_id, "price": price},
        )
        logger.info("Offer %s submitted on request %s by partner %s", offer.id, request_id, partner_id)
        return offer

    @staticmethod
    async def list_offers(db: AsyncSession, request_id: int) -> list[Offer]:
        """All offers for a request, newest first."""
        result = await db.execute(
            select(Offer)
            .where(Offer.transport_request_id == request_id)
            .order_by(Offer.created_at.desc(), Offer.id.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_partner_offers(db: AsyncSession, partner_id: int) -> list[Offer]:
        result = await db.execute(
            select(Offer)
            .where(Offer.partner_id == partner_id)
            .order_by(Offer.created_at.desc(), Offer.id.desc())
        )
        return list(result.scalars().all())

    @staticmethod
    async def list_open_requests(db: AsyncSession, skip: int = 0, limit: int = 100) -> list[TransportRequest]:
        """Requests partners can still bid on, newest first."""
        result = await db.execute(
            select(TransportRequest)
            .where(TransportRequest.status == RequestStatus.PENDING)
            .order_by(TransportRequest.created_at.desc(), TransportRequest.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    @staticmethod
    async def reject_all_except(db: AsyncSession, request_id: int, keep_offer_id: Optional[int] = None) -> int:
        """
        Reject every pending offer on the request other than keep_offer_id.

        Re-running on a settled request changes nothing.

        Returns:
            Number of offers rejected by this call
        """
        stmt = (
            update(Offer)
            .where(Offer.transport_request_id == request_id, Offer.status == OfferStatus.PENDING)
            .values(status=OfferStatus.REJECTED)
            .execution_options(synchronize_session="fetch")
        )
        if keep_offer_id is not None:
            stmt = stmt.where(Offer.id != keep_offer_id)
        result = await db.execute(stmt)
        return result.rowcount

    async def settle(self, db: AsyncSession, request_id: int, winning_offer_id: int) -> Offer:
        """
        Mark the winning offer accepted and reject its pending siblings.

        Idempotent; raises InvariantViolationError if another offer of the
        request is already accepted.
        """
        offer = await db.get(Offer, winning_offer_id)
        if not offer:
            raise OfferNotFoundError(winning_offer_id)

        result = await db.execute(
            select(Offer.id).where(
                Offer.transport_request_id == request_id,
                Offer.status == OfferStatus.ACCEPTED,
                Offer.id != winning_offer_id,
            )
        )
        other_accepted = result.scalars().all()
        if other_accepted:
            raise InvariantViolationError(
                f"Transport request {request_id} already has an accepted offer",
                details={"request_id": request_id, "accepted_offer_ids": list(other_accepted)},
            )

        if offer.status == OfferStatus.REJECTED:
            raise InvariantViolationError(
                f"Winning offer {winning_offer_id} of request {request_id} was rejected",
                details={"request_id": request_id, "offer_id": winning_offer_id},
            )
        if offer.status != OfferStatus.ACCEPTED:
            offer.status = OfferStatus.ACCEPTED
        rejected = await self.reject_all_except(db, request_id, winning_offer_id)
        await db.flush()

        logger.info("Offers settled on request %s: winner=%s rejected=%s", request_id, offer.id, rejected)
        return offer

    @staticmethod
    async def reject_offer(db: AsyncSession, offer_id: int, current_user: Optional[dict] = None) -> Offer:
        """Admin refuses a single pending offer."""
        offer = await db.get(Offer, offer_id)
        if not offer:
            raise OfferNotFoundError(offer_id)
        if offer.status != OfferStatus.PENDING:
            raise OfferLockedError(offer_id, f"offer is {offer.status.value}")
        request = await db.get(TransportRequest, offer.transport_request_id)
        if request is not None and request.selected_offer_id == offer.id:
            raise OfferLockedError(offer_id, "the offer won the arbitration")
        if request is not None and request.status != RequestStatus.PENDING:
            raise OfferLockedError(offer_id, f"the request is {request.status.value}")

        offer.status = OfferStatus.REJECTED
        log_actor_event(
            db,
            AuditAction.OFFER_REJECTED,
            current_user,
            transport_request_id=offer.transport_request_id,
            metadata={"offer_id": offer.id, "partner_id": offer.partner_id},
        )
        await db.flush()
        return offer

    @staticmethod
    async def withdraw_offer(
        db: AsyncSession,
        offer_id: int,
        partner_id: int,
        current_user: Optional[dict] = None,
    ) -> None:
        """
        Partner removes one of their own offers.

        Allowed only once the request has left `pending`, and never for the
        winning offer.
        """
        offer = await db.get(Offer, offer_id)
        if not offer:
            raise OfferNotFoundError(offer_id)
        if offer.partner_id != partner_id:
            raise InsufficientPermissionsError(
                "You can only withdraw your own offers",
                details={"offer_id": offer_id},
            )
        if offer.status == OfferStatus.ACCEPTED:
            raise OfferLockedError(offer_id, "the accepted offer is kept with the assignment")

        request = await db.get(TransportRequest, offer.transport_request_id)
        if request is not None and request.status == RequestStatus.PENDING:
            raise OfferLockedError(offer_id, "the request is still open")
        if request is not None and request.selected_offer_id == offer.id:
            raise OfferLockedError(offer_id, "the offer won the arbitration")

        log_actor_event(
            db,
            AuditAction.OFFER_WITHDRAWN,
            current_user,
            transport_request_id=offer.transport_request_id,
            metadata={"offer_id": offer.id, "price": offer.price},
        )
        await db.delete(offer)
        await db.flush()
