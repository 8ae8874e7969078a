"""
Request Lifecycle (Domain Logic).

State machine of a transport request:

    pending -> accepted -> in_progress -> delivered
    pending | accepted -> cancelled

Every transition is one conditional UPDATE guarded by the expected status
and the row version, so two writers racing on the same request can never
both win. Writes are flushed, the caller owns the transaction.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from brokerage.app.core.exceptions import (
    ConcurrentArbitrationError, InvalidTransitionError, InvariantViolationError,
    OfferLockedError, OfferMismatchError, RequestNotFoundError,
)
from brokerage.app.domain.offers.offer_book import OfferBook
from brokerage.app.domain.pricing.pricing_engine import PackageDimensions, PriceEstimate
from brokerage.app.models.offer import Offer
from brokerage.app.models.request_enums import (
    OfferStatus, PRICED_STATUSES, RequestStatus, TERMINAL_STATUSES,
)
from brokerage.app.models.transport_request import TransportRequest
from brokerage.app.services.audit import AuditAction, log_actor_event

logger = logging.getLogger(__name__)

# Forward moves driven by tracking events
ADVANCE_TRANSITIONS = {
    RequestStatus.ACCEPTED: RequestStatus.IN_PROGRESS,
    RequestStatus.IN_PROGRESS: RequestStatus.DELIVERED,
}

CANCELLABLE_STATUSES = frozenset({RequestStatus.PENDING, RequestStatus.ACCEPTED})


class RequestLifecycle:

    @staticmethod
    async def get(db: AsyncSession, request_id: int) -> TransportRequest:
        request = await db.get(TransportRequest, request_id)
        if not request:
            raise RequestNotFoundError(request_id)
        return request

    @staticmethod
    async def list_requests(
        db: AsyncSession,
        client_id: Optional[int] = None,
        status: Optional[RequestStatus] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[list[TransportRequest], int]:
        """Newest first, with the total count for pagination."""
        filters = []
        if client_id is not None:
            filters.append(TransportRequest.client_id == client_id)
        if status is not None:
            filters.append(TransportRequest.status == status)

        total = await db.scalar(select(func.count(TransportRequest.id)).where(*filters))
        result = await db.execute(
            select(TransportRequest)
            .where(*filters)
            .order_by(TransportRequest.created_at.desc(), TransportRequest.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return list(result.scalars().all()), total

    @staticmethod
    async def create(
        db: AsyncSession,
        client_id: int,
        pickup_address: str,
        destination_address: str,
        dims: PackageDimensions,
        weight_kg: float,
        estimate: PriceEstimate,
        package_type: Optional[str] = None,
        description: Optional[str] = None,
        pickup_date: Optional[datetime] = None,
        delivery_date: Optional[datetime] = None,
        current_user: Optional[dict] = None,
    ) -> TransportRequest:
        """
        Persist a new request in `pending` with its price estimate.

        Args:
            db: Database session (caller commits)
            client_id: Owner of the request
            estimate: Result of PricingEngine.estimate for these inputs

        Returns:
            The pending TransportRequest
        """
        request = TransportRequest(
            client_id=client_id,
            pickup_address=pickup_address,
            pickup_latitude=estimate.pickup.latitude,
            pickup_longitude=estimate.pickup.longitude,
            pickup_country_code=estimate.pickup.country_code,
            destination_address=destination_address,
            destination_latitude=estimate.destination.latitude,
            destination_longitude=estimate.destination.longitude,
            destination_country_code=estimate.destination.country_code,
            package_type=package_type,
            description=description,
            package_height_cm=dims.height_cm,
            package_width_cm=dims.width_cm,
            package_depth_cm=dims.depth_cm,
            package_weight_kg=weight_kg,
            package_volume_m3=estimate.volume_m3,
            pickup_date=pickup_date,
            delivery_date=delivery_date,
            distance_km=estimate.distance_km,
            estimated_price=estimate.price,
            lane=estimate.lane.value,
            price_is_approximate=estimate.approx_flag,
            pricing_note=estimate.note,
            final_price=None,
            selected_offer_id=None,
            status=RequestStatus.PENDING,
            version=0,
        )
        db.add(request)
        await db.flush()

        log_actor_event(
            db,
            AuditAction.REQUEST_CREATED,
            current_user,
            transport_request_id=request.id,
            metadata={"lane": request.lane, "estimated_price": request.estimated_price},
        )
        logger.info("Transport request %s created for client %s (lane=%s)", request.id, client_id, request.lane)
        return request

    @staticmethod
    async def _compare_and_set(
        db: AsyncSession,
        request: TransportRequest,
        expected: RequestStatus,
        new_status: RequestStatus,
        **values,
    ) -> TransportRequest:
        """
        Write new_status only if the row still holds `expected` at the
        caller's version; bump the version on success.

        Raises:
            ConcurrentArbitrationError: the row moved since it was read
        """
        result = await db.execute(
            update(TransportRequest)
            .where(
                TransportRequest.id == request.id,
                TransportRequest.status == expected,
                TransportRequest.version == request.version,
            )
            .values(status=new_status, version=request.version + 1, updated_at=func.now(), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current = await db.scalar(
                select(TransportRequest.status).where(TransportRequest.id == request.id)
            )
            logger.warning(
                "Conditional write lost on request %s (expected %s at v%s, now %s)",
                request.id, expected.value, request.version, current.value if current else None,
            )
            raise ConcurrentArbitrationError(request.id, current.value if current else None)

        await db.refresh(request)
        logger.info("Transport request %s: %s -> %s (v%s)", request.id, expected.value, new_status.value, request.version)
        return request

    @classmethod
    async def accept(
        cls,
        db: AsyncSession,
        request: TransportRequest,
        offer: Offer,
        arbitration_key: Optional[str] = None,
    ) -> TransportRequest:
        """
        Fix the winning offer and its price on a pending request.

        Raises:
            InvalidTransitionError: request is not pending
            OfferMismatchError: offer belongs to another request
            OfferLockedError: offer is no longer pending
            ConcurrentArbitrationError: another writer moved the request first
        """
        if request.status != RequestStatus.PENDING:
            raise InvalidTransitionError(request.status.value, RequestStatus.ACCEPTED.value, request.id)
        if offer.transport_request_id != request.id:
            raise OfferMismatchError(offer.id, request.id, offer.transport_request_id)
        if offer.status != OfferStatus.PENDING:
            raise OfferLockedError(offer.id, f"offer is {offer.status.value}")

        await cls._compare_and_set(
            db,
            request,
            RequestStatus.PENDING,
            RequestStatus.ACCEPTED,
            final_price=offer.price,
            selected_offer_id=offer.id,
            arbitration_key=arbitration_key,
        )
        await cls.check_invariants(db, request)
        return request

    @classmethod
    async def cancel(
        cls,
        db: AsyncSession,
        request: TransportRequest,
        current_user: Optional[dict] = None,
    ) -> TransportRequest:
        """
        Cancel a pending or accepted request and reject its pending offers.

        Offers already accepted or rejected are left as they are.
        """
        if request.status not in CANCELLABLE_STATUSES:
            raise InvalidTransitionError(request.status.value, RequestStatus.CANCELLED.value, request.id)

        previous = request.status
        await cls._compare_and_set(db, request, previous, RequestStatus.CANCELLED, final_price=None)
        rejected = await OfferBook.reject_all_except(db, request.id)

        log_actor_event(
            db,
            AuditAction.REQUEST_CANCELLED,
            current_user,
            transport_request_id=request.id,
            metadata={"from": previous.value, "offers_rejected": rejected},
        )
        await cls.check_invariants(db, request)
        return request

    @classmethod
    async def advance(
        cls,
        db: AsyncSession,
        request: TransportRequest,
        next_status: RequestStatus,
        current_user: Optional[dict] = None,
    ) -> TransportRequest:
        """Move one step along accepted -> in_progress -> delivered."""
        next_status = RequestStatus(next_status)
        if request.status in TERMINAL_STATUSES or ADVANCE_TRANSITIONS.get(request.status) != next_status:
            raise InvalidTransitionError(request.status.value, next_status.value, request.id)

        previous = request.status
        await cls._compare_and_set(db, request, previous, next_status)

        log_actor_event(
            db,
            AuditAction.REQUEST_ADVANCED,
            current_user,
            transport_request_id=request.id,
            metadata={"from": previous.value, "to": next_status.value},
        )
        await cls.check_invariants(db, request)
        return request

    @staticmethod
    async def check_invariants(db: AsyncSession, request: TransportRequest) -> None:
        """
        Verify the price/status coupling and offer exclusivity of a request.

        Raises:
            InvariantViolationError: on any breach
        """
        priced = request.status in PRICED_STATUSES
        if priced != (request.final_price is not None):
            raise InvariantViolationError(
                f"Transport request {request.id} has final_price={request.final_price} in status {request.status.value}",
                details={"request_id": request.id, "status": request.status.value},
            )

        if request.selected_offer_id is not None:
            offer_request_id = await db.scalar(
                select(Offer.transport_request_id).where(Offer.id == request.selected_offer_id)
            )
            if offer_request_id != request.id:
                raise InvariantViolationError(
                    f"Transport request {request.id} selects offer {request.selected_offer_id} of another request",
                    details={"request_id": request.id, "selected_offer_id": request.selected_offer_id},
                )

        accepted_count = await db.scalar(
            select(func.count(Offer.id)).where(
                Offer.transport_request_id == request.id,
                Offer.status == OfferStatus.ACCEPTED,
            )
        )
        if accepted_count > 1:
            raise InvariantViolationError(
                f"Transport request {request.id} has {accepted_count} accepted offers",
                details={"request_id": request.id, "accepted_offers": accepted_count},
            )
