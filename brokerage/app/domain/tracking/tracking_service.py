"""
Tracking Service (Domain Logic).

Partners report progress on requests assigned to them. Each update is
appended to the log and may advance the request one step; reaching
`delivered` can trigger invoicing.
"""

import logging
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from brokerage.app.core.exceptions import InvalidTransitionError, NotAssignedPartnerError
from brokerage.app.domain.billing.invoice_service import InvoiceService
from brokerage.app.domain.lifecycle.request_lifecycle import RequestLifecycle
from brokerage.app.models.assignment import Assignment
from brokerage.app.models.request_enums import RequestStatus, TrackingLabel
from brokerage.app.models.tracking_update import TrackingUpdate
from brokerage.app.services.audit import AuditAction, log_actor_event

logger = logging.getLogger(__name__)

MAX_PHOTOS = 5
TRACKABLE_STATUSES = frozenset({RequestStatus.ACCEPTED, RequestStatus.IN_PROGRESS})


class TrackingService:

    def __init__(self, invoice_service: InvoiceService):
        self.invoice_service = invoice_service

    async def add_update(
        self,
        db: AsyncSession,
        request_id: int,
        partner_id: int,
        status_label: TrackingLabel,
        location_name: Optional[str] = None,
        notes: Optional[str] = None,
        photos: Optional[Sequence[str]] = None,
        current_user: Optional[dict] = None,
    ) -> TrackingUpdate:
        """
        Append a tracking update from the assigned partner.

        Flow:
        1. Only the assigned partner may report
        2. Request must be accepted or in progress
        3. Advance the request when the label implies a later status
        4. Append the update
        5. Invoice on delivery when so configured

        Raises:
            NotAssignedPartnerError: partner does not hold the assignment
            InvalidTransitionError: request not trackable, or a step was skipped
        """
        status_label = TrackingLabel(status_label)
        photos = list(photos or [])
        if len(photos) > MAX_PHOTOS:
            raise ValueError(f"At most {MAX_PHOTOS} photos per update")

        request = await RequestLifecycle.get(db, request_id)

        # 1. Assignment ownership
        result = await db.execute(
            select(Assignment.partner_id).where(Assignment.transport_request_id == request_id)
        )
        assigned_partner = result.scalar_one_or_none()
        if assigned_partner is None or assigned_partner != partner_id:
            raise NotAssignedPartnerError(request_id, partner_id)

        # 2. Trackable
        target = status_label.request_status
        if request.status not in TRACKABLE_STATUSES:
            raise InvalidTransitionError(request.status.value, target.value, request.id)

        # 3. Advance
        if target != request.status:
            await RequestLifecycle.advance(db, request, target, current_user=current_user)

        # 4. Append
        update = TrackingUpdate(
            transport_request_id=request_id,
            partner_id=partner_id,
            status_label=status_label,
            location_name=location_name,
            notes=notes,
            photos=photos,
        )
        db.add(update)
        await db.flush()

        log_actor_event(
            db,
            AuditAction.TRACKING_UPDATE_ADDED,
            current_user,
            transport_request_id=request_id,
            metadata={"tracking_update_id": update.id, "label": status_label.value},
        )

        # 5. Invoice on delivery
        if request.status == RequestStatus.DELIVERED and self.invoice_service.should_invoice_on(request.status):
            await self.invoice_service.derive_invoice(db, request)

        logger.info("Tracking update %s on request %s: %s", update.id, request_id, status_label.value)
        return update

    @staticmethod
    async def list_updates(db: AsyncSession, request_id: int) -> list[TrackingUpdate]:
        """Tracking log of a request, oldest first."""
        result = await db.execute(
            select(TrackingUpdate)
            .where(TrackingUpdate.transport_request_id == request_id)
            .order_by(TrackingUpdate.created_at, TrackingUpdate.id)
        )
        return list(result.scalars().all())
