"""
Tracking service tests.
"""

from decimal import Decimal

import pytest

from brokerage.app.core.exceptions import InvalidTransitionError, NotAssignedPartnerError
from brokerage.app.domain.arbitration.arbitration_service import ArbitrationService
from brokerage.app.domain.billing.commission import CommissionPolicy
from brokerage.app.domain.billing.invoice_service import InvoiceService
from brokerage.app.domain.tracking.tracking_service import TrackingService
from brokerage.app.models.billing_enums import InvoiceStatus, PaymentStatus
from brokerage.app.models.request_enums import RequestStatus, TrackingLabel

from conftest import ADMIN_ID, OTHER_PARTNER_ID, PARTNER_ID


@pytest.fixture
def tracking_service(invoice_service):
    return TrackingService(invoice_service=invoice_service)


@pytest.fixture
def assigned_request(db_session, make_request, make_offer, arbitration_service):
    """Factory returning a request arbitrated to PARTNER_ID."""

    async def _make(price=150.0):
        request = await make_request()
        offer = await make_offer(request.id, price=price)
        await arbitration_service.arbitrate(db_session, request.id, offer.id, ADMIN_ID)
        return request

    return _make


@pytest.mark.asyncio
async def test_pickup_moves_request_in_progress(db_session, assigned_request, tracking_service):
    request = await assigned_request()

    update = await tracking_service.add_update(
        db_session, request.id, PARTNER_ID, TrackingLabel.PICKUP, location_name="Lisboa depot",
    )
    await db_session.commit()

    assert update.id is not None
    assert update.photos == []
    assert request.status == RequestStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_in_transit_updates_keep_status(db_session, assigned_request, tracking_service):
    request = await assigned_request()
    await tracking_service.add_update(db_session, request.id, PARTNER_ID, "pickup")
    version = request.version

    await tracking_service.add_update(db_session, request.id, PARTNER_ID, "in_transit", location_name="A1, Coimbra")
    await tracking_service.add_update(db_session, request.id, PARTNER_ID, "in_transit", location_name="A1, Aveiro")
    await db_session.commit()

    assert request.status == RequestStatus.IN_PROGRESS
    assert request.version == version


@pytest.mark.asyncio
async def test_delivery_completes_request(db_session, assigned_request, tracking_service):
    request = await assigned_request()
    await tracking_service.add_update(db_session, request.id, PARTNER_ID, TrackingLabel.PICKUP)
    await tracking_service.add_update(
        db_session, request.id, PARTNER_ID, TrackingLabel.DELIVERED, photos=["https://cdn.test/pod.jpg"],
    )
    await db_session.commit()

    assert request.status == RequestStatus.DELIVERED
    assert request.final_price == 150.0


@pytest.mark.asyncio
async def test_delivery_cannot_skip_pickup(db_session, assigned_request, tracking_service):
    request = await assigned_request()

    with pytest.raises(InvalidTransitionError):
        await tracking_service.add_update(db_session, request.id, PARTNER_ID, TrackingLabel.DELIVERED)


@pytest.mark.asyncio
async def test_only_assigned_partner_reports(db_session, assigned_request, tracking_service):
    request = await assigned_request()

    with pytest.raises(NotAssignedPartnerError):
        await tracking_service.add_update(db_session, request.id, OTHER_PARTNER_ID, TrackingLabel.PICKUP)


@pytest.mark.asyncio
async def test_unassigned_request_is_not_trackable(db_session, make_request, tracking_service):
    request = await make_request()

    with pytest.raises(NotAssignedPartnerError):
        await tracking_service.add_update(db_session, request.id, PARTNER_ID, TrackingLabel.PICKUP)


@pytest.mark.asyncio
async def test_delivered_request_takes_no_more_updates(db_session, assigned_request, tracking_service):
    request = await assigned_request()
    await tracking_service.add_update(db_session, request.id, PARTNER_ID, TrackingLabel.PICKUP)
    await tracking_service.add_update(db_session, request.id, PARTNER_ID, TrackingLabel.DELIVERED)
    await db_session.commit()

    with pytest.raises(InvalidTransitionError) as exc_info:
        await tracking_service.add_update(db_session, request.id, PARTNER_ID, TrackingLabel.IN_TRANSIT)
    assert exc_info.value.details["current"] == "delivered"


@pytest.mark.asyncio
async def test_too_many_photos(db_session, assigned_request, tracking_service):
    request = await assigned_request()

    with pytest.raises(ValueError):
        await tracking_service.add_update(
            db_session, request.id, PARTNER_ID, TrackingLabel.PICKUP, photos=[f"p{i}.jpg" for i in range(6)],
        )


@pytest.mark.asyncio
async def test_updates_listed_oldest_first(db_session, assigned_request, tracking_service):
    request = await assigned_request()
    first = await tracking_service.add_update(db_session, request.id, PARTNER_ID, TrackingLabel.PICKUP)
    second = await tracking_service.add_update(db_session, request.id, PARTNER_ID, TrackingLabel.IN_TRANSIT)
    third = await tracking_service.add_update(db_session, request.id, PARTNER_ID, TrackingLabel.DELIVERED)
    await db_session.commit()

    updates = await TrackingService.list_updates(db_session, request.id)
    assert [u.id for u in updates] == [first.id, second.id, third.id]


@pytest.mark.asyncio
async def test_invoice_on_delivery_trigger(db_session, make_request, make_offer, offer_book):
    invoices = InvoiceService(policy=CommissionPolicy(mode="flat", value=25), trigger="delivered")
    arbitration = ArbitrationService(offer_book=offer_book, invoice_service=invoices)
    tracking = TrackingService(invoice_service=invoices)

    request = await make_request()
    offer = await make_offer(request.id, price=180)
    result = await arbitration.arbitrate(db_session, request.id, offer.id, ADMIN_ID)
    assert result.invoice is None

    await tracking.add_update(db_session, request.id, PARTNER_ID, TrackingLabel.PICKUP)
    assert await invoices.get_for_request(db_session, request.id) is None

    await tracking.add_update(db_session, request.id, PARTNER_ID, TrackingLabel.DELIVERED)
    await db_session.commit()

    invoice = await invoices.get_for_request(db_session, request.id)
    assert invoice.status == InvoiceStatus.PENDING
    assert invoice.partner_id == PARTNER_ID
    assert invoice.platform_fee == Decimal("25.00")
    assert invoice.partner_amount == Decimal("155.00")
    assert request.payment_status == PaymentStatus.PENDING
