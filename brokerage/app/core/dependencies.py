"""
Request-scoped dependencies for FastAPI.

Provides bearer authentication and construction of the core services with
their configuration injected explicitly.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from brokerage.app.core.config import settings
from brokerage.app.core.jwt import decode_access_token
from brokerage.app.domain.billing.commission import CommissionPolicy
from brokerage.app.domain.billing.invoice_service import InvoiceService
from brokerage.app.domain.offers.offer_book import OfferBook
from brokerage.app.domain.arbitration.arbitration_service import ArbitrationService
from brokerage.app.domain.tracking.tracking_service import TrackingService
from brokerage.app.domain.pricing.pricing_engine import PricingEngine
from brokerage.app.services.geo_clients import NominatimGeocoder, OsrmRouter

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    """
    FastAPI dependency for JWT authentication.

    Validates the token signature and expiry and checks the payload carries
    a user id and a role.

    Returns:
        Decoded token payload (sub, user_id, role)

    Raises:
        HTTPException: 401 if authentication fails
    """
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not payload.get("user_id") or not payload.get("role"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return payload


def get_commission_policy() -> CommissionPolicy:
    return CommissionPolicy(mode=settings.commission_mode, value=settings.commission_value)


def get_invoice_service(
    policy: CommissionPolicy = Depends(get_commission_policy),
) -> InvoiceService:
    return InvoiceService(policy=policy, trigger=settings.invoice_trigger)


def get_offer_book() -> OfferBook:
    return OfferBook(resubmission_policy=settings.offer_resubmission_policy)


def get_arbitration_service(
    offer_book: OfferBook = Depends(get_offer_book),
    invoice_service: InvoiceService = Depends(get_invoice_service),
) -> ArbitrationService:
    return ArbitrationService(offer_book=offer_book, invoice_service=invoice_service)


def get_tracking_service(
    invoice_service: InvoiceService = Depends(get_invoice_service),
) -> TrackingService:
    return TrackingService(invoice_service=invoice_service)


def get_pricing_engine() -> PricingEngine:
    """
    Build the pricing engine with the HTTP geo collaborators.

    Overridden in tests with in-memory collaborators.
    """
    return PricingEngine(geocoder=NominatimGeocoder(), router=OsrmRouter())
