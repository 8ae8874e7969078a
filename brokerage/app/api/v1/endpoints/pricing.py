"""
Pricing API Endpoints.

Price estimates for any authenticated actor, without creating a request.
"""

from fastapi import APIRouter, Depends

from brokerage.app.core.dependencies import get_current_user, get_pricing_engine
from brokerage.app.domain.pricing.pricing_engine import PackageDimensions, PricingEngine
from brokerage.app.schemas.pricing import PriceEstimateRequest, PriceEstimateResponse

router = APIRouter(prefix="/pricing", tags=["Pricing"])


@router.post("/estimate", response_model=PriceEstimateResponse)
async def estimate_price(
    estimate_data: PriceEstimateRequest,
    current_user: dict = Depends(get_current_user),
    engine: PricingEngine = Depends(get_pricing_engine),
):
    """
    Estimate the price of a shipment.

    Fails with ERR_GEOCODE when an address has no match and ERR_ROUTE when
    no road distance is available; the caller retries explicitly.
    """
    estimate = await engine.estimate(
        estimate_data.pickup_address,
        estimate_data.destination_address,
        PackageDimensions(
            height_cm=estimate_data.height_cm,
            width_cm=estimate_data.width_cm,
            depth_cm=estimate_data.depth_cm,
        ),
        estimate_data.weight_kg,
    )
    return PriceEstimateResponse.model_validate(estimate)
