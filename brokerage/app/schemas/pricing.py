"""
Pricing schemas.

Request and response models for price estimates.
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from brokerage.app.domain.pricing.tariffs import Advisory, Lane


class PackageFields(BaseModel):
    """Package dimensions (cm) and weight (kg)."""
    height_cm: float = Field(..., gt=0, description="Height in centimeters")
    width_cm: float = Field(..., gt=0, description="Width in centimeters")
    depth_cm: float = Field(..., gt=0, description="Depth in centimeters")
    weight_kg: float = Field(..., gt=0, description="Weight in kilograms")


class PriceEstimateRequest(PackageFields):
    """Schema for requesting a price estimate."""
    pickup_address: str = Field(..., min_length=3, max_length=500)
    destination_address: str = Field(..., min_length=3, max_length=500)


class GeoPointResponse(BaseModel):
    latitude: float
    longitude: float
    country_code: Optional[str]

    class Config:
        from_attributes = True


class PriceEstimateResponse(BaseModel):
    """Schema for a price estimate."""
    distance_km: int
    volume_m3: float
    price: float
    lane: Lane
    approx_flag: bool
    note: Optional[str]
    advisories: List[Advisory]
    pickup: GeoPointResponse
    destination: GeoPointResponse

    class Config:
        from_attributes = True
