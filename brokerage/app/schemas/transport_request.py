"""
Transport request schemas.
"""

from pydantic import BaseModel, Field, model_validator
from datetime import datetime
from typing import Optional, List
from brokerage.app.models.request_enums import RequestStatus
from brokerage.app.models.billing_enums import PaymentStatus
from brokerage.app.schemas.pricing import PriceEstimateRequest


class TransportRequestCreate(PriceEstimateRequest):
    """Schema for submitting a transport request; priced on creation."""
    package_type: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    pickup_date: Optional[datetime] = None
    delivery_date: Optional[datetime] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.pickup_date and self.delivery_date and self.delivery_date < self.pickup_date:
            raise ValueError("delivery_date must not be before pickup_date")
        return self


class TransportRequestResponse(BaseModel):
    """Schema for transport request response."""
    id: int
    client_id: int
    pickup_address: str
    pickup_country_code: Optional[str]
    destination_address: str
    destination_country_code: Optional[str]
    package_type: Optional[str]
    description: Optional[str]
    package_height_cm: float
    package_width_cm: float
    package_depth_cm: float
    package_weight_kg: float
    package_volume_m3: float
    pickup_date: Optional[datetime]
    delivery_date: Optional[datetime]
    distance_km: int
    estimated_price: float
    lane: str
    price_is_approximate: bool
    pricing_note: Optional[str]
    final_price: Optional[float]
    selected_offer_id: Optional[int]
    status: RequestStatus
    payment_status: PaymentStatus
    version: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TransportRequestListResponse(BaseModel):
    """Schema for paginated transport request list."""
    requests: List[TransportRequestResponse]
    total: int
    page: int
    page_size: int
