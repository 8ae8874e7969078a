"""
Offer and assignment schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from brokerage.app.models.request_enums import OfferStatus


class OfferCreate(BaseModel):
    """
    Schema for a partner bid.

    The price is range-checked by the offer book so that a non-positive
    price is reported as ERR_OFFER_PRICE; NaN and infinities fail validation.
    """
    price: float = Field(..., allow_inf_nan=False)
    message: Optional[str] = Field(None, max_length=2000)
    partner_company_name: Optional[str] = Field(None, max_length=255)


class OfferResponse(BaseModel):
    """Schema for offer response."""
    id: int
    transport_request_id: int
    partner_id: int
    price: float
    message: Optional[str]
    partner_company_name: Optional[str]
    status: OfferStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AssignmentResponse(BaseModel):
    """Schema for assignment response."""
    id: int
    transport_request_id: int
    offer_id: int
    partner_id: int
    admin_id: int
    accepted_price: float
    arbitration_key: Optional[str]
    assigned_at: datetime

    class Config:
        from_attributes = True
