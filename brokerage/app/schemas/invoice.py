"""
Invoice schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional
from brokerage.app.models.billing_enums import InvoiceStatus, PaymentEvent


class InvoiceResponse(BaseModel):
    """Schema for invoice response."""
    id: int
    transport_request_id: int
    client_id: int
    partner_id: int
    amount: Decimal
    platform_fee: Decimal
    partner_amount: Decimal
    currency: str
    status: InvoiceStatus
    payment_date: Optional[datetime]
    payment_reference: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentEventRequest(BaseModel):
    """Payment-gateway callback."""
    event: PaymentEvent
    reference: Optional[str] = Field(None, max_length=255)
