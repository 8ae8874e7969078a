"""
Arbitration schemas.
"""

from pydantic import BaseModel, Field
from typing import Optional
from brokerage.app.schemas.invoice import InvoiceResponse
from brokerage.app.schemas.offer import AssignmentResponse, OfferResponse
from brokerage.app.schemas.transport_request import TransportRequestResponse


class ArbitrateRequest(BaseModel):
    """Schema for selecting the winning offer."""
    offer_id: int = Field(..., gt=0)


class ArbitrationResponse(BaseModel):
    """Outcome of an arbitration or a reconciliation."""
    request: TransportRequestResponse
    offer: OfferResponse
    assignment: AssignmentResponse
    invoice: Optional[InvoiceResponse] = None
    replayed: bool = False

    class Config:
        from_attributes = True
