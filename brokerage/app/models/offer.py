"""
Offer database model.

A partner's bid on a transport request.
"""

from sqlalchemy import Column, Integer, String, Float, Text, DateTime, ForeignKey, Enum
from sqlalchemy.sql import func
from brokerage.app.db.session import Base
from brokerage.app.models.request_enums import OfferStatus


class Offer(Base):
    """
    Offer model.

    Created only while the request is pending. At arbitration exactly one
    offer per request becomes ACCEPTED and its pending siblings REJECTED.
    """
    __tablename__ = "offers"
    __mapper_args__ = {"eager_defaults": True}  # Fetch server timestamps on flush

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # References
    transport_request_id = Column(Integer, ForeignKey('transport_requests.id'), nullable=False, index=True)
    partner_id = Column(Integer, nullable=False, index=True)

    # Bid
    price = Column(Float, nullable=False)
    message = Column(Text, nullable=True)
    partner_company_name = Column(String(255), nullable=True)

    status = Column(Enum(OfferStatus), default=OfferStatus.PENDING, nullable=False, index=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Offer(id={self.id}, request_id={self.transport_request_id}, partner_id={self.partner_id}, status='{self.status.value}')>"
