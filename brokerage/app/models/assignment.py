"""
Assignment database model.

Immutable audit record binding a transport request to its winning partner.
"""

from sqlalchemy import Column, Integer, Float, String, DateTime, ForeignKey
from sqlalchemy.sql import func
from brokerage.app.db.session import Base


class Assignment(Base):
    """
    Assignment model.

    One row per request (unique transport_request_id), written once at
    arbitration and never updated.
    """
    __tablename__ = "assignments"
    __mapper_args__ = {"eager_defaults": True}  # Fetch server timestamps on flush

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    transport_request_id = Column(Integer, ForeignKey('transport_requests.id'), nullable=False, unique=True, index=True)
    offer_id = Column(Integer, ForeignKey('offers.id'), nullable=False)
    partner_id = Column(Integer, nullable=False, index=True)
    admin_id = Column(Integer, nullable=False)

    accepted_price = Column(Float, nullable=False)
    arbitration_key = Column(String(100), nullable=True)

    assigned_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<Assignment(request_id={self.transport_request_id}, partner_id={self.partner_id}, price={self.accepted_price})>"
