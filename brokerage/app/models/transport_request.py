"""
Transport Request database model.

A client's request to move a package from a pickup address to a
destination address.
"""

from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, Enum, Text
from sqlalchemy.sql import func
from brokerage.app.db.session import Base
from brokerage.app.models.request_enums import RequestStatus
from brokerage.app.models.billing_enums import PaymentStatus


class TransportRequest(Base):
    """
    Transport Request model.

    `status` is written only through RequestLifecycle, always as a
    conditional UPDATE guarded by the expected status and `version`.
    `final_price` is set iff status is accepted, in_progress or delivered.
    """
    __tablename__ = "transport_requests"
    __mapper_args__ = {"eager_defaults": True}  # Fetch server timestamps on flush

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Owner
    client_id = Column(Integer, nullable=False, index=True)

    # Addresses (+ resolved coordinates)
    pickup_address = Column(String(500), nullable=False)
    pickup_latitude = Column(Float, nullable=True)
    pickup_longitude = Column(Float, nullable=True)
    pickup_country_code = Column(String(2), nullable=True)
    destination_address = Column(String(500), nullable=False)
    destination_latitude = Column(Float, nullable=True)
    destination_longitude = Column(Float, nullable=True)
    destination_country_code = Column(String(2), nullable=True)

    # Package
    package_type = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    package_height_cm = Column(Float, nullable=False)
    package_width_cm = Column(Float, nullable=False)
    package_depth_cm = Column(Float, nullable=False)
    package_weight_kg = Column(Float, nullable=False)
    package_volume_m3 = Column(Float, nullable=False)

    # Requested dates
    pickup_date = Column(DateTime(timezone=True), nullable=True)
    delivery_date = Column(DateTime(timezone=True), nullable=True)

    # Pricing estimate
    distance_km = Column(Integer, nullable=False)
    estimated_price = Column(Float, nullable=False)
    lane = Column(String(20), nullable=False)
    price_is_approximate = Column(Boolean, default=False, nullable=False)
    pricing_note = Column(String(500), nullable=True)

    # Arbitration outcome
    final_price = Column(Float, nullable=True)
    selected_offer_id = Column(Integer, nullable=True, index=True)  # References offers.id, checked in code
    arbitration_key = Column(String(100), nullable=True)

    # State
    status = Column(Enum(RequestStatus), default=RequestStatus.PENDING, nullable=False, index=True)
    payment_status = Column(Enum(PaymentStatus), default=PaymentStatus.UNBILLED, nullable=False)
    version = Column(Integer, default=0, nullable=False)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<TransportRequest(id={self.id}, client_id={self.client_id}, status='{self.status.value}')>"
