"""
Tracking Update database model.

Append-only log of partner progress reports on an assigned request.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum, JSON
from sqlalchemy.sql import func
from brokerage.app.db.session import Base
from brokerage.app.models.request_enums import TrackingLabel


class TrackingUpdate(Base):
    """
    Tracking Update model.

    Never updated or deleted. Photos are references produced by the
    external upload collaborator.
    """
    __tablename__ = "tracking_updates"
    __mapper_args__ = {"eager_defaults": True}  # Fetch server timestamps on flush

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    transport_request_id = Column(Integer, ForeignKey('transport_requests.id'), nullable=False, index=True)
    partner_id = Column(Integer, nullable=False, index=True)

    status_label = Column(Enum(TrackingLabel), nullable=False)
    location_name = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    photos = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<TrackingUpdate(request_id={self.transport_request_id}, label='{self.status_label.value}')>"
