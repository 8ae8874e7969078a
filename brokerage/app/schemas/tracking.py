"""
Tracking schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List
from brokerage.app.models.request_enums import TrackingLabel


class TrackingUpdateCreate(BaseModel):
    """Schema for a partner progress report."""
    status_label: TrackingLabel
    location_name: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=2000)
    photos: List[str] = Field(default_factory=list, max_length=5, description="Uploaded photo references")


class TrackingUpdateResponse(BaseModel):
    id: int
    transport_request_id: int
    partner_id: int
    status_label: TrackingLabel
    location_name: Optional[str]
    notes: Optional[str]
    photos: List[str]
    created_at: datetime

    class Config:
        from_attributes = True
