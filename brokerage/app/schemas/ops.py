"""
Operations schemas.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Any, Dict, Optional
from brokerage.app.models.dlq import DLQStatus


class DLQEntryResponse(BaseModel):
    """Dead letter queue entry."""
    id: int
    task_name: str
    transport_request_id: Optional[int]
    error_message: str
    payload: Optional[Dict[str, Any]]
    status: DLQStatus
    retry_count: int
    created_at: datetime
    last_retry_at: Optional[datetime]

    class Config:
        from_attributes = True
