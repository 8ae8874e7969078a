"""
Audit Log Database Model.

Records every state-changing action on requests, offers and invoices.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from brokerage.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model.

    Events logged:
    - REQUEST_CREATED / REQUEST_CANCELLED / REQUEST_ADVANCED
    - OFFER_SUBMITTED / OFFER_REJECTED / OFFER_WITHDRAWN
    - REQUEST_ARBITRATED / ARBITRATION_RECONCILED
    - INVOICE_CREATED / INVOICE_PAYMENT_EVENT
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_username = Column(String(100), nullable=True)
    actor_role = Column(String(20), nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # Which transport request it concerned
    transport_request_id = Column(Integer, index=True, nullable=True)

    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)

    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', actor={self.actor_id}, request={self.transport_request_id})>"
