"""
Invoice database model.

Billing record derived from the accepted price of a transport request.
"""

from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, Enum
from sqlalchemy.sql import func
from brokerage.app.db.session import Base
from brokerage.app.models.billing_enums import InvoiceStatus


class Invoice(Base):
    """
    Invoice model.

    amount = platform_fee + partner_amount, exactly (cent-precision Numeric).
    Status moves only on payment-gateway events: PENDING -> PAID -> REFUNDED,
    or PENDING -> CANCELLED.
    """
    __tablename__ = "invoices"
    __mapper_args__ = {"eager_defaults": True}  # Fetch server timestamps on flush

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Parties
    transport_request_id = Column(Integer, ForeignKey('transport_requests.id'), nullable=False, unique=True, index=True)
    client_id = Column(Integer, nullable=False, index=True)  # Payer
    partner_id = Column(Integer, nullable=False, index=True)  # Payee

    # Financials
    amount = Column(Numeric(12, 2), nullable=False)
    platform_fee = Column(Numeric(12, 2), nullable=False)
    partner_amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="EUR")

    # Payment
    status = Column(Enum(InvoiceStatus), default=InvoiceStatus.PENDING, nullable=False, index=True)
    payment_date = Column(DateTime(timezone=True), nullable=True)
    payment_reference = Column(String(255), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Invoice(id={self.id}, request_id={self.transport_request_id}, status='{self.status.value}', amount={self.amount})>"
