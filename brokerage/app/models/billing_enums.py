"""
Billing enumerations.
"""

import enum


class InvoiceStatus(str, enum.Enum):
    """Invoice payment status."""
    PENDING = "pending"  # Issued, awaiting payment
    PAID = "paid"  # Gateway confirmed payment
    REFUNDED = "refunded"  # Paid then refunded
    CANCELLED = "cancelled"  # Voided before payment


class PaymentStatus(str, enum.Enum):
    """Payment sub-state mirrored on the transport request."""
    UNBILLED = "unbilled"  # No invoice yet
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class PaymentEvent(str, enum.Enum):
    """Payment-gateway callback event."""
    PAID = "paid"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class CommissionMode(str, enum.Enum):
    """How the platform fee is derived from the accepted price."""
    PERCENTAGE = "percentage"
    FLAT = "flat"
