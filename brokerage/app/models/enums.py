"""
User roles enumeration.

Defines the three actor roles of the brokerage platform.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        CLIENT: Submits transport requests and pays invoices
        PARTNER: Carrier that bids on requests and executes transports
        ADMIN: Arbitrates offers and manages billing
    """
    CLIENT = "CLIENT"
    PARTNER = "PARTNER"
    ADMIN = "ADMIN"
