"""
Transport request, offer and tracking enumerations.
"""

import enum


class RequestStatus(str, enum.Enum):
    """
    Transport request status.

    PENDING: Open for partner offers (initial state)
    ACCEPTED: An offer was arbitrated; final price fixed ("validated")
    IN_PROGRESS: Partner picked up / is in transit
    DELIVERED: Terminal
    CANCELLED: Terminal
    """
    PENDING = "pending"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, value: str) -> "RequestStatus":
        """Accept the legacy spellings 'validated' and 'canceled'."""
        aliases = {"validated": cls.ACCEPTED, "canceled": cls.CANCELLED}
        normalized = value.strip().lower()
        return aliases.get(normalized) or cls(normalized)


TERMINAL_STATUSES = frozenset({RequestStatus.DELIVERED, RequestStatus.CANCELLED})

# Statuses in which final_price must be set
PRICED_STATUSES = frozenset({
    RequestStatus.ACCEPTED,
    RequestStatus.IN_PROGRESS,
    RequestStatus.DELIVERED,
})


class OfferStatus(str, enum.Enum):
    """Partner offer status."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class TrackingLabel(str, enum.Enum):
    """Status label a partner attaches to a tracking update."""
    PICKUP = "pickup"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"

    @property
    def request_status(self) -> RequestStatus:
        """Request status this label implies."""
        if self is TrackingLabel.DELIVERED:
            return RequestStatus.DELIVERED
        return RequestStatus.IN_PROGRESS
