"""
Audit logging service for tracking business events.

Audit rows are added to the caller's session and committed together with
the write they describe.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from brokerage.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    # Request lifecycle
    REQUEST_CREATED = "REQUEST_CREATED"
    REQUEST_CANCELLED = "REQUEST_CANCELLED"
    REQUEST_ADVANCED = "REQUEST_ADVANCED"

    # Offers
    OFFER_SUBMITTED = "OFFER_SUBMITTED"
    OFFER_REJECTED = "OFFER_REJECTED"
    OFFER_WITHDRAWN = "OFFER_WITHDRAWN"

    # Arbitration
    REQUEST_ARBITRATED = "REQUEST_ARBITRATED"
    ARBITRATION_FOLLOWUP_FAILED = "ARBITRATION_FOLLOWUP_FAILED"
    ARBITRATION_RECONCILED = "ARBITRATION_RECONCILED"

    # Tracking
    TRACKING_UPDATE_ADDED = "TRACKING_UPDATE_ADDED"

    # Billing
    INVOICE_CREATED = "INVOICE_CREATED"
    INVOICE_PAYMENT_EVENT = "INVOICE_PAYMENT_EVENT"


def log_event(
    db: AsyncSession,
    action: str,
    actor_id: Optional[int] = None,
    actor_username: Optional[str] = None,
    actor_role: Optional[str] = None,
    transport_request_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Add an audit event to the session.

    Args:
        db: Database session (caller commits)
        action: Action being performed (use AuditAction constants)
        actor_id: ID of user performing the action (None for system)
        actor_username: Username of actor
        actor_role: Role claim of actor
        transport_request_id: Request the event concerns
        metadata: Additional context as JSON

    Returns:
        Pending AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        actor_username=actor_username,
        actor_role=actor_role,
        action=action,
        transport_request_id=transport_request_id,
        meta_data=metadata,
    )
    db.add(audit_log)
    return audit_log


def log_actor_event(
    db: AsyncSession,
    action: str,
    current_user: Optional[dict],
    transport_request_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """Shorthand for events triggered by an authenticated actor's token payload."""
    current_user = current_user or {}
    return log_event(
        db=db,
        action=action,
        actor_id=current_user.get("user_id"),
        actor_username=current_user.get("sub"),
        actor_role=current_user.get("role"),
        transport_request_id=transport_request_id,
        metadata=metadata,
    )


async def get_audit_trail(
    db: AsyncSession,
    transport_request_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering.

    Returns:
        List of AuditLog instances, most recent first
    """
    query = select(AuditLog).order_by(desc(AuditLog.timestamp), desc(AuditLog.id))

    if transport_request_id:
        query = query.where(AuditLog.transport_request_id == transport_request_id)

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())
