"""
Security guards for role-based and ownership-based access control.

Roles are a closed enum; every dispatch over them is an exhaustive `match`
checked with `assert_never`, so adding a role fails type checking until
each guard handles it.
"""

from typing import List, Optional, assert_never
from fastapi import Depends, HTTPException, status
from brokerage.app.models.enums import UserRole
from brokerage.app.core.dependencies import get_current_user


def parse_role(current_user: dict) -> UserRole:
    """Read the role claim from a token payload, raising 403 if invalid."""
    user_role_str = current_user.get("role")

    if not user_role_str:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Role information missing from token"
        )

    try:
        return UserRole(str(user_role_str).upper())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid role in token"
        )


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/admin/requests")
        async def list_requests(current_user: dict = Depends(require_role([UserRole.ADMIN]))):
            ...

    Raises:
        HTTPException 403 if user role is not in allowed_roles
    """
    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        user_role = parse_role(current_user)

        if user_role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )

        return current_user

    return role_checker


def verify_ownership(
    client_id: Optional[int],
    partner_id: Optional[int],
    current_user: dict
) -> bool:
    """
    Verify that the current user may read a record.

    Admins see everything, clients see records they own, partners see
    records bound to them (offers, assignments, invoices).
    """
    user_id = current_user.get("user_id")
    role = parse_role(current_user)

    match role:
        case UserRole.ADMIN:
            return True
        case UserRole.CLIENT:
            return client_id is not None and user_id == client_id
        case UserRole.PARTNER:
            return partner_id is not None and user_id == partner_id
        case _:
            assert_never(role)


class OwnershipGuard:
    """
    Class-based ownership guard for validating multi-tenant access.

    Usage:
        ownership_guard = OwnershipGuard()
        ownership_guard.enforce(current_user, client_id=request.client_id)
    """

    def enforce(
        self,
        current_user: dict,
        client_id: Optional[int] = None,
        partner_id: Optional[int] = None,
        resource_name: str = "resource"
    ):
        """
        Enforce ownership validation, raise 403 if access denied.
        """
        if not verify_ownership(client_id, partner_id, current_user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. You do not have permission to access this {resource_name}."
            )
