"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes for the brokerage core (pricing, offers,
request lifecycle, arbitration, invoicing) and global exception handlers.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class InsufficientPermissionsError(AppException):
    """Raised when user doesn't have permission to perform an action."""

    def __init__(self, message: str = "Insufficient permissions", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_PERM_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
        )


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None, error_code: str = "ERR_NOT_FOUND_001"):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


# Input resolution (pricing collaborators). Never retried automatically.

class GeocodeError(AppException):
    """Raised when an address cannot be resolved to coordinates."""

    def __init__(self, address: str, reason: str = "No match found"):
        super().__init__(
            message=f"Could not geocode address '{address}': {reason}",
            error_code="ERR_GEOCODE",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"address": address, "reason": reason}
        )


class RouteError(AppException):
    """Raised when the road distance between two points cannot be resolved."""

    def __init__(self, reason: str = "Routing failed"):
        super().__init__(
            message=f"Could not compute route: {reason}",
            error_code="ERR_ROUTE",
            status_code=status.HTTP_502_BAD_GATEWAY,
            details={"reason": reason}
        )


# Business rule violations

class InvalidPriceError(AppException):
    """Raised when an offer price is not strictly positive."""

    def __init__(self, price: Any):
        super().__init__(
            message=f"Offer price must be greater than 0, got {price}",
            error_code="ERR_OFFER_PRICE",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"price": price}
        )


class RequestNotOpenError(AppException):
    """Raised when an offer targets a request that no longer accepts bids."""

    def __init__(self, request_id: int, current_status: str):
        super().__init__(
            message=f"Transport request {request_id} is not open for offers (status: {current_status})",
            error_code="ERR_REQUEST_NOT_OPEN",
            status_code=status.HTTP_409_CONFLICT,
            details={"request_id": request_id, "status": current_status}
        )


# State machine violations

class InvalidTransitionError(AppException):
    """Raised when a status transition is not allowed from the current state."""

    def __init__(self, current: str, requested: str, request_id: int = None):
        super().__init__(
            message=f"Cannot transition transport request from '{current}' to '{requested}'",
            error_code="ERR_INVALID_TRANSITION",
            status_code=status.HTTP_409_CONFLICT,
            details={"request_id": request_id, "current": current, "requested": requested}
        )


class ConcurrentArbitrationError(AppException):
    """
    Raised when a conditional write on the request status loses a race.

    The caller must reload the request before deciding what to do; the
    operation must never be re-applied blindly.
    """

    def __init__(self, request_id: int, current_status: str = None):
        super().__init__(
            message=f"Transport request {request_id} was modified concurrently; reload and retry",
            error_code="ERR_CONCURRENT_ARBITRATION",
            status_code=status.HTTP_409_CONFLICT,
            details={"request_id": request_id, "current_status": current_status, "action": "reload"}
        )


class InvalidPaymentTransitionError(AppException):
    """Raised when a payment event does not apply to the invoice's status."""

    def __init__(self, invoice_id: int, current: str, event: str):
        super().__init__(
            message=f"Payment event '{event}' is not valid for invoice {invoice_id} in status '{current}'",
            error_code="ERR_PAYMENT_TRANSITION",
            status_code=status.HTTP_409_CONFLICT,
            details={"invoice_id": invoice_id, "current": current, "event": event}
        )


# Referential integrity

class RequestNotFoundError(ResourceNotFoundError):
    def __init__(self, request_id: Any):
        super().__init__("Transport request", request_id, error_code="ERR_NOT_FOUND_REQUEST")


class OfferNotFoundError(ResourceNotFoundError):
    def __init__(self, offer_id: Any):
        super().__init__("Offer", offer_id, error_code="ERR_NOT_FOUND_OFFER")


class InvoiceNotFoundError(ResourceNotFoundError):
    def __init__(self, invoice_id: Any):
        super().__init__("Invoice", invoice_id, error_code="ERR_NOT_FOUND_INVOICE")


class OfferMismatchError(AppException):
    """Raised when an offer does not belong to the targeted request."""

    def __init__(self, offer_id: int, request_id: int, offer_request_id: int):
        super().__init__(
            message=f"Offer {offer_id} does not belong to transport request {request_id}",
            error_code="ERR_OFFER_MISMATCH",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"offer_id": offer_id, "request_id": request_id, "offer_request_id": offer_request_id}
        )


class OfferLockedError(AppException):
    """Raised when an offer cannot be changed in its current state."""

    def __init__(self, offer_id: int, reason: str):
        super().__init__(
            message=f"Offer {offer_id} cannot be modified: {reason}",
            error_code="ERR_OFFER_LOCKED",
            status_code=status.HTTP_409_CONFLICT,
            details={"offer_id": offer_id, "reason": reason}
        )


class NotAssignedPartnerError(AppException):
    """Raised when a partner acts on a request assigned to someone else."""

    def __init__(self, request_id: int, partner_id: int):
        super().__init__(
            message=f"Partner {partner_id} is not assigned to transport request {request_id}",
            error_code="ERR_PERM_002",
            status_code=status.HTTP_403_FORBIDDEN,
            details={"request_id": request_id, "partner_id": partner_id}
        )


# Partial completion / invariants

class ArbitrationReconciliationError(AppException):
    """
    Raised when the request was accepted but a follow-up step failed.

    The acceptance stands. The follow-ups are idempotent and can be retried
    through the reconcile operation.
    """

    def __init__(self, request_id: int, step: str, reason: str, dlq_id: int = None):
        super().__init__(
            message=f"Transport request {request_id} accepted but '{step}' failed: {reason}",
            error_code="ERR_ARBITRATION_RECONCILE",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"request_id": request_id, "step": step, "reason": reason, "dlq_id": dlq_id}
        )


class InvariantViolationError(AppException):
    """Raised when a checked data invariant does not hold."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_INVARIANT",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.error_code, exc.message, extra={"details": exc.details})
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": exc.errors()
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception: %s", type(exc).__name__)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
