"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from brokerage.app.api.v1.endpoints import (
    pricing, client_requests, partner,
    admin_requests, admin_billing, admin_ops
)

router = APIRouter()

# Pricing (any authenticated actor)
router.include_router(pricing.router)

# Client endpoints
router.include_router(client_requests.router)

# Partner endpoints
router.include_router(partner.router)

# Admin endpoints
router.include_router(admin_requests.router)
router.include_router(admin_billing.router)
router.include_router(admin_ops.router)
