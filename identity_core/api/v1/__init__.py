"""
API v1 routes.
"""

from fastapi import APIRouter

from identity_core.api.v1 import admin, auth, orders

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(orders.router, tags=["Orders"])
router.include_router(admin.router, prefix="/admin", tags=["Admin"])
