"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from residency.api.routes import auth, catalog, bookings, payments, admin

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
api_router.include_router(catalog.router)
api_router.include_router(bookings.router)
api_router.include_router(payments.router)
api_router.include_router(admin.router)
