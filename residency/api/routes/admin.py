"""
Staff back-office endpoints: analytics, audit trail, booking lifecycle and
room availability.
"""

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from residency.db.base import MAX_ID
from residency.db.session import get_db
from residency.schemas.booking import BookingResponse
from residency.schemas.catalog import (
    AdminAnalyticsResponse,
    AuditLogEntryResponse,
    RoomAvailabilityUpdate,
    RoomResponse,
)
from residency.services import audit_log, booking_ledger, catalog_service
from residency.services.access_guard import Identity, require_staff
from residency.services.analytics_service import get_admin_analytics

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/analytics", response_model=AdminAnalyticsResponse)
async def analytics(
    staff: Identity = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    return await get_admin_analytics(db)


@router.get("/audit-log", response_model=list[AuditLogEntryResponse])
async def audit_trail(
    limit: int = Query(100, ge=1, le=500),
    staff: Identity = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    return await audit_log.list_entries(db, limit)


@router.post("/bookings/{booking_id}/check-in", response_model=BookingResponse)
async def check_in(
    booking_id: int = Path(..., gt=0, le=MAX_ID),
    staff: Identity = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    return await booking_ledger.check_in(db, staff, booking_id)


@router.post("/bookings/{booking_id}/check-out", response_model=BookingResponse)
async def check_out(
    booking_id: int = Path(..., gt=0, le=MAX_ID),
    staff: Identity = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    return await booking_ledger.check_out(db, staff, booking_id)


@router.post("/bookings/{booking_id}/maintenance", response_model=BookingResponse)
async def hold_for_maintenance(
    booking_id: int = Path(..., gt=0, le=MAX_ID),
    staff: Identity = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """Pull a room out of service; the booking leaves the active states."""
    return await booking_ledger.hold_for_maintenance(db, staff, booking_id)


@router.patch("/rooms/{room_id}/availability", response_model=RoomResponse)
async def set_room_availability(
    *,
    room_id: int = Path(..., gt=0, le=MAX_ID),
    update: RoomAvailabilityUpdate,
    staff: Identity = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    return await catalog_service.set_room_availability(db, staff, room_id, update.is_available)
