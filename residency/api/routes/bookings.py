"""
Booking endpoints for students (and staff acting on their behalf).
"""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from residency.db.base import MAX_ID
from residency.db.session import get_db
from residency.schemas.booking import (
    BookingCreate,
    BookingCreatedResponse,
    BookingResponse,
    InvoiceResponse,
)
from residency.services import booking_ledger
from residency.services.access_guard import Identity, get_identity

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingCreatedResponse)
async def create_booking(
    booking_data: BookingCreate,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    """
    Book a room for an academic term with a booking package.

    Price and dates are computed on the server from the room, term and
    package rows. A room already held for overlapping dates returns 409.
    """
    receipt = await booking_ledger.create_booking(
        db,
        student_id=identity.user_id,
        room_id=booking_data.room_id,
        term_id=booking_data.academic_term_id,
        package_id=booking_data.booking_package_id,
        payment_method=booking_data.payment_method,
    )
    return BookingCreatedResponse(
        bookingId=receipt.booking_id,
        paymentId=receipt.payment_id,
        status=receipt.status.value,
        totalPrice=receipt.total_price,
        startDate=receipt.start_date,
        endDate=receipt.end_date,
    )


@router.get("/", response_model=list[BookingResponse])
async def list_my_bookings(
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    """Get all bookings of the authenticated student."""
    return await booking_ledger.list_bookings_for_student(db, identity.user_id)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int = Path(..., gt=0, le=MAX_ID),
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    return await booking_ledger.get_booking_for(db, identity, booking_id)


@router.get("/{booking_id}/invoice", response_model=InvoiceResponse)
async def get_invoice(
    booking_id: int = Path(..., gt=0, le=MAX_ID),
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    """Invoice while unpaid, receipt once confirmed."""
    booking = await booking_ledger.get_booking_for(db, identity, booking_id)
    return booking_ledger.build_invoice(booking)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: int = Path(..., gt=0, le=MAX_ID),
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a pending or confirmed booking and release the room."""
    return await booking_ledger.cancel_booking(db, identity, booking_id)
