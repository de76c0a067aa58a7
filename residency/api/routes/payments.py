"""
Payment confirmation endpoints: gateway webhook and manual bank transfer
verification.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from residency.db.session import get_db
from residency.schemas.payment import BankTransferVerification, BankTransferVerified, WebhookAck
from residency.services import payment_service
from residency.services.access_guard import Identity, require_staff
from residency.services.gateway import SIGNATURE_HEADER

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Gateway webhook. The raw body is verified against the signature header
    before it is parsed. Duplicate deliveries are acknowledged with no effect.
    """
    payload = await request.body()
    await payment_service.confirm_online_payment(
        db, payload, request.headers.get(SIGNATURE_HEADER)
    )
    return WebhookAck()


@router.post("/verify-bank-transfer", response_model=BankTransferVerified)
async def verify_bank_transfer(
    verification: BankTransferVerification,
    staff: Identity = Depends(require_staff),
    db: AsyncSession = Depends(get_db),
):
    """Staff confirmation of a bank transfer awaiting verification."""
    booking_id = await payment_service.verify_bank_transfer(db, verification.payment_id, staff)
    return BankTransferVerified(bookingId=booking_id)
