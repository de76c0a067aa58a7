"""
Payment confirmation handlers: gateway webhook and manual bank transfer
verification.

IDEMPOTENCY STRATEGY: Conditional update, count the rows, cascade on success
===========================================================================

Problem:
  Gateways retry webhook deliveries, and two staff members may click
  "verify" on the same transfer at the same time. A naive read-check-write
  would confirm the booking twice and write two audit entries.

Solution:
  Each settlement is one statement guarded by the expected source state:

      UPDATE payments SET status = 'Succeeded', ...
       WHERE <payment key> AND status = :expected
   RETURNING id, booking_id

  The booking row is locked (SELECT ... FOR UPDATE) before the payment row,
  the same order cancellation takes them in, so a cancel racing a webhook
  for one booking waits instead of deadlocking.

  Only the request whose UPDATE returns a row goes on to cascade the booking
  (in the same transaction) and write the audit entry after commit. A
  request that matches zero rows changed nothing:
    - webhook: treated as an already-processed delivery, acknowledged 200
    - bank transfer: reported as AlreadyProcessedOrNotFound (409), because a
      staff member re-verifying needs to know their click did nothing
"""

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from residency.core.exceptions import AlreadyProcessedOrNotFound, MalformedWebhookPayload
from residency.core.logging import get_logger
from residency.core.metrics import record_settlement, record_webhook
from residency.db.base import MAX_ID
from residency.models.booking import Booking, BookingStatus
from residency.models.payment import Payment, PaymentStatus
from residency.services import audit_log
from residency.services.access_guard import Identity
from residency.services.audit_log import AuditAction
from residency.services.gateway import parse_verified_event

logger = get_logger(__name__)

CHARGE_SUCCEEDED = "charge.succeeded"
CHARGE_FAILED = "charge.failed"
GATEWAY_PROVIDER = "Stripe"


class WebhookOutcome(str, enum.Enum):
    PROCESSED = "processed"
    ALREADY_PROCESSED = "already_processed"
    IGNORED = "ignored"


@dataclass(frozen=True)
class Settlement:
    payment_id: int
    booking_id: int
    booking_updated: bool


async def _settle_payment(
    db: AsyncSession,
    payment_filter,
    expected: PaymentStatus,
    new_status: PaymentStatus,
    booking_from: tuple,
    booking_to: BookingStatus,
    payment_values: Optional[dict] = None,
) -> Optional[Settlement]:
    """
    Move one payment from `expected` to `new_status` and cascade its booking.
    Returns None when no payment was in the expected state.
    """
    try:
        # Lock order is booking row, then payment row, same as cancellation
        await db.execute(
            select(Booking.id)
            .join(Payment, Payment.booking_id == Booking.id)
            .where(payment_filter)
            .with_for_update(of=Booking)
        )

        result = await db.execute(
            update(Payment)
            .where(payment_filter, Payment.status == expected.value)
            .values(status=new_status.value, **(payment_values or {}))
            .returning(Payment.id, Payment.booking_id)
            .execution_options(synchronize_session=False)
        )
        row = result.first()
        if row is None:
            await db.rollback()
            return None

        cascade = await db.execute(
            update(Booking)
            .where(
                Booking.id == row.booking_id,
                Booking.status.in_([s.value for s in booking_from]),
            )
            .values(status=booking_to.value)
            .returning(Booking.id)
            .execution_options(synchronize_session=False)
        )
        booking_updated = cascade.first() is not None
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    if not booking_updated:
        logger.warning(
            "booking_cascade_skipped",
            payment_id=row.id,
            booking_id=row.booking_id,
            target=booking_to.value,
        )
    return Settlement(payment_id=row.id, booking_id=row.booking_id, booking_updated=booking_updated)


def _charge_reference(event: dict) -> tuple[str, int]:
    """Extract (charge id, booking id) from a charge event or reject it whole."""
    data = event.get("data")
    charge = data.get("object") if isinstance(data, dict) else None
    if not isinstance(charge, dict):
        raise MalformedWebhookPayload("Charge object missing in webhook payload")

    charge_id = charge.get("id")
    metadata = charge.get("metadata") or {}
    booking_ref = metadata.get("booking_id") if isinstance(metadata, dict) else None

    if not booking_ref:
        raise MalformedWebhookPayload("Booking ID missing in webhook metadata")
    if not charge_id:
        raise MalformedWebhookPayload("Charge ID missing in webhook payload")
    try:
        booking_id = int(booking_ref)
    except (TypeError, ValueError):
        raise MalformedWebhookPayload("Booking ID in webhook metadata is not an integer")
    if not 0 < booking_id <= MAX_ID:
        raise MalformedWebhookPayload("Booking ID in webhook metadata is out of range")
    return str(charge_id), booking_id


async def confirm_online_payment(
    db: AsyncSession,
    payload: bytes,
    signature_header: Optional[str],
) -> WebhookOutcome:
    """
    Apply a signed gateway event. Re-deliveries and events for payments that
    are no longer pending are acknowledged without any state change.
    """
    event = parse_verified_event(payload, signature_header)
    event_type = event.get("type") or "unknown"

    if event_type not in (CHARGE_SUCCEEDED, CHARGE_FAILED):
        record_webhook(event_type, "ignored")
        logger.info("webhook_event_ignored", event_type=event_type, event_id=event.get("id"))
        return WebhookOutcome.IGNORED

    try:
        charge_id, booking_id = _charge_reference(event)
    except MalformedWebhookPayload:
        record_webhook(event_type, "rejected")
        raise

    if event_type == CHARGE_SUCCEEDED:
        settlement = await _settle_payment(
            db,
            Payment.booking_id == booking_id,
            expected=PaymentStatus.PENDING,
            new_status=PaymentStatus.SUCCEEDED,
            booking_from=(BookingStatus.PENDING_PAYMENT,),
            booking_to=BookingStatus.CONFIRMED,
            payment_values={"provider_transaction_id": charge_id},
        )
        action, outcome = AuditAction.PAYMENT_SUCCEEDED_WEBHOOK, "succeeded"
    else:
        settlement = await _settle_payment(
            db,
            Payment.booking_id == booking_id,
            expected=PaymentStatus.PENDING,
            new_status=PaymentStatus.FAILED,
            booking_from=(BookingStatus.PENDING_PAYMENT,),
            booking_to=BookingStatus.CANCELLED,
            payment_values={"provider_transaction_id": charge_id},
        )
        action, outcome = AuditAction.PAYMENT_FAILED_WEBHOOK, "failed"

    if settlement is None:
        record_settlement("webhook", "noop")
        record_webhook(event_type, "duplicate")
        logger.info(
            "webhook_duplicate_ignored",
            event_type=event_type,
            booking_id=booking_id,
            charge_id=charge_id,
        )
        return WebhookOutcome.ALREADY_PROCESSED

    record_settlement("webhook", outcome)
    record_webhook(event_type, "processed")
    logger.info(
        "payment_settled",
        channel="webhook",
        outcome=outcome,
        payment_id=settlement.payment_id,
        booking_id=settlement.booking_id,
        charge_id=charge_id,
    )
    await audit_log.record_action(
        db,
        action,
        target_id=settlement.payment_id,
        details={
            "provider": GATEWAY_PROVIDER,
            "chargeId": charge_id,
            "bookingId": settlement.booking_id,
        },
    )
    return WebhookOutcome.PROCESSED


async def verify_bank_transfer(db: AsyncSession, payment_id: int, staff: Identity) -> int:
    """
    Confirm a bank transfer awaiting verification and return the confirmed
    booking id. The caller must already be authorized as staff.
    """
    settlement = await _settle_payment(
        db,
        Payment.id == payment_id,
        expected=PaymentStatus.PENDING_VERIFICATION,
        new_status=PaymentStatus.SUCCEEDED,
        booking_from=(BookingStatus.PENDING_VERIFICATION,),
        booking_to=BookingStatus.CONFIRMED,
    )

    if settlement is None:
        record_settlement("bank_transfer", "conflict")
        logger.info("bank_transfer_already_processed", payment_id=payment_id, staff_id=staff.user_id)
        raise AlreadyProcessedOrNotFound(
            f"Payment verification failed for ID {payment_id}. "
            "It might have already been processed or does not exist."
        )

    record_settlement("bank_transfer", "succeeded")
    logger.info(
        "payment_settled",
        channel="bank_transfer",
        outcome="succeeded",
        payment_id=settlement.payment_id,
        booking_id=settlement.booking_id,
        staff_id=staff.user_id,
    )
    await audit_log.record_action(
        db,
        AuditAction.BANK_TRANSFER_VERIFIED,
        target_id=payment_id,
        actor_id=staff.user_id,
        details={
            "verifiedAt": datetime.now(timezone.utc).isoformat(),
            "bookingId": settlement.booking_id,
        },
    )
    return settlement.booking_id
