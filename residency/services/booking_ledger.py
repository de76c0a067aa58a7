"""
Booking ledger: creates bookings with their payment and drives the booking
lifecycle.

CONCURRENCY STRATEGY: Database constraints, not application locks
=================================================================

Problem:
  Two students submit a booking for the same room and term at the same
  moment. Both check availability, both see the room free, both insert.
  Result: Double booking.

Solution:
  There is no "check availability" step at all. The bookings table carries
  an exclusion constraint (`no_double_booking`) over
  (room_id =, daterange(start_date, end_date, '[)') &&) restricted to the
  active statuses. Creating a booking is one transaction:

      BEGIN
        SELECT room, term, package           (validate references)
        compute price and end date           (pure, from those rows)
        INSERT booking                       (constraint checked here)
        INSERT payment
      COMMIT

  When two transactions insert overlapping rows, PostgreSQL makes the second
  wait on the first; if the first commits, the second fails with SQLSTATE
  23P01 and we report RoomAlreadyBooked. Nothing is committed for the loser,
  and a failure anywhere before COMMIT leaves neither row behind.

Lifecycle transitions use the same idea: a single
  UPDATE bookings SET status = :target WHERE id = :id AND status IN (:sources)
and the affected row count says whether this request won. Zero rows means
the booking was not in a state the transition is allowed from.
"""

import time
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from residency.core.exceptions import (
    BookingNotFound,
    InvalidTransition,
    ResidencyError,
    RoomAlreadyBooked,
)
from residency.core.logging import get_logger
from residency.core.metrics import booking_latency, record_booking_attempt, record_transition
from residency.models.booking import (
    ALLOWED_TRANSITIONS,
    Booking,
    BookingStatus,
    PaymentMethod,
)
from residency.models.payment import OPEN_PAYMENT_STATUSES, Payment, PaymentStatus
from residency.services import audit_log
from residency.services.access_guard import Identity
from residency.services.audit_log import AuditAction
from residency.services.catalog_service import load_booking_references
from residency.services.pricing import quote

logger = get_logger(__name__)

DOUBLE_BOOKING_CONSTRAINT = "no_double_booking"
EXCLUSION_VIOLATION = "23P01"

INITIAL_STATES = {
    PaymentMethod.ONLINE: (BookingStatus.PENDING_PAYMENT, PaymentStatus.PENDING),
    PaymentMethod.BANK_TRANSFER: (
        BookingStatus.PENDING_VERIFICATION,
        PaymentStatus.PENDING_VERIFICATION,
    ),
}

RECEIPT_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.OCCUPIED, BookingStatus.COMPLETED)


@dataclass(frozen=True)
class BookingReceipt:
    booking_id: int
    payment_id: int
    status: BookingStatus
    total_price: Decimal
    start_date: date
    end_date: date


def _is_double_booking(error: IntegrityError) -> bool:
    orig = error.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate is None and orig is not None:
        sqlstate = getattr(orig.__cause__, "sqlstate", None)
    return sqlstate == EXCLUSION_VIOLATION or DOUBLE_BOOKING_CONSTRAINT in str(orig)


async def _insert_payment(
    db: AsyncSession,
    booking: Booking,
    method: PaymentMethod,
    status: PaymentStatus,
) -> Payment:
    payment = Payment(
        booking_id=booking.id,
        amount=booking.total_price,
        method=method.value,
        status=status.value,
    )
    db.add(payment)
    await db.flush()
    return payment


async def create_booking(
    db: AsyncSession,
    student_id: int,
    room_id: int,
    term_id: int,
    package_id: int,
    payment_method: PaymentMethod,
) -> BookingReceipt:
    """
    Create a booking and its payment as one unit of work.

    Raises InvalidReference for unknown catalog ids and RoomAlreadyBooked
    when the room is already held for an overlapping range.
    """
    method = PaymentMethod(payment_method)
    started = time.perf_counter()

    try:
        refs = await load_booking_references(db, room_id, term_id, package_id)
        priced = quote(refs.room, refs.package, refs.term)
        booking_status, payment_status = INITIAL_STATES[method]

        booking = Booking(
            student_id=student_id,
            room_id=refs.room.id,
            academic_term_id=refs.term.id,
            booking_package_id=refs.package.id,
            start_date=priced.start_date,
            end_date=priced.end_date,
            status=booking_status.value,
            total_price=priced.total_price,
            payment_method=method.value,
        )
        db.add(booking)
        await db.flush()

        payment = await _insert_payment(db, booking, method, payment_status)
        receipt = BookingReceipt(
            booking_id=booking.id,
            payment_id=payment.id,
            status=booking_status,
            total_price=priced.total_price,
            start_date=priced.start_date,
            end_date=priced.end_date,
        )
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        if _is_double_booking(e):
            record_booking_attempt("conflict")
            logger.info(
                "booking_conflict",
                room_id=room_id,
                term_id=term_id,
                package_id=package_id,
                student_id=student_id,
            )
            raise RoomAlreadyBooked()
        record_booking_attempt("error")
        logger.error("booking_insert_failed", room_id=room_id, error=str(e.orig))
        raise
    except ResidencyError:
        await db.rollback()
        record_booking_attempt("invalid")
        raise
    except Exception:
        await db.rollback()
        record_booking_attempt("error")
        raise
    finally:
        booking_latency.observe(time.perf_counter() - started)

    record_booking_attempt("success")
    logger.info(
        "booking_created",
        booking_id=receipt.booking_id,
        payment_id=receipt.payment_id,
        student_id=student_id,
        room_id=room_id,
        status=booking_status.value,
        total_price=str(receipt.total_price),
    )

    await audit_log.record_action(
        db,
        AuditAction.BOOKING_CREATED,
        target_id=receipt.booking_id,
        actor_id=student_id,
        details={
            "paymentId": receipt.payment_id,
            "roomId": room_id,
            "paymentMethod": method.value,
            "totalPrice": str(receipt.total_price),
        },
    )
    return receipt


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def _visible_to(identity: Identity):
    if identity.is_staff:
        return ()
    return (Booking.student_id == identity.user_id,)


async def get_booking_for(db: AsyncSession, identity: Identity, booking_id: int) -> Booking:
    """Students see only their own bookings; staff see all. Others get 404."""
    result = await db.execute(
        select(Booking)
        .where(Booking.id == booking_id, *_visible_to(identity))
        .options(
            selectinload(Booking.room),
            selectinload(Booking.package),
            selectinload(Booking.term),
        )
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if booking is None:
        raise BookingNotFound()
    return booking


async def list_bookings_for_student(db: AsyncSession, student_id: int) -> list[Booking]:
    result = await db.execute(
        select(Booking)
        .where(Booking.student_id == student_id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return list(result.scalars().all())


def build_invoice(booking: Booking) -> dict:
    """
    Invoice (or receipt, once paid) for a booking loaded with its room and
    package. The duration comes from the booking's own package.
    """
    months = booking.package.duration_months
    is_receipt = BookingStatus(booking.status) in RECEIPT_STATUSES
    return {
        "number": f"{'RC' if is_receipt else 'INV'}{booking.id}",
        "kind": "receipt" if is_receipt else "invoice",
        "booking_id": booking.id,
        "student_id": booking.student_id,
        "status": booking.status,
        "payment_method": booking.payment_method,
        "room_number": booking.room.room_number,
        "room_type": booking.room.type,
        "start_date": booking.start_date,
        "end_date": booking.end_date,
        "duration_months": months,
        "duration_label": f"{months} Month" if months == 1 else f"{months} Months",
        "total_price": booking.total_price,
    }


# ---------------------------------------------------------------------------
# Lifecycle transitions
# ---------------------------------------------------------------------------

async def _transition(
    db: AsyncSession,
    identity: Identity,
    booking_id: int,
    target: BookingStatus,
    action: str,
    values: Optional[dict] = None,
) -> Booking:
    sources = [s.value for s in ALLOWED_TRANSITIONS[target]]
    try:
        result = await db.execute(
            update(Booking)
            .where(
                Booking.id == booking_id,
                Booking.status.in_(sources),
                *_visible_to(identity),
            )
            .values(status=target.value, **(values or {}))
            .returning(Booking.id, Booking.status)
            .execution_options(synchronize_session=False)
        )
        applied = result.first() is not None

        if applied and target == BookingStatus.CANCELLED:
            # Close the booking's open payment in the same transaction. Booking row
            # first, then payment: the order payment settlement locks them in
            await db.execute(
                update(Payment)
                .where(
                    Payment.booking_id == booking_id,
                    Payment.status.in_([s.value for s in OPEN_PAYMENT_STATUSES]),
                )
                .values(status=PaymentStatus.FAILED.value)
                .execution_options(synchronize_session=False)
            )

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    record_transition(target.value, applied)

    if not applied:
        # Distinguish "not yours / not there" from "wrong state"
        await get_booking_for(db, identity, booking_id)
        logger.info(
            "booking_transition_rejected",
            booking_id=booking_id,
            target=target.value,
            actor_id=identity.user_id,
        )
        raise InvalidTransition()

    logger.info(
        "booking_transitioned",
        booking_id=booking_id,
        target=target.value,
        actor_id=identity.user_id,
    )
    await audit_log.record_action(
        db,
        action,
        target_id=booking_id,
        actor_id=identity.user_id,
        details={"status": target.value},
    )
    return await get_booking_for(db, identity, booking_id)


async def check_in(db: AsyncSession, identity: Identity, booking_id: int) -> Booking:
    return await _transition(
        db, identity, booking_id, BookingStatus.OCCUPIED, AuditAction.CHECKED_IN,
        values={"checked_in_at": func.now()},
    )


async def check_out(db: AsyncSession, identity: Identity, booking_id: int) -> Booking:
    return await _transition(
        db, identity, booking_id, BookingStatus.COMPLETED, AuditAction.CHECKED_OUT,
        values={"checked_out_at": func.now()},
    )


async def cancel_booking(db: AsyncSession, identity: Identity, booking_id: int) -> Booking:
    return await _transition(
        db, identity, booking_id, BookingStatus.CANCELLED, AuditAction.BOOKING_CANCELLED,
    )


async def hold_for_maintenance(db: AsyncSession, identity: Identity, booking_id: int) -> Booking:
    return await _transition(
        db, identity, booking_id, BookingStatus.MAINTENANCE, AuditAction.MAINTENANCE_HOLD,
    )
