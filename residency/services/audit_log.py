"""
Audit log writer.

Entries are written after the business transaction has committed, in their
own short transaction. A failed audit write is rolled back, logged and
counted, but never undoes the booking or payment change it describes.
"""

from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from residency.core.logging import get_logger
from residency.core.metrics import record_audit_failure
from residency.models.audit import AuditLogEntry

logger = get_logger(__name__)


class AuditAction:
    BOOKING_CREATED = "Booking Created"
    BOOKING_CANCELLED = "Booking Cancelled"
    CHECKED_IN = "Checked In"
    CHECKED_OUT = "Checked Out"
    MAINTENANCE_HOLD = "Maintenance Hold"
    PAYMENT_SUCCEEDED_WEBHOOK = "Payment Succeeded via Webhook"
    PAYMENT_FAILED_WEBHOOK = "Payment Failed via Webhook"
    BANK_TRANSFER_VERIFIED = "Verified Bank Transfer"
    ROOM_AVAILABILITY_CHANGED = "Room Availability Changed"


async def record_action(
    db: AsyncSession,
    action: str,
    target_id: Any,
    actor_id: Optional[int] = None,
    details: Optional[dict] = None,
) -> bool:
    """Append one audit entry. Returns False if it could not be written."""
    entry = AuditLogEntry(
        user_id=actor_id,
        action=action,
        target_id=str(target_id),
        details=details or {},
    )
    try:
        db.add(entry)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        record_audit_failure()
        logger.error(
            "audit_write_failed",
            action=action,
            target_id=str(target_id),
            actor_id=actor_id,
            error=str(e),
        )
        return False

    logger.info("audit_recorded", action=action, target_id=str(target_id), actor_id=actor_id)
    return True


async def list_entries(db: AsyncSession, limit: int = 100) -> list[AuditLogEntry]:
    result = await db.execute(
        select(AuditLogEntry)
        .order_by(AuditLogEntry.created_at.desc(), AuditLogEntry.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
