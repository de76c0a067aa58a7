"""
Catalog reads: rooms, academic terms and booking packages.

The booking ledger always reads these straight from the database; only the
public listings below go through the Redis cache.
"""

from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from residency.core.exceptions import InvalidReference
from residency.core.logging import get_logger
from residency.models.catalog import AcademicTerm, BookingPackage, Room
from residency.services import audit_log
from residency.services.audit_log import AuditAction
from residency.services.cache_service import invalidate_catalog_cache

logger = get_logger(__name__)


@dataclass(frozen=True)
class BookingReferences:
    room: Room
    term: AcademicTerm
    package: BookingPackage


async def load_booking_references(
    db: AsyncSession,
    room_id: int,
    term_id: int,
    package_id: int,
) -> BookingReferences:
    """
    Load the three rows a booking is priced from in a single statement.

    The filtered cross join yields exactly one row when all three ids exist
    and none otherwise; a missing id is reported as InvalidReference without
    saying which.
    """
    result = await db.execute(
        select(Room, AcademicTerm, BookingPackage).where(
            Room.id == room_id,
            AcademicTerm.id == term_id,
            BookingPackage.id == package_id,
        )
    )
    row = result.one_or_none()

    if row is None:
        logger.warning(
            "booking_reference_invalid",
            room_id=room_id,
            term_id=term_id,
            package_id=package_id,
        )
        raise InvalidReference()

    room, term, package = row
    return BookingReferences(room=room, term=term, package=package)


async def list_rooms(db: AsyncSession) -> list[Room]:
    result = await db.execute(select(Room).order_by(Room.room_number.asc()))
    return list(result.scalars().all())


async def list_terms(db: AsyncSession) -> list[AcademicTerm]:
    result = await db.execute(select(AcademicTerm).order_by(AcademicTerm.start_date.asc()))
    return list(result.scalars().all())


async def list_packages(db: AsyncSession) -> list[BookingPackage]:
    result = await db.execute(
        select(BookingPackage).order_by(BookingPackage.duration_months.asc())
    )
    return list(result.scalars().all())


async def set_room_availability(db: AsyncSession, staff, room_id: int, is_available: bool) -> Room:
    """
    Staff toggle for listing a room. Existing bookings are unaffected; only
    the public listing changes, so the listing cache is dropped.
    """
    try:
        result = await db.execute(
            update(Room)
            .where(Room.id == room_id)
            .values(is_available=is_available)
            .returning(Room.id)
            .execution_options(synchronize_session=False)
        )
        if result.first() is None:
            await db.rollback()
            raise InvalidReference("Room not found")
        await db.commit()
    except SQLAlchemyError:
        await db.rollback()
        raise

    logger.info("room_availability_changed", room_id=room_id, is_available=is_available)
    await invalidate_catalog_cache()
    await audit_log.record_action(
        db,
        AuditAction.ROOM_AVAILABILITY_CHANGED,
        target_id=room_id,
        actor_id=staff.user_id,
        details={"isAvailable": is_available},
    )
    return await db.get(Room, room_id, populate_existing=True)
