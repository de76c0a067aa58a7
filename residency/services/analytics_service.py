"""
Staff dashboard figures computed in SQL over confirmed and occupied bookings.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from residency.core.config import get_settings
from residency.core.logging import get_logger
from residency.models.booking import Booking, BookingStatus
from residency.models.catalog import Room

logger = get_logger(__name__)
settings = get_settings()

REVENUE_STATUSES = (BookingStatus.CONFIRMED.value, BookingStatus.OCCUPIED.value)


async def get_admin_analytics(db: AsyncSession, today: Optional[date] = None) -> dict:
    today = today or datetime.now(timezone.utc).date()
    horizon = today + timedelta(days=settings.ANALYTICS_WINDOW_DAYS)
    counted = Booking.status.in_(REVENUE_STATUSES)

    total_rooms = (await db.execute(select(func.count(Room.id)))).scalar_one()

    row = (
        await db.execute(
            select(
                func.coalesce(func.sum(Booking.total_price), 0).label("revenue"),
                func.count(func.distinct(Booking.room_id)).filter(
                    and_(Booking.start_date <= today, Booking.end_date >= today)
                ).label("occupied"),
                func.count(Booking.id).filter(
                    and_(Booking.start_date > today, Booking.start_date <= horizon)
                ).label("check_ins"),
                func.count(Booking.id).filter(
                    and_(Booking.end_date >= today, Booking.end_date <= horizon)
                ).label("check_outs"),
            ).where(counted)
        )
    ).one()

    occupied = row.occupied or 0
    occupancy_rate = round(occupied / total_rooms * 100, 2) if total_rooms else 0.0

    analytics = {
        "totalRevenue": Decimal(row.revenue).quantize(Decimal("0.01")),
        "occupancyRate": occupancy_rate,
        "currentlyOccupiedRooms": occupied,
        "totalRooms": total_rooms,
        "upcomingCheckIns": row.check_ins or 0,
        "upcomingCheckOuts": row.check_outs or 0,
    }
    logger.info("admin_analytics_computed", total_rooms=total_rooms, occupied=occupied)
    return analytics
