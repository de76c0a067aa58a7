"""
Booking model: a student's reservation of a room for a date range.

Key design decisions:
- Price and dates are always written by the booking ledger from catalog rows,
  never taken from the client.
- The `no_double_booking` exclusion constraint makes overlapping active
  bookings for the same room impossible at the database level. Two concurrent
  inserts race on the constraint and exactly one commits.
- Ranges are half-open: a booking ending on the 1st does not overlap one
  starting on the 1st.
"""

import enum

from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Numeric, ForeignKey, CheckConstraint, Index, text,
)
from sqlalchemy.dialects.postgresql import ExcludeConstraint
from sqlalchemy.orm import relationship

from residency.db.base import Base, TimestampMixin


class BookingStatus(str, enum.Enum):
    RESERVED = "Reserved"
    PENDING_PAYMENT = "Pending Payment"
    PENDING_VERIFICATION = "Pending Verification"
    CONFIRMED = "Confirmed"
    OCCUPIED = "Occupied"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    MAINTENANCE = "Maintenance"


class PaymentMethod(str, enum.Enum):
    ONLINE = "Online"
    BANK_TRANSFER = "Bank Transfer"


# Statuses that hold the room; these participate in the exclusion constraint.
ACTIVE_STATUSES = (
    BookingStatus.CONFIRMED,
    BookingStatus.OCCUPIED,
    BookingStatus.RESERVED,
    BookingStatus.PENDING_PAYMENT,
    BookingStatus.PENDING_VERIFICATION,
)

PENDING_STATUSES = (BookingStatus.PENDING_PAYMENT, BookingStatus.PENDING_VERIFICATION)

TERMINAL_STATUSES = (BookingStatus.COMPLETED, BookingStatus.CANCELLED)

# target status -> statuses it may be entered from
ALLOWED_TRANSITIONS = {
    BookingStatus.CONFIRMED: PENDING_STATUSES,
    BookingStatus.OCCUPIED: (BookingStatus.CONFIRMED,),
    BookingStatus.COMPLETED: (BookingStatus.OCCUPIED,),
    BookingStatus.CANCELLED: (
        BookingStatus.PENDING_PAYMENT,
        BookingStatus.PENDING_VERIFICATION,
        BookingStatus.CONFIRMED,
    ),
    BookingStatus.MAINTENANCE: ACTIVE_STATUSES,
}


def _sql_in(statuses) -> str:
    return ", ".join(f"'{s.value}'" for s in statuses)


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    academic_term_id = Column(Integer, ForeignKey("academic_terms.id"), nullable=False)
    booking_package_id = Column(Integer, ForeignKey("booking_packages.id"), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(30), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    payment_method = Column(String(20), nullable=False)
    checked_in_at = Column(DateTime(timezone=True), nullable=True)
    checked_out_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    student = relationship("User", back_populates="bookings", lazy="noload")
    room = relationship("Room", lazy="noload")
    package = relationship("BookingPackage", lazy="noload")
    term = relationship("AcademicTerm", lazy="noload")
    payments = relationship("Payment", back_populates="booking", lazy="noload")

    __table_args__ = (
        ExcludeConstraint(
            ("room_id", "="),
            (text("daterange(start_date, end_date, '[)')"), "&&"),
            using="gist",
            where=text(f"status IN ({_sql_in(ACTIVE_STATUSES)})"),
            name="no_double_booking",
        ),
        CheckConstraint("end_date > start_date", name="check_booking_dates"),
        CheckConstraint("total_price >= 0", name="check_booking_total_non_negative"),
        CheckConstraint(
            f"status IN ({_sql_in(BookingStatus)})",
            name="check_booking_status",
        ),
        CheckConstraint(
            "payment_method IN ('Online', 'Bank Transfer')",
            name="check_booking_payment_method",
        ),
        # Analytics queries filter by status and date window
        Index("ix_bookings_status_dates", "status", "start_date", "end_date"),
    )

    @property
    def booked_at(self):
        return self.created_at

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, room={self.room_id}, student={self.student_id}, status={self.status})>"
