"""
Catalog models: rooms, academic terms and booking packages.

These rows are read-only from the booking core's point of view. Bookings
reference them by id and every price or date derived from them is computed
server-side from the stored values.
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, Date, Numeric, JSON, CheckConstraint,
)

from residency.db.base import Base, TimestampMixin


class Room(Base, TimestampMixin):
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    room_number = Column(String(20), unique=True, nullable=False)
    type = Column(String(20), nullable=False, default="Single")
    price_per_month = Column(Numeric(10, 2), nullable=False)
    gender_restriction = Column(String(10), nullable=False, default="Any")
    is_available = Column(Boolean, nullable=False, default=True)
    amenities = Column(JSON, nullable=False, default=list)

    __table_args__ = (
        CheckConstraint("price_per_month >= 0", name="check_room_price_non_negative"),
        CheckConstraint("type IN ('Single', 'Double', 'Suite')", name="check_room_type"),
        CheckConstraint(
            "gender_restriction IN ('Male', 'Female', 'Any')",
            name="check_room_gender_restriction",
        ),
    )

    def __repr__(self) -> str:
        return f"<Room(id={self.id}, number={self.room_number}, rate={self.price_per_month})>"


class AcademicTerm(Base, TimestampMixin):
    __tablename__ = "academic_terms"

    id = Column(Integer, primary_key=True, index=True)
    term_name = Column(String(100), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)

    __table_args__ = (
        CheckConstraint("end_date > start_date", name="check_term_dates"),
    )

    def __repr__(self) -> str:
        return f"<AcademicTerm(id={self.id}, name={self.term_name}, start={self.start_date})>"


class BookingPackage(Base, TimestampMixin):
    __tablename__ = "booking_packages"

    id = Column(Integer, primary_key=True, index=True)
    duration_months = Column(Integer, nullable=False)
    discount_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    description = Column(String(255), nullable=True)

    __table_args__ = (
        CheckConstraint("duration_months > 0", name="check_package_duration_positive"),
        CheckConstraint(
            "discount_percentage >= 0 AND discount_percentage <= 100",
            name="check_package_discount_range",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<BookingPackage(id={self.id}, months={self.duration_months}, "
            f"discount={self.discount_percentage})>"
        )
