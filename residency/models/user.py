"""
Profile model: one row per identity, carrying the role used for access checks.
"""

import enum

from sqlalchemy import Column, Integer, String, Boolean, CheckConstraint
from sqlalchemy.orm import relationship

from residency.db.base import Base, TimestampMixin


class UserRole(str, enum.Enum):
    STUDENT = "student"
    STAFF = "staff"
    PROPRIETOR = "proprietor"


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.STUDENT.value)
    gender = Column(String(10), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    bookings = relationship("Booking", back_populates="student", lazy="noload")

    __table_args__ = (
        CheckConstraint("role IN ('student', 'staff', 'proprietor')", name="check_user_role"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
