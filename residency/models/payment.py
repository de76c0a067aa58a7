"""
Payment model: the monetary record tied to a booking.

Pending -> Succeeded | Failed is one-way. Every transition is a conditional
UPDATE on the current status, so the partial unique index below plus the
status guard keep at most one open payment per booking.
"""

import enum

from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, CheckConstraint, Index, text
from sqlalchemy.orm import relationship

from residency.db.base import Base, TimestampMixin


class PaymentStatus(str, enum.Enum):
    PENDING = "Pending"
    PENDING_VERIFICATION = "Pending Verification"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


OPEN_PAYMENT_STATUSES = (PaymentStatus.PENDING, PaymentStatus.PENDING_VERIFICATION)


class Payment(Base, TimestampMixin):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(
        Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount = Column(Numeric(10, 2), nullable=False)
    method = Column(String(20), nullable=False)
    status = Column(String(30), nullable=False)
    provider_transaction_id = Column(String(255), nullable=True, unique=True)

    booking = relationship("Booking", back_populates="payments", lazy="noload")

    __table_args__ = (
        CheckConstraint("amount >= 0", name="check_payment_amount_non_negative"),
        CheckConstraint("method IN ('Online', 'Bank Transfer')", name="check_payment_method"),
        CheckConstraint(
            "status IN ('Pending', 'Pending Verification', 'Succeeded', 'Failed')",
            name="check_payment_status",
        ),
        Index(
            "uq_payments_one_open_per_booking",
            "booking_id",
            unique=True,
            postgresql_where=text("status IN ('Pending', 'Pending Verification')"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, booking={self.booking_id}, status={self.status})>"
