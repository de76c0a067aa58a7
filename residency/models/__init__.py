from residency.models.user import User, UserRole
from residency.models.catalog import Room, AcademicTerm, BookingPackage
from residency.models.booking import Booking, BookingStatus, PaymentMethod
from residency.models.payment import Payment, PaymentStatus
from residency.models.audit import AuditLogEntry

__all__ = [
    "User", "UserRole",
    "Room", "AcademicTerm", "BookingPackage",
    "Booking", "BookingStatus", "PaymentMethod",
    "Payment", "PaymentStatus",
    "AuditLogEntry",
]
