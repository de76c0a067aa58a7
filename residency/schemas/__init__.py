from residency.schemas.user import UserCreate, UserResponse, UserLogin, Token
from residency.schemas.booking import (
    BookingCreate, BookingCreatedResponse, BookingResponse, InvoiceResponse,
)
from residency.schemas.payment import BankTransferVerification, BankTransferVerified, WebhookAck
from residency.schemas.catalog import (
    RoomResponse, RoomAvailabilityUpdate, AcademicTermResponse, BookingPackageResponse,
    AdminAnalyticsResponse, AuditLogEntryResponse,
)

__all__ = [
    "UserCreate", "UserResponse", "UserLogin", "Token",
    "BookingCreate", "BookingCreatedResponse", "BookingResponse", "InvoiceResponse",
    "BankTransferVerification", "BankTransferVerified", "WebhookAck",
    "RoomResponse", "RoomAvailabilityUpdate", "AcademicTermResponse", "BookingPackageResponse",
    "AdminAnalyticsResponse", "AuditLogEntryResponse",
]
