"""
Domain error taxonomy for the booking and payment core.

Every error carries a stable machine-readable code and the HTTP status the
API boundary renders it with. Services raise these; they never build HTTP
responses themselves.

  Input errors          -> 400  (caller sent bad or unverifiable data)
  Authorization errors  -> 401 / 403
  Conflict errors       -> 404 / 409  (routine race or repeat outcomes)
  Infrastructure errors -> 5xx  (safe to retry, nothing partial was committed)
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    INVALID_PRICING_INPUT = "INVALID_PRICING_INPUT"
    INVALID_REFERENCE = "INVALID_REFERENCE"
    MALFORMED_WEBHOOK_PAYLOAD = "MALFORMED_WEBHOOK_PAYLOAD"
    WEBHOOK_SIGNATURE_INVALID = "WEBHOOK_SIGNATURE_INVALID"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    BOOKING_NOT_FOUND = "BOOKING_NOT_FOUND"
    ROOM_ALREADY_BOOKED = "ROOM_ALREADY_BOOKED"
    ALREADY_PROCESSED_OR_NOT_FOUND = "ALREADY_PROCESSED_OR_NOT_FOUND"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    EMAIL_ALREADY_REGISTERED = "EMAIL_ALREADY_REGISTERED"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"


class ResidencyError(Exception):
    """Base class for errors that reach the API boundary with a known status."""

    status_code: int = 500
    code: ErrorCode = ErrorCode.STORE_UNAVAILABLE
    default_message: str = "Unexpected error"

    def __init__(self, message: Optional[str] = None, **context: Any):
        self.message = message or self.default_message
        self.context: Dict[str, Any] = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code.value}


# Input errors

class InvalidPricingInput(ResidencyError):
    status_code = 400
    code = ErrorCode.INVALID_PRICING_INPUT
    default_message = "Invalid pricing input"


class InvalidReference(ResidencyError):
    status_code = 400
    code = ErrorCode.INVALID_REFERENCE
    default_message = "Invalid room, booking package, or academic term provided."


class MalformedWebhookPayload(ResidencyError):
    status_code = 400
    code = ErrorCode.MALFORMED_WEBHOOK_PAYLOAD
    default_message = "Malformed webhook payload"


class WebhookSignatureInvalid(ResidencyError):
    status_code = 400
    code = ErrorCode.WEBHOOK_SIGNATURE_INVALID
    default_message = "Webhook signature could not be verified"


# Authorization errors

class Unauthorized(ResidencyError):
    status_code = 401
    code = ErrorCode.UNAUTHORIZED
    default_message = "Could not validate credentials"


class Forbidden(ResidencyError):
    status_code = 403
    code = ErrorCode.FORBIDDEN
    default_message = "Forbidden: Insufficient permissions."


class ProfileNotFound(Forbidden):
    default_message = "Forbidden: User profile not found."


# Conflict errors

class BookingNotFound(ResidencyError):
    status_code = 404
    code = ErrorCode.BOOKING_NOT_FOUND
    default_message = "Booking not found"


class RoomAlreadyBooked(ResidencyError):
    status_code = 409
    code = ErrorCode.ROOM_ALREADY_BOOKED
    default_message = "This room is already booked for the selected dates."


class AlreadyProcessedOrNotFound(ResidencyError):
    status_code = 409
    code = ErrorCode.ALREADY_PROCESSED_OR_NOT_FOUND
    default_message = "Payment has already been processed or does not exist."


class InvalidTransition(ResidencyError):
    status_code = 409
    code = ErrorCode.INVALID_TRANSITION
    default_message = "Booking is not in a state that allows this action."


class EmailAlreadyRegistered(ResidencyError):
    status_code = 409
    code = ErrorCode.EMAIL_ALREADY_REGISTERED
    default_message = "Email already registered"


# Infrastructure errors

class StoreUnavailable(ResidencyError):
    status_code = 500
    code = ErrorCode.STORE_UNAVAILABLE
    default_message = "The booking store could not complete the request. Please retry."
