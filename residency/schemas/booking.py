"""
Pydantic schemas for booking requests and responses.

The create request deliberately has no price or date fields; anything of the
sort sent by a client is dropped during validation.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from residency.db.base import MAX_ID
from residency.models.booking import PaymentMethod


class BookingCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    room_id: int = Field(..., gt=0, le=MAX_ID, alias="roomId")
    academic_term_id: int = Field(..., gt=0, le=MAX_ID, alias="academicTermId")
    booking_package_id: int = Field(..., gt=0, le=MAX_ID, alias="bookingPackageId")
    payment_method: PaymentMethod = Field(..., alias="paymentMethod")


class BookingCreatedResponse(BaseModel):
    bookingId: int
    paymentId: int
    status: str
    totalPrice: Decimal
    startDate: date
    endDate: date


class BookingResponse(BaseModel):
    id: int
    student_id: int
    room_id: int
    academic_term_id: int
    booking_package_id: int
    start_date: date
    end_date: date
    status: str
    total_price: Decimal
    payment_method: str
    created_at: datetime
    checked_in_at: Optional[datetime] = None
    checked_out_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class InvoiceResponse(BaseModel):
    number: str
    kind: str
    booking_id: int
    student_id: int
    status: str
    payment_method: str
    room_number: str
    room_type: str
    start_date: date
    end_date: date
    duration_months: int
    duration_label: str
    total_price: Decimal
