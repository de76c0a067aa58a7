"""
Pydantic schemas for catalog listings and admin views.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional
from pydantic import BaseModel


class RoomResponse(BaseModel):
    id: int
    room_number: str
    type: str
    price_per_month: Decimal
    gender_restriction: str
    is_available: bool
    amenities: list[str]

    model_config = {"from_attributes": True}


class RoomAvailabilityUpdate(BaseModel):
    is_available: bool


class AcademicTermResponse(BaseModel):
    id: int
    term_name: str
    start_date: date
    end_date: date

    model_config = {"from_attributes": True}


class BookingPackageResponse(BaseModel):
    id: int
    duration_months: int
    discount_percentage: Decimal
    description: Optional[str]

    model_config = {"from_attributes": True}


class AdminAnalyticsResponse(BaseModel):
    totalRevenue: Decimal
    occupancyRate: float
    currentlyOccupiedRooms: int
    totalRooms: int
    upcomingCheckIns: int
    upcomingCheckOuts: int


class AuditLogEntryResponse(BaseModel):
    id: int
    user_id: Optional[int]
    action: str
    target_id: str
    details: dict[str, Any]
    created_at: datetime

    model_config = {"from_attributes": True}
