"""Pydantic schemas for booking API requests and responses."""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field


class SlotResponse(BaseModel):
    """A single candidate slot."""
    start_time: datetime
    end_time: datetime
    available: bool


class BookingTypeSummary(BaseModel):
    id: str
    name: str
    duration_minutes: int
    price: Optional[Decimal] = None


class SlotsResponse(BaseModel):
    """Slots for one booking type on one day."""
    booking_type: BookingTypeSummary
    date: date
    timezone: str
    slots: List[SlotResponse]  # available only
    all_slots: List[SlotResponse]
    message: Optional[str] = None


class CreateBookingRequest(BaseModel):
    """Request to reserve a slot."""
    booking_type_id: str
    start_time: datetime
    contact_email: Optional[EmailStr] = None
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    notes: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class BookingResponse(BaseModel):
    id: str
    booking_type_id: Optional[str]
    title: Optional[str]
    start_time: datetime
    end_time: datetime
    status: str

    class Config:
        from_attributes = True


class CreateBookingResponse(BaseModel):
    success: bool
    booking: BookingResponse
