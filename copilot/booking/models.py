"""Booking models - booking types, weekly availability and reservations."""
from sqlalchemy import Column, String, DateTime, Text, Boolean, Integer, Numeric, Time, ForeignKey, Index
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from copilot.database import Base
from copilot.base import generate_id


class BookingType(Base):
    """A bookable meeting type (duration, buffers, price) owned by an organization."""

    __tablename__ = "booking_types"

    id = Column(String, primary_key=True, default=lambda: generate_id("bt"))
    organization_id = Column(String, nullable=False, index=True)

    name = Column(String, nullable=False)
    slug = Column(String, nullable=False)
    description = Column(Text, nullable=True)

    # Slot generation
    duration_minutes = Column(Integer, nullable=True, default=30)
    buffer_before_minutes = Column(Integer, nullable=True, default=0)
    buffer_after_minutes = Column(Integer, nullable=True, default=15)

    price = Column(Numeric(precision=10, scale=2), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    settings = Column(JSONB, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_booking_types_org_slug", "organization_id", "slug", unique=True),
    )


class AvailabilityRule(Base):
    """Recurring weekly open window. day_of_week: 0 = Sunday ... 6 = Saturday."""

    __tablename__ = "availability_rules"

    id = Column(String, primary_key=True, default=lambda: generate_id("avail"))
    organization_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=True)

    day_of_week = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    timezone = Column(String, nullable=False, default="UTC")
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Booking(Base):
    """An existing reservation against an organization's calendar."""

    __tablename__ = "bookings"

    id = Column(String, primary_key=True, default=lambda: generate_id("booking"))
    organization_id = Column(String, nullable=False, index=True)
    booking_type_id = Column(String, ForeignKey("booking_types.id", ondelete="SET NULL"), nullable=True)
    contact_id = Column(String, nullable=True)

    title = Column(String, nullable=True)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    status = Column(String, nullable=False, default="confirmed")  # confirmed | cancelled | completed | no_show | rescheduled
    notes = Column(Text, nullable=True)
    extra_data = Column(JSONB, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_bookings_org_start", "organization_id", "start_time"),
    )
