"""
Booking Service

Loads booking types, availability rules and existing bookings from the
database and runs the pure slot computation over them. Also creates
bookings after a conflict check.
"""

import logging
from collections import defaultdict
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, List, Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from copilot.config import settings
from copilot.errors import BookingTypeNotFound, SlotUnavailable
from . import models
from .schemas import (
    BookingResponse,
    BookingTypeSummary,
    CreateBookingRequest,
    CreateBookingResponse,
    SlotResponse,
    SlotsResponse,
)
from .slots import (
    AvailabilityRule,
    Booking,
    BookingTypeConfig,
    Slot,
    compute_slots,
    day_of_week,
    is_blocked,
    resolve_timezone,
)

logger = logging.getLogger(__name__)


def build_config(booking_type: models.BookingType) -> BookingTypeConfig:
    """Slot parameters for a booking type; missing values fall back to defaults."""
    duration = booking_type.duration_minutes
    if duration is None:
        duration = settings.DEFAULT_SLOT_DURATION_MINUTES
    return BookingTypeConfig(
        duration_minutes=duration,
        buffer_before_minutes=booking_type.buffer_before_minutes or 0,
        buffer_after_minutes=booking_type.buffer_after_minutes or 0,
    )


async def get_booking_type(db: AsyncSession, booking_type_id: str) -> models.BookingType:
    result = await db.execute(
        select(models.BookingType)
        .where(models.BookingType.id == booking_type_id)
        .where(models.BookingType.is_active == True)
    )
    booking_type = result.scalar_one_or_none()
    if booking_type is None:
        raise BookingTypeNotFound(f"Booking type not found: {booking_type_id}")
    return booking_type


async def _load_bookings(
    db: AsyncSession,
    organization_id: str,
    window_start: datetime,
    window_end: datetime,
) -> List[Booking]:
    """Non-cancelled bookings overlapping [window_start, window_end)."""
    result = await db.execute(
        select(models.Booking).where(
            and_(
                models.Booking.organization_id == organization_id,
                models.Booking.status != "cancelled",
                models.Booking.start_time < window_end,
                models.Booking.end_time > window_start,
            )
        )
    )
    return [
        Booking(start_time=row.start_time, end_time=row.end_time, status=row.status)
        for row in result.scalars().all()
    ]


def _to_response(slot: Slot) -> SlotResponse:
    return SlotResponse(start_time=slot.start_time, end_time=slot.end_time, available=slot.available)


async def get_slots_for_date(
    db: AsyncSession,
    booking_type_id: str,
    day: date,
    timezone_name: Optional[str] = None,
    now: Optional[datetime] = None,
) -> SlotsResponse:
    """
    Compute available and blocked slots for a booking type on a given day.

    Rule times are read in each rule's own timezone; rules sharing a
    timezone are computed together and the combined list is sorted.

    Args:
        db: Database session
        booking_type_id: Booking type to generate slots for
        day: Requested calendar date
        timezone_name: Requester's timezone, echoed back in the response
        now: Reference instant for past-slot checks (defaults to now)

    Returns:
        SlotsResponse with `slots` (available only) and `all_slots`
    """
    timezone_name = timezone_name or settings.DEFAULT_TIMEZONE
    resolve_timezone(timezone_name)

    booking_type = await get_booking_type(db, booking_type_id)
    config = build_config(booking_type)

    summary = BookingTypeSummary(
        id=booking_type.id,
        name=booking_type.name,
        duration_minutes=config.duration_minutes,
        price=booking_type.price,
    )

    result = await db.execute(
        select(models.AvailabilityRule)
        .where(models.AvailabilityRule.organization_id == booking_type.organization_id)
        .where(models.AvailabilityRule.day_of_week == day_of_week(day))
        .where(models.AvailabilityRule.is_active == True)
    )
    rule_rows = result.scalars().all()

    if not rule_rows:
        return SlotsResponse(
            booking_type=summary,
            date=day,
            timezone=timezone_name,
            slots=[],
            all_slots=[],
            message="No availability on this day",
        )

    rules_by_zone: Dict[str, List[AvailabilityRule]] = defaultdict(list)
    for row in rule_rows:
        rules_by_zone[row.timezone or "UTC"].append(
            AvailabilityRule(day_of_week=row.day_of_week, start_time=row.start_time, end_time=row.end_time)
        )

    # Bookings that could touch any slot of the day once buffers are applied
    day_start = datetime.combine(day, time.min, tzinfo=timezone.utc) - timedelta(days=1)
    day_end = datetime.combine(day, time.min, tzinfo=timezone.utc) + timedelta(days=2)
    bookings = await _load_bookings(db, booking_type.organization_id, day_start, day_end)

    slots: List[Slot] = []
    for zone_name, zone_rules in rules_by_zone.items():
        slots.extend(compute_slots(zone_rules, bookings, day, config, now=now, timezone_name=zone_name))
    slots.sort(key=lambda s: (s.start_time, s.end_time))

    logger.info(
        f"Computed {len(slots)} slots for booking type {booking_type_id} on {day.isoformat()}"
    )

    all_slots = [_to_response(s) for s in slots]
    return SlotsResponse(
        booking_type=summary,
        date=day,
        timezone=timezone_name,
        slots=[s for s in all_slots if s.available],
        all_slots=all_slots,
    )


async def create_booking(
    db: AsyncSession,
    request: CreateBookingRequest,
    now: Optional[datetime] = None,
) -> CreateBookingResponse:
    """
    Reserve a slot for a booking type.

    The end time is derived from the booking type's duration. The request is
    rejected if it starts in the past or collides with an existing booking
    once the booking type's buffers are applied.

    Raises:
        BookingTypeNotFound: unknown or inactive booking type
        SlotUnavailable: start in the past or conflicting booking
    """
    now = now or datetime.now(timezone.utc)
    booking_type = await get_booking_type(db, request.booking_type_id)
    config = build_config(booking_type)
    config.validate()

    start = request.start_time
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    end = start + timedelta(minutes=config.duration_minutes)

    if start < now:
        raise SlotUnavailable("Cannot book a slot in the past")

    window_start = start - timedelta(minutes=config.buffer_before_minutes)
    window_end = end + timedelta(minutes=config.buffer_after_minutes)
    existing = await _load_bookings(db, booking_type.organization_id, window_start, window_end)
    if is_blocked(start, end, existing, config):
        raise SlotUnavailable("Time slot is no longer available")

    who = request.contact_name or request.contact_email or "guest"
    booking = models.Booking(
        organization_id=booking_type.organization_id,
        booking_type_id=booking_type.id,
        title=f"{booking_type.name} - {who}",
        start_time=start,
        end_time=end,
        status="confirmed",
        notes=request.notes,
        extra_data={
            **request.metadata,
            "contact_email": request.contact_email,
            "contact_name": request.contact_name,
            "contact_phone": request.contact_phone,
            "booked_at": now.isoformat(),
        },
    )
    db.add(booking)
    await db.flush()

    logger.info(f"Booking created: {booking.id} for booking type {booking_type.id} at {start.isoformat()}")

    return CreateBookingResponse(success=True, booking=BookingResponse.model_validate(booking))
