"""
Slot Availability - booking slot generation.

Turns recurring weekly availability rules into discrete bookable slots for
one calendar day:

1. Keep the rules whose day_of_week matches the requested date (0 = Sunday)
2. Walk each rule window in duration-sized steps, dropping trailing partial slots
3. Widen each candidate by the booking type's buffers and test it against
   every non-cancelled booking (half-open overlap)
4. Mark slots that start before "now" as unavailable

Everything here is pure: callers load rules and bookings and pass them in.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Dict, Any, Iterable, List, Optional, Sequence, Tuple, Union

from dateutil import tz

from copilot.errors import InvalidConfiguration, InvalidTimeFormat


# Booking statuses that never block a slot
EXCLUDED_BOOKING_STATUSES = frozenset({"cancelled"})

TimeOfDay = Union[str, time]


@dataclass(frozen=True)
class AvailabilityRule:
    """A recurring weekly open window, e.g. Mondays 09:00-17:00."""
    day_of_week: int  # 0 = Sunday ... 6 = Saturday
    start_time: TimeOfDay
    end_time: TimeOfDay


@dataclass(frozen=True)
class Booking:
    """An existing reservation."""
    start_time: datetime
    end_time: datetime
    status: str = "confirmed"


@dataclass(frozen=True)
class BookingTypeConfig:
    """Slot generation parameters taken from a booking type."""
    duration_minutes: int
    buffer_before_minutes: int = 0
    buffer_after_minutes: int = 0

    def validate(self) -> None:
        if self.duration_minutes <= 0:
            raise InvalidConfiguration(
                f"duration_minutes must be positive, got {self.duration_minutes}"
            )
        if self.buffer_before_minutes < 0 or self.buffer_after_minutes < 0:
            raise InvalidConfiguration("buffer minutes cannot be negative")


@dataclass
class Slot:
    """A candidate slot. Derived per request, never stored."""
    start_time: datetime
    end_time: datetime
    available: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "available": self.available,
        }


# =============================================================================
# Helpers
# =============================================================================

def parse_time_of_day(value: TimeOfDay) -> time:
    """
    Parse "HH:MM" or "HH:MM:SS" (Postgres TIME text) into a time.

    Raises:
        InvalidTimeFormat: for anything that is not a valid time of day
    """
    if isinstance(value, time):
        return value
    if not isinstance(value, str):
        raise InvalidTimeFormat(f"Expected a time string, got {type(value).__name__}")

    parts = value.strip().split(":")
    if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
        raise InvalidTimeFormat(f"Invalid time of day: {value!r}")

    hour, minute = int(parts[0]), int(parts[1])
    second = int(parts[2]) if len(parts) == 3 else 0
    try:
        return time(hour, minute, second)
    except ValueError:
        raise InvalidTimeFormat(f"Invalid time of day: {value!r}")


def day_of_week(day: date) -> int:
    """Weekday index with Sunday = 0, matching availability_rules.day_of_week."""
    return (day.weekday() + 1) % 7


def resolve_timezone(name: str) -> tzinfo:
    zone = tz.UTC if name.upper() == "UTC" else tz.gettz(name)
    if zone is None:
        raise InvalidConfiguration(f"Unknown timezone: {name}")
    return zone


def _as_utc(value: datetime) -> datetime:
    # Naive datetimes from the store are UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open interval overlap: [a_start, a_end) intersects [b_start, b_end)."""
    return a_start < b_end and a_end > b_start


def is_blocked(
    slot_start: datetime,
    slot_end: datetime,
    bookings: Iterable[Booking],
    config: BookingTypeConfig,
) -> bool:
    """
    Check whether a slot collides with a booking once buffers are applied.

    The slot is widened to [start - buffer_before, end + buffer_after]
    before testing. Cancelled bookings are ignored.
    """
    widened_start = _as_utc(slot_start) - timedelta(minutes=config.buffer_before_minutes)
    widened_end = _as_utc(slot_end) + timedelta(minutes=config.buffer_after_minutes)

    for booking in bookings:
        if booking.status in EXCLUDED_BOOKING_STATUSES:
            continue
        if overlaps(widened_start, widened_end, _as_utc(booking.start_time), _as_utc(booking.end_time)):
            return True
    return False


def _rule_window(
    rule: AvailabilityRule, day: date, zone: tzinfo
) -> Tuple[datetime, datetime]:
    start = parse_time_of_day(rule.start_time)
    end = parse_time_of_day(rule.end_time)
    if end < start:
        raise InvalidConfiguration(
            f"Availability rule ends before it starts ({rule.start_time} - {rule.end_time})"
        )

    window_start = datetime.combine(day, start, tzinfo=zone).astimezone(timezone.utc)
    window_end = datetime.combine(day, end, tzinfo=zone).astimezone(timezone.utc)
    return window_start, window_end


def _validate_rule(rule: AvailabilityRule) -> None:
    if not 0 <= rule.day_of_week <= 6:
        raise InvalidConfiguration(f"day_of_week must be 0-6, got {rule.day_of_week}")


# =============================================================================
# Slot computation
# =============================================================================

def compute_slots(
    rules: Sequence[AvailabilityRule],
    bookings: Sequence[Booking],
    day: date,
    config: BookingTypeConfig,
    now: Optional[datetime] = None,
    timezone_name: str = "UTC",
) -> List[Slot]:
    """
    Enumerate candidate slots for a day and mark each available or blocked.

    Rule times are wall-clock times in ``timezone_name``; returned datetimes
    are UTC. The result is sorted by start time across all rules, and
    identical slots produced by overlapping rules are collapsed.

    Args:
        rules: Availability rules (any weekday; non-matching ones are skipped)
        bookings: Existing bookings for the day
        day: Target calendar date
        config: Duration and buffer settings
        now: Reference instant for the "in the past" check (defaults to now)
        timezone_name: IANA name the rule times are expressed in

    Returns:
        Slots ordered by start time

    Raises:
        InvalidConfiguration: bad duration/buffers, rule day or window, timezone
        InvalidTimeFormat: unparsable rule times
    """
    config.validate()
    zone = resolve_timezone(timezone_name)
    now = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    step = timedelta(minutes=config.duration_minutes)
    weekday = day_of_week(day)

    active_bookings = [b for b in bookings if b.status not in EXCLUDED_BOOKING_STATUSES]

    slots: Dict[Tuple[datetime, datetime], Slot] = {}
    for rule in rules:
        _validate_rule(rule)
        if rule.day_of_week != weekday:
            continue

        window_start, window_end = _rule_window(rule, day, zone)
        current = window_start
        while current < window_end:
            slot_end = current + step
            if slot_end > window_end:
                break  # Trailing partial slot is dropped, not truncated

            available = current >= now and not is_blocked(current, slot_end, active_bookings, config)
            slots.setdefault((current, slot_end), Slot(current, slot_end, available))
            current = slot_end

    return [slots[key] for key in sorted(slots)]
