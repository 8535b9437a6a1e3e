"""Tests for the booking service (mocked database session)."""
import pytest
from datetime import date, datetime, time, timezone

from copilot.booking import models, service
from copilot.booking.schemas import CreateBookingRequest
from copilot.errors import BookingTypeNotFound, InvalidConfiguration, SlotUnavailable


MONDAY = date(2030, 1, 7)


def utc(hour: int, minute: int = 0) -> datetime:
    return datetime(2030, 1, 7, hour, minute, tzinfo=timezone.utc)


def booking_type(**overrides) -> models.BookingType:
    values = dict(
        id="bt_1",
        organization_id="org_1",
        name="Intro Call",
        slug="intro-call",
        duration_minutes=30,
        buffer_before_minutes=0,
        buffer_after_minutes=0,
        price=None,
        is_active=True,
    )
    values.update(overrides)
    return models.BookingType(**values)


def rule(start: time, end: time, tz: str = "UTC") -> models.AvailabilityRule:
    return models.AvailabilityRule(
        organization_id="org_1", day_of_week=1, start_time=start, end_time=end, timezone=tz, is_active=True,
    )


def existing_booking(start: datetime, end: datetime) -> models.Booking:
    return models.Booking(organization_id="org_1", start_time=start, end_time=end, status="confirmed")


# =============================================================================
# Slots
# =============================================================================

class TestGetSlotsForDate:

    @pytest.mark.asyncio
    async def test_unknown_booking_type(self, mock_db, result_factory):
        mock_db.execute.side_effect = [result_factory(one=None)]

        with pytest.raises(BookingTypeNotFound):
            await service.get_slots_for_date(mock_db, "bt_missing", MONDAY)

    @pytest.mark.asyncio
    async def test_no_rules_for_day(self, mock_db, result_factory):
        mock_db.execute.side_effect = [result_factory(one=booking_type()), result_factory(rows=[])]

        response = await service.get_slots_for_date(mock_db, "bt_1", MONDAY)

        assert response.slots == []
        assert response.all_slots == []
        assert response.message == "No availability on this day"
        assert response.booking_type.name == "Intro Call"

    @pytest.mark.asyncio
    async def test_slots_split_by_availability(self, mock_db, result_factory, fixed_now):
        mock_db.execute.side_effect = [
            result_factory(one=booking_type()),
            result_factory(rows=[rule(time(9), time(11))]),
            result_factory(rows=[existing_booking(utc(10), utc(10, 30))]),
        ]

        response = await service.get_slots_for_date(mock_db, "bt_1", MONDAY, now=fixed_now)

        assert len(response.all_slots) == 4
        assert [s.start_time for s in response.slots] == [utc(9), utc(9, 30), utc(10, 30)]
        assert response.timezone == "UTC"
        assert response.message is None

    @pytest.mark.asyncio
    async def test_rules_in_different_timezones_are_merged(self, mock_db, result_factory, fixed_now):
        mock_db.execute.side_effect = [
            result_factory(one=booking_type()),
            result_factory(rows=[rule(time(9), time(10), "America/New_York"), rule(time(9), time(10))]),
            result_factory(rows=[]),
        ]

        response = await service.get_slots_for_date(mock_db, "bt_1", MONDAY, now=fixed_now)

        assert [s.start_time for s in response.all_slots] == [utc(9), utc(9, 30), utc(14), utc(14, 30)]

    @pytest.mark.asyncio
    async def test_missing_duration_uses_default(self, mock_db, result_factory, fixed_now):
        mock_db.execute.side_effect = [
            result_factory(one=booking_type(duration_minutes=None)),
            result_factory(rows=[rule(time(9), time(10))]),
            result_factory(rows=[]),
        ]

        response = await service.get_slots_for_date(mock_db, "bt_1", MONDAY, now=fixed_now)

        assert response.booking_type.duration_minutes == 30
        assert len(response.all_slots) == 2

    @pytest.mark.asyncio
    async def test_zero_duration_is_rejected(self, mock_db, result_factory, fixed_now):
        mock_db.execute.side_effect = [
            result_factory(one=booking_type(duration_minutes=0)),
            result_factory(rows=[rule(time(9), time(10))]),
            result_factory(rows=[]),
        ]

        with pytest.raises(InvalidConfiguration):
            await service.get_slots_for_date(mock_db, "bt_1", MONDAY, now=fixed_now)

    @pytest.mark.asyncio
    async def test_unknown_requester_timezone(self, mock_db):
        with pytest.raises(InvalidConfiguration):
            await service.get_slots_for_date(mock_db, "bt_1", MONDAY, timezone_name="Nowhere/Land")

        mock_db.execute.assert_not_called()


# =============================================================================
# Booking creation
# =============================================================================

@pytest.fixture
def assign_id_on_flush(mock_db):
    """Give the added booking an id when the session flushes."""
    def flush():
        mock_db.add.call_args[0][0].id = "booking_1"
    mock_db.flush.side_effect = flush
    return mock_db


class TestCreateBooking:

    @pytest.mark.asyncio
    async def test_creates_booking(self, assign_id_on_flush, result_factory, fixed_now):
        db = assign_id_on_flush
        db.execute.side_effect = [result_factory(one=booking_type()), result_factory(rows=[])]
        request = CreateBookingRequest(
            booking_type_id="bt_1",
            start_time=utc(9),
            contact_email="ada@example.com",
            contact_name="Ada",
            metadata={"source": "widget"},
        )

        response = await service.create_booking(db, request, now=fixed_now)

        assert response.success is True
        assert response.booking.id == "booking_1"
        assert response.booking.end_time == utc(9, 30)
        assert response.booking.title == "Intro Call - Ada"
        booking = db.add.call_args[0][0]
        assert booking.extra_data["source"] == "widget"
        assert booking.extra_data["contact_email"] == "ada@example.com"

    @pytest.mark.asyncio
    async def test_naive_start_is_utc(self, assign_id_on_flush, result_factory, fixed_now):
        db = assign_id_on_flush
        db.execute.side_effect = [result_factory(one=booking_type()), result_factory(rows=[])]
        request = CreateBookingRequest(booking_type_id="bt_1", start_time=datetime(2030, 1, 7, 9, 0))

        response = await service.create_booking(db, request, now=fixed_now)

        assert response.booking.start_time == utc(9)

    @pytest.mark.asyncio
    async def test_conflict_is_rejected(self, mock_db, result_factory, fixed_now):
        mock_db.execute.side_effect = [
            result_factory(one=booking_type()),
            result_factory(rows=[existing_booking(utc(9, 15), utc(9, 45))]),
        ]
        request = CreateBookingRequest(booking_type_id="bt_1", start_time=utc(9))

        with pytest.raises(SlotUnavailable):
            await service.create_booking(mock_db, request, now=fixed_now)

        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_buffer_conflict_is_rejected(self, mock_db, result_factory, fixed_now):
        mock_db.execute.side_effect = [
            result_factory(one=booking_type(buffer_after_minutes=15)),
            result_factory(rows=[existing_booking(utc(9, 30), utc(10))]),
        ]
        request = CreateBookingRequest(booking_type_id="bt_1", start_time=utc(9))

        with pytest.raises(SlotUnavailable):
            await service.create_booking(mock_db, request, now=fixed_now)

    @pytest.mark.asyncio
    async def test_past_start_is_rejected(self, mock_db, result_factory):
        mock_db.execute.side_effect = [result_factory(one=booking_type())]
        request = CreateBookingRequest(booking_type_id="bt_1", start_time=utc(9))

        with pytest.raises(SlotUnavailable):
            await service.create_booking(mock_db, request, now=utc(12))
