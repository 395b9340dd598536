"""
Tests for recurring availability, atomic series creation and series lookup.
"""

import pytest

from room_booking.core.errors import NotFoundError
from room_booking.models import Booking, BookingStatus, ResourceKind, ResourceRef
from room_booking.schemas.recurrence import RecurrencePatternResponse
from room_booking.scheduling.recurrence import RecurrenceRule
from room_booking.services.recurring_service import (
    SeriesDraft,
    check_series_availability,
    create_series,
    get_series,
)
from conftest import utc

LECTURE_HALL = ResourceRef(ResourceKind.ROOM, 1)
START = utc(2024, 1, 1, 10)
END = utc(2024, 1, 1, 11)
DAILY_5 = RecurrenceRule(frequency="DAILY", max_occurrences=5)


def _draft(**overrides) -> SeriesDraft:
    fields = dict(event_title="Weekly Seminar", user_id="user-1", room_id=1, status=BookingStatus.CONFIRMED)
    fields.update(overrides)
    return SeriesDraft(**fields)


@pytest.mark.asyncio
async def test_series_partitioned_into_available_and_conflicting(memory_repo):
    blocker = await memory_repo.add_booking(
        Booking(
            user_id="user-2",
            event_title="Exam",
            room_id=1,
            status="CONFIRMED",
            start_time=utc(2024, 1, 3, 10, 30),
            end_time=utc(2024, 1, 3, 12),
        )
    )

    result = await check_series_availability(memory_repo, DAILY_5, START, END, LECTURE_HALL)

    assert not result.is_available
    assert [o.occurrence_number for o in result.available_occurrences] == [1, 2, 4, 5]
    assert len(result.conflicting_occurrences) == 1
    conflicting = result.conflicting_occurrences[0]
    assert conflicting.occurrence.occurrence_number == 3
    assert [b.id for b in conflicting.conflicts] == [blocker.id]


@pytest.mark.asyncio
async def test_series_without_resource_is_always_available(memory_repo):
    await memory_repo.add_booking(
        Booking(event_title="Exam", room_id=1, status="CONFIRMED", start_time=START, end_time=END)
    )

    result = await check_series_availability(memory_repo, DAILY_5, START, END, None)

    assert result.is_available
    assert len(result.available_occurrences) == 5


@pytest.mark.asyncio
async def test_series_availability_excludes_booking(memory_repo):
    existing = await memory_repo.add_booking(
        Booking(event_title="Exam", room_id=1, status="CONFIRMED", start_time=START, end_time=END)
    )

    result = await check_series_availability(
        memory_repo, DAILY_5, START, END, LECTURE_HALL, exclude_booking_id=existing.id
    )

    assert result.is_available


@pytest.mark.asyncio
async def test_create_series_writes_parent_pattern_and_children(memory_repo):
    rule = RecurrenceRule(frequency="WEEKLY", days_of_week=("MON", "WED"), max_occurrences=4)

    result = await create_series(memory_repo, _draft(), rule, START, END)

    parent = result.parent_booking
    assert parent.parent_booking_id is None
    assert parent.occurrence_number == 1
    assert parent.start_time == START

    assert [c.occurrence_number for c in result.child_bookings] == [2, 3, 4]
    assert all(c.parent_booking_id == parent.id for c in result.child_bookings)
    assert all(c.status == "CONFIRMED" and c.room_id == 1 for c in result.child_bookings)

    assert result.pattern.booking_id == parent.id
    assert result.pattern.frequency == "WEEKLY"
    assert result.pattern.max_occurrences == 4
    assert {d.value for d in result.pattern.days_of_week} == {"MON", "WED"}
    assert len(memory_repo.bookings) == 4


@pytest.mark.asyncio
async def test_pattern_days_listed_in_calendar_order(memory_repo):
    rule = RecurrenceRule(frequency="WEEKLY", days_of_week=("WED", "SUN", "MON"), max_occurrences=3)

    result = await create_series(memory_repo, _draft(), rule, START, END)

    assert RecurrencePatternResponse.from_model(result.pattern).days_of_week == ["SUN", "MON", "WED"]


@pytest.mark.asyncio
async def test_single_occurrence_series_has_no_children(memory_repo):
    rule = RecurrenceRule(frequency="DAILY", max_occurrences=1)

    result = await create_series(memory_repo, _draft(), rule, START, END)

    assert result.child_bookings == []
    assert result.pattern.booking_id == result.parent_booking.id


@pytest.mark.asyncio
async def test_failed_child_write_rolls_back_whole_series(memory_repo):
    memory_repo.fail_on_add = lambda booking: booking.occurrence_number == 4

    with pytest.raises(RuntimeError):
        await create_series(memory_repo, _draft(), DAILY_5, START, END)

    assert memory_repo.bookings == {}
    assert memory_repo.patterns == {}


@pytest.mark.asyncio
async def test_failed_series_keeps_existing_bookings(memory_repo):
    existing = await memory_repo.add_booking(
        Booking(event_title="Exam", room_id=2, status="CONFIRMED", start_time=START, end_time=END)
    )
    memory_repo.fail_on_add = lambda booking: booking.occurrence_number == 2

    with pytest.raises(RuntimeError):
        await create_series(memory_repo, _draft(), DAILY_5, START, END)

    assert list(memory_repo.bookings) == [existing.id]


@pytest.mark.asyncio
async def test_get_series_from_parent_or_child(memory_repo):
    result = await create_series(memory_repo, _draft(), DAILY_5, START, END)
    expected = [result.parent_booking.id] + [c.id for c in result.child_bookings]

    from_parent = await get_series(memory_repo, result.parent_booking.id)
    from_child = await get_series(memory_repo, result.child_bookings[2].id)

    assert [b.id for b in from_parent] == expected
    assert [b.id for b in from_child] == expected
    assert [b.occurrence_number for b in from_child] == [1, 2, 3, 4, 5]


@pytest.mark.asyncio
async def test_get_series_for_standalone_booking(memory_repo):
    booking = await memory_repo.add_booking(
        Booking(event_title="One-off", status="PENDING", start_time=START, end_time=END)
    )

    series = await get_series(memory_repo, booking.id)

    assert [b.id for b in series] == [booking.id]


@pytest.mark.asyncio
async def test_get_series_unknown_booking(memory_repo):
    with pytest.raises(NotFoundError):
        await get_series(memory_repo, 999)
