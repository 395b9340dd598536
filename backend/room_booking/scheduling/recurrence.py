"""
Recurrence pattern expansion.

Turns a frequency + interval + (weekdays | end date | max occurrences) rule
into an ordered list of concrete occurrence windows. The duration of the
base window is preserved for every occurrence.

DAILY / CUSTOM
  Step `interval` days from the base start, one occurrence per step.

WEEKLY
  Walk 7-day windows starting at the base start. Every day in the window
  whose weekday is selected yields an occurrence (same time of day as the
  base start), then the window jumps `interval` weeks. A single window can
  therefore emit several occurrences; each one consumes budget.

Both modes stop exactly at the bound: the first candidate starting after
`end_date`, or the occurrence that fills `max_occurrences`, ends generation
even in the middle of a week.

Timestamps must be timezone aware. Day arithmetic is done in the tzinfo of
the base start, so with a zoneinfo timezone the wall-clock time survives DST
transitions.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional, Union

from room_booking.core.errors import GenerationSafetyError, ValidationError
from room_booking.core.logging import get_logger
from room_booking.core.metrics import occurrences_generated, recurrence_generation_latency
from room_booking.models.booking import Frequency, Weekday

logger = get_logger(__name__)

MAX_OCCURRENCES = 52
MAX_INTERVAL = 365
# Candidate iterations allowed per requested occurrence
SAFETY_FACTOR = 10


@dataclass(frozen=True)
class RecurrenceRule:
    frequency: Union[Frequency, str]
    max_occurrences: int
    interval: Optional[int] = 1
    days_of_week: tuple = field(default_factory=tuple)
    end_date: Optional[datetime] = None


@dataclass(frozen=True)
class Occurrence:
    occurrence_number: int
    start_time: datetime
    end_time: datetime


@dataclass(frozen=True)
class _ValidRule:
    frequency: Frequency
    max_occurrences: int
    interval: int
    weekdays: frozenset
    end_date: Optional[datetime]


def _parse_weekdays(codes: Iterable) -> frozenset:
    codes = list(codes or ())
    if not codes:
        raise ValidationError(
            "Weekly recurrence requires at least one day of week",
            field="days_of_week",
        )

    valid = {day.value for day in Weekday}
    invalid = [str(code) for code in codes if getattr(code, "value", code) not in valid]
    if invalid:
        raise ValidationError(
            f"Invalid days: {', '.join(invalid)}. Use {', '.join(day.value for day in Weekday)}",
            field="days_of_week",
            details={"invalid_days": invalid},
        )
    return frozenset(Weekday(getattr(code, "value", code)) for code in codes)


def validate_rule(rule: RecurrenceRule) -> _ValidRule:
    """
    Check a rule and normalise it. Raises ValidationError naming the field.
    """
    try:
        frequency = Frequency(getattr(rule.frequency, "value", rule.frequency))
    except ValueError:
        raise ValidationError(
            "Frequency must be DAILY, WEEKLY, or CUSTOM",
            field="frequency",
        )

    max_occurrences = rule.max_occurrences
    if not isinstance(max_occurrences, int) or not 1 <= max_occurrences <= MAX_OCCURRENCES:
        raise ValidationError(
            f"Max occurrences must be between 1 and {MAX_OCCURRENCES}",
            field="max_occurrences",
        )

    interval = 1 if rule.interval is None else rule.interval
    if not isinstance(interval, int) or not 1 <= interval <= MAX_INTERVAL:
        raise ValidationError(
            f"Interval must be between 1 and {MAX_INTERVAL}",
            field="interval",
        )

    weekdays = frozenset()
    if frequency is Frequency.WEEKLY:
        weekdays = _parse_weekdays(rule.days_of_week)

    if rule.end_date is not None and rule.end_date.tzinfo is None:
        raise ValidationError("end_date must include a UTC offset", field="end_date")

    return _ValidRule(
        frequency=frequency,
        max_occurrences=max_occurrences,
        interval=interval,
        weekdays=weekdays,
        end_date=rule.end_date,
    )


def _check_window(base_start: datetime, base_end: datetime) -> None:
    if base_start.tzinfo is None or base_end.tzinfo is None:
        raise ValidationError("start_time and end_time must include a UTC offset", field="start_time")
    if base_end <= base_start:
        raise ValidationError("End time must be after start time", field="end_time")


def _step_days(rule: _ValidRule, base_start: datetime, duration: timedelta) -> list[Occurrence]:
    occurrences: list[Occurrence] = []
    limit = rule.max_occurrences * SAFETY_FACTOR
    current = base_start
    iterations = 0

    while len(occurrences) < rule.max_occurrences:
        iterations += 1
        if iterations > limit:
            raise GenerationSafetyError(
                "Too many candidate dates examined, please check your pattern",
                field="frequency",
            )
        if rule.end_date is not None and current > rule.end_date:
            break
        occurrences.append(Occurrence(len(occurrences) + 1, current, current + duration))
        current = current + timedelta(days=rule.interval)

    return occurrences


def _step_weeks(rule: _ValidRule, base_start: datetime, duration: timedelta) -> list[Occurrence]:
    occurrences: list[Occurrence] = []
    limit = rule.max_occurrences * SAFETY_FACTOR
    selected = {day.iso_index for day in rule.weekdays}
    anchor = base_start
    iterations = 0

    while len(occurrences) < rule.max_occurrences:
        for offset in range(7):
            iterations += 1
            if iterations > limit:
                raise GenerationSafetyError(
                    "Too many candidate dates examined, please check your pattern",
                    field="days_of_week",
                )

            candidate = anchor + timedelta(days=offset)
            if candidate.weekday() not in selected or candidate < base_start:
                continue
            if rule.end_date is not None and candidate > rule.end_date:
                return occurrences

            occurrences.append(Occurrence(len(occurrences) + 1, candidate, candidate + duration))
            if len(occurrences) == rule.max_occurrences:
                return occurrences

        anchor = anchor + timedelta(weeks=rule.interval)

    return occurrences


def generate_occurrences(rule: RecurrenceRule, base_start: datetime, base_end: datetime) -> list[Occurrence]:
    """
    Expand `rule` from the base window. Pure: identical inputs give identical
    output. Validation runs first and fails fast.
    """
    valid = validate_rule(rule)
    _check_window(base_start, base_end)

    started = time.perf_counter()
    duration = base_end - base_start

    if valid.frequency is Frequency.WEEKLY:
        occurrences = _step_weeks(valid, base_start, duration)
    else:
        occurrences = _step_days(valid, base_start, duration)

    recurrence_generation_latency.observe(time.perf_counter() - started)
    occurrences_generated.inc(len(occurrences))

    if not occurrences:
        # Only reachable when end_date precedes the first candidate
        raise ValidationError(
            "Pattern produces no occurrences before its end date",
            field="end_date",
        )

    logger.debug(
        "occurrences_generated",
        frequency=valid.frequency.value,
        count=len(occurrences),
        first=occurrences[0].start_time.isoformat(),
        last=occurrences[-1].start_time.isoformat(),
    )
    return occurrences[: valid.max_occurrences]
