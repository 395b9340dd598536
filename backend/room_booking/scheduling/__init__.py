"""
Pure scheduling primitives: interval overlap and recurrence expansion.
Nothing in this package touches persistence.
"""

from room_booking.scheduling.overlap import overlaps
from room_booking.scheduling.recurrence import (
    MAX_INTERVAL,
    MAX_OCCURRENCES,
    Occurrence,
    RecurrenceRule,
    generate_occurrences,
    validate_rule,
)

__all__ = [
    "overlaps",
    "MAX_INTERVAL", "MAX_OCCURRENCES",
    "Occurrence", "RecurrenceRule",
    "generate_occurrences", "validate_rule",
]
