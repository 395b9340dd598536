"""
Half-open interval overlap.
"""

from datetime import datetime


def overlaps(start1: datetime, end1: datetime, start2: datetime, end2: datetime) -> bool:
    """
    True iff [start1, end1) and [start2, end2) intersect.

    Touching intervals (end1 == start2) do not overlap, so back-to-back
    bookings on the same resource are legal.
    """
    return start1 < end2 and end1 > start2
