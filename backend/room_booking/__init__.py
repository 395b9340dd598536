"""Room and venue booking service: conflict detection and recurring series."""

__version__ = "1.0.0"
