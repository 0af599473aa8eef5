"""Clock module."""

from .clock import IClock, ManualClock, MonotonicClock

__all__ = ["IClock", "ManualClock", "MonotonicClock"]
