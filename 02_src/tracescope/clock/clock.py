"""Clock implementations.

All trace timestamps are integers read through an IClock so that tests can
inject a deterministic sequence. Values are only comparable within one
engine; they carry no wall-clock meaning.
"""

import time
from dataclasses import dataclass, field
from typing import Protocol


class IClock(Protocol):
    """Monotonic timestamp source."""

    def now(self) -> int:
        """Return the current timestamp. Never decreases."""
        ...


class MonotonicClock:
    """System monotonic clock in nanoseconds."""

    def now(self) -> int:
        return time.monotonic_ns()


@dataclass
class ManualClock:
    """
    Deterministic clock for tests.

    Every now() returns the current value and then advances it by ``step``,
    so consecutive reads are strictly increasing unless step is 0.
    """

    current: int = 0
    step: int = 1
    _reads: list[int] = field(default_factory=list)

    def now(self) -> int:
        value = self.current
        self._reads.append(value)
        self.current += self.step
        return value

    def advance(self, amount: int) -> int:
        """Move the clock forward without producing a read."""
        if amount < 0:
            raise ValueError("ManualClock cannot move backwards")
        self.current += amount
        return self.current

    @property
    def last(self) -> int | None:
        """The most recent value handed out by now()."""
        return self._reads[-1] if self._reads else None
