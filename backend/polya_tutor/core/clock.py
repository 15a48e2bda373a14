"""Injectable wall clock used for day-boundary resets."""

from datetime import date, datetime
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Local wall-clock time."""

    def now(self) -> datetime:
        return datetime.now()


def current_day(clock: Clock) -> date:
    """Calendar day according to the given clock."""
    return clock.now().date()
