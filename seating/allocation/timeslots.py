"""Time-of-day arithmetic and half-open window overlap"""

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Iterator, Optional

MINUTES_PER_DAY = 24 * 60


def to_minutes(value: time) -> int:
    """Minutes since midnight"""
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    """Time of day for a minute offset (wraps past midnight)"""
    minutes %= MINUTES_PER_DAY
    return time(hour=minutes // 60, minute=minutes % 60)


def format_time(value: time) -> str:
    return value.strftime("%H:%M")


@dataclass(frozen=True)
class Window:
    """Half-open interval [start, end) in minutes since midnight"""
    start: int
    end: int

    @classmethod
    def of(cls, start: time, duration_minutes: int) -> "Window":
        begin = to_minutes(start)
        return cls(begin, begin + duration_minutes)

    @classmethod
    def between(cls, start: time, end: time) -> "Window":
        begin = to_minutes(start)
        finish = to_minutes(end)
        if finish <= begin:
            finish += MINUTES_PER_DAY
        return cls(begin, finish)

    @property
    def duration(self) -> int:
        return self.end - self.start

    def overlaps(self, other: "Window") -> bool:
        return self.start < other.end and other.start < self.end

    def contains(self, minute: int) -> bool:
        return self.start <= minute < self.end

    def truncated(self, end: int) -> "Window":
        return Window(self.start, max(self.start, min(self.end, end)))


def booking_window(
    booking_time: time,
    duration_minutes: int,
    booking_date: Optional[date] = None,
    finished_at: Optional[datetime] = None,
) -> Window:
    """Window a booking occupies; a finish on the booking date closes it early"""
    window = Window.of(booking_time, duration_minutes)
    if finished_at is not None and booking_date is not None and finished_at.date() == booking_date:
        window = window.truncated(to_minutes(finished_at.time()))
    return window


def iter_times(start: time, end: time, step_minutes: int) -> Iterator[time]:
    """Times from start to end inclusive, stepping by step_minutes"""
    current = to_minutes(start)
    last = to_minutes(end)
    while current <= last:
        yield from_minutes(current)
        current += step_minutes
