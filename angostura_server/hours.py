"""Business hours evaluation."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

from .models import BusinessHours, Weekday


class HoursStatus(str, Enum):
    """Ordering state for the current day."""

    CLOSED_TODAY = "closed_today"
    OPEN = "open"
    OUTSIDE_HOURS = "outside_hours"


def minutes_since_midnight(value: str) -> int:
    """Convert an ``HH:MM`` string to minutes since midnight."""
    hours, _, minutes = value.partition(":")
    try:
        return int(hours) * 60 + int(minutes)
    except ValueError:
        raise ValueError(f"Invalid time {value!r}, expected HH:MM") from None


def as_local(moment: datetime, now: datetime) -> datetime:
    """Make ``moment`` comparable with ``now`` (naive local or aware)."""
    if moment.tzinfo is not None and now.tzinfo is None:
        return moment.astimezone().replace(tzinfo=None)
    if moment.tzinfo is None and now.tzinfo is not None:
        return moment.replace(tzinfo=now.tzinfo)
    return moment


def find_today(schedule: Iterable[BusinessHours], now: datetime) -> Optional[BusinessHours]:
    """Active schedule entry for the weekday of ``now``."""
    today = Weekday.from_date(now)
    for entry in schedule:
        if entry.day == today and entry.active:
            return entry
    return None


@dataclass
class HoursWindow:
    """Result of evaluating the weekly schedule at a given moment."""

    status: HoursStatus
    today: Optional[BusinessHours] = None

    @property
    def ordering_allowed(self) -> bool:
        return self.status == HoursStatus.OPEN

    def describe(self) -> str:
        """Banner text shown above the cart."""
        if self.status == HoursStatus.CLOSED_TODAY:
            return "Cerrado hoy - Puedes hacer encargos para otro día"
        if self.status == HoursStatus.OPEN:
            return f"Estamos abiertos. Horario: {self.today.opening} - {self.today.closing}"
        if self.today is None:
            return "Estamos fuera de horario. Puedes hacer un encargo para más tarde."
        return (
            f"Estamos fuera de horario. Horario: {self.today.opening} - {self.today.closing}. "
            "Puedes hacer un encargo para más tarde."
        )


def evaluate_hours(schedule: Iterable[BusinessHours], now: datetime) -> HoursWindow:
    """
    Decide whether immediate ordering is allowed at ``now``.

    Both bounds are inclusive. A closing time earlier than the opening time is
    taken literally and never matches; overnight windows are not supported.
    """
    today = find_today(schedule, now)
    if today is None:
        return HoursWindow(HoursStatus.OUTSIDE_HOURS)
    if today.closed:
        return HoursWindow(HoursStatus.CLOSED_TODAY, today)

    current = now.hour * 60 + now.minute
    opening = minutes_since_midnight(today.opening)
    closing = minutes_since_midnight(today.closing)
    if opening <= current <= closing:
        return HoursWindow(HoursStatus.OPEN, today)
    return HoursWindow(HoursStatus.OUTSIDE_HOURS, today)
