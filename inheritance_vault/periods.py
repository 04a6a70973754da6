"""Check-in period and deadline arithmetic.

All timestamps are unix seconds compared against wall-clock time; there is no
time zone handling and no protection against clock skew.
"""

import time

from inheritance_vault.formatters import format_duration
from inheritance_vault.models import PeriodUnit, TimeCalculation

_SECONDS_PER_UNIT: dict[PeriodUnit, int] = {
    PeriodUnit.MINUTES: 60,
    PeriodUnit.HOURS: 60 * 60,
    PeriodUnit.DAYS: 24 * 60 * 60,
    PeriodUnit.WEEKS: 7 * 24 * 60 * 60,
    # Months are approximated as 30 days.
    PeriodUnit.MONTHS: 30 * 24 * 60 * 60,
}


def current_timestamp() -> int:
    """Current unix time in whole seconds."""
    return int(time.time())


def parse_period_unit(value: str | PeriodUnit) -> PeriodUnit:
    """Parse a period unit name, case-insensitively."""
    if isinstance(value, PeriodUnit):
        return value
    try:
        return PeriodUnit(str(value).strip().lower())
    except ValueError as ex:
        raise ValueError(f"Unknown period unit: {value}") from ex


def period_seconds(count: int, unit: PeriodUnit) -> int:
    """Length of `count` units in seconds."""
    return int(count) * _SECONDS_PER_UNIT[parse_period_unit(unit)]


def deadline_from(count: int, unit: PeriodUnit, now: int | None = None) -> int:
    """Deadline `count` units after `now`."""
    if now is None:
        now = current_timestamp()
    return int(now) + period_seconds(count, unit)


def is_past(deadline: int, now: int | None = None) -> bool:
    """True once `now` has reached the deadline."""
    if now is None:
        now = current_timestamp()
    return now >= deadline


def remaining(deadline: int, now: int | None = None) -> TimeCalculation:
    """Time left until `deadline`. Past deadlines report the overrun as human-readable text."""
    if now is None:
        now = current_timestamp()
    delta = int(deadline) - int(now)
    return TimeCalculation(
        seconds_remaining=max(0, delta),
        human_readable=format_duration(abs(delta)),
        is_past=delta <= 0,
        deadline=int(deadline),
    )


def elapsed_percentage(start: int, deadline: int, now: int | None = None) -> float:
    """Share of the period between `start` and `deadline` that has elapsed, clamped to [0, 100]."""
    if now is None:
        now = current_timestamp()
    total = deadline - start
    elapsed = now - start
    if total <= 0:
        return 100.0
    if elapsed <= 0:
        return 0.0
    return min(100.0, max(0.0, elapsed / total * 100))
