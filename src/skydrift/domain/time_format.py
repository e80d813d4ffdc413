# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Archipelago calendar: parse and format simulation times.

Internal time is 1000 units per day. The calendar has 365-day years
(0-indexed), five 73-day months (1-indexed) and 1-indexed days, written as
``yyyy-mm-dd`` with an optional `` Nh`` hour suffix. Negative years carry a
leading minus sign.

No external dependencies; only stdlib math/re.
"""
import math
import re

from skydrift.domain.orbital_model import TIME_UNITS_PER_DAY

DAYS_PER_YEAR = 365
DAYS_PER_MONTH = 73
MONTHS_PER_YEAR = 5
HOURS_PER_DAY = 24

_DATE_RE = re.compile(r'^(-?\d{4,})-(\d{2})-(\d{2})(?:\s+(\d+)h)?$')

# Snap to the nearest whole hour when within this many hours of it, so
# times built from whole hours survive the float round trip.
_HOUR_SNAP = 1e-6


def _whole_hours(timestamp: float) -> int:
    hours = timestamp * HOURS_PER_DAY / TIME_UNITS_PER_DAY
    nearest = round(hours)
    if abs(hours - nearest) < _HOUR_SNAP:
        return int(nearest)
    return math.floor(hours)


def format_time(timestamp: float, include_hours: bool = True) -> str:
    """
    Format a simulation time as ``yyyy-mm-dd`` (plus `` Nh`` when non-zero).

    Args:
        timestamp: Simulation time in internal units.
        include_hours: Append the hour suffix when the hour is non-zero.
    """
    total_days, hour = divmod(_whole_hours(timestamp), HOURS_PER_DAY)
    year, day_of_year = divmod(total_days, DAYS_PER_YEAR)
    month_index, day_index = divmod(day_of_year, DAYS_PER_MONTH)

    year_text = f"{year:04d}" if year >= 0 else f"-{abs(year):04d}"
    result = f"{year_text}-{month_index + 1:02d}-{day_index + 1:02d}"
    if include_hours and hour > 0:
        result += f" {hour}h"
    return result


def parse_time_string(date_string: str) -> float:
    """
    Parse ``yyyy-mm-dd [N]h`` into a simulation time.

    Raises:
        ValueError: If the text is malformed or a field is out of range.
    """
    match = _DATE_RE.match(date_string.strip())
    if not match:
        raise ValueError(
            f"Invalid date {date_string!r}, expected format: yyyy-mm-dd [h]h"
        )

    year = int(match.group(1))
    month = int(match.group(2))
    day = int(match.group(3))
    hours = int(match.group(4)) if match.group(4) else 0

    if not 1 <= month <= MONTHS_PER_YEAR:
        raise ValueError(f"Month must be 1-{MONTHS_PER_YEAR}, got {month}")
    if not 1 <= day <= DAYS_PER_MONTH:
        raise ValueError(f"Day must be 1-{DAYS_PER_MONTH}, got {day}")
    if not 0 <= hours < HOURS_PER_DAY:
        raise ValueError(f"Hours must be 0-{HOURS_PER_DAY - 1}, got {hours}")

    total_days = year * DAYS_PER_YEAR + (month - 1) * DAYS_PER_MONTH + (day - 1)
    total_hours = total_days * HOURS_PER_DAY + hours
    return total_hours * TIME_UNITS_PER_DAY / HOURS_PER_DAY


def days_to_time(days: float) -> float:
    """Convert days to internal time units."""
    return days * TIME_UNITS_PER_DAY


def time_to_days(timestamp: float) -> float:
    """Convert internal time units to days."""
    return timestamp / TIME_UNITS_PER_DAY


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def format_duration(duration_days: float) -> str:
    """Readable duration, e.g. ``5 hours``, ``12.5 days``, ``1 year, 2 months``."""
    if duration_days < 1 / HOURS_PER_DAY:
        return f"{round(duration_days * HOURS_PER_DAY * 60)} minutes"
    if duration_days < 1:
        return f"{round(duration_days * HOURS_PER_DAY)} hours"
    if duration_days < DAYS_PER_MONTH:
        return f"{duration_days:.1f} days"
    if duration_days < DAYS_PER_YEAR:
        months = int(duration_days // DAYS_PER_MONTH)
        days = round(duration_days % DAYS_PER_MONTH)
        return f"{_plural(months, 'month')}, {days} days"

    years = int(duration_days // DAYS_PER_YEAR)
    remaining = duration_days % DAYS_PER_YEAR
    months = int(remaining // DAYS_PER_MONTH)
    days = round(remaining % DAYS_PER_MONTH)
    parts = [_plural(years, 'year')]
    if months > 0:
        parts.append(_plural(months, 'month'))
    if days > 0:
        parts.append(_plural(days, 'day'))
    return ", ".join(parts)
