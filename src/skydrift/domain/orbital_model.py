# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Epicycle position model.

Positions, velocities, orbit rings and orbital-cycle metrics for islands.
Every function is a pure function of (island, time); there is no
simulator state. Time is in internal units where 1000 units = 1 day, and
all angle math is done in days.

Orbit radius follows a stylised Kepler relation r = |T|^(2/3) * k, with k
chosen so that a 365-day period sits 672 miles from the centre.
"""
import math
from dataclasses import dataclass
from fractions import Fraction
from functools import reduce

import numpy as np

from skydrift.domain.islands import Epicycle, Island, Position

TIME_UNITS_PER_DAY = 1000.0
MILES_SCALE_FACTOR = 672.0 / 365.0 ** (2.0 / 3.0)

# Largest denominator used when a non-integral period is turned into a
# rational for the LCM. Integral periods are exact.
_PERIOD_DENOMINATOR_LIMIT = 1000


@dataclass(frozen=True)
class Velocity:
    """Velocity in miles/day; angle_deg in [0, 360), 0 along +x."""
    speed: float
    angle_deg: float
    vx: float
    vy: float


@dataclass(frozen=True)
class OrbitalPhase:
    """Where an island sits inside its repeating orbital cycle."""
    day_in_cycle: float
    percentage: float


def orbital_radius_miles(period: float) -> float:
    """Orbit radius in miles for a period in days (sign ignored)."""
    return abs(period) ** (2.0 / 3.0) * MILES_SCALE_FACTOR


def angular_velocity(period: float) -> float:
    """Signed angular velocity in radians per day."""
    return math.copysign(2.0 * math.pi / abs(period), period)


def _level_count(island: Island, level: int | None) -> int:
    if level is None or level < 0:
        return len(island.cycles)
    return min(level + 1, len(island.cycles))


def compute_position(island: Island, time: float, level: int | None = None) -> Position:
    """
    Position of an island at a time.

    Args:
        island: Island with its epicycle stack.
        time: Simulation time in internal units.
        level: Last epicycle level to include (None = all levels).

    Returns:
        Position in miles (untagged).
    """
    days = time / TIME_UNITS_PER_DAY
    x = 0.0
    y = 0.0
    for cycle in island.cycles[:_level_count(island, level)]:
        r = orbital_radius_miles(cycle.period)
        angle = angular_velocity(cycle.period) * days
        x += r * math.cos(angle)
        y += r * math.sin(angle)
    return Position(x=x, y=y)


def compute_positions(island: Island, times: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Vectorized compute_position over an array of times (all levels)."""
    days = np.asarray(times, dtype=np.float64) / TIME_UNITS_PER_DAY
    xs = np.zeros_like(days)
    ys = np.zeros_like(days)
    for cycle in island.cycles:
        r = orbital_radius_miles(cycle.period)
        angle = angular_velocity(cycle.period) * days
        xs += r * np.cos(angle)
        ys += r * np.sin(angle)
    return xs, ys


def compute_level_positions(island: Island, time: float) -> list[Position]:
    """Origin followed by the position after each epicycle level."""
    positions = [Position(x=0.0, y=0.0)]
    for level in range(len(island.cycles)):
        positions.append(compute_position(island, time, level))
    return positions


def compute_orbit_paths(island: Island, time: float, steps: int = 100) -> list[list[Position]]:
    """
    Sample one closed ring per epicycle level.

    Level 0 is centred at the origin; level k is centred at the position
    produced by levels 0..k-1 at the given time.
    """
    centres = compute_level_positions(island, time)
    step = 2.0 * math.pi / steps
    rings: list[list[Position]] = []
    for level, cycle in enumerate(island.cycles):
        cx, cy = centres[level].x, centres[level].y
        r = orbital_radius_miles(cycle.period)
        rings.append([
            Position(x=cx + r * math.cos(i * step), y=cy + r * math.sin(i * step))
            for i in range(steps + 1)
        ])
    return rings


def distance_between(island1: Island, island2: Island, time: float) -> float:
    """Separation in miles between two islands at a time."""
    p1 = compute_position(island1, time)
    p2 = compute_position(island2, time)
    return math.hypot(p1.x - p2.x, p1.y - p2.y)


def compute_velocity(island: Island, time: float) -> Velocity:
    """Analytic velocity (derivative of position w.r.t. days)."""
    days = time / TIME_UNITS_PER_DAY
    vx = 0.0
    vy = 0.0
    for cycle in island.cycles:
        r = orbital_radius_miles(cycle.period)
        omega = angular_velocity(cycle.period)
        angle = omega * days
        vx += -r * omega * math.sin(angle)
        vy += r * omega * math.cos(angle)

    angle_deg = math.degrees(math.atan2(vy, vx))
    if angle_deg < 0:
        angle_deg += 360.0
    return Velocity(speed=math.hypot(vx, vy), angle_deg=angle_deg, vx=vx, vy=vy)


def _as_fraction(value: float) -> Fraction:
    magnitude = abs(value)
    if float(magnitude).is_integer():
        return Fraction(int(magnitude))
    return Fraction(magnitude).limit_denominator(_PERIOD_DENOMINATOR_LIMIT)


def _lcm_fraction(a: Fraction, b: Fraction) -> Fraction:
    # lcm(p/q, r/s) = lcm(p*s, r*q) / (q*s)
    denominator = a.denominator * b.denominator
    return Fraction(
        math.lcm(a.numerator * b.denominator, b.numerator * a.denominator),
        denominator,
    )


def lcm_of_periods(periods: list[float]) -> float:
    """
    Least common multiple of period magnitudes in days.

    Exact for integral periods. Non-integral periods are first approximated
    by a rational with a bounded denominator, so the result is only as good
    as that approximation.
    """
    if not periods:
        return 0.0
    return float(reduce(_lcm_fraction, (_as_fraction(p) for p in periods)))


def orbital_period(cycles: tuple[Epicycle, ...] | list[Epicycle]) -> float:
    """Repeat period of an epicycle stack (0 for an empty stack)."""
    if len(cycles) == 0:
        return 0.0
    if len(cycles) == 1:
        return abs(cycles[0].period)
    return lcm_of_periods([c.period for c in cycles])


def system_period(islands: list[Island]) -> float:
    """Repeat period of a whole configuration (islands without cycles are skipped)."""
    periods = [orbital_period(i.cycles) for i in islands if i.cycles]
    return lcm_of_periods(periods)


def orbital_phase(cycles: tuple[Epicycle, ...] | list[Epicycle], time: float) -> OrbitalPhase:
    """
    Position within the orbital cycle at a time.

    Python's float modulo already maps negative times into [0, period).
    """
    period = orbital_period(cycles)
    if period == 0:
        return OrbitalPhase(day_in_cycle=0.0, percentage=0.0)
    day_in_cycle = (time / TIME_UNITS_PER_DAY) % period
    return OrbitalPhase(day_in_cycle=day_in_cycle, percentage=day_in_cycle / period * 100.0)
