# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Journey planning between moving islands.

The route is a spiral around the archipelago centre: radius interpolates
linearly from source to destination while the angle sweeps the shorter
way round. The destination keeps moving during the trip, so arrival time
and route length depend on each other; a fixed-point iteration settles
them, returning the last estimate when it does not converge.
"""
import math
from dataclasses import dataclass, replace
from enum import Enum

from skydrift.domain.islands import Island, Position, find_island
from skydrift.domain.orbital_model import TIME_UNITS_PER_DAY, compute_position

MAX_ITERATIONS = 10
CONVERGENCE_DAYS = 0.01
INTEGRATION_SEGMENTS = 100
PATH_SEGMENTS = 200
HOURS_PER_DAY = 24.0


class JourneyStatus(Enum):
    PREDICTED = "predicted"
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Journey:
    """A planned trip. Times are internal units, duration in days."""
    id: int
    source_id: int
    destination_id: int
    speed: float
    path: tuple[Position, ...]
    distance: float
    duration: float
    start_time: float
    arrival_time: float
    is_clockwise: bool
    status: JourneyStatus


def cartesian_to_polar(x: float, y: float) -> tuple[float, float]:
    """(r, theta) with theta in [0, 2*pi)."""
    theta = math.atan2(y, x)
    if theta < 0:
        theta += 2.0 * math.pi
    return math.hypot(x, y), theta


def normalize_angle(angle: float) -> float:
    """Wrap an angle into [-pi, pi]."""
    while angle > math.pi:
        angle -= 2.0 * math.pi
    while angle < -math.pi:
        angle += 2.0 * math.pi
    return angle


def _spiral_point(r0: float, theta0: float, r1: float, sweep: float, f: float) -> tuple[float, float]:
    r = r0 + f * (r1 - r0)
    theta = theta0 + f * sweep
    return r, theta


def _spiral_length(r0: float, theta0: float, r1: float, sweep: float) -> float:
    """Length of the spiral by summing short polar segments."""
    total = 0.0
    prev_r, prev_theta = r0, theta0
    for i in range(1, INTEGRATION_SEGMENTS + 1):
        r, theta = _spiral_point(r0, theta0, r1, sweep, i / INTEGRATION_SEGMENTS)
        dr = r - prev_r
        d_theta = normalize_angle(theta - prev_theta)
        total += math.sqrt(dr * dr + ((prev_r + r) / 2.0 * d_theta) ** 2)
        prev_r, prev_theta = r, theta
    return total


def _days_at_speed(distance: float, speed_mph: float) -> float:
    return distance / (speed_mph * HOURS_PER_DAY)


def plan_journey(
    islands: list[Island],
    source_id: int,
    destination_id: int,
    speed_mph: float,
    current_time: float,
    is_prediction: bool = False,
    journey_id: int = 1,
) -> Journey | None:
    """
    Plan a trip from one island to another at a constant speed.

    Args:
        islands: Island configuration snapshot.
        source_id: Departure island id.
        destination_id: Arrival island id.
        speed_mph: Travel speed in miles per hour.
        current_time: Departure time in internal units.
        is_prediction: Mark the journey as a prediction rather than active.
        journey_id: Id for the new journey; the caller keeps ids unique.

    Returns:
        Journey, or None when the speed is not positive or an id is unknown.
    """
    if speed_mph <= 0:
        return None
    source = find_island(islands, source_id)
    destination = find_island(islands, destination_id)
    if source is None or destination is None:
        return None

    source_pos = compute_position(source, current_time)
    r0, theta0 = cartesian_to_polar(source_pos.x, source_pos.y)

    dest_pos = compute_position(destination, current_time)
    distance = math.hypot(dest_pos.x - source_pos.x, dest_pos.y - source_pos.y)
    duration = _days_at_speed(distance, speed_mph)

    previous = 0.0
    iterations = 0
    while abs(duration - previous) > CONVERGENCE_DAYS and iterations < MAX_ITERATIONS:
        previous = duration
        dest_pos = compute_position(destination, current_time + duration * TIME_UNITS_PER_DAY)
        r1, theta1 = cartesian_to_polar(dest_pos.x, dest_pos.y)
        distance = _spiral_length(r0, theta0, r1, normalize_angle(theta1 - theta0))
        duration = _days_at_speed(distance, speed_mph)
        iterations += 1

    arrival_time = current_time + duration * TIME_UNITS_PER_DAY
    final_dest = compute_position(destination, arrival_time)
    r1, theta1 = cartesian_to_polar(final_dest.x, final_dest.y)
    sweep = normalize_angle(theta1 - theta0)

    path = []
    for i in range(PATH_SEGMENTS + 1):
        f = i / PATH_SEGMENTS
        r, theta = _spiral_point(r0, theta0, r1, sweep, f)
        path.append(Position(
            x=r * math.cos(theta),
            y=r * math.sin(theta),
            time=current_time + f * duration * TIME_UNITS_PER_DAY,
        ))

    return Journey(
        id=journey_id,
        source_id=source_id,
        destination_id=destination_id,
        speed=speed_mph,
        path=tuple(path),
        distance=distance,
        duration=duration,
        start_time=current_time,
        arrival_time=arrival_time,
        is_clockwise=sweep > 0,
        status=JourneyStatus.PREDICTED if is_prediction else JourneyStatus.ACTIVE,
    )


def commit_journey(journey: Journey) -> Journey:
    """Promote a predicted journey to active."""
    if journey.status is JourneyStatus.PREDICTED:
        return replace(journey, status=JourneyStatus.ACTIVE)
    return journey


def update_journey_status(journey: Journey, current_time: float) -> Journey:
    """Mark an active journey completed once its arrival time is reached."""
    if journey.status is JourneyStatus.ACTIVE and current_time >= journey.arrival_time:
        return replace(journey, status=JourneyStatus.COMPLETED)
    return journey
