# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Conjunction detection between island pairs.

A conjunction is a maximal interval during which two islands are within
CONJUNCTION_THRESHOLD_MILES of each other. Detection sweeps the window at
a coarse step, classifying each sample as inside/outside the threshold,
then bisects every inside/outside transition down to CROSSING_PRECISION.
The closest approach inside each interval is found by ternary search.

Intervals already open at the window start are traced backwards, and
intervals still open at the window end are traced forwards, each up to
LOOKAROUND_DAYS; past that the interval is cut at the window edge.
"""
import itertools
import math
from dataclasses import dataclass, replace
from typing import Iterable

import numpy as np

from skydrift.domain.islands import Island
from skydrift.domain.orbital_model import (
    TIME_UNITS_PER_DAY,
    compute_positions,
    distance_between,
)

CONJUNCTION_THRESHOLD_MILES = 50.0
COARSE_STEP = 250.0
CROSSING_PRECISION = 0.05 * TIME_UNITS_PER_DAY
MIN_DISTANCE_PRECISION = 1.0
LOOKAROUND_DAYS = 30.0


@dataclass(frozen=True)
class Conjunction:
    """One close approach between two islands.

    Times are internal units; duration is in days; distance in miles.
    """
    id: int
    island1_id: int
    island2_id: int
    island1_name: str
    island2_name: str
    start_time: float
    end_time: float
    min_distance: float
    min_distance_time: float
    duration: float


def pair_key(island1_id: int, island2_id: int) -> tuple[int, int]:
    """Order-independent key for an island pair."""
    if island1_id < island2_id:
        return (island1_id, island2_id)
    return (island2_id, island1_id)


def _sample_distances(island1: Island, island2: Island, times: np.ndarray) -> np.ndarray:
    x1, y1 = compute_positions(island1, times)
    x2, y2 = compute_positions(island2, times)
    return np.hypot(x1 - x2, y1 - y2)


def _scan_times(start: float, end: float, step: float) -> np.ndarray:
    """Sample times from start to end inclusive at a fixed step."""
    count = max(1, math.ceil((end - start) / step))
    times = start + step * np.arange(count + 1, dtype=np.float64)
    times[-1] = min(times[-1], end)
    return times


def find_threshold_crossing(
    island1: Island,
    island2: Island,
    outside_time: float,
    inside_time: float,
    threshold: float = CONJUNCTION_THRESHOLD_MILES,
    precision: float = CROSSING_PRECISION,
) -> float:
    """
    Bisect the time at which the pair crosses the threshold.

    ``outside_time`` must be a time with distance above the threshold and
    ``inside_time`` one at or below it; either order in time is accepted,
    so the same routine refines entries and exits.

    Returns:
        Midpoint of the final bracket (width <= precision).
    """
    outside, inside = outside_time, inside_time
    while abs(inside - outside) > precision:
        mid = (outside + inside) / 2.0
        if distance_between(island1, island2, mid) <= threshold:
            inside = mid
        else:
            outside = mid
    return (outside + inside) / 2.0


def find_minimum_distance_time(
    island1: Island,
    island2: Island,
    start_time: float,
    end_time: float,
    precision: float = MIN_DISTANCE_PRECISION,
) -> float:
    """
    Ternary search for the time of closest approach in [start, end].

    Assumes the distance is unimodal over the interval, which holds for a
    single threshold excursion at the resolutions used here.
    """
    lo, hi = start_time, end_time
    while hi - lo > precision:
        third = (hi - lo) / 3.0
        m1 = lo + third
        m2 = hi - third
        if distance_between(island1, island2, m1) < distance_between(island1, island2, m2):
            hi = m2
        else:
            lo = m1
    return (lo + hi) / 2.0


def _trace_outward(
    island1: Island,
    island2: Island,
    edge_time: float,
    direction: float,
    threshold: float,
    step: float,
    lookaround_days: float,
) -> float:
    """Follow an interval open at ``edge_time`` outward until it closes.

    Returns the refined crossing, or ``edge_time`` when the pair is still
    inside the threshold after ``lookaround_days``.
    """
    span = lookaround_days * TIME_UNITS_PER_DAY
    if span <= 0:
        return edge_time
    offsets = _scan_times(0.0, span, step)[1:]
    times = edge_time + direction * offsets
    outside = np.flatnonzero(_sample_distances(island1, island2, times) > threshold)
    if outside.size == 0:
        return edge_time
    first = int(outside[0])
    last_inside = edge_time if first == 0 else float(times[first - 1])
    return find_threshold_crossing(
        island1, island2, float(times[first]), last_inside, threshold,
    )


def find_conjunction_intervals(
    island1: Island,
    island2: Island,
    start_time: float,
    lookahead_days: float,
    threshold: float = CONJUNCTION_THRESHOLD_MILES,
    step: float = COARSE_STEP,
    lookaround_days: float = LOOKAROUND_DAYS,
) -> list[tuple[float, float]]:
    """
    Find every (start, end) interval with the pair within the threshold.

    Args:
        island1, island2: The pair to examine.
        start_time: Window start (internal units).
        lookahead_days: Window length in days.
        threshold: Separation threshold in miles.
        step: Coarse sampling step in internal units.
        lookaround_days: How far to follow intervals open at either edge.

    Returns:
        Chronological list of (start_time, end_time) tuples.
    """
    if step <= 0:
        raise ValueError(f"step must be positive, got {step}")
    end_time = start_time + lookahead_days * TIME_UNITS_PER_DAY
    if end_time <= start_time:
        return []

    times = _scan_times(start_time, end_time, step)
    inside = _sample_distances(island1, island2, times) <= threshold

    intervals: list[tuple[float, float]] = []
    open_start: float | None = None
    if inside[0]:
        open_start = _trace_outward(
            island1, island2, start_time, -1.0, threshold, step, lookaround_days,
        )

    for k in np.flatnonzero(inside[1:] != inside[:-1]) + 1:
        before, after = float(times[k - 1]), float(times[k])
        if inside[k]:
            open_start = find_threshold_crossing(island1, island2, before, after, threshold)
        else:
            end = find_threshold_crossing(island1, island2, after, before, threshold)
            intervals.append((open_start, end))
            open_start = None

    if open_start is not None:
        end = _trace_outward(
            island1, island2, end_time, 1.0, threshold, step, lookaround_days,
        )
        intervals.append((open_start, end))

    return intervals


def _build_conjunction(
    conjunction_id: int,
    island1: Island,
    island2: Island,
    start: float,
    end: float,
) -> Conjunction:
    min_time = find_minimum_distance_time(island1, island2, start, end)
    return Conjunction(
        id=conjunction_id,
        island1_id=island1.id,
        island2_id=island2.id,
        island1_name=island1.name,
        island2_name=island2.name,
        start_time=start,
        end_time=end,
        min_distance=distance_between(island1, island2, min_time),
        min_distance_time=min_time,
        duration=(end - start) / TIME_UNITS_PER_DAY,
    )


def detect_pair_conjunctions(
    island1: Island,
    island2: Island,
    start_time: float,
    lookahead_days: float,
    first_id: int = 0,
) -> list[Conjunction]:
    """Conjunctions of one pair over [start, start + lookahead_days]."""
    intervals = find_conjunction_intervals(island1, island2, start_time, lookahead_days)
    return [
        _build_conjunction(first_id + n, island1, island2, start, end)
        for n, (start, end) in enumerate(intervals)
    ]


def calculate_upcoming_conjunctions(
    islands: list[Island],
    lookahead_days: float,
    start_time: float = 0.0,
    target_pairs: Iterable[tuple[int, int]] | None = None,
) -> list[Conjunction]:
    """
    Conjunctions of every island pair within a look-ahead window.

    Args:
        islands: Islands to check, pairwise.
        lookahead_days: Window length in days.
        start_time: Window start in internal units.
        target_pairs: Optional (id, id) pairs; when given, only these
            pairs are checked.

    Returns:
        Conjunctions sorted by start time, ids unique within the call.
    """
    wanted = None
    if target_pairs is not None:
        wanted = {pair_key(a, b) for a, b in target_pairs}

    found: list[tuple[float, float, Island, Island]] = []
    for island1, island2 in itertools.combinations(islands, 2):
        if wanted is not None and pair_key(island1.id, island2.id) not in wanted:
            continue
        for start, end in find_conjunction_intervals(island1, island2, start_time, lookahead_days):
            found.append((start, end, island1, island2))

    found.sort(key=lambda item: item[0])
    return [
        _build_conjunction(n, island1, island2, start, end)
        for n, (start, end, island1, island2) in enumerate(found)
    ]


def merge_conjunctions(
    existing: list[Conjunction],
    new: list[Conjunction],
    tolerance: float = TIME_UNITS_PER_DAY / 24.0,
) -> list[Conjunction]:
    """
    Merge a freshly computed batch into an existing conjunction list.

    A new conjunction is dropped when the same pair already has one starting
    within ``tolerance`` time units. The union is sorted by start time and
    renumbered so ids stay unique.
    """
    kept = list(existing)
    for candidate in new:
        key = pair_key(candidate.island1_id, candidate.island2_id)
        duplicate = any(
            pair_key(c.island1_id, c.island2_id) == key
            and abs(c.start_time - candidate.start_time) < tolerance
            for c in existing
        )
        if not duplicate:
            kept.append(candidate)
    kept.sort(key=lambda c: c.start_time)
    return [replace(c, id=n) for n, c in enumerate(kept)]
