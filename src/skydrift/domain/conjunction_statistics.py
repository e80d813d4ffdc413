# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Long-horizon conjunction statistics per island pair.

Runs the conjunction detector over a simulation window in fixed-size
chunks and reduces the results into per-pair counts, durations, minimum
distances and gaps between successive conjunctions.

Gap statistics treat the window as wrapping around: the time before the
first conjunction and after the last one form a single combined gap that
counts towards the average but not towards the min/max.
"""
import itertools
import math
from dataclasses import dataclass, replace
from typing import Iterable

from skydrift.domain.islands import Island
from skydrift.domain.orbital_model import TIME_UNITS_PER_DAY
from skydrift.domain.conjunction import (
    Conjunction,
    calculate_upcoming_conjunctions,
    pair_key,
)
from skydrift.domain.time_format import parse_time_string


@dataclass(frozen=True)
class AnalysisParams:
    """Window and chunking for a conjunction analysis (days / internal units)."""
    simulation_days: float = 3650.0
    time_step_days: float = 365.0
    start_time: float = 0.0

    def __post_init__(self) -> None:
        if self.simulation_days <= 0:
            raise ValueError(f"simulation_days must be positive, got {self.simulation_days}")
        if self.time_step_days <= 0:
            raise ValueError(f"time_step_days must be positive, got {self.time_step_days}")


@dataclass(frozen=True)
class GapStatistics:
    """Gaps between conjunction starts, in days."""
    avg_gap: float
    min_gap: float | None
    max_gap: float | None


@dataclass(frozen=True)
class ConjunctionStats:
    """Aggregated conjunction history for one island pair.

    With no conjunctions the minimums stay at infinity and the gap
    min/max at None, so an empty pair is never mistaken for a good one.
    """
    island1_id: int
    island2_id: int
    island1_name: str
    island2_name: str
    total_conjunctions: int = 0
    avg_duration: float = 0.0
    min_duration: float = math.inf
    max_duration: float = 0.0
    avg_gap: float = 0.0
    min_gap: float | None = None
    max_gap: float | None = None
    avg_min_distance: float = 0.0
    min_min_distance: float = math.inf
    conjunction_times: tuple[float, ...] = ()
    conjunctions: tuple[Conjunction, ...] = ()

    @property
    def key(self) -> tuple[int, int]:
        return pair_key(self.island1_id, self.island2_id)


def compute_gap_statistics(start_days: list[float], simulation_days: float) -> GapStatistics:
    """
    Average/min/max gap between conjunction starts.

    Args:
        start_days: Conjunction start times in days, relative to the
            window start (any order).
        simulation_days: Window length in days.

    Returns:
        GapStatistics. Average includes the wraparound gap (when positive);
        min/max use consecutive gaps only. A single conjunction reports
        min = max = avg. No conjunctions gives (0, None, None).
    """
    if not start_days:
        return GapStatistics(avg_gap=0.0, min_gap=None, max_gap=None)

    ordered = sorted(start_days)
    between = [b - a for a, b in zip(ordered, ordered[1:])]

    gaps = list(between)
    outside = ordered[0] + (simulation_days - ordered[-1])
    if outside > 0:
        gaps.append(outside)

    avg = sum(gaps) / len(gaps) if gaps else 0.0
    if between:
        return GapStatistics(avg_gap=avg, min_gap=min(between), max_gap=max(between))
    return GapStatistics(avg_gap=avg, min_gap=avg, max_gap=avg)


def _reduce_pair(
    island1: Island,
    island2: Island,
    conjunctions: list[Conjunction],
    params: AnalysisParams,
) -> ConjunctionStats:
    stats = ConjunctionStats(
        island1_id=island1.id,
        island2_id=island2.id,
        island1_name=island1.name,
        island2_name=island2.name,
    )
    if not conjunctions:
        return stats

    n = 0
    avg_duration = 0.0
    min_duration = math.inf
    max_duration = 0.0
    avg_min_distance = 0.0
    min_min_distance = math.inf
    for c in conjunctions:
        n += 1
        avg_duration = (avg_duration * (n - 1) + c.duration) / n
        min_duration = min(min_duration, c.duration)
        max_duration = max(max_duration, c.duration)
        avg_min_distance = (avg_min_distance * (n - 1) + c.min_distance) / n
        min_min_distance = min(min_min_distance, c.min_distance)

    times = sorted(c.start_time for c in conjunctions)
    gaps = compute_gap_statistics(
        [(t - params.start_time) / TIME_UNITS_PER_DAY for t in times],
        params.simulation_days,
    )
    return replace(
        stats,
        total_conjunctions=n,
        avg_duration=avg_duration,
        min_duration=min_duration,
        max_duration=max_duration,
        avg_gap=gaps.avg_gap,
        min_gap=gaps.min_gap,
        max_gap=gaps.max_gap,
        avg_min_distance=avg_min_distance,
        min_min_distance=min_min_distance,
        conjunction_times=tuple(times),
        conjunctions=tuple(conjunctions),
    )


def analyze_conjunctions(
    islands: list[Island],
    params: AnalysisParams = AnalysisParams(),
    target_pairs: Iterable[tuple[int, int]] | None = None,
) -> dict[tuple[int, int], ConjunctionStats]:
    """
    Conjunction statistics for island pairs over a simulation window.

    The window is processed in chunks of ``time_step_days``. An interval
    already open at the start of a later chunk was reported by the chunk
    before it (which follows it forward), so it is not counted again.

    Args:
        islands: Islands in the configuration.
        params: Window, chunk size and start time.
        target_pairs: Optional (id, id) pairs to restrict the analysis to.
            Pairs whose islands are absent get no entry.

    Returns:
        Dict keyed by sorted (id, id) with one ConjunctionStats per pair.
    """
    wanted = None
    if target_pairs is not None:
        wanted = {pair_key(a, b) for a, b in target_pairs}

    pairs: dict[tuple[int, int], tuple[Island, Island]] = {}
    for island1, island2 in itertools.combinations(islands, 2):
        key = pair_key(island1.id, island2.id)
        if wanted is None or key in wanted:
            pairs[key] = (island1, island2)

    collected: dict[tuple[int, int], list[Conjunction]] = {key: [] for key in pairs}
    if pairs:
        end_time = params.start_time + params.simulation_days * TIME_UNITS_PER_DAY
        chunk = params.time_step_days * TIME_UNITS_PER_DAY
        for index in itertools.count():
            chunk_start = params.start_time + index * chunk
            if chunk_start >= end_time:
                break
            chunk_days = min(params.time_step_days, (end_time - chunk_start) / TIME_UNITS_PER_DAY)
            batch = calculate_upcoming_conjunctions(
                islands, chunk_days, chunk_start, target_pairs=pairs.keys(),
            )
            for c in batch:
                if index > 0 and c.start_time <= chunk_start:
                    continue
                collected[pair_key(c.island1_id, c.island2_id)].append(c)

    # Chunks number their conjunctions independently; renumber per run.
    ordered = sorted(itertools.chain.from_iterable(collected.values()), key=lambda c: c.start_time)
    renumbered = {id(c): n for n, c in enumerate(ordered)}

    stats: dict[tuple[int, int], ConjunctionStats] = {}
    for key, (island1, island2) in pairs.items():
        conjunctions = [replace(c, id=renumbered[id(c)]) for c in collected[key]]
        stats[key] = _reduce_pair(island1, island2, conjunctions, params)
    return stats


def analyze_conjunctions_from_date(
    islands: list[Island],
    start_date: str,
    duration_days: float,
    time_step_days: float = 30.0,
) -> dict[tuple[int, int], ConjunctionStats]:
    """
    Analyze from a calendar date string (``yyyy-mm-dd [h]h``).

    Raises:
        ValueError: If the date string is malformed.
    """
    params = AnalysisParams(
        simulation_days=duration_days,
        time_step_days=time_step_days,
        start_time=parse_time_string(start_date),
    )
    return analyze_conjunctions(islands, params)
