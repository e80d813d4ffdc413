# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Island configuration search by simulated annealing.

Assigns integer epicycle periods to unconfigured islands so that chosen
island pairs meet target average gaps between conjunctions. Islands are
configured one per phase: each phase optimizes a single island while the
base island and every island from earlier phases stay fixed. Phases are
greedy; a locked-in island is never revisited.

Each evaluation analyses the configuration from a random start time drawn
across ten thousand years, which favours configurations whose conjunction
cadence holds regardless of where the window falls.

Scoring per target pair (lower is better, 0 is a perfect match):

    error = |ln(actual_avg_gap / target_avg_gap)| * 100

and a flat NO_CONJUNCTION_PENALTY when the pair never meets.
"""
import logging
import math
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable

import numpy as np

from skydrift.domain.islands import Epicycle, Island, validate_unique_ids
from skydrift.domain.orbital_model import TIME_UNITS_PER_DAY
from skydrift.domain.conjunction import pair_key
from skydrift.domain.conjunction_statistics import (
    AnalysisParams,
    ConjunctionStats,
    analyze_conjunctions,
)

logger = logging.getLogger(__name__)

NO_CONJUNCTION_PENALTY = 1_000_000.0
RANDOM_START_SPAN = 10_000 * 365 * TIME_UNITS_PER_DAY
PERTURB_PROBABILITY = 0.5
PERTURB_RANGE_FRACTION = 0.2
SIGN_FLIP_PROBABILITY = 0.1

ProgressCallback = Callable[["ConfigSearchResult", int, float, float], None]
PhaseProgressCallback = Callable[[int, int, str, "ConfigSearchResult", int, float, float], None]
CancelCheck = Callable[[], bool]


class SearchState(Enum):
    IDLE = "idle"
    INITIAL_EXPLORATION = "initial_exploration"
    ANNEALING = "annealing"
    DONE = "done"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class EpicycleBounds:
    """Period limits for one epicycle level.

    Proportions are relative to the magnitude of the parent level's period
    and are not allowed on level 0.
    """
    min_period: float | None = None
    max_period: float | None = None
    min_proportion: float | None = None
    max_proportion: float | None = None
    allow_negative: bool = False


@dataclass(frozen=True)
class ConjunctionTarget:
    """Desired average gap (days) between conjunctions of a pair."""
    island1_id: int
    island2_id: int
    target_avg_gap: float | None = None

    def __post_init__(self) -> None:
        if self.target_avg_gap is not None and self.target_avg_gap <= 0:
            raise ValueError(f"target_avg_gap must be positive, got {self.target_avg_gap}")

    @property
    def key(self) -> tuple[int, int]:
        return pair_key(self.island1_id, self.island2_id)


@dataclass(frozen=True)
class AnnealingParams:
    """Simulated annealing schedule."""
    initial_temperature: float = 1000.0
    cooling_rate: float = 0.95
    min_temperature: float = 0.1
    iterations_per_temp: int = 100
    num_initial_configs: int = 10
    random_seed: int | None = None

    def __post_init__(self) -> None:
        if self.initial_temperature <= 0:
            raise ValueError(f"initial_temperature must be positive, got {self.initial_temperature}")
        if self.min_temperature <= 0 or self.min_temperature >= self.initial_temperature:
            raise ValueError(
                f"min_temperature must be in (0, {self.initial_temperature}), got {self.min_temperature}"
            )
        if not 0 < self.cooling_rate < 1:
            raise ValueError(f"cooling_rate must be in (0, 1), got {self.cooling_rate}")
        if self.iterations_per_temp < 1:
            raise ValueError(f"iterations_per_temp must be >= 1, got {self.iterations_per_temp}")
        if self.num_initial_configs < 1:
            raise ValueError(f"num_initial_configs must be >= 1, got {self.num_initial_configs}")


@dataclass(frozen=True)
class ConfigSearchParams:
    """Everything a search needs; validated on construction."""
    base_island: Island
    epicycle_bounds: tuple[EpicycleBounds, ...]
    islands_to_configure: tuple[Island, ...]
    conjunction_targets: tuple[ConjunctionTarget, ...]
    analysis_params: AnalysisParams = AnalysisParams()
    annealing_params: AnnealingParams = AnnealingParams()

    def __post_init__(self) -> None:
        for name in ('epicycle_bounds', 'islands_to_configure', 'conjunction_targets'):
            value = getattr(self, name)
            if not isinstance(value, tuple):
                object.__setattr__(self, name, tuple(value))

        validate_unique_ids([self.base_island, *self.islands_to_configure])
        if not self.epicycle_bounds:
            raise ValueError("epicycle_bounds must describe at least one epicycle level")
        for index, bounds in enumerate(self.epicycle_bounds):
            _check_bounds_shape(bounds, index)


@dataclass(frozen=True)
class ConfigSearchResult:
    """One scored configuration.

    ``errors`` holds the per-pair error that makes up ``score``; ``phase``
    is the last phase the result belongs to (0 outside a phased search).
    """
    islands: tuple[Island, ...]
    score: float
    stats: dict[tuple[int, int], ConjunctionStats] = field(default_factory=dict)
    errors: dict[tuple[int, int], float] = field(default_factory=dict)
    temperature: float | None = None
    initial_search_index: int | None = None
    annealing_params: AnnealingParams | None = None
    phase: int = 0


def _check_bounds_shape(bounds: EpicycleBounds, index: int) -> None:
    if index == 0 and (bounds.min_proportion is not None or bounds.max_proportion is not None):
        raise ValueError(
            "Cannot use a proportional bound for the first epicycle (index 0) as there is no parent"
        )
    if bounds.min_period is None and bounds.min_proportion is None:
        raise ValueError(f"Epicycle bounds at index {index} must specify either minPeriod or minProportion")
    if bounds.max_period is None and bounds.max_proportion is None:
        raise ValueError(f"Epicycle bounds at index {index} must specify either maxPeriod or maxProportion")


def resolve_period_bounds(
    bounds: EpicycleBounds,
    index: int,
    parent_period: float | None = None,
) -> tuple[int, int]:
    """
    Integer (min, max) period magnitude for an epicycle level.

    Absolute and proportional limits combine to the tighter range; the
    minimum is rounded up, the maximum down, and a crossed range collapses
    onto the minimum.

    Args:
        bounds: Limits for this level.
        index: Epicycle level (0 has no parent).
        parent_period: Period of the level above (sign ignored).

    Raises:
        ValueError: On missing limits, proportions without a parent, a zero
            parent period, or a minimum below one day.
    """
    _check_bounds_shape(bounds, index)

    def parent_magnitude() -> float:
        if parent_period is None or parent_period == 0:
            raise ValueError(
                f"Cannot calculate proportional period: parent epicycle at index {index - 1} has zero period"
            )
        return abs(parent_period)

    candidates_min = []
    if bounds.min_proportion is not None:
        candidates_min.append(bounds.min_proportion * parent_magnitude())
    if bounds.min_period is not None:
        candidates_min.append(bounds.min_period)
    candidates_max = []
    if bounds.max_proportion is not None:
        candidates_max.append(bounds.max_proportion * parent_magnitude())
    if bounds.max_period is not None:
        candidates_max.append(bounds.max_period)

    low = math.ceil(max(candidates_min))
    high = math.floor(min(candidates_max))
    if low < 1:
        raise ValueError(f"Epicycle bounds at index {index} allow periods below 1 day (min {low})")
    return low, max(low, high)


def gap_error(actual_avg_gap: float, target_avg_gap: float) -> float:
    """Symmetric log-ratio error in percent; 0 when actual equals target."""
    return abs(math.log(actual_avg_gap / target_avg_gap)) * 100.0


def score_stats(
    stats: dict[tuple[int, int], ConjunctionStats],
    targets: tuple[ConjunctionTarget, ...] | list[ConjunctionTarget],
) -> tuple[float, dict[tuple[int, int], float]]:
    """
    Total score and per-pair errors for a set of targets.

    Targets without a gap goal contribute nothing and record error 0.
    """
    total = 0.0
    errors: dict[tuple[int, int], float] = {}
    for target in targets:
        key = target.key
        if target.target_avg_gap is None:
            errors[key] = 0.0
            continue
        pair = stats.get(key)
        if pair is None or pair.total_conjunctions == 0:
            error = NO_CONJUNCTION_PENALTY
        else:
            error = gap_error(pair.avg_gap, target.target_avg_gap)
        errors[key] = error
        total += error
    return total, errors


def evaluate_configuration(
    islands: list[Island],
    targets: tuple[ConjunctionTarget, ...] | list[ConjunctionTarget],
    analysis_params: AnalysisParams,
    rng: np.random.Generator,
) -> ConfigSearchResult:
    """Score a configuration over a randomly placed analysis window."""
    start_time = float(rng.integers(0, int(RANDOM_START_SPAN)))
    stats = analyze_conjunctions(
        islands,
        replace(analysis_params, start_time=start_time),
        target_pairs=[t.key for t in targets],
    )
    score, errors = score_stats(stats, targets)
    return ConfigSearchResult(islands=tuple(islands), score=score, stats=stats, errors=errors)


class IslandConfigSearch:
    """
    Simulated annealing over the periods of the last island in a configuration.

    ``optimize_island`` configures ``islands_to_configure[0]`` against the
    base island and any fixed islands. ``search_incremental`` runs one such
    phase per island, in order.
    """

    def __init__(self, params: ConfigSearchParams, rng: np.random.Generator | None = None):
        self.params = params
        self.annealing = params.annealing_params
        self._rng = rng if rng is not None else np.random.default_rng(self.annealing.random_seed)
        self._fixed_islands: tuple[Island, ...] = ()
        self.state = SearchState.IDLE
        self.best_result: ConfigSearchResult | None = None
        self.iteration = 0

    @property
    def fixed_islands(self) -> tuple[Island, ...]:
        return self._fixed_islands

    def set_fixed_islands(self, islands: list[Island] | tuple[Island, ...]) -> None:
        """Islands kept unchanged and included in every evaluation."""
        self._fixed_islands = tuple(islands)

    # ── Configuration generation ───────────────────────────────────

    def generate_random_island_config(self, template: Island) -> Island:
        """Fresh random periods for every bounded level of an island."""
        periods: list[int] = []
        for index, bounds in enumerate(self.params.epicycle_bounds):
            parent = periods[index - 1] if index > 0 else None
            low, high = resolve_period_bounds(bounds, index, parent)
            period = low if low == high else int(self._rng.integers(low, high + 1))
            if bounds.allow_negative and self._rng.random() < 0.5:
                period = -period
            periods.append(period)
        return replace(template, cycles=tuple(Epicycle(p) for p in periods))

    def generate_random_config(self) -> list[Island]:
        islands = [self.params.base_island, *self._fixed_islands]
        if self.params.islands_to_configure:
            islands.append(self.generate_random_island_config(self.params.islands_to_configure[0]))
        return islands

    def perturb_config(self, islands: list[Island], temperature: float) -> list[Island]:
        """
        Neighbour of a configuration; only the last island changes.

        Each level is perturbed with probability proportional to the
        temperature, by a random integer step that shrinks as it cools.
        Every level is clamped into its bounds, which for proportional
        bounds follow the (possibly perturbed) parent period.
        """
        if len(islands) < 2:
            return list(islands)

        target = islands[-1]
        ratio = temperature / self.annealing.initial_temperature
        periods = list(target.periods)
        for j, period in enumerate(periods):
            bounds = self.params.epicycle_bounds[j]
            parent = periods[j - 1] if j > 0 else None
            low, high = resolve_period_bounds(bounds, j, parent)
            sign = 1 if period > 0 else -1
            magnitude = abs(period)

            if self._rng.random() < PERTURB_PROBABILITY * ratio:
                max_step = max(1, math.floor((high - low) * PERTURB_RANGE_FRACTION * ratio))
                magnitude += int(self._rng.integers(-max_step, max_step + 1))
                if bounds.allow_negative and self._rng.random() < SIGN_FLIP_PROBABILITY:
                    sign = -sign

            periods[j] = sign * min(high, max(low, magnitude))

        perturbed = replace(target, cycles=tuple(Epicycle(p) for p in periods))
        return [*islands[:-1], perturbed]

    # ── Scoring ────────────────────────────────────────────────────

    def evaluate_config(self, islands: list[Island]) -> ConfigSearchResult:
        return evaluate_configuration(
            islands, self.params.conjunction_targets, self.params.analysis_params, self._rng,
        )

    def evaluate_final(self, islands: list[Island]) -> ConfigSearchResult:
        """Score against every target over the configured (non-random) window."""
        stats = analyze_conjunctions(
            islands,
            self.params.analysis_params,
            target_pairs=[t.key for t in self.params.conjunction_targets],
        )
        score, errors = score_stats(stats, self.params.conjunction_targets)
        return ConfigSearchResult(
            islands=tuple(islands),
            score=score,
            stats=stats,
            errors=errors,
            annealing_params=self.annealing,
        )

    def _accept(self, current_score: float, new_score: float, temperature: float) -> bool:
        if new_score <= current_score:
            return True
        return self._rng.random() < math.exp((current_score - new_score) / temperature)

    # ── Single-island annealing ────────────────────────────────────

    def optimize_island(
        self,
        progress_callback: ProgressCallback | None = None,
        should_cancel: CancelCheck | None = None,
    ) -> ConfigSearchResult:
        """
        Anneal the island being configured and return the best result.

        Random exploration picks the starting point, then Metropolis
        annealing runs until the temperature drops to the minimum.
        ``should_cancel`` is polled after every evaluation; cancelling
        returns the best result so far.
        """
        started = time.monotonic()

        def elapsed_ms() -> float:
            return (time.monotonic() - started) * 1000.0

        def report(result: ConfigSearchResult, iteration: int, temperature: float) -> None:
            if progress_callback is not None:
                progress_callback(result, iteration, temperature, elapsed_ms())

        def cancelled() -> bool:
            return should_cancel is not None and should_cancel()

        params = self.annealing
        t0 = params.initial_temperature
        self.iteration = 0
        self.state = SearchState.INITIAL_EXPLORATION

        current_config: list[Island] = []
        current: ConfigSearchResult | None = None
        for i in range(params.num_initial_configs):
            config = self.generate_random_config()
            result = self.evaluate_config(config)
            if current is None or result.score < current.score:
                current_config = config
                current = replace(
                    result, initial_search_index=i, temperature=t0, annealing_params=params,
                )
                self.best_result = current
                report(current, i, t0)
            if cancelled():
                self.state = SearchState.CANCELLED
                return self.best_result

        start_index = self.best_result.initial_search_index
        temperature = t0
        self.state = SearchState.ANNEALING
        while temperature > params.min_temperature:
            for _ in range(params.iterations_per_temp):
                self.iteration += 1
                neighbour_config = self.perturb_config(current_config, temperature)
                neighbour = self.evaluate_config(neighbour_config)
                if self._accept(current.score, neighbour.score, temperature):
                    current_config, current = neighbour_config, neighbour
                    if current.score < self.best_result.score:
                        self.best_result = replace(
                            current,
                            initial_search_index=start_index,
                            temperature=temperature,
                            annealing_params=params,
                        )
                        report(self.best_result, self.iteration, temperature)
                if cancelled():
                    self.state = SearchState.CANCELLED
                    return self.best_result

            temperature *= params.cooling_rate
            report(replace(self.best_result, temperature=temperature), self.iteration, temperature)

        self.state = SearchState.DONE
        return self.best_result

    # ── Phased search ──────────────────────────────────────────────

    def build_phase_search(
        self,
        configured: list[Island],
        island: Island,
        rng: np.random.Generator | None = None,
    ) -> "IslandConfigSearch":
        """
        Search for one phase: configure ``island`` with ``configured`` fixed.

        ``configured`` starts with the base island. Only targets whose two
        islands are both present in the phase are kept.
        """
        ids = {i.id for i in configured} | {island.id}
        relevant = tuple(
            t for t in self.params.conjunction_targets
            if t.island1_id in ids and t.island2_id in ids
        )
        phase_params = replace(
            self.params, islands_to_configure=(island,), conjunction_targets=relevant,
        )
        search = IslandConfigSearch(phase_params, rng=rng if rng is not None else self._rng)
        search.set_fixed_islands(configured[1:])
        return search

    def search_incremental(
        self,
        progress_callback: PhaseProgressCallback | None = None,
        should_cancel: CancelCheck | None = None,
    ) -> ConfigSearchResult:
        """
        Configure every island in order, one annealing phase each.

        Returns the final full-target evaluation, or the current phase's
        best result (tagged with its phase) when cancelled.
        """
        configured: list[Island] = [self.params.base_island]
        total = len(self.params.islands_to_configure)

        for phase, island in enumerate(self.params.islands_to_configure, start=1):
            logger.info("Phase %d/%d: optimizing island %r", phase, total, island.name)
            search = self.build_phase_search(configured, island)
            reporter = _phase_reporter(progress_callback, phase, total, island.name)
            self.state = SearchState.ANNEALING

            result = replace(search.optimize_island(reporter, should_cancel), phase=phase)
            self.best_result = result
            if should_cancel is not None and should_cancel():
                logger.info("Search cancelled during phase %d/%d", phase, total)
                self.state = SearchState.CANCELLED
                return result

            configured = list(result.islands)
            logger.info("Completed %r with score %.4f", island.name, result.score)

        final = replace(self.evaluate_final(configured), phase=total)
        self.best_result = final
        self.state = SearchState.DONE
        return final


def _phase_reporter(
    callback: PhaseProgressCallback | None,
    phase: int,
    total: int,
    island_name: str,
) -> ProgressCallback | None:
    if callback is None:
        return None

    def report(result: ConfigSearchResult, iteration: int, temperature: float, elapsed_ms: float) -> None:
        callback(
            phase, total, island_name,
            replace(result, phase=phase), iteration, temperature, elapsed_ms,
        )

    return report
