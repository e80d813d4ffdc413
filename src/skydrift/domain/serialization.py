# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Conversion between domain objects and JSON-ready dicts.

Files use camelCase keys (``baseIsland``, ``minPeriod``, ``targetAvgGap``)
while the domain uses snake_case dataclasses. Pair-keyed maps become
``"low-high"`` string keys.

No external dependencies; the json module lives in the adapter layer.
"""
import math
from typing import Any

from skydrift.domain.islands import Epicycle, Island, validate_unique_ids
from skydrift.domain.conjunction import Conjunction
from skydrift.domain.conjunction_statistics import AnalysisParams, ConjunctionStats
from skydrift.domain.config_search import (
    AnnealingParams,
    ConfigSearchParams,
    ConfigSearchResult,
    ConjunctionTarget,
    EpicycleBounds,
)

# Defaults for a search config that omits analysisParams.
DEFAULT_SEARCH_SIMULATION_DAYS = 3650.0
DEFAULT_SEARCH_TIME_STEP_DAYS = 30.0


def _require(data: dict, key: str, context: str) -> Any:
    if not isinstance(data, dict):
        raise ValueError(f"{context} must be an object, got {type(data).__name__}")
    if key not in data:
        raise ValueError(f"{context} is missing required field '{key}'")
    return data[key]


def _optional_float(data: dict, key: str) -> float | None:
    value = data.get(key)
    return None if value is None else float(value)


def _finite_or_none(value: float | None) -> float | None:
    if value is None or math.isinf(value):
        return None
    return value


def format_pair_key(key: tuple[int, int]) -> str:
    return f"{key[0]}-{key[1]}"


# ── Islands ────────────────────────────────────────────────────────

def island_from_dict(data: dict) -> Island:
    """
    Build an Island from its JSON form.

    Raises:
        ValueError: On a missing id/name or a zero period.
    """
    island_id = int(_require(data, 'id', 'Island'))
    name = str(_require(data, 'name', f"Island {island_id}"))
    cycles = tuple(
        Epicycle(float(_require(c, 'period', f"Epicycle of {name!r}")))
        for c in data.get('cycles') or ()
    )
    return Island(
        id=island_id,
        name=name,
        cycles=cycles,
        color=data.get('color', "#888888"),
        radius=float(data.get('radius', 10.0)),
        visible=bool(data.get('visible', True)),
    )


def island_to_dict(island: Island) -> dict:
    return {
        'id': island.id,
        'name': island.name,
        'color': island.color,
        'radius': island.radius,
        'cycles': [{'period': c.period} for c in island.cycles],
        'visible': island.visible,
    }


def islands_from_list(data: list) -> list[Island]:
    if not isinstance(data, list):
        raise ValueError(f"Island file must hold a list, got {type(data).__name__}")
    islands = [island_from_dict(item) for item in data]
    validate_unique_ids(islands)
    return islands


def islands_to_list(islands: list[Island] | tuple[Island, ...]) -> list[dict]:
    return [island_to_dict(i) for i in islands]


# ── Search configuration ───────────────────────────────────────────

def epicycle_bounds_from_dict(data: dict) -> EpicycleBounds:
    if not isinstance(data, dict):
        raise ValueError(f"Epicycle bounds must be an object, got {type(data).__name__}")
    return EpicycleBounds(
        min_period=_optional_float(data, 'minPeriod'),
        max_period=_optional_float(data, 'maxPeriod'),
        min_proportion=_optional_float(data, 'minProportion'),
        max_proportion=_optional_float(data, 'maxProportion'),
        allow_negative=bool(data.get('allowNegative', False)),
    )


def epicycle_bounds_to_dict(bounds: EpicycleBounds) -> dict:
    result: dict[str, Any] = {}
    for key, value in (
        ('minPeriod', bounds.min_period),
        ('maxPeriod', bounds.max_period),
        ('minProportion', bounds.min_proportion),
        ('maxProportion', bounds.max_proportion),
    ):
        if value is not None:
            result[key] = value
    if bounds.allow_negative:
        result['allowNegative'] = True
    return result


def conjunction_target_from_dict(data: dict) -> ConjunctionTarget:
    return ConjunctionTarget(
        island1_id=int(_require(data, 'island1Id', 'Conjunction target')),
        island2_id=int(_require(data, 'island2Id', 'Conjunction target')),
        target_avg_gap=_optional_float(data, 'targetAvgGap'),
    )


def conjunction_target_to_dict(target: ConjunctionTarget) -> dict:
    result: dict[str, Any] = {'island1Id': target.island1_id, 'island2Id': target.island2_id}
    if target.target_avg_gap is not None:
        result['targetAvgGap'] = target.target_avg_gap
    return result


def analysis_params_from_dict(data: dict | None) -> AnalysisParams:
    data = data or {}
    return AnalysisParams(
        simulation_days=float(data.get('simulationDays', DEFAULT_SEARCH_SIMULATION_DAYS)),
        time_step_days=float(data.get('timeStepDays', DEFAULT_SEARCH_TIME_STEP_DAYS)),
        start_time=float(data.get('startTimeMs', 0.0)),
    )


def analysis_params_to_dict(params: AnalysisParams) -> dict:
    return {
        'simulationDays': params.simulation_days,
        'timeStepDays': params.time_step_days,
        'startTimeMs': params.start_time,
    }


def annealing_params_from_dict(data: dict | None) -> AnnealingParams:
    data = data or {}
    defaults = AnnealingParams()
    seed = data.get('randomSeed')
    return AnnealingParams(
        initial_temperature=float(data.get('initialTemperature', defaults.initial_temperature)),
        cooling_rate=float(data.get('coolingRate', defaults.cooling_rate)),
        min_temperature=float(data.get('minTemperature', defaults.min_temperature)),
        iterations_per_temp=int(data.get('iterationsPerTemp', defaults.iterations_per_temp)),
        num_initial_configs=int(data.get('numInitialConfigs', defaults.num_initial_configs)),
        random_seed=None if seed is None else int(seed),
    )


def annealing_params_to_dict(params: AnnealingParams) -> dict:
    result: dict[str, Any] = {
        'initialTemperature': params.initial_temperature,
        'coolingRate': params.cooling_rate,
        'minTemperature': params.min_temperature,
        'iterationsPerTemp': params.iterations_per_temp,
        'numInitialConfigs': params.num_initial_configs,
    }
    if params.random_seed is not None:
        result['randomSeed'] = params.random_seed
    return result


def search_params_from_dict(data: dict) -> ConfigSearchParams:
    """
    Build validated search parameters from a search configuration file.

    Raises:
        ValueError: On missing sections, bad bounds or duplicate ids.
    """
    base = island_from_dict(_require(data, 'baseIsland', 'Search config'))
    bounds = _require(data, 'epicycleBounds', 'Search config')
    to_configure = _require(data, 'islandsToConfigure', 'Search config')
    targets = data.get('conjunctionTargets') or []
    for name, value in (('epicycleBounds', bounds), ('islandsToConfigure', to_configure),
                        ('conjunctionTargets', targets)):
        if not isinstance(value, list):
            raise ValueError(f"Search config field '{name}' must be a list")

    return ConfigSearchParams(
        base_island=base,
        epicycle_bounds=tuple(epicycle_bounds_from_dict(b) for b in bounds),
        islands_to_configure=tuple(island_from_dict(i) for i in to_configure),
        conjunction_targets=tuple(conjunction_target_from_dict(t) for t in targets),
        analysis_params=analysis_params_from_dict(data.get('analysisParams')),
        annealing_params=annealing_params_from_dict(data.get('annealingParams')),
    )


def search_params_to_dict(params: ConfigSearchParams) -> dict:
    return {
        'baseIsland': island_to_dict(params.base_island),
        'epicycleBounds': [epicycle_bounds_to_dict(b) for b in params.epicycle_bounds],
        'islandsToConfigure': islands_to_list(params.islands_to_configure),
        'conjunctionTargets': [conjunction_target_to_dict(t) for t in params.conjunction_targets],
        'analysisParams': analysis_params_to_dict(params.analysis_params),
        'annealingParams': annealing_params_to_dict(params.annealing_params),
    }


# ── Results ────────────────────────────────────────────────────────

def conjunction_to_dict(conjunction: Conjunction) -> dict:
    return {
        'id': conjunction.id,
        'island1Id': conjunction.island1_id,
        'island2Id': conjunction.island2_id,
        'island1Name': conjunction.island1_name,
        'island2Name': conjunction.island2_name,
        'startTime': conjunction.start_time,
        'endTime': conjunction.end_time,
        'minDistance': conjunction.min_distance,
        'minDistanceTime': conjunction.min_distance_time,
        'duration': conjunction.duration,
    }


def conjunction_stats_to_dict(stats: ConjunctionStats, include_conjunctions: bool = False) -> dict:
    """JSON form of pair statistics; infinite minimums become null."""
    result = {
        'island1Id': stats.island1_id,
        'island2Id': stats.island2_id,
        'island1Name': stats.island1_name,
        'island2Name': stats.island2_name,
        'totalConjunctions': stats.total_conjunctions,
        'avgConjunctionDuration': stats.avg_duration,
        'minConjunctionDuration': _finite_or_none(stats.min_duration),
        'maxConjunctionDuration': stats.max_duration,
        'avgTimeBetweenConjunctions': stats.avg_gap,
        'minTimeBetweenConjunctions': stats.min_gap,
        'maxTimeBetweenConjunctions': stats.max_gap,
        'avgMinDistance': stats.avg_min_distance,
        'minMinDistance': _finite_or_none(stats.min_min_distance),
        'conjunctionTimes': list(stats.conjunction_times),
    }
    if include_conjunctions:
        result['conjunctions'] = [conjunction_to_dict(c) for c in stats.conjunctions]
    return result


def search_result_to_dict(result: ConfigSearchResult) -> dict:
    return {
        'islands': islands_to_list(result.islands),
        'score': result.score,
        'phase': result.phase,
        'stats': {
            format_pair_key(key): conjunction_stats_to_dict(s)
            for key, s in sorted(result.stats.items())
        },
        'errors': {
            format_pair_key(key): error for key, error in sorted(result.errors.items())
        },
    }
