# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""
Skydrift

Simulate floating islands on nested circular orbits (epicycles). Detects
close approaches between islands, aggregates long-horizon conjunction
statistics, plans journeys between moving islands, and searches for
epicycle periods that give chosen island pairs a target average gap
between conjunctions.
"""

from skydrift.domain.islands import (
    Epicycle,
    Island,
    Position,
    find_island,
    validate_unique_ids,
)
from skydrift.domain.orbital_model import (
    TIME_UNITS_PER_DAY,
    MILES_SCALE_FACTOR,
    Velocity,
    OrbitalPhase,
    orbital_radius_miles,
    compute_position,
    compute_positions,
    compute_orbit_paths,
    distance_between,
    compute_velocity,
    orbital_period,
    orbital_phase,
    system_period,
)
from skydrift.domain.time_format import (
    format_time,
    parse_time_string,
    format_duration,
)
from skydrift.domain.conjunction import (
    CONJUNCTION_THRESHOLD_MILES,
    Conjunction,
    pair_key,
    detect_pair_conjunctions,
    calculate_upcoming_conjunctions,
    merge_conjunctions,
)
from skydrift.domain.conjunction_statistics import (
    AnalysisParams,
    ConjunctionStats,
    GapStatistics,
    compute_gap_statistics,
    analyze_conjunctions,
    analyze_conjunctions_from_date,
)
from skydrift.domain.journey import (
    Journey,
    JourneyStatus,
    plan_journey,
    commit_journey,
    update_journey_status,
)
from skydrift.domain.config_search import (
    NO_CONJUNCTION_PENALTY,
    AnnealingParams,
    ConfigSearchParams,
    ConfigSearchResult,
    ConjunctionTarget,
    EpicycleBounds,
    IslandConfigSearch,
    SearchState,
    evaluate_configuration,
    gap_error,
    resolve_period_bounds,
    score_stats,
)
