# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""Tests for epicycle positions, velocities, orbit rings and orbital periods."""
import ast
import math

import numpy as np
import pytest

from skydrift.domain.islands import Epicycle, Island


def _island(island_id, *periods, name=None):
    return Island(
        id=island_id,
        name=name or f"Island {island_id}",
        cycles=tuple(Epicycle(p) for p in periods),
    )


QUARTER_YEAR = 365 * 1000.0 / 4


# ── Value types ─────────────────────────────────────────────────────

class TestIslandTypes:

    def test_zero_period_rejected(self):
        with pytest.raises(ValueError):
            Epicycle(0)

    def test_island_frozen(self):
        """Island is immutable."""
        island = _island(1, 365)
        with pytest.raises(AttributeError):
            island.name = "Other"

    def test_cycles_stored_as_tuple(self):
        island = Island(id=1, name="A", cycles=[Epicycle(10), Epicycle(-3)])
        assert isinstance(island.cycles, tuple)
        assert island.periods == (10, -3)

    def test_duplicate_ids_rejected(self):
        from skydrift.domain.islands import validate_unique_ids

        with pytest.raises(ValueError, match="Duplicate island id 1"):
            validate_unique_ids([_island(1, 10), _island(2, 20), _island(1, 30)])

    def test_find_island(self):
        from skydrift.domain.islands import find_island

        islands = [_island(1, 10), _island(2, 20)]
        assert find_island(islands, 2).periods == (20,)
        assert find_island(islands, 3) is None


# ── Positions ───────────────────────────────────────────────────────

class TestComputePosition:

    def test_year_period_radius(self):
        """A 365-day period orbits 672 miles out."""
        from skydrift.domain.orbital_model import orbital_radius_miles

        assert orbital_radius_miles(365) == pytest.approx(672.0)
        assert orbital_radius_miles(-365) == pytest.approx(672.0)

    def test_radius_scales_with_two_thirds_power(self):
        from skydrift.domain.orbital_model import orbital_radius_miles

        ratio = orbital_radius_miles(8 * 365) / orbital_radius_miles(365)
        assert ratio == pytest.approx(4.0)

    def test_start_on_positive_x_axis(self):
        from skydrift.domain.orbital_model import compute_position

        pos = compute_position(_island(1, 365), 0.0)
        assert pos.x == pytest.approx(672.0)
        assert pos.y == pytest.approx(0.0)

    def test_quarter_period_counterclockwise(self):
        from skydrift.domain.orbital_model import compute_position

        pos = compute_position(_island(1, 365), QUARTER_YEAR)
        assert pos.x == pytest.approx(0.0, abs=1e-9)
        assert pos.y == pytest.approx(672.0)

    def test_negative_period_clockwise(self):
        from skydrift.domain.orbital_model import compute_position

        pos = compute_position(_island(1, -365), QUARTER_YEAR)
        assert pos.x == pytest.approx(0.0, abs=1e-9)
        assert pos.y == pytest.approx(-672.0)

    def test_nested_levels_add(self):
        from skydrift.domain.orbital_model import compute_position, orbital_radius_miles

        island = _island(1, 365, 30)
        pos = compute_position(island, 0.0)
        assert pos.x == pytest.approx(672.0 + orbital_radius_miles(30))
        level0 = compute_position(island, 0.0, level=0)
        assert level0.x == pytest.approx(672.0)

    def test_no_cycles_at_origin(self):
        from skydrift.domain.orbital_model import compute_position

        pos = compute_position(Island(id=1, name="Hub"), 12345.0)
        assert (pos.x, pos.y) == (0.0, 0.0)

    def test_deterministic(self):
        """Same island and time give bit-identical positions."""
        from skydrift.domain.orbital_model import compute_position, compute_velocity

        island = _island(1, 300, -47, 11)
        assert compute_position(island, 987654.321) == compute_position(island, 987654.321)
        assert compute_velocity(island, 987654.321) == compute_velocity(island, 987654.321)

    def test_vectorized_matches_scalar(self):
        from skydrift.domain.orbital_model import compute_position, compute_positions

        island = _island(1, 300, -47, 11)
        times = np.linspace(-50000.0, 2_000_000.0, 37)
        xs, ys = compute_positions(island, times)
        for t, x, y in zip(times, xs, ys):
            pos = compute_position(island, float(t))
            assert x == pytest.approx(pos.x, abs=1e-9)
            assert y == pytest.approx(pos.y, abs=1e-9)

    def test_distance_between(self):
        from skydrift.domain.orbital_model import distance_between

        a = _island(1, 365)
        b = _island(2, -365)
        # Counter-rotating: together at t=0, opposite after a quarter turn.
        assert distance_between(a, b, 0.0) == pytest.approx(0.0, abs=1e-9)
        assert distance_between(a, b, QUARTER_YEAR) == pytest.approx(2 * 672.0)


# ── Orbit rings ─────────────────────────────────────────────────────

class TestOrbitPaths:

    def test_one_closed_ring_per_level(self):
        from skydrift.domain.orbital_model import compute_orbit_paths

        rings = compute_orbit_paths(_island(1, 365, 30), 0.0, steps=100)
        assert len(rings) == 2
        for ring in rings:
            assert len(ring) == 101
            assert ring[0].x == pytest.approx(ring[-1].x)
            assert ring[0].y == pytest.approx(ring[-1].y)

    def test_inner_ring_centred_on_parent_level(self):
        from skydrift.domain.orbital_model import (
            compute_orbit_paths, compute_position, orbital_radius_miles,
        )

        island = _island(1, 365, 30)
        t = 40_000.0
        centre = compute_position(island, t, level=0)
        ring = compute_orbit_paths(island, t, steps=8)[1]
        r = orbital_radius_miles(30)
        for point in ring:
            assert math.hypot(point.x - centre.x, point.y - centre.y) == pytest.approx(r)

    def test_level_positions_start_at_origin(self):
        from skydrift.domain.orbital_model import compute_level_positions, compute_position

        island = _island(1, 365, 30)
        positions = compute_level_positions(island, 5000.0)
        assert (positions[0].x, positions[0].y) == (0.0, 0.0)
        assert positions[-1] == compute_position(island, 5000.0)


# ── Velocity ────────────────────────────────────────────────────────

class TestVelocity:

    def test_circular_speed(self):
        from skydrift.domain.orbital_model import compute_velocity

        v = compute_velocity(_island(1, 365), 0.0)
        assert v.speed == pytest.approx(672.0 * 2 * math.pi / 365)
        assert v.angle_deg == pytest.approx(90.0)

    def test_clockwise_heading(self):
        from skydrift.domain.orbital_model import compute_velocity

        v = compute_velocity(_island(1, -365), 0.0)
        assert v.angle_deg == pytest.approx(270.0)

    def test_matches_finite_difference(self):
        from skydrift.domain.orbital_model import compute_position, compute_velocity

        island = _island(1, 200, -30)
        t = 123_456.0
        h = 1.0  # one thousandth of a day
        p0 = compute_position(island, t - h)
        p1 = compute_position(island, t + h)
        v = compute_velocity(island, t)
        days = 2 * h / 1000.0
        assert v.vx == pytest.approx((p1.x - p0.x) / days, rel=1e-4, abs=1e-3)
        assert v.vy == pytest.approx((p1.y - p0.y) / days, rel=1e-4, abs=1e-3)


# ── Orbital period and phase ────────────────────────────────────────

class TestOrbitalPeriod:

    def test_empty_is_zero(self):
        from skydrift.domain.orbital_model import orbital_period

        assert orbital_period(()) == 0.0

    def test_single_cycle_magnitude(self):
        from skydrift.domain.orbital_model import orbital_period

        assert orbital_period((Epicycle(-7),)) == 7

    def test_lcm_of_integral_periods(self):
        from skydrift.domain.orbital_model import orbital_period

        assert orbital_period((Epicycle(4), Epicycle(-6))) == 12.0

    def test_rational_periods(self):
        from skydrift.domain.orbital_model import orbital_period

        assert orbital_period((Epicycle(1.5), Epicycle(2.5))) == pytest.approx(7.5)

    def test_system_period(self):
        from skydrift.domain.orbital_model import system_period

        islands = [_island(1, 4), _island(2, 6), _island(3, 10), Island(id=4, name="Hub")]
        assert system_period(islands) == 60.0

    def test_phase_wraps_negative_time(self):
        from skydrift.domain.orbital_model import orbital_phase

        phase = orbital_phase((Epicycle(10),), -3000.0)
        assert phase.day_in_cycle == pytest.approx(7.0)
        assert phase.percentage == pytest.approx(70.0)

    def test_phase_without_cycles(self):
        from skydrift.domain.orbital_model import orbital_phase

        phase = orbital_phase((), 5000.0)
        assert (phase.day_in_cycle, phase.percentage) == (0.0, 0.0)


# ── Domain purity ───────────────────────────────────────────────────

class TestOrbitalModelPurity:

    def test_orbital_model_module_pure(self):
        """orbital_model.py must only import stdlib modules and numpy."""
        import skydrift.domain.orbital_model as mod

        allowed = {'math', 'dataclasses', 'fractions', 'functools', 'typing', 'numpy'}
        with open(mod.__file__) as f:
            tree = ast.parse(f.read())

        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                for alias in node.names:
                    root = alias.name.split('.')[0]
                    if root not in allowed and root != 'skydrift':
                        assert False, f"Disallowed import '{alias.name}'"
            if isinstance(node, ast.ImportFrom):
                if node.module and node.level == 0:
                    root = node.module.split('.')[0]
                    if root not in allowed and root != 'skydrift':
                        assert False, f"Disallowed import from '{node.module}'"
