# Copyright (c) 2026 Jeroen Visser. All rights reserved.
# Licensed under the MIT License — see LICENSE.
"""Tests for threshold-crossing conjunction detection and list merging."""
import ast
import math

import pytest

from skydrift.domain.islands import Epicycle, Island
from skydrift.domain.orbital_model import MILES_SCALE_FACTOR, distance_between


# ── Helpers ──────────────────────────────────────────────────────────

DAY = 1000.0
THRESHOLD = 50.0


def _period_for_radius(radius_miles):
    return (radius_miles / MILES_SCALE_FACTOR) ** 1.5


# Outer island at 672 mi and a counter-rotating inner island one mile
# inside the threshold: both start on the +x axis, so the closest
# approach is 49 mi at t=0 and lasts about 0.84 days.
OUTER = Island(id=1, name="Outer", cycles=(Epicycle(365),))
INNER = Island(id=2, name="Inner", cycles=(Epicycle(-_period_for_radius(672.0 - (THRESHOLD - 1.0))),))
FAR = Island(id=3, name="Far", cycles=(Epicycle(100),))

SYNODIC_DAYS = 2 * math.pi / (2 * math.pi / 365 + 2 * math.pi / abs(INNER.cycles[0].period))


def _half_width_days():
    r1, r2 = 672.0, 672.0 - (THRESHOLD - 1.0)
    cos_angle = (r1 ** 2 + r2 ** 2 - THRESHOLD ** 2) / (2 * r1 * r2)
    return math.acos(cos_angle) / (2 * math.pi / SYNODIC_DAYS)


# ── Conjunction ─────────────────────────────────────────────────────

class TestConjunctionRecord:

    def test_frozen(self):
        """Conjunction is immutable."""
        from skydrift.domain.conjunction import detect_pair_conjunctions

        c = detect_pair_conjunctions(OUTER, INNER, -5 * DAY, 10)[0]
        with pytest.raises(AttributeError):
            c.start_time = 0.0

    def test_pair_key_order_independent(self):
        from skydrift.domain.conjunction import pair_key

        assert pair_key(7, 3) == (3, 7)
        assert pair_key(3, 7) == (3, 7)


# ── detect_pair_conjunctions ────────────────────────────────────────

class TestDetectPairConjunctions:

    def test_no_false_negative_near_threshold(self):
        """A minimum one mile inside the threshold yields exactly one conjunction around it."""
        from skydrift.domain.conjunction import detect_pair_conjunctions

        found = detect_pair_conjunctions(OUTER, INNER, -5 * DAY, 10)
        assert len(found) == 1
        c = found[0]
        assert c.start_time < 0.0 < c.end_time
        assert c.min_distance == pytest.approx(THRESHOLD - 1.0, abs=0.01)
        assert c.min_distance_time == pytest.approx(0.0, abs=2.0)

    def test_duration_matches_geometry(self):
        from skydrift.domain.conjunction import detect_pair_conjunctions

        c = detect_pair_conjunctions(OUTER, INNER, -5 * DAY, 10)[0]
        assert c.duration == pytest.approx(2 * _half_width_days(), abs=0.06)
        assert c.duration == pytest.approx((c.end_time - c.start_time) / DAY)

    def test_interval_validity(self):
        """Edges sit on the threshold and the minimum is the closest sampled point."""
        from skydrift.domain.conjunction import detect_pair_conjunctions

        for c in detect_pair_conjunctions(OUTER, INNER, 1 * DAY, 400):
            assert c.start_time <= c.min_distance_time <= c.end_time
            assert distance_between(OUTER, INNER, c.start_time) == pytest.approx(THRESHOLD, abs=0.5)
            assert distance_between(OUTER, INNER, c.end_time) == pytest.approx(THRESHOLD, abs=0.5)
            steps = 50
            for i in range(steps + 1):
                t = c.start_time + (c.end_time - c.start_time) * i / steps
                assert c.min_distance <= distance_between(OUTER, INNER, t) + 1e-3

    def test_repeats_every_synodic_period(self):
        from skydrift.domain.conjunction import detect_pair_conjunctions

        found = detect_pair_conjunctions(OUTER, INNER, 1 * DAY, 400)
        assert len(found) == 2
        gap_days = (found[1].min_distance_time - found[0].min_distance_time) / DAY
        assert gap_days == pytest.approx(SYNODIC_DAYS, rel=1e-3)
        assert [c.id for c in found] == [0, 1]

    def test_symmetric_in_island_order(self):
        from skydrift.domain.conjunction import detect_pair_conjunctions

        ab = detect_pair_conjunctions(OUTER, INNER, 1 * DAY, 400)
        ba = detect_pair_conjunctions(INNER, OUTER, 1 * DAY, 400)
        assert [(c.start_time, c.end_time) for c in ab] == [(c.start_time, c.end_time) for c in ba]
        assert all(c.island1_id == 1 and c.island2_id == 2 for c in ab)
        assert all(c.island1_id == 2 and c.island2_id == 1 for c in ba)

    def test_window_starting_inside_traces_back(self):
        from skydrift.domain.conjunction import detect_pair_conjunctions

        found = detect_pair_conjunctions(OUTER, INNER, 0.0, 5)
        assert len(found) == 1
        assert found[0].start_time == pytest.approx(-_half_width_days() * DAY, abs=30.0)

    def test_window_ending_inside_traces_forward(self):
        from skydrift.domain.conjunction import detect_pair_conjunctions

        found = detect_pair_conjunctions(OUTER, INNER, -5 * DAY, 5)
        assert len(found) == 1
        assert found[0].end_time == pytest.approx(_half_width_days() * DAY, abs=30.0)

    def test_permanent_overlap_capped_at_window(self):
        """Islands that never separate give one interval cut at the window edges."""
        from skydrift.domain.conjunction import detect_pair_conjunctions

        twin = Island(id=9, name="Twin", cycles=OUTER.cycles)
        found = detect_pair_conjunctions(OUTER, twin, 0.0, 10)
        assert len(found) == 1
        assert found[0].start_time == 0.0
        assert found[0].end_time == 10 * DAY
        assert found[0].min_distance == pytest.approx(0.0, abs=1e-9)

    def test_distant_orbits_never_meet(self):
        from skydrift.domain.conjunction import detect_pair_conjunctions

        assert detect_pair_conjunctions(OUTER, FAR, 0.0, 365) == []

    def test_nonpositive_step_rejected(self):
        from skydrift.domain.conjunction import find_conjunction_intervals

        with pytest.raises(ValueError):
            find_conjunction_intervals(OUTER, INNER, 0.0, 10, step=0)


# ── Refinement helpers ──────────────────────────────────────────────

class TestRefinement:

    def test_crossing_within_precision(self):
        from skydrift.domain.conjunction import CROSSING_PRECISION, find_threshold_crossing

        exact = -_half_width_days() * DAY
        t = find_threshold_crossing(OUTER, INNER, -2 * DAY, 0.0)
        assert abs(t - exact) <= CROSSING_PRECISION / 2 + 1.0

    def test_crossing_either_direction(self):
        from skydrift.domain.conjunction import find_threshold_crossing

        exit_time = find_threshold_crossing(OUTER, INNER, 2 * DAY, 0.0)
        assert exit_time == pytest.approx(_half_width_days() * DAY, abs=30.0)

    def test_minimum_distance_time(self):
        from skydrift.domain.conjunction import find_minimum_distance_time

        t = find_minimum_distance_time(OUTER, INNER, -400.0, 300.0)
        assert t == pytest.approx(0.0, abs=1.0)


# ── calculate_upcoming_conjunctions ─────────────────────────────────

class TestCalculateUpcoming:

    def test_fewer_than_two_islands(self):
        from skydrift.domain.conjunction import calculate_upcoming_conjunctions

        assert calculate_upcoming_conjunctions([], 100) == []
        assert calculate_upcoming_conjunctions([OUTER], 100) == []

    def test_sorted_with_unique_ids(self):
        from skydrift.domain.conjunction import calculate_upcoming_conjunctions

        found = calculate_upcoming_conjunctions([OUTER, INNER, FAR], 400, 1 * DAY)
        starts = [c.start_time for c in found]
        assert starts == sorted(starts)
        assert [c.id for c in found] == list(range(len(found)))

    def test_target_pairs_filter(self):
        from skydrift.domain.conjunction import calculate_upcoming_conjunctions

        twin = Island(id=9, name="Twin", cycles=OUTER.cycles)
        found = calculate_upcoming_conjunctions([OUTER, INNER, twin], 10, -5 * DAY, target_pairs=[(2, 1)])
        assert len(found) == 1
        assert {found[0].island1_id, found[0].island2_id} == {1, 2}


# ── merge_conjunctions ──────────────────────────────────────────────

class TestMergeConjunctions:

    def _conjunction(self, cid, a, b, start):
        from skydrift.domain.conjunction import Conjunction

        return Conjunction(
            id=cid, island1_id=a, island2_id=b,
            island1_name=str(a), island2_name=str(b),
            start_time=start, end_time=start + 500.0,
            min_distance=10.0, min_distance_time=start + 250.0, duration=0.5,
        )

    def test_drops_same_pair_within_an_hour(self):
        from skydrift.domain.conjunction import merge_conjunctions

        existing = [self._conjunction(0, 1, 2, 1000.0)]
        new = [self._conjunction(0, 2, 1, 1020.0), self._conjunction(1, 1, 2, 9000.0)]
        merged = merge_conjunctions(existing, new)
        assert [c.start_time for c in merged] == [1000.0, 9000.0]

    def test_keeps_other_pairs_and_renumbers(self):
        from skydrift.domain.conjunction import merge_conjunctions

        existing = [self._conjunction(0, 1, 2, 5000.0)]
        new = [self._conjunction(0, 1, 3, 5000.0), self._conjunction(1, 2, 3, 100.0)]
        merged = merge_conjunctions(existing, new)
        assert [c.start_time for c in merged] == [100.0, 5000.0, 5000.0]
        assert [c.id for c in merged] == [0, 1, 2]


# ── Domain purity ───────────────────────────────────────────────────

class TestConjunctionPurity:

    def test_conjunction_module_pure(self):
        """conjunction.py must only import stdlib modules and numpy."""
        import skydrift.domain.conjunction as mod

        allowed = {'math', 'itertools', 'dataclasses', 'typing', 'numpy'}
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
