"""Tests for axon growth: steering, energy accounting, measurements.

Covers the growth-cone step, obstacle avoidance, and energy conservation
over randomized factor fields.
"""

import math
import sys
import os

import numpy as np
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from axon_growth import AxonGrowth, ENERGY_PER_GROWTH_UNIT
from growth_types import FactorType, GrowthFactor, Position


def _random_factors(rng, n):
    kinds = list(FactorType)
    return [
        GrowthFactor(
            Position(*rng.uniform(-10, 10, size=3)),
            rng.uniform(0, 1),
            rng.uniform(0.5, 15),
            kinds[rng.randint(len(kinds))],
        )
        for _ in range(n)
    ]


class TestAxonInit:

    def test_starts_at_origin(self):
        axon = AxonGrowth(Position(1, 2, 3), 50.0)
        assert axon.position() == Position(1, 2, 3)
        assert axon.origin() == Position(1, 2, 3)
        assert axon.length() == 0.0
        assert axon.direction() == (1.0, 0.0, 0.0)
        assert axon.segments() == [Position(1, 2, 3)]
        assert axon.measurements() == []

    def test_average_rate_needs_two_measurements(self):
        assert AxonGrowth(Position(), 50.0).average_growth_rate() == 0.0


class TestAxonStep:

    def test_free_growth_along_x(self):
        axon = AxonGrowth(Position(), 50.0)
        amount = axon.grow([], 0.1)
        # 10 µm/day * 0.1 day, no influence
        assert amount == pytest.approx(1.0)
        assert axon.position().x == pytest.approx(1.0)
        assert axon.energy() == pytest.approx(49.0)
        assert axon.length() == pytest.approx(1.0)

    def test_attractive_factor_bends_growth(self):
        axon = AxonGrowth(Position(), 100.0)
        target = GrowthFactor(Position(0, 10, 0), 1.0, 20.0, FactorType.ATTRACTIVE)
        for _ in range(10):
            axon.grow([target], 0.1)
        assert axon.position().y > 0.0
        assert axon.direction()[1] > 0.0

    def test_attraction_speeds_growth(self):
        axon = AxonGrowth(Position(), 100.0)
        target = GrowthFactor(Position(0, 10, 0), 1.0, 20.0, FactorType.ATTRACTIVE)
        # influence 0.5 → modifier 1.1
        assert axon.grow([target], 0.1) == pytest.approx(1.1)

    def test_below_threshold_does_nothing(self):
        axon = AxonGrowth(Position(), 4.0)
        assert not axon.can_grow()
        assert axon.grow([], 0.1) == 0.0
        assert axon.energy() == 4.0
        assert axon.position() == Position()

    def test_unaffordable_step_is_atomic(self):
        axon = AxonGrowth(Position(), 6.0)
        # Step would cost 10 energy
        assert axon.grow([], 1.0) == 0.0
        assert axon.energy() == 6.0
        assert axon.position() == Position()
        assert axon.direction() == (1.0, 0.0, 0.0)
        assert len(axon.segments()) == 1
        assert axon.time == 0.0

    def test_add_energy_resumes_growth(self):
        axon = AxonGrowth(Position(), 6.0)
        assert axon.grow([], 1.0) == 0.0
        axon.add_energy(10.0)
        assert axon.grow([], 1.0) == pytest.approx(10.0)

    def test_maintenance_cost_scales_with_length(self):
        axon = AxonGrowth(Position(), 100.0)
        axon.grow([], 0.5)
        assert axon.maintenance_cost() == pytest.approx(axon.length() * 0.01)


class TestObstacleAvoidance:

    def test_curves_around_obstacle(self):
        axon = AxonGrowth(Position(0, 0, 0), 100.0)
        obstacle = GrowthFactor(Position(1, 0, 0), 1.0, 2.0, FactorType.OBSTACLE)
        for _ in range(20):
            axon.grow([obstacle], 0.1)
        p = axon.position()
        assert abs(p.y) + abs(p.z) > 0.0

    def test_obstacle_slows_growth(self):
        axon = AxonGrowth(Position(0, 0, 0), 100.0)
        obstacle = GrowthFactor(Position(1, 0, 0), 1.0, 2.0, FactorType.OBSTACLE)
        assert axon.grow([obstacle], 0.1) < 1.0


class TestEnergyConservation:
    """Every step debits exactly amount * ENERGY_PER_GROWTH_UNIT, or nothing."""

    def test_random_fields(self):
        rng = np.random.RandomState(7)
        for trial in range(20):
            axon = AxonGrowth(Position(*rng.uniform(-5, 5, size=3)), rng.uniform(0, 60))
            factors = _random_factors(rng, rng.randint(0, 5))
            for _ in range(30):
                energy_before = axon.energy()
                position_before = axon.position()
                amount = axon.grow(factors, rng.uniform(0.01, 1.0))
                if amount > 0:
                    expected = energy_before - amount * ENERGY_PER_GROWTH_UNIT
                    assert axon.energy() == pytest.approx(expected)
                else:
                    assert axon.energy() == energy_before
                    assert axon.position() == position_before

    def test_energy_never_negative(self):
        rng = np.random.RandomState(11)
        axon = AxonGrowth(Position(), 30.0)
        factors = _random_factors(rng, 4)
        for _ in range(100):
            axon.grow(factors, rng.uniform(0.1, 2.0))
            assert axon.energy() >= 0.0


class TestMeasurements:

    def test_interval_sampling(self):
        axon = AxonGrowth(Position(), 1000.0)
        for _ in range(4):
            axon.grow([], 0.5)
        ms = axon.measurements()
        assert len(ms) == 4
        assert [m.time for m in ms] == pytest.approx([0.5, 1.0, 1.5, 2.0])
        assert ms[-1].length == pytest.approx(20.0)

    def test_average_growth_rate(self):
        axon = AxonGrowth(Position(), 1000.0)
        for _ in range(4):
            axon.grow([], 0.5)
        assert axon.average_growth_rate() == pytest.approx(10.0)

    def test_bounded_history(self):
        axon = AxonGrowth(Position(), 1000.0, config={"max_measurements": 5})
        for _ in range(10):
            axon.grow([], 0.5)
        assert len(axon.measurements()) == 5
        assert axon.measurements()[0].time == pytest.approx(3.0)

    def test_export(self):
        axon = AxonGrowth(Position(), 1000.0)
        axon.grow([], 0.5)
        exported = axon.export_measurements()
        assert exported == [{"time": 0.5, "length": 5.0, "growth_rate": 10.0, "branches": 0}]


class TestAxonSerialization:

    def test_round_trip(self):
        axon = AxonGrowth(Position(1, 0, 0), 80.0)
        f = GrowthFactor(Position(5, 5, 0), 0.7, 12.0, FactorType.ATTRACTIVE)
        for _ in range(6):
            axon.grow([f], 0.3)
        copy = AxonGrowth.from_dict(axon.to_dict())
        assert copy.position() == axon.position()
        assert copy.energy() == axon.energy()
        assert copy.direction() == axon.direction()
        assert copy.segments() == axon.segments()
        assert copy.export_measurements() == axon.export_measurements()
        assert copy.time == axon.time

    def test_copy_continues_identically(self):
        axon = AxonGrowth(Position(), 80.0)
        f = GrowthFactor(Position(3, 3, 3), 0.9, 10.0, FactorType.REPULSIVE)
        for _ in range(3):
            axon.grow([f], 0.2)
        copy = AxonGrowth.from_dict(axon.to_dict())
        for _ in range(5):
            assert copy.grow([f], 0.2) == axon.grow([f], 0.2)
        assert copy.position() == axon.position()
