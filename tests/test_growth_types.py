"""Tests for shared growth primitives: positions, ring buffer, growth factors."""

import math
import sys
import os

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from growth_types import (
    FactorType,
    GrowthFactor,
    NeuralGrowth,
    Position,
    RingBuffer,
    normalize,
)
from axon_growth import AxonGrowth
from dendritic_growth import DendriticTree


class TestPosition:

    def test_distance(self):
        assert Position(0, 0, 0).distance_to(Position(3, 4, 0)) == pytest.approx(5.0)

    def test_distance_symmetric(self):
        a, b = Position(1, 2, 3), Position(-4, 0.5, 7)
        assert a.distance_to(b) == pytest.approx(b.distance_to(a))

    def test_offset(self):
        p = Position(1, 1, 1).offset([0.0, 1.0, 0.0], 2.5)
        assert p == Position(1, 3.5, 1)

    def test_immutable(self):
        p = Position(1, 2, 3)
        with pytest.raises(Exception):
            p.x = 5


class TestRingBuffer:

    def test_evicts_oldest(self):
        rb = RingBuffer(3)
        for v in range(5):
            rb.append(v)
        assert rb.to_list() == [2, 3, 4]
        assert len(rb) == 3

    def test_mean_empty_is_zero(self):
        assert RingBuffer(10).mean() == 0.0

    def test_mean(self):
        rb = RingBuffer.from_list([1.0, 0.0, 1.0, 0.0], capacity=10)
        assert rb.mean() == pytest.approx(0.5)

    def test_last(self):
        rb = RingBuffer(2)
        assert rb.last() is None
        rb.append("a")
        rb.append("b")
        assert rb.last() == "b"


class TestGrowthFactor:

    def test_strength_clamped(self):
        f = GrowthFactor(Position(), 1.5, 10.0, FactorType.ATTRACTIVE)
        assert f.strength == 1.0
        f = GrowthFactor(Position(), -0.2, 10.0, FactorType.ATTRACTIVE)
        assert f.strength == 0.0

    def test_radius_floor(self):
        f = GrowthFactor(Position(), 0.5, 0.0, FactorType.ATTRACTIVE)
        assert f.radius == pytest.approx(0.1)

    def test_no_influence_outside_radius(self):
        f = GrowthFactor(Position(0, 0, 0), 1.0, 5.0, FactorType.ATTRACTIVE)
        assert f.influence_at(Position(6, 0, 0)) == 0.0

    def test_attractive_linear_falloff(self):
        f = GrowthFactor(Position(0, 0, 0), 0.8, 10.0, FactorType.ATTRACTIVE)
        assert f.influence_at(Position(0, 0, 0)) == pytest.approx(0.8)
        assert f.influence_at(Position(5, 0, 0)) == pytest.approx(0.4)

    def test_repulsive_is_negative(self):
        f = GrowthFactor(Position(0, 0, 0), 0.8, 10.0, FactorType.REPULSIVE)
        assert f.influence_at(Position(5, 0, 0)) == pytest.approx(-0.4)

    def test_obstacle_core(self):
        f = GrowthFactor(Position(0, 0, 0), 0.3, 10.0, FactorType.OBSTACLE)
        assert f.influence_at(Position(2, 0, 0)) == -2.0

    def test_obstacle_fringe(self):
        f = GrowthFactor(Position(0, 0, 0), 1.0, 10.0, FactorType.OBSTACLE)
        # base = 1.0 * (1 - 7.5/10) = 0.25
        assert f.influence_at(Position(7.5, 0, 0)) == pytest.approx(-0.375)


class TestNormalize:

    def test_unit_length(self):
        v = normalize([3.0, 4.0, 0.0])
        assert math.sqrt(sum(c * c for c in v)) == pytest.approx(1.0)

    def test_near_zero_unchanged(self):
        assert normalize([0.0, 0.0005, 0.0]) == [0.0, 0.0005, 0.0]


class TestCapability:
    """Axons and trees share one growth contract."""

    def test_both_implement_neural_growth(self):
        assert isinstance(AxonGrowth(Position(), 10.0), NeuralGrowth)
        assert isinstance(DendriticTree(), NeuralGrowth)

    def test_base_class_is_abstract(self):
        with pytest.raises(NotImplementedError):
            NeuralGrowth().energy()

    def test_driver_uses_only_contract(self):
        growers = [AxonGrowth(Position(), 50.0), DendriticTree(initial_energy=50.0)]
        growers[1].initialize(3)
        for g in growers:
            g.add_energy(10.0)
            assert g.energy() == pytest.approx(60.0)
            g.grow([], 1.0, 0.5)
            assert g.maintenance_cost() >= 0.0
            assert isinstance(g.position(), Position)
