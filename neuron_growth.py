"""
Neuron Growth - builds growth objects from a neuron's state.

The point-neuron model itself lives elsewhere; growth code only needs a
read-only view of it: ``position()``, ``speed()``, ``threshold()``,
``activation_energy()``, and ``capacity()``.  ``NeuronSnapshot`` is that view.
Any object with the same five methods works with the helpers below.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from axon_growth import AxonGrowth
from dendritic_growth import DendriticTree
from growth_types import FactorType, GrowthFactor, Position

MIN_SPEED = 1
MAX_SPEED = 1000
DEFAULT_THRESHOLD = 0.5
CAPACITY_FACTOR = 1.5
INITIAL_ENERGY_FRACTION = 0.5
INFLUENCE_RADIUS_PER_SPEED = 0.2


@dataclass
class NeuronSnapshot:
    """Read-only neuron state consumed by the growth engine.

    Speed is clamped to [1, 1000] on construction.
    """

    speed_value: int = 100
    threshold_value: float = DEFAULT_THRESHOLD
    activation_energy_value: float = 0.0
    position_value: Position = field(default_factory=Position)
    neuron_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        self.speed_value = min(max(int(self.speed_value), MIN_SPEED), MAX_SPEED)

    def position(self) -> Position:
        return self.position_value

    def speed(self) -> int:
        return self.speed_value

    def threshold(self) -> float:
        return self.threshold_value

    def activation_energy(self) -> float:
        return self.activation_energy_value

    def capacity(self) -> float:
        """Information capacity, proportional to speed."""
        return self.speed_value * CAPACITY_FACTOR


def start_axon_growth(
    neuron: Any,
    initial_energy: Optional[float] = None,
    config: Optional[Dict[str, Any]] = None,
) -> AxonGrowth:
    """Start an axon at the neuron's position.

    Energy defaults to half the neuron's capacity.
    """
    if initial_energy is None:
        initial_energy = neuron.capacity() * INITIAL_ENERGY_FRACTION
    return AxonGrowth(neuron.position(), initial_energy, config=config)


def start_dendritic_growth(
    neuron: Any,
    initial_energy: Optional[float] = None,
    seed: int = 42,
    primary_dendrites: int = 4,
    config: Optional[Dict[str, Any]] = None,
) -> DendriticTree:
    """Start a dendritic tree with ``primary_dendrites`` roots around the
    neuron.  Energy defaults to half the neuron's capacity."""
    if initial_energy is None:
        initial_energy = neuron.capacity() * INITIAL_ENERGY_FRACTION
    tree = DendriticTree(
        neuron_id=getattr(neuron, "neuron_id", None),
        initial_energy=initial_energy,
        seed=seed,
        config=config,
    )
    tree.initialize(primary_dendrites, origin=neuron.position())
    return tree


def as_growth_factor(neuron: Any, is_excitatory: bool) -> GrowthFactor:
    """The neuron as a point source steering other neurites.

    Radius scales with speed; strength is activation energy over threshold
    (clamped to [0, 1] by ``GrowthFactor``).
    """
    factor_type = FactorType.ATTRACTIVE if is_excitatory else FactorType.REPULSIVE
    radius = neuron.speed() * INFLUENCE_RADIUS_PER_SPEED
    threshold = neuron.threshold()
    strength = neuron.activation_energy() / threshold if threshold > 0 else 0.0
    return GrowthFactor(neuron.position(), strength, radius, factor_type)
