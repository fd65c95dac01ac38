"""
Neurite Growth Types - shared primitives for axon and dendrite growth.

Provides the 3-D point type, a bounded ring buffer, environmental growth
factors, and the ``NeuralGrowth`` capability base class implemented by both
``AxonGrowth`` and ``DendriticTree``.

Design principles:
    - Value types: positions and growth factors are immutable once built
    - Defensive clamping: out-of-range input degrades to the nearest valid value
    - Persistence-native: every type round-trips through ``to_dict``/``from_dict``
"""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Deque, Dict, Iterable, List, Sequence


# ---------------------------------------------------------------------------
# Spatial primitive
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Position:
    """Point in 3-D space (µm)."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def distance_to(self, other: "Position") -> float:
        dx = self.x - other.x
        dy = self.y - other.y
        dz = self.z - other.z
        return math.sqrt(dx * dx + dy * dy + dz * dz)

    def offset(self, direction: Sequence[float], amount: float) -> "Position":
        """Return the point ``amount`` units along ``direction``."""
        return Position(
            self.x + direction[0] * amount,
            self.y + direction[1] * amount,
            self.z + direction[2] * amount,
        )

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Position":
        return cls(float(data["x"]), float(data["y"]), float(data["z"]))


# ---------------------------------------------------------------------------
# Ring Buffer for activity and measurement history
# ---------------------------------------------------------------------------

class RingBuffer:
    """Fixed-size ring buffer; the oldest entry is evicted on overflow.

    Used for synapse activity history (depth 10) and axon growth
    measurements (depth 100).
    """

    def __init__(self, capacity: int = 100):
        self._capacity = capacity
        self._buffer: Deque[Any] = deque(maxlen=capacity)

    def append(self, value: Any) -> None:
        self._buffer.append(value)

    def __len__(self) -> int:
        return len(self._buffer)

    def __iter__(self):
        return iter(self._buffer)

    def __getitem__(self, index: int) -> Any:
        return self._buffer[index]

    def __repr__(self) -> str:
        return f"RingBuffer(capacity={self._capacity}, size={len(self._buffer)})"

    @property
    def capacity(self) -> int:
        return self._capacity

    def last(self) -> Any:
        return self._buffer[-1] if self._buffer else None

    def mean(self) -> float:
        if not self._buffer:
            return 0.0
        return sum(self._buffer) / len(self._buffer)

    def to_list(self) -> List[Any]:
        return list(self._buffer)

    @classmethod
    def from_list(cls, data: Iterable[Any], capacity: int = 100) -> "RingBuffer":
        rb = cls(capacity)
        for v in data:
            rb.append(v)
        return rb


# ---------------------------------------------------------------------------
# Growth Factors
# ---------------------------------------------------------------------------

class FactorType(Enum):
    """Kind of environmental influence on a growing neurite tip."""
    ATTRACTIVE = auto()
    REPULSIVE = auto()
    OBSTACLE = auto()


@dataclass(frozen=True)
class GrowthFactor:
    """Chemical or physical point source that steers growth.

    Strength is clamped to [0, 1] and radius to at least 0.1 on
    construction.

    Attributes:
        position: Location of the source.
        strength: Peak influence magnitude at the source.
        radius: Range beyond which the factor has no effect.
        factor_type: ATTRACTIVE, REPULSIVE, or OBSTACLE.
    """

    position: Position
    strength: float
    radius: float
    factor_type: FactorType

    def __post_init__(self) -> None:
        object.__setattr__(self, "strength", min(max(float(self.strength), 0.0), 1.0))
        object.__setattr__(self, "radius", max(float(self.radius), 0.1))

    def influence_at(self, point: Position) -> float:
        """Signed influence of this factor at ``point``.

        Linear falloff ``strength * (1 - d/radius)`` inside the radius.
        Obstacles repel at -2.0 inside half the radius and at 1.5x the
        falloff beyond it.
        """
        distance = self.position.distance_to(point)
        if distance > self.radius:
            return 0.0

        base_influence = self.strength * (1.0 - distance / self.radius)

        if self.factor_type == FactorType.ATTRACTIVE:
            return base_influence
        if self.factor_type == FactorType.REPULSIVE:
            return -base_influence
        if distance < self.radius * 0.5:
            return -2.0
        return -base_influence * 1.5

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position": self.position.to_dict(),
            "strength": self.strength,
            "radius": self.radius,
            "factor_type": self.factor_type.name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GrowthFactor":
        return cls(
            position=Position.from_dict(data["position"]),
            strength=data["strength"],
            radius=data["radius"],
            factor_type=FactorType[data["factor_type"]],
        )


def normalize(vector: Sequence[float]) -> List[float]:
    """Scale ``vector`` to unit length; near-zero vectors are returned as-is."""
    mag = math.sqrt(vector[0] * vector[0] + vector[1] * vector[1] + vector[2] * vector[2])
    if mag > 0.001:
        return [vector[0] / mag, vector[1] / mag, vector[2] / mag]
    return [vector[0], vector[1], vector[2]]


# ---------------------------------------------------------------------------
# Growth capability (uniform contract for orchestrators)
# ---------------------------------------------------------------------------

class NeuralGrowth:
    """Base class for anything that grows under growth factors.

    Orchestrators (networks, benchmark drivers) depend only on these five
    methods.  Subclass and override all of them.
    """

    def grow(
        self,
        factors: Sequence[GrowthFactor],
        time_step: float,
        activity: float,
    ) -> Any:
        raise NotImplementedError

    def add_energy(self, amount: float) -> None:
        raise NotImplementedError

    def maintenance_cost(self) -> float:
        raise NotImplementedError

    def position(self) -> Position:
        raise NotImplementedError

    def energy(self) -> float:
        raise NotImplementedError
