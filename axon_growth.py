"""
Axon Growth - single growth-cone simulation.

A growth cone advances through 3-D space under the combined pull and push of
growth factors.  Each step debits energy in proportion to the distance
moved, smooths the heading with a fixed inertia ratio, and periodically
records a growth measurement for validation against empirical data.

Step equations:
    heading   = normalize(0.7 * heading + 0.3 * normalize(Σ factor pulls))
    modifier  = 1 + clamp(Σ influence / MAX_FACTOR_INFLUENCE, -0.5, 0.5)
    distance  = BASE_GROWTH_RATE * modifier * time_step
    cost      = distance * ENERGY_PER_GROWTH_UNIT

A step that cannot be paid for in full has no effect at all.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from growth_persistence import load_checkpoint, save_checkpoint
from growth_types import (
    FactorType,
    GrowthFactor,
    NeuralGrowth,
    Position,
    RingBuffer,
    normalize,
)

logger = logging.getLogger("neurite.axon")


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

BASE_GROWTH_RATE = 10.0          # µm/day
MAX_FACTOR_INFLUENCE = 5.0
ENERGY_PER_GROWTH_UNIT = 1.0
MIN_ENERGY_THRESHOLD = 5.0
MEASUREMENT_INTERVAL = 0.5       # days
MAX_MEASUREMENTS = 100
MAINTENANCE_PER_UNIT_LENGTH = 0.01

DEFAULT_AXON_CONFIG: Dict[str, Any] = {
    "base_growth_rate": BASE_GROWTH_RATE,
    "max_factor_influence": MAX_FACTOR_INFLUENCE,
    "energy_per_growth_unit": ENERGY_PER_GROWTH_UNIT,
    "min_energy_threshold": MIN_ENERGY_THRESHOLD,
    "measurement_interval": MEASUREMENT_INTERVAL,
    "max_measurements": MAX_MEASUREMENTS,
    "inertia": 0.7,
}


@dataclass
class GrowthMeasurement:
    """Snapshot of axon growth at one point in simulated time.

    Attributes:
        time: Simulated time in days.
        length: Total axon length at that time.
        growth_rate: Rate used for the step that produced the sample.
        branches: Branch count (always 0 for an unbranched cone).
    """

    time: float
    length: float
    growth_rate: float
    branches: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time": self.time,
            "length": self.length,
            "growth_rate": self.growth_rate,
            "branches": self.branches,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GrowthMeasurement":
        return cls(
            time=data["time"],
            length=data["length"],
            growth_rate=data["growth_rate"],
            branches=data.get("branches", 0),
        )


class AxonGrowth(NeuralGrowth):
    """Unbranched axonal growth cone.

    Args:
        position: Soma position; also the fixed origin of the axon.
        initial_energy: Starting energy budget.
        config: Override any key from ``DEFAULT_AXON_CONFIG``.
    """

    def __init__(
        self,
        position: Position,
        initial_energy: float,
        config: Optional[Dict[str, Any]] = None,
    ):
        self.config = {**DEFAULT_AXON_CONFIG, **(config or {})}
        self._position = position
        self._origin = position
        self._direction: List[float] = [1.0, 0.0, 0.0]
        self._energy = float(initial_energy)
        self._segments: List[Position] = [position]
        self._length = 0.0
        self._measurements = RingBuffer(self.config["max_measurements"])
        self.time = 0.0

    # -----------------------------------------------------------------------
    # Accessors
    # -----------------------------------------------------------------------

    def position(self) -> Position:
        return self._position

    def origin(self) -> Position:
        return self._origin

    def energy(self) -> float:
        return self._energy

    def length(self) -> float:
        return self._length

    def direction(self) -> Tuple[float, float, float]:
        return (self._direction[0], self._direction[1], self._direction[2])

    def segments(self) -> List[Position]:
        """Visited tip positions, origin first."""
        return list(self._segments)

    def measurements(self) -> List[GrowthMeasurement]:
        return self._measurements.to_list()

    def can_grow(self) -> bool:
        return self._energy >= self.config["min_energy_threshold"]

    # -----------------------------------------------------------------------
    # Growth step
    # -----------------------------------------------------------------------

    def _steering(self, factors: Sequence[GrowthFactor]) -> Tuple[float, List[float]]:
        """Sum factor influences into (total_influence, direction_change)."""
        total_influence = 0.0
        change = [0.0, 0.0, 0.0]

        # Every third segment gets a small lateral nudge; a function of time,
        # so identical step sequences give identical trajectories.
        if len(self._segments) % 3 == 0:
            noise_angle = (self.time * 7.0) % (2.0 * math.pi)
            change[1] += math.sin(noise_angle) * 0.05
            change[2] += math.cos(noise_angle) * 0.05

        pos = self._position
        for factor in factors:
            influence = factor.influence_at(pos)
            total_influence += influence
            if influence == 0.0:
                continue

            dx = factor.position.x - pos.x
            dy = factor.position.y - pos.y
            dz = factor.position.z - pos.z
            distance = math.sqrt(dx * dx + dy * dy + dz * dz)
            if distance <= 0.001:
                continue

            n = influence / distance
            if factor.factor_type == FactorType.OBSTACLE and distance < factor.radius:
                # Turn 90° off the approach axis so the cone goes around.
                change[0] += -dx * n * 0.5
                change[1] += dz * abs(n) * 2.0
                change[2] += -dy * abs(n) * 2.0
            else:
                change[0] += dx * n
                change[1] += dy * n
                change[2] += dz * n

        return total_influence, change

    def _blend_direction(self, total_influence: float, change: List[float]) -> List[float]:
        if not (abs(total_influence) > 0.0 or change[1] != 0.0 or change[2] != 0.0):
            return self._direction
        mag = math.sqrt(change[0] ** 2 + change[1] ** 2 + change[2] ** 2)
        if mag <= 0.001:
            return self._direction
        change = [c / mag for c in change]
        inertia = self.config["inertia"]
        blended = [
            inertia * self._direction[i] + (1.0 - inertia) * change[i]
            for i in range(3)
        ]
        return normalize(blended)

    def grow(
        self,
        factors: Sequence[GrowthFactor],
        time_step: float,
        activity: float = 0.0,
    ) -> float:
        """Advance the growth cone by one step.

        Args:
            factors: Growth factors acting this step (not retained).
            time_step: Step length in days.
            activity: Ignored; accepted for the ``NeuralGrowth`` contract.

        Returns:
            Distance moved; 0.0 when the cone could not grow, in which case
            position and energy are unchanged.  Truthy iff growth occurred.
        """
        if not self.can_grow():
            return 0.0

        total_influence, change = self._steering(factors)
        direction = self._blend_direction(total_influence, change)

        max_influence = self.config["max_factor_influence"]
        modifier = 1.0 + min(max(total_influence / max_influence, -0.5), 0.5)
        growth_rate = self.config["base_growth_rate"] * modifier
        growth_amount = growth_rate * time_step
        energy_cost = growth_amount * self.config["energy_per_growth_unit"]

        if self._energy < energy_cost:
            logger.debug(
                "Axon step skipped: need %.3f energy, have %.3f",
                energy_cost, self._energy,
            )
            return 0.0

        self._energy -= energy_cost
        self._direction = direction
        self._position = self._position.offset(direction, growth_amount)
        self._segments.append(self._position)
        self._length += growth_amount
        self.time += time_step

        last = self._measurements.last()
        if last is None or (self.time - last.time) >= self.config["measurement_interval"]:
            self._measurements.append(
                GrowthMeasurement(
                    time=self.time,
                    length=self._length,
                    growth_rate=growth_rate,
                    branches=0,
                )
            )

        return growth_amount

    # -----------------------------------------------------------------------
    # NeuralGrowth contract & reporting
    # -----------------------------------------------------------------------

    def add_energy(self, amount: float) -> None:
        self._energy += amount

    def maintenance_cost(self) -> float:
        return self._length * MAINTENANCE_PER_UNIT_LENGTH

    def average_growth_rate(self) -> float:
        """Mean rate over the whole run; 0.0 until two measurements exist."""
        if len(self._measurements) < 2:
            return 0.0
        return self._length / self.time

    def export_measurements(self) -> List[Dict[str, Any]]:
        return [m.to_dict() for m in self._measurements]

    # -----------------------------------------------------------------------
    # Persistence
    # -----------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": "axon",
            "config": self.config,
            "position": self._position.to_dict(),
            "origin": self._origin.to_dict(),
            "direction": list(self._direction),
            "energy": self._energy,
            "segments": [p.to_dict() for p in self._segments],
            "length": self._length,
            "measurements": self.export_measurements(),
            "time": self.time,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AxonGrowth":
        axon = cls(
            Position.from_dict(data["origin"]),
            data["energy"],
            config=data.get("config"),
        )
        axon._position = Position.from_dict(data["position"])
        axon._direction = [float(c) for c in data["direction"]]
        axon._segments = [Position.from_dict(p) for p in data["segments"]]
        axon._length = data["length"]
        axon._measurements = RingBuffer.from_list(
            (GrowthMeasurement.from_dict(m) for m in data.get("measurements", [])),
            axon.config["max_measurements"],
        )
        axon.time = data.get("time", 0.0)
        return axon

    def checkpoint(self, path: str) -> None:
        """Save state; the extension selects ``.msgpack`` or JSON."""
        save_checkpoint(path, self.to_dict())

    @classmethod
    def restore(cls, path: str) -> "AxonGrowth":
        return cls.from_dict(load_checkpoint(path, kind="axon"))
