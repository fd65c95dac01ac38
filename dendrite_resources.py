"""
Dendrite Resource Manager - metabolic energy allocation across trees.

A shared pool of energy is handed out to competing dendritic trees at most
once per ``distribution_interval``.  Three strategies:

    EQUAL            pool / tree count
    ACTIVITY_BASED   proportional to a caller-supplied activity vector
    GROWTH_POTENTIAL proportional to
                     (1 - complexity/2000) * (1 - energy/100) * (1 + growth_rate_modifier)

ACTIVITY_BASED and GROWTH_POTENTIAL fall back to EQUAL for the current call
when their weights are unusable (length mismatch, or a total ≤ 0.001).
A successful distribution empties the pool.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum, auto
from typing import Any, Dict, List, Optional, Sequence

from dendritic_growth import DendriticTree
from growth_persistence import load_checkpoint, save_checkpoint

logger = logging.getLogger("neurite.resources")

MAX_TREE_ENERGY = 100.0
MAX_TREE_COMPLEXITY = 2000.0
DISTRIBUTION_INTERVAL = 1.0
NEAR_ZERO = 0.001


class AllocationStrategy(Enum):
    """How the pool is split among trees."""
    EQUAL = auto()
    ACTIVITY_BASED = auto()
    GROWTH_POTENTIAL = auto()


class DendriteResourceManager:
    """Energy pool shared by several dendritic trees.

    ``distribute_energy`` holds an internal lock for the whole call, so one
    manager may be shared by trees stepped on different threads.

    Args:
        initial_energy: Starting pool.
        strategy: Initial allocation strategy.
        distribution_interval: Minimum simulated time between distributions.
    """

    def __init__(
        self,
        initial_energy: float,
        strategy: AllocationStrategy = AllocationStrategy.ACTIVITY_BASED,
        distribution_interval: float = DISTRIBUTION_INTERVAL,
    ):
        self._available_energy = float(initial_energy)
        self.allocation_strategy = strategy
        self.last_distribution = 0.0
        self.distribution_interval = distribution_interval
        self._lock = threading.Lock()

    def add_energy(self, amount: float) -> None:
        with self._lock:
            self._available_energy += amount

    def available_energy(self) -> float:
        with self._lock:
            return self._available_energy

    def set_strategy(self, strategy: AllocationStrategy) -> None:
        with self._lock:
            self.allocation_strategy = strategy

    # -----------------------------------------------------------------------
    # Allocation weights
    # -----------------------------------------------------------------------

    @staticmethod
    def growth_potential(tree: DendriticTree) -> float:
        """Less complex, energy-starved, fast-growing trees score higher."""
        complexity = min(tree.complexity_score(), MAX_TREE_COMPLEXITY)
        inverse_complexity = (MAX_TREE_COMPLEXITY - complexity) / MAX_TREE_COMPLEXITY
        energy_need = max(1.0 - tree.energy() / MAX_TREE_ENERGY, 0.0)
        return inverse_complexity * energy_need * (1.0 + tree.growth_rate_modifier)

    def _weights(
        self,
        trees: Sequence[DendriticTree],
        activities: Optional[Sequence[float]],
    ) -> List[float]:
        n = len(trees)
        equal = [1.0] * n
        strategy = self.allocation_strategy

        if strategy == AllocationStrategy.ACTIVITY_BASED:
            if activities is None or len(activities) != n:
                logger.debug("Activity vector does not match %d trees; using EQUAL", n)
                return equal
            weights = [float(a) for a in activities]
        elif strategy == AllocationStrategy.GROWTH_POTENTIAL:
            weights = [self.growth_potential(t) for t in trees]
        else:
            return equal

        if sum(weights) <= NEAR_ZERO:
            logger.debug("%s weights sum to ~0; using EQUAL", strategy.name)
            return equal
        return weights

    # -----------------------------------------------------------------------
    # Distribution
    # -----------------------------------------------------------------------

    def distribute_energy(
        self,
        trees: Sequence[DendriticTree],
        current_time: float,
        activities: Optional[Sequence[float]] = None,
    ) -> List[float]:
        """Split the whole pool among ``trees``.

        Args:
            trees: Recipients; each gets ``add_energy(share)``.
            current_time: Simulated time of the call.
            activities: Per-tree activity for ACTIVITY_BASED.

        Returns:
            The amount given to each tree, in order; empty if the interval
            has not elapsed or there are no trees.
        """
        with self._lock:
            if current_time - self.last_distribution < self.distribution_interval:
                return []
            if not trees:
                return []

            self.last_distribution = current_time
            weights = self._weights(trees, activities)
            total = sum(weights)
            pool = self._available_energy

            allocations = [pool * w / total for w in weights]
            for tree, share in zip(trees, allocations):
                tree.add_energy(share)
            self._available_energy = 0.0

        logger.debug(
            "Distributed %.3f energy to %d trees (%s) at t=%.2f",
            pool, len(trees), self.allocation_strategy.name, current_time,
        )
        return allocations

    # -----------------------------------------------------------------------
    # Persistence
    # -----------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": "resource_manager",
            "available_energy": self._available_energy,
            "allocation_strategy": self.allocation_strategy.name,
            "last_distribution": self.last_distribution,
            "distribution_interval": self.distribution_interval,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DendriteResourceManager":
        manager = cls(
            data["available_energy"],
            strategy=AllocationStrategy[data.get("allocation_strategy", "ACTIVITY_BASED")],
            distribution_interval=data.get("distribution_interval", DISTRIBUTION_INTERVAL),
        )
        manager.last_distribution = data.get("last_distribution", 0.0)
        return manager

    def checkpoint(self, path: str) -> None:
        save_checkpoint(path, self.to_dict())

    @classmethod
    def restore(cls, path: str) -> "DendriteResourceManager":
        return cls.from_dict(load_checkpoint(path, kind="resource_manager"))
