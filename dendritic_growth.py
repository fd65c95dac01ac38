"""
Dendritic Growth - arbor structure, synapse lifecycle, and signal integration.

Implements the dendritic side of the growth engine:

    - ``Synapse``: weight, cable-theory attenuation, activity history, and a
      three-state lifecycle (ACTIVE → WEAKENED → GHOST, GHOST → ACTIVE on
      reactivation).
    - ``DendriticSegment``: one cylinder of the arbor with its synapses.
    - ``DendriticTree``: an arena of segments keyed by id, with homeostatic
      branching, cached electrotonic path lengths, synapse competition and
      pruning, and nonlinear multi-synapse integration.

Design principles:
    - Arena + ids: parent/child links are segment ids, never references
    - Deterministic: every random draw comes from a ``RandomState`` seeded by
      the tree seed and simulated time
    - Total operations: "could not proceed" is a False/0.0/None return
    - Persistence-native: all state is serializable
"""

from __future__ import annotations

import logging
import math
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Sequence,
    Tuple,
)

import numpy as np

from growth_persistence import load_checkpoint, save_checkpoint
from growth_types import (
    GrowthFactor,
    NeuralGrowth,
    Position,
    RingBuffer,
    normalize,
)

logger = logging.getLogger("neurite.dendrite")


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

ENERGY_PER_GROWTH_UNIT = 1.2
MIN_ENERGY_THRESHOLD = 3.0
BASE_BRANCHING_PROBABILITY = 0.1
MAX_BRANCHING_DEPTH = 6
MIN_SYNAPSE_ACTIVITY = 0.05
INACTIVITY_THRESHOLD_DAYS = 3.0
OPTIMAL_CONNECTION_COUNT = 20
ELECTROTONIC_DECAY_LAMBDA = 0.5
MAX_ELECTROTONIC_LENGTH = 1.2

INITIAL_SYNAPSE_WEIGHT = 0.1
REACTIVATION_WEIGHT = 0.3
GHOST_WEIGHT_SCALE = 0.1
MIN_SYNAPSE_WEIGHT = 0.01
DEFAULT_PLASTICITY = 0.01
ACTIVITY_HISTORY_DEPTH = 10
PLASTICITY_EXPONENT = 0.8

COST_PER_VOLUME = 0.01
COST_PER_ACTIVE_SYNAPSE = 0.1

# Integration (NMDA-spike proxy and local saturation)
SUBLINEAR_EXPONENT = 0.85
MIN_CLUSTER_SIZE = 3
CLUSTER_EXPONENT = 0.7
CLUSTER_GAIN = 0.3
SATURATION_ONSET = 7
SATURATION_SLOPE = 0.15

DEFAULT_DENDRITE_CONFIG: Dict[str, Any] = {
    "energy_per_growth_unit": ENERGY_PER_GROWTH_UNIT,
    "min_energy_threshold": MIN_ENERGY_THRESHOLD,
    "base_branching_probability": BASE_BRANCHING_PROBABILITY,
    "max_branching_depth": MAX_BRANCHING_DEPTH,
    "optimal_connection_count": OPTIMAL_CONNECTION_COUNT,
    "depth_cost_base": 1.1,
    "root_radius": 5.0,
    "root_length": 10.0,
    "branch_length": 8.0,
    "branch_length_decay": 0.85,
    "strengthen_step": 0.01,
    "weaken_step": 0.02,
}


class SynapseState(Enum):
    """Lifecycle state of a dendritic synapse."""
    ACTIVE = auto()
    WEAKENED = auto()
    GHOST = auto()


# ---------------------------------------------------------------------------
# Synapse
# ---------------------------------------------------------------------------

@dataclass
class Synapse:
    """Synapse on a dendritic segment.

    Weight and electrotonic distance are clamped on construction.

    Attributes:
        synapse_id: Unique identifier.
        source_neuron_id: Presynaptic neuron.
        weight: Strength in [0, 1].
        position: Location on the dendrite.
        electrotonic_distance: Cable distance to the soma, [0, MAX_ELECTROTONIC_LENGTH].
        state: ACTIVE, WEAKENED, or GHOST.
        activity_history: Last 10 activity levels.
        last_active: Simulated time the synapse last saw real activity.
        plasticity: Learning-rate scale for strengthen/weaken.
    """

    source_neuron_id: str = ""
    position: Position = field(default_factory=Position)
    electrotonic_distance: float = 0.0
    weight: float = INITIAL_SYNAPSE_WEIGHT
    plasticity: float = DEFAULT_PLASTICITY
    synapse_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    state: SynapseState = SynapseState.ACTIVE
    activity_history: RingBuffer = field(
        default_factory=lambda: RingBuffer(ACTIVITY_HISTORY_DEPTH)
    )
    last_active: float = 0.0

    def __post_init__(self) -> None:
        self.weight = min(max(self.weight, 0.0), 1.0)
        self.electrotonic_distance = min(
            max(self.electrotonic_distance, 0.0), MAX_ELECTROTONIC_LENGTH
        )

    def update_activity(self, current_time: float, activity_level: float) -> None:
        """Record activity; real activity refreshes ``last_active`` and
        revives a WEAKENED synapse."""
        self.activity_history.append(activity_level)
        if activity_level > MIN_SYNAPSE_ACTIVITY:
            self.last_active = current_time
            if self.state == SynapseState.WEAKENED:
                self.state = SynapseState.ACTIVE

    def average_activity(self) -> float:
        return self.activity_history.mean()

    def check_inactivity(self, current_time: float) -> bool:
        """Weaken an ACTIVE synapse idle for too long.

        Returns:
            True if this call moved the synapse from ACTIVE to WEAKENED.
        """
        if self.state != SynapseState.ACTIVE:
            return False
        if current_time - self.last_active > INACTIVITY_THRESHOLD_DAYS:
            self.state = SynapseState.WEAKENED
            return True
        return False

    def convert_to_ghost(self) -> bool:
        """WEAKENED → GHOST, keeping a tenth of the weight."""
        if self.state != SynapseState.WEAKENED:
            return False
        self.state = SynapseState.GHOST
        self.weight *= GHOST_WEIGHT_SCALE
        return True

    def reactivate(self) -> bool:
        """GHOST → ACTIVE with a primed weight above a fresh synapse's."""
        if self.state != SynapseState.GHOST:
            return False
        self.state = SynapseState.ACTIVE
        self.weight = REACTIVATION_WEIGHT
        return True

    def strengthen(self, amount: float) -> None:
        """Potentiate in proportion to the remaining headroom, (1 - w)^0.8."""
        headroom = max(1.0 - self.weight, 0.0)
        delta = self.plasticity * amount * headroom ** PLASTICITY_EXPONENT
        self.weight = min(max(self.weight + delta, MIN_SYNAPSE_WEIGHT), 1.0)

    def weaken(self, amount: float) -> None:
        """Depress in proportion to w^0.8; the floor forces WEAKENED."""
        delta = self.plasticity * amount * max(self.weight, 0.0) ** PLASTICITY_EXPONENT
        self.weight = min(self.weight - delta, 1.0)
        if self.weight < MIN_SYNAPSE_WEIGHT:
            self.weight = MIN_SYNAPSE_WEIGHT
            if self.state != SynapseState.GHOST:
                self.state = SynapseState.WEAKENED

    def effective_strength(self) -> float:
        """Weight attenuated by exp(-distance / λ); zero unless ACTIVE."""
        if self.state != SynapseState.ACTIVE:
            return 0.0
        return self.weight * math.exp(-self.electrotonic_distance / ELECTROTONIC_DECAY_LAMBDA)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "synapse_id": self.synapse_id,
            "source_neuron_id": self.source_neuron_id,
            "weight": self.weight,
            "position": self.position.to_dict(),
            "electrotonic_distance": self.electrotonic_distance,
            "state": self.state.name,
            "activity_history": self.activity_history.to_list(),
            "last_active": self.last_active,
            "plasticity": self.plasticity,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Synapse":
        return cls(
            synapse_id=data["synapse_id"],
            source_neuron_id=data["source_neuron_id"],
            weight=data["weight"],
            position=Position.from_dict(data["position"]),
            electrotonic_distance=data["electrotonic_distance"],
            state=SynapseState[data.get("state", "ACTIVE")],
            activity_history=RingBuffer.from_list(
                data.get("activity_history", []), ACTIVITY_HISTORY_DEPTH
            ),
            last_active=data.get("last_active", 0.0),
            plasticity=data.get("plasticity", DEFAULT_PLASTICITY),
        )


# ---------------------------------------------------------------------------
# Dendritic Segment
# ---------------------------------------------------------------------------

@dataclass
class CableProperties:
    """Passive electrical properties of a segment.

    Attributes:
        axial_resistance: Ra (Ω·cm).
        membrane_resistance: Rm (Ω·cm²).
        membrane_capacitance: Cm (µF/cm²).
    """

    axial_resistance: float = 100.0
    membrane_resistance: float = 10000.0
    membrane_capacitance: float = 1.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "axial_resistance": self.axial_resistance,
            "membrane_resistance": self.membrane_resistance,
            "membrane_capacitance": self.membrane_capacitance,
        }


@dataclass
class DendriticSegment:
    """One cylindrical piece of the dendritic arbor.

    Diameter is derived from depth: ``2 * 0.8^branch_depth``.

    Attributes:
        segment_id: Unique identifier.
        position: Distal end of the segment.
        length: Physical length (µm).
        branch_depth: 0 for primary dendrites.
        synapses: Synapses in creation order.
        parent_id: Parent segment id, None for roots.
        child_ids: Child segment ids in creation order.
        cable_properties: Ra, Rm, Cm.
    """

    position: Position = field(default_factory=Position)
    length: float = 10.0
    branch_depth: int = 0
    parent_id: Optional[str] = None
    segment_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    synapses: List[Synapse] = field(default_factory=list)
    child_ids: List[str] = field(default_factory=list)
    cable_properties: CableProperties = field(default_factory=CableProperties)

    @property
    def diameter(self) -> float:
        return 2.0 * 0.8 ** self.branch_depth

    def add_synapse(
        self,
        source_neuron_id: str,
        position: Position,
        electrotonic_distance: float,
    ) -> str:
        synapse = Synapse(
            source_neuron_id=source_neuron_id,
            position=position,
            electrotonic_distance=electrotonic_distance,
        )
        self.synapses.append(synapse)
        return synapse.synapse_id

    def add_child(self, child_id: str) -> None:
        self.child_ids.append(child_id)

    def update_synapse_activity(self, active_inputs: Iterable[str], current_time: float) -> None:
        active = set(active_inputs)
        for synapse in self.synapses:
            level = 1.0 if synapse.source_neuron_id in active else 0.0
            synapse.update_activity(current_time, level)

    def compete_synapses(self, strengthen_step: float = 0.01, weaken_step: float = 0.02) -> None:
        """Local competition: above-mean synapses grow, those under half the
        mean shrink.  The mean is taken over non-GHOST synapses only; GHOST
        synapses neither compete nor count toward it."""
        live = [s for s in self.synapses if s.state != SynapseState.GHOST]
        if len(live) <= 1:
            return

        avg_activity = sum(s.average_activity() for s in live) / len(live)
        for synapse in live:
            activity = synapse.average_activity()
            if activity > avg_activity:
                synapse.strengthen(strengthen_step)
            elif activity < avg_activity * 0.5:
                synapse.weaken(weaken_step)

    def prune_synapses(self, current_time: float) -> int:
        """Weaken idle synapses, then ghost weakened ones that stay silent.

        Returns:
            Number of synapses newly weakened by inactivity.
        """
        pruned = 0
        for synapse in self.synapses:
            if synapse.check_inactivity(current_time):
                pruned += 1

        for synapse in self.synapses:
            if (
                synapse.state == SynapseState.WEAKENED
                and synapse.average_activity() < MIN_SYNAPSE_ACTIVITY / 2.0
            ):
                synapse.convert_to_ghost()

        return pruned

    def calculate_electrotonic_length(self) -> float:
        """Physical length over the cable space constant
        λ = sqrt(0.5 * d * Rm / Ra)."""
        rm = self.cable_properties.membrane_resistance
        ra = self.cable_properties.axial_resistance
        space_constant = math.sqrt(0.5 * self.diameter * rm / ra)
        return self.length / space_constant

    def active_synapse_count(self) -> int:
        return sum(1 for s in self.synapses if s.state == SynapseState.ACTIVE)

    def maintenance_cost(self) -> float:
        volume = math.pi * (self.diameter / 2.0) ** 2 * self.length
        return volume * COST_PER_VOLUME + self.active_synapse_count() * COST_PER_ACTIVE_SYNAPSE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "segment_id": self.segment_id,
            "position": self.position.to_dict(),
            "length": self.length,
            "diameter": self.diameter,
            "branch_depth": self.branch_depth,
            "synapses": [s.to_dict() for s in self.synapses],
            "parent_id": self.parent_id,
            "child_ids": list(self.child_ids),
            "cable_properties": self.cable_properties.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DendriticSegment":
        return cls(
            segment_id=data["segment_id"],
            position=Position.from_dict(data["position"]),
            length=data["length"],
            branch_depth=data["branch_depth"],
            synapses=[Synapse.from_dict(s) for s in data.get("synapses", [])],
            parent_id=data.get("parent_id"),
            child_ids=list(data.get("child_ids", [])),
            cable_properties=CableProperties(**data.get("cable_properties", {})),
        )


# ---------------------------------------------------------------------------
# Telemetry
# ---------------------------------------------------------------------------

@dataclass
class DendriteTelemetry:
    """Read-only snapshot of a dendritic tree for instrumentation.

    Attributes:
        time: Simulated time in days.
        total_segments: Number of segments.
        terminal_segments: Segments without children.
        max_depth: Deepest branch level present.
        total_synapses: Synapses in any state.
        active_synapses: ACTIVE synapses (the connection count).
        weakened_synapses: WEAKENED synapses.
        ghost_synapses: GHOST synapses.
        mean_weight: Mean weight over non-ghost synapses.
        std_weight: Standard deviation of those weights.
        energy: Available energy.
        maintenance_cost: Summed segment maintenance cost.
        complexity: Sholl-style complexity score.
    """

    time: float = 0.0
    total_segments: int = 0
    terminal_segments: int = 0
    max_depth: int = 0
    total_synapses: int = 0
    active_synapses: int = 0
    weakened_synapses: int = 0
    ghost_synapses: int = 0
    mean_weight: float = 0.0
    std_weight: float = 0.0
    energy: float = 0.0
    maintenance_cost: float = 0.0
    complexity: float = 0.0


# ---------------------------------------------------------------------------
# Dendritic Tree
# ---------------------------------------------------------------------------

class DendriticTree(NeuralGrowth):
    """Dendritic arbor of one neuron.

    Segments live in ``self.segments`` (id → segment); links between them are
    ids.  Electrotonic path lengths are memoized per segment and the whole
    cache is dropped on every structural change.

    Args:
        neuron_id: Owning neuron (auto-generated UUID if None).
        initial_energy: Starting energy budget.
        seed: Base seed for all stochastic decisions.
        config: Override any key from ``DEFAULT_DENDRITE_CONFIG``.
    """

    def __init__(
        self,
        neuron_id: Optional[str] = None,
        initial_energy: float = 100.0,
        seed: int = 42,
        config: Optional[Dict[str, Any]] = None,
    ):
        self.config = {**DEFAULT_DENDRITE_CONFIG, **(config or {})}
        self.neuron_id = neuron_id or str(uuid.uuid4())

        # --- Arena ---
        self.segments: Dict[str, DendriticSegment] = {}
        self.root_segment_ids: List[str] = []

        self._energy = float(initial_energy)
        self.growth_rate_modifier = 1.0
        self.electrotonic_length = 0.8
        self.time = 0.0
        self.connection_count = 0
        self.rng_seed = int(seed)

        # --- Derived-value cache ---
        self.path_length_cache: Dict[str, float] = {}
        self.tree_signature = 0

        self._event_handlers: Dict[str, List[Callable]] = {}

    # -----------------------------------------------------------------------
    # Structure
    # -----------------------------------------------------------------------

    def initialize(self, initial_count: int, origin: Optional[Position] = None) -> None:
        """Create ``initial_count`` primary dendrites spread evenly by angle."""
        origin = origin or Position(0.0, 0.0, 0.0)
        radius = self.config["root_radius"]

        for i in range(initial_count):
            angle = (i / initial_count) * 2.0 * math.pi
            pos = Position(
                origin.x + math.cos(angle) * radius,
                origin.y + math.sin(angle) * radius,
                origin.z + (i % 2) * 2.0,
            )
            segment = DendriticSegment(
                position=pos,
                length=self.config["root_length"],
                branch_depth=0,
            )
            self.segments[segment.segment_id] = segment
            self.root_segment_ids.append(segment.segment_id)

        self.invalidate_cache()

    def invalidate_cache(self) -> None:
        """Drop all memoized path lengths and bump the tree signature."""
        self.path_length_cache.clear()
        self.tree_signature += 1

    def add_segment(
        self,
        parent_id: str,
        position: Position,
        length: float,
    ) -> Optional[str]:
        """Attach a child segment one level below ``parent_id``.

        Returns:
            The new segment id, or None if the parent does not exist.
        """
        parent = self.segments.get(parent_id)
        if parent is None:
            return None

        segment = DendriticSegment(
            position=position,
            length=length,
            branch_depth=parent.branch_depth + 1,
            parent_id=parent_id,
        )
        self.segments[segment.segment_id] = segment
        parent.add_child(segment.segment_id)
        self.invalidate_cache()
        return segment.segment_id

    def get_segment(self, segment_id: str) -> Optional[DendriticSegment]:
        return self.segments.get(segment_id)

    def get_synapse(self, synapse_id: str) -> Optional[Synapse]:
        """Find a synapse anywhere in the tree, however it was attached."""
        for segment in self.segments.values():
            for synapse in segment.synapses:
                if synapse.synapse_id == synapse_id:
                    return synapse
        return None

    def segment_count(self) -> int:
        return len(self.segments)

    # -----------------------------------------------------------------------
    # Growth (homeostatic branching)
    # -----------------------------------------------------------------------

    def _rng(self, offset: int) -> np.random.RandomState:
        return np.random.RandomState((self.rng_seed + offset) % 2**32)

    def _growth_direction(
        self,
        position: Position,
        factors: Sequence[GrowthFactor],
    ) -> List[float]:
        direction = [0.0, 0.0, 0.0]
        for factor in factors:
            influence = factor.influence_at(position)
            if influence == 0.0:
                continue
            dx = factor.position.x - position.x
            dy = factor.position.y - position.y
            dz = factor.position.z - position.z
            distance = math.sqrt(dx * dx + dy * dy + dz * dz)
            if distance > 0.001:
                n = influence / distance
                direction[0] += dx * n
                direction[1] += dy * n
                direction[2] += dz * n
        return normalize(direction)

    def _add_direction_noise(self, direction: List[float]) -> List[float]:
        rng = self._rng(int(self.time) * 1000)
        noisy = [c + rng.random_sample() * 0.2 - 0.1 for c in direction]
        return normalize(noisy)

    def _select_growth_segment(self) -> Optional[str]:
        """Weighted draw favouring shallow, sparsely branched segments."""
        max_depth = self.config["max_branching_depth"]
        candidates: List[str] = []
        weights: List[float] = []
        for segment in self.segments.values():
            if segment.branch_depth >= max_depth:
                continue
            weight = float(max(1, 3 - len(segment.child_ids)))
            if segment.branch_depth > 2:
                weight *= 0.7
            candidates.append(segment.segment_id)
            weights.append(weight)

        if not candidates:
            return None

        rng = self._rng(int(self.time * 100.0))
        cumulative = np.cumsum(weights)
        draw = rng.random_sample() * cumulative[-1]
        idx = int(np.searchsorted(cumulative, draw, side="right"))
        return candidates[min(idx, len(candidates) - 1)]

    def _branching_probability(self) -> float:
        ratio = self.connection_count / self.config["optimal_connection_count"]
        if ratio > 1.2:
            connectivity_factor = 0.5
        elif ratio < 0.8:
            connectivity_factor = 1.5
        else:
            connectivity_factor = 1.0
        return (
            self.config["base_branching_probability"]
            * self.growth_rate_modifier
            * connectivity_factor
        )

    def grow(
        self,
        factors: Sequence[GrowthFactor],
        time_step: float,
        recent_activity: float,
    ) -> bool:
        """Advance time and possibly sprout one new branch.

        Args:
            factors: Growth factors steering the new branch.
            time_step: Step length in days.
            recent_activity: Recent neuronal activity driving growth rate.

        Returns:
            True if a segment was added.
        """
        self.time += time_step

        if self._energy < self.config["min_energy_threshold"]:
            return False

        self.growth_rate_modifier = min(0.5 + recent_activity, 2.0)

        # A draw *below* the probability suppresses growth, so the base
        # probability acts as an inhibition rate.
        gate = self._rng(int(self.time) * 1000).random_sample()
        if gate < self._branching_probability():
            return False

        parent_id = self._select_growth_segment()
        if parent_id is None:
            return False
        parent = self.segments[parent_id]
        depth = parent.branch_depth

        energy_cost = self.config["energy_per_growth_unit"] * self.config["depth_cost_base"] ** depth
        if self._energy < energy_cost:
            return False
        self._energy -= energy_cost

        direction = self._growth_direction(parent.position, factors)
        direction = self._add_direction_noise(direction)

        length = self.config["branch_length"] * self.config["branch_length_decay"] ** (depth + 1)
        new_id = self.add_segment(parent_id, parent.position.offset(direction, length), length)

        logger.debug(
            "Tree %s branched at depth %d (t=%.2f, energy=%.2f)",
            self.neuron_id, depth + 1, self.time, self._energy,
        )
        self._emit("branched", segment_id=new_id, parent_id=parent_id, time=self.time)
        return True

    # -----------------------------------------------------------------------
    # Electrotonic path lengths
    # -----------------------------------------------------------------------

    def get_path_length(self, segment_id: str) -> float:
        """Electrotonic distance from the soma to the end of ``segment_id``
        (memoized).  Unknown ids yield 0.0."""
        cached = self.path_length_cache.get(segment_id)
        if cached is not None:
            return cached

        segment = self.segments.get(segment_id)
        if segment is None:
            return 0.0

        own = segment.calculate_electrotonic_length()
        if segment.parent_id is not None:
            total = self.get_path_length(segment.parent_id) + own
        else:
            total = own

        self.path_length_cache[segment_id] = total
        return total

    def compute_path_length(self, segment_id: str) -> float:
        """Uncached recursion over the current topology."""
        segment = self.segments.get(segment_id)
        if segment is None:
            return 0.0
        own = segment.calculate_electrotonic_length()
        if segment.parent_id is not None:
            return self.compute_path_length(segment.parent_id) + own
        return own

    # -----------------------------------------------------------------------
    # Synapses
    # -----------------------------------------------------------------------

    def add_synapse(self, segment_id: str, source_neuron_id: str) -> Optional[str]:
        """Place a new synapse on ``segment_id`` at its electrotonic distance."""
        segment = self.segments.get(segment_id)
        if segment is None:
            return None

        distance = self.get_path_length(segment_id)
        synapse_id = segment.add_synapse(source_neuron_id, segment.position, distance)
        self.update_connection_count()
        return synapse_id

    def update_synapses(self, active_source_ids: Iterable[str]) -> int:
        """Apply activity, competition, and pruning to every segment.

        Returns:
            Number of synapses weakened by inactivity this call.
        """
        active = set(active_source_ids)
        total_pruned = 0
        total_ghosted = 0

        for segment_id in list(self.segments.keys()):
            segment = self.segments[segment_id]
            segment.update_synapse_activity(active, self.time)
            segment.compete_synapses(self.config["strengthen_step"], self.config["weaken_step"])

            ghosts_before = sum(1 for s in segment.synapses if s.state == SynapseState.GHOST)
            total_pruned += segment.prune_synapses(self.time)
            ghosts_after = sum(1 for s in segment.synapses if s.state == SynapseState.GHOST)
            total_ghosted += ghosts_after - ghosts_before

        self.update_connection_count()

        if total_pruned:
            self._emit("pruned", count=total_pruned, time=self.time)
        if total_ghosted:
            logger.debug("Tree %s ghosted %d synapses at t=%.2f",
                         self.neuron_id, total_ghosted, self.time)
            self._emit("ghosted", count=total_ghosted, time=self.time)

        return total_pruned

    def find_reactivatable_synapses(
        self,
        recent_activity_pattern: Iterable[str],
    ) -> List[Tuple[str, str]]:
        """(segment_id, synapse_id) of GHOST synapses whose source is listed."""
        recent = set(recent_activity_pattern)
        candidates = []
        for segment in self.segments.values():
            for synapse in segment.synapses:
                if synapse.state == SynapseState.GHOST and synapse.source_neuron_id in recent:
                    candidates.append((segment.segment_id, synapse.synapse_id))
        return candidates

    def reactivate_synapse(
        self,
        segment_id: str,
        synapse_id: str,
        recent_sources: Iterable[str],
    ) -> bool:
        """Bring a GHOST synapse back to ACTIVE at the primed weight.

        Args:
            segment_id: Segment holding the synapse.
            synapse_id: Synapse to revive.
            recent_sources: Recently active neurons; the synapse's source
                must be among them.

        Returns:
            False (and no change) for unknown ids, non-GHOST synapses, or an
            unlisted source.
        """
        segment = self.segments.get(segment_id)
        if segment is None:
            return False

        for synapse in segment.synapses:
            if synapse.synapse_id != synapse_id:
                continue
            if synapse.source_neuron_id not in set(recent_sources):
                return False
            if not synapse.reactivate():
                return False
            self.update_connection_count()
            self._emit("reactivated", segment_id=segment_id, synapse_id=synapse_id, time=self.time)
            return True

        return False

    def update_connection_count(self) -> None:
        """Recount ACTIVE synapses across the whole tree."""
        self.connection_count = sum(
            segment.active_synapse_count() for segment in self.segments.values()
        )

    # -----------------------------------------------------------------------
    # Signal integration
    # -----------------------------------------------------------------------

    def process_signal(self, synapse_id: str) -> float:
        """Attenuated strength of a single synapse (0.0 if unknown)."""
        synapse = self.get_synapse(synapse_id)
        return synapse.effective_strength() if synapse is not None else 0.0

    def _detect_synapse_clusters(
        self,
        active_synapses: Iterable[str],
    ) -> Dict[Tuple[str, str], List[Synapse]]:
        """Active synapses grouped by (segment, source)."""
        active = set(active_synapses)
        clusters: Dict[Tuple[str, str], List[Synapse]] = defaultdict(list)
        for segment in self.segments.values():
            for synapse in segment.synapses:
                if synapse.synapse_id in active:
                    clusters[(segment.segment_id, synapse.source_neuron_id)].append(synapse)
        return clusters

    def process_signals(self, active_synapse_ids: Iterable[str]) -> float:
        """Nonlinear integration of simultaneously active synapses.

        1. Signals at identical electrotonic distance sum, then each sum is
           raised to 0.85 (sublinear local summation).
        2. Same-source clusters of ≥3 synapses on one segment add
           ``(1 + (n-2)^0.7 * 0.3 - 1) * linear_sum`` (NMDA-spike proxy).
        3. Each segment with more than 7 active synapses scales the running
           total by ``1 / (1 + (n-7) * 0.15)`` (local saturation).
        """
        active = set(active_synapse_ids)
        clusters = self._detect_synapse_clusters(active)

        distance_buckets: Dict[float, float] = defaultdict(float)
        segment_counts: Dict[str, int] = {}
        for segment in self.segments.values():
            count = 0
            for synapse in segment.synapses:
                if synapse.synapse_id in active:
                    distance_buckets[synapse.electrotonic_distance] += synapse.effective_strength()
                    count += 1
            if count > 0:
                segment_counts[segment.segment_id] = count

        total_signal = 0.0
        for signal in distance_buckets.values():
            total_signal += signal ** SUBLINEAR_EXPONENT

        for members in clusters.values():
            if len(members) >= MIN_CLUSTER_SIZE:
                enhancement = 1.0 + (len(members) - 2.0) ** CLUSTER_EXPONENT * CLUSTER_GAIN
                base_signal = sum(s.effective_strength() for s in members)
                total_signal += base_signal * enhancement - base_signal

        for count in segment_counts.values():
            if count > SATURATION_ONSET:
                total_signal *= 1.0 / (1.0 + (count - SATURATION_ONSET) * SATURATION_SLOPE)

        return total_signal

    # -----------------------------------------------------------------------
    # Reporting
    # -----------------------------------------------------------------------

    def complexity_score(self) -> float:
        """Sholl-inspired complexity:
        ``n * (1 + mean depth) * sqrt(terminals) * (1 + depth entropy)``."""
        if not self.segments:
            return 0.0

        depths = np.array([s.branch_depth for s in self.segments.values()])
        segment_count = float(len(depths))
        avg_depth = float(depths.mean())
        terminal_count = float(sum(1 for s in self.segments.values() if not s.child_ids))

        counts = np.bincount(np.minimum(depths, 6), minlength=7)
        p = counts[counts > 0] / segment_count
        depth_diversity = float(-(p * np.log2(p)).sum())

        return (
            segment_count
            * (1.0 + avg_depth)
            * math.sqrt(terminal_count)
            * (1.0 + depth_diversity)
        )

    def get_telemetry(self) -> DendriteTelemetry:
        synapses = [s for seg in self.segments.values() for s in seg.synapses]
        live_weights = [s.weight for s in synapses if s.state != SynapseState.GHOST]
        states = [s.state for s in synapses]
        return DendriteTelemetry(
            time=self.time,
            total_segments=len(self.segments),
            terminal_segments=sum(1 for s in self.segments.values() if not s.child_ids),
            max_depth=max((s.branch_depth for s in self.segments.values()), default=0),
            total_synapses=len(synapses),
            active_synapses=states.count(SynapseState.ACTIVE),
            weakened_synapses=states.count(SynapseState.WEAKENED),
            ghost_synapses=states.count(SynapseState.GHOST),
            mean_weight=float(np.mean(live_weights)) if live_weights else 0.0,
            std_weight=float(np.std(live_weights)) if live_weights else 0.0,
            energy=self._energy,
            maintenance_cost=self.maintenance_cost(),
            complexity=self.complexity_score(),
        )

    # -----------------------------------------------------------------------
    # NeuralGrowth contract
    # -----------------------------------------------------------------------

    def add_energy(self, amount: float) -> None:
        self._energy += amount

    def energy(self) -> float:
        return self._energy

    def maintenance_cost(self) -> float:
        return sum(segment.maintenance_cost() for segment in self.segments.values())

    def position(self) -> Position:
        """Mean position of the root segments (origin if there are none)."""
        roots = [self.segments[r].position for r in self.root_segment_ids if r in self.segments]
        if not roots:
            return Position(0.0, 0.0, 0.0)
        n = len(roots)
        return Position(
            sum(p.x for p in roots) / n,
            sum(p.y for p in roots) / n,
            sum(p.z for p in roots) / n,
        )

    # -----------------------------------------------------------------------
    # Event System
    # -----------------------------------------------------------------------

    def register_event_handler(self, event_type: str, callback: Callable) -> None:
        """Subscribe to ``branched``, ``pruned``, ``ghosted``, ``reactivated``."""
        self._event_handlers.setdefault(event_type, []).append(callback)

    def _emit(self, event_type: str, **kwargs: Any) -> None:
        for cb in self._event_handlers.get(event_type, []):
            cb(**kwargs)

    # -----------------------------------------------------------------------
    # Persistence
    # -----------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": "dendritic_tree",
            "neuron_id": self.neuron_id,
            "config": self.config,
            "segments": {sid: s.to_dict() for sid, s in self.segments.items()},
            "root_segment_ids": list(self.root_segment_ids),
            "energy": self._energy,
            "growth_rate_modifier": self.growth_rate_modifier,
            "electrotonic_length": self.electrotonic_length,
            "time": self.time,
            "connection_count": self.connection_count,
            "rng_seed": self.rng_seed,
            "tree_signature": self.tree_signature,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DendriticTree":
        tree = cls(
            neuron_id=data["neuron_id"],
            initial_energy=data["energy"],
            seed=data.get("rng_seed", 42),
            config=data.get("config"),
        )
        for sid, sd in data.get("segments", {}).items():
            segment = DendriticSegment.from_dict(sd)
            tree.segments[sid] = segment
        tree.root_segment_ids = list(data.get("root_segment_ids", []))
        tree.growth_rate_modifier = data.get("growth_rate_modifier", 1.0)
        tree.electrotonic_length = data.get("electrotonic_length", 0.8)
        tree.time = data.get("time", 0.0)
        tree.tree_signature = data.get("tree_signature", 0)
        tree.update_connection_count()
        return tree

    def checkpoint(self, path: str) -> None:
        """Save state; the extension selects ``.msgpack`` or JSON."""
        save_checkpoint(path, self.to_dict())

    @classmethod
    def restore(cls, path: str) -> "DendriticTree":
        return cls.from_dict(load_checkpoint(path, kind="dendritic_tree"))
