"""Simple usage example for the neurite growth engine.

Demonstrates growing an axon around an obstacle, branching a dendritic tree,
running the synapse lifecycle, and sharing energy between two trees.
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dendrite_resources import AllocationStrategy, DendriteResourceManager
from growth_types import FactorType, GrowthFactor, Position
from neuron_growth import (
    NeuronSnapshot,
    as_growth_factor,
    start_axon_growth,
    start_dendritic_growth,
)


def main():
    source = NeuronSnapshot(speed_value=100, position_value=Position(0, 0, 0))
    target = NeuronSnapshot(speed_value=200, activation_energy_value=0.4,
                            position_value=Position(20, 6, 0))

    # Axon: pulled toward the target, pushed around an obstacle
    print("=== Axon Growth ===")
    axon = start_axon_growth(source)
    factors = [
        as_growth_factor(target, is_excitatory=True),
        GrowthFactor(Position(6, 0, 0), 1.0, 3.0, FactorType.OBSTACLE),
    ]
    for _ in range(40):
        axon.grow(factors, 0.1)
    p = axon.position()
    print(f"Tip at ({p.x:.2f}, {p.y:.2f}, {p.z:.2f}), length {axon.length():.2f} µm")
    print(f"Energy left: {axon.energy():.2f}")
    print(f"Average rate: {axon.average_growth_rate():.2f} µm/day")

    # Dendrites: homeostatic branching
    print("\n=== Dendritic Branching ===")
    tree = start_dendritic_growth(target, initial_energy=80.0, seed=42)
    branches = sum(tree.grow(factors, 1.0, 0.6) for _ in range(30))
    t = tree.get_telemetry()
    print(f"{branches} branches, {t.total_segments} segments, max depth {t.max_depth}")
    print(f"Complexity: {t.complexity:.1f}")

    # Synapses: competition, ghosting, reactivation
    print("\n=== Synapse Lifecycle ===")
    roots = tree.root_segment_ids
    synapses = [tree.add_synapse(roots[0], "n_busy") for _ in range(4)]
    synapses.append(tree.add_synapse(roots[0], "n_quiet"))
    for _ in range(5):
        tree.time += 1.0
        tree.update_synapses(["n_busy"])
    print(f"Active connections: {tree.connection_count}")
    for seg_id, syn_id in tree.find_reactivatable_synapses(["n_quiet"]):
        tree.reactivate_synapse(seg_id, syn_id, ["n_quiet"])
    print(f"After reactivation: {tree.connection_count}")
    print(f"Integrated signal: {tree.process_signals(synapses):.4f}")

    # Resources: activity-weighted energy sharing
    print("\n=== Energy Distribution ===")
    other = start_dendritic_growth(source, initial_energy=20.0, seed=7)
    manager = DendriteResourceManager(100.0)
    manager.distribute_energy([tree, other], tree.time, [0.8, 0.2])
    print(f"Tree energies: {tree.energy():.1f} / {other.energy():.1f}")

    manager.set_strategy(AllocationStrategy.GROWTH_POTENTIAL)
    manager.add_energy(50.0)
    manager.distribute_energy([tree, other], tree.time + 1.0)
    print(f"After growth-potential round: {tree.energy():.1f} / {other.energy():.1f}")


if __name__ == "__main__":
    main()
