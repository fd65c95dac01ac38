"""
Growth Configuration - centralized tunables for the growth engine.

Provides a ``GrowthConfig`` dataclass grouping the parameters of axon growth,
dendritic branching, energy distribution, and the monitoring layer.
Configuration can be loaded from a dict of overrides, a JSON file, or left
at the built-in defaults.

Usage::

    from growth_config import load_growth_config

    # Defaults
    cfg = load_growth_config()

    # With overrides
    cfg = load_growth_config({"dendrite": {"max_branching_depth": 4}})

    # From JSON file
    cfg = load_growth_config(config_path="~/.neurite/growth.json")

    tree = DendriticTree(config=cfg.dendrite_params(), seed=cfg.dendrite.seed)
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger("neurite.config")

SECTIONS = ("axon", "dendrite", "resources", "monitoring")


# ── Section dataclasses ────────────────────────────────────────────────


@dataclass
class AxonConfig:
    """Growth-cone parameters (keys of ``DEFAULT_AXON_CONFIG``)."""

    base_growth_rate: float = 10.0
    max_factor_influence: float = 5.0
    energy_per_growth_unit: float = 1.0
    min_energy_threshold: float = 5.0
    measurement_interval: float = 0.5
    max_measurements: int = 100
    inertia: float = 0.7


@dataclass
class DendriteConfig:
    """Branching and competition parameters (keys of ``DEFAULT_DENDRITE_CONFIG``),
    plus the tree seed and primary dendrite count."""

    energy_per_growth_unit: float = 1.2
    min_energy_threshold: float = 3.0
    base_branching_probability: float = 0.1
    max_branching_depth: int = 6
    optimal_connection_count: int = 20
    depth_cost_base: float = 1.1
    root_radius: float = 5.0
    root_length: float = 10.0
    branch_length: float = 8.0
    branch_length_decay: float = 0.85
    strengthen_step: float = 0.01
    weaken_step: float = 0.02
    seed: int = 42
    primary_dendrites: int = 4


@dataclass
class ResourceConfig:
    """Energy pool shared across dendritic trees."""

    initial_energy: float = 100.0
    strategy: str = "ACTIVITY_BASED"
    distribution_interval: float = 1.0


@dataclass
class MonitoringConfig:
    """Event log and health reporting."""

    log_dir: str = "~/.neurite/logs/"
    max_log_size_mb: int = 10
    backup_count: int = 5
    health_interval: float = 1.0


# ── Top-level config ───────────────────────────────────────────────────


@dataclass
class GrowthConfig:
    """Top-level growth engine configuration.

    Use ``load_growth_config()`` to create an instance with user overrides
    applied.
    """

    axon: AxonConfig = field(default_factory=AxonConfig)
    dendrite: DendriteConfig = field(default_factory=DendriteConfig)
    resources: ResourceConfig = field(default_factory=ResourceConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    def axon_params(self) -> Dict[str, Any]:
        """Config dict for ``AxonGrowth(config=...)``."""
        return asdict(self.axon)

    def dendrite_params(self) -> Dict[str, Any]:
        """Config dict for ``DendriticTree(config=...)`` (seed and root
        count are passed separately)."""
        params = asdict(self.dendrite)
        params.pop("seed")
        params.pop("primary_dendrites")
        return params

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ── Factory ────────────────────────────────────────────────────────────


def _apply_overrides(obj: Any, overrides: Dict[str, Any]) -> None:
    """Apply a dict of overrides to a dataclass instance (in-place)."""
    for key, value in overrides.items():
        if hasattr(obj, key):
            setattr(obj, key, value)
        else:
            logger.debug("Ignoring unknown %s key %r", type(obj).__name__, key)


def load_growth_config(
    overrides: Optional[Dict[str, Any]] = None,
    config_path: Optional[str] = None,
) -> GrowthConfig:
    """Create a ``GrowthConfig`` with defaults, optionally overridden.

    Override precedence (highest wins):
        1. ``overrides`` dict argument
        2. ``config_path`` JSON file
        3. Built-in defaults

    Args:
        overrides: Dict keyed by section name (``axon``, ``dendrite``,
            ``resources``, ``monitoring``) whose values are dicts of
            field→value pairs.
        config_path: Path to a JSON file with the same structure as
            ``overrides``.

    Returns:
        Fully populated ``GrowthConfig``.
    """
    cfg = GrowthConfig()

    # Layer 1: JSON file
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            try:
                with open(p) as f:
                    file_data = json.load(f)
                for section in SECTIONS:
                    if section in file_data:
                        _apply_overrides(getattr(cfg, section), file_data[section])
            except (OSError, ValueError) as exc:
                logger.warning("Failed to load growth config from %s: %s", p, exc)
        else:
            logger.warning("Growth config %s not found; using defaults", p)

    # Layer 2: dict overrides (win over file)
    if overrides is not None:
        for section in SECTIONS:
            if section in overrides:
                _apply_overrides(getattr(cfg, section), overrides[section])

    return cfg
