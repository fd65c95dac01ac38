"""
Growth Monitoring - health context, rotating event log, and tree monitor.

Two monitoring layers:

1. ``health_context()`` - one-line natural language summary of a growth
   object (e.g. "Dendrite 3f2a: 14 segments, 22 active synapses, ...").
2. ``GrowthEventLogger`` - JSON-line events written to ``growth.log`` with
   size-based rotation.

``GrowthMonitor`` ties them together: it subscribes to the events of any
attached ``DendriticTree`` and writes a health record per tree every
``health_interval`` units of simulated time.

Usage::

    from growth_monitoring import GrowthMonitor
    monitor = GrowthMonitor(load_growth_config())
    monitor.attach(tree)
    for step in range(100):
        tree.grow(factors, 0.1, 0.5)
        monitor.tick(tree.time)
    print(monitor.health_context())
    monitor.close()
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import time
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from growth_config import GrowthConfig

logger = logging.getLogger("neurite.monitoring")

TREE_EVENTS = ("branched", "pruned", "ghosted", "reactivated")


# ── Health context (Layer 1) ──────────────────────────────────────────


def health_context(growth: Any) -> str:
    """Generate a natural language health summary.

    Args:
        growth: ``DendriticTree`` or ``AxonGrowth`` instance.

    Returns:
        Human-readable status string.
    """
    try:
        if hasattr(growth, "get_telemetry"):
            t = growth.get_telemetry()
            parts = [
                f"Dendrite {str(growth.neuron_id)[:8]}: {t.total_segments} segments",
                f"{t.active_synapses} active synapses",
            ]
            if t.ghost_synapses > 0:
                parts.append(f"{t.ghost_synapses} ghosts")
            parts.append(f"depth {t.max_depth}")
            parts.append(f"energy {t.energy:.1f}")
            return ", ".join(parts)

        parts = [
            f"Axon: {growth.length():.1f} µm",
            f"energy {growth.energy():.1f}",
        ]
        if not growth.can_grow():
            parts.append("stalled")
        return ", ".join(parts)
    except Exception as exc:
        return f"Growth: status unavailable ({exc})"


# ── Rotating logger (Layer 2) ─────────────────────────────────────────


class GrowthEventLogger:
    """Rotating file logger for growth events.

    Writes structured JSON-line events to ``growth.log`` with automatic
    rotation based on file size.

    Args:
        growth_config: ``GrowthConfig`` with monitoring parameters.
    """

    def __init__(self, growth_config: GrowthConfig) -> None:
        self._cfg = growth_config.monitoring
        self._logger = logging.getLogger("neurite.monitoring.events")
        self._handler: Optional[logging.Handler] = None
        self._setup_handler()

    @property
    def log_path(self) -> Path:
        return Path(self._cfg.log_dir).expanduser() / "growth.log"

    def _setup_handler(self) -> None:
        """Configure rotating file handler."""
        log_path = self.log_path
        log_path.parent.mkdir(parents=True, exist_ok=True)

        handler = logging.handlers.RotatingFileHandler(
            str(log_path),
            maxBytes=self._cfg.max_log_size_mb * 1024 * 1024,
            backupCount=self._cfg.backup_count,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        self._logger.addHandler(handler)
        self._logger.setLevel(logging.INFO)
        self._handler = handler

    def log_event(self, event_type: str, data: Dict[str, Any]) -> None:
        """Write a structured event to the growth log."""
        event = {
            "timestamp": time.time(),
            "event": event_type,
            "data": data,
        }
        self._logger.info(json.dumps(event, default=str))

    def close(self) -> None:
        """Detach and close the file handler."""
        if self._handler is not None:
            self._logger.removeHandler(self._handler)
            self._handler.close()
            self._handler = None


# ── GrowthMonitor coordinator ─────────────────────────────────────────


class GrowthMonitor:
    """Event forwarding and periodic health records for dendritic trees.

    Health checks run on simulated time: call ``tick(current_time)`` from
    the simulation loop.

    Args:
        growth_config: ``GrowthConfig`` with monitoring parameters.
    """

    def __init__(self, growth_config: GrowthConfig) -> None:
        self._cfg = growth_config
        self._event_logger = GrowthEventLogger(growth_config)
        self._trees: List[Any] = []
        self._last_health: Optional[float] = None

    def attach(self, tree: Any) -> None:
        """Forward the tree's growth events to the event log."""
        self._trees.append(tree)
        for event_type in TREE_EVENTS:
            tree.register_event_handler(
                event_type, self._forwarder(event_type, tree.neuron_id)
            )

    def _forwarder(self, event_type: str, neuron_id: str):
        def forward(**kwargs: Any) -> None:
            self.log_event(event_type, {"neuron_id": neuron_id, **kwargs})
        return forward

    def get_health(self) -> Dict[str, Any]:
        """Telemetry of every attached tree, keyed by neuron id."""
        return {
            "timestamp": time.time(),
            "trees": {
                str(tree.neuron_id): asdict(tree.get_telemetry())
                for tree in self._trees
            },
        }

    def health_context(self) -> str:
        """Natural language summary, one clause per attached tree."""
        if not self._trees:
            return "Growth: no trees attached"
        return "; ".join(health_context(tree) for tree in self._trees)

    def log_event(self, event_type: str, data: Dict[str, Any]) -> None:
        """Write an event to the growth rotating log."""
        self._event_logger.log_event(event_type, data)

    def tick(self, current_time: float) -> bool:
        """Log a health record if ``health_interval`` has elapsed.

        Returns:
            True if a record was written.
        """
        interval = self._cfg.monitoring.health_interval
        if self._last_health is not None and current_time - self._last_health < interval:
            return False
        self._last_health = current_time
        health = self.get_health()
        health["time"] = current_time
        self._event_logger.log_event("health_check", health)
        logger.debug("Health check at t=%.2f for %d trees", current_time, len(self._trees))
        return True

    def close(self) -> None:
        self._event_logger.close()
