"""
Growth Persistence - checkpoint files for growth-engine state.

Growth objects serialize themselves field by field (``to_dict``); this module
only moves those dicts to and from disk.  The path extension selects the
format: ``.msgpack`` for compact binary, anything else for indented JSON.

Every snapshot carries a ``kind`` tag (``axon``, ``dendritic_tree``,
``resource_manager``) so a file cannot be restored into the wrong type.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import msgpack

logger = logging.getLogger("neurite.persistence")

FORMAT_VERSION = "0.1.0"


def save_checkpoint(path: str, data: Dict[str, Any]) -> None:
    """Write a snapshot dict to ``path``.

    Args:
        path: Target file; ``.msgpack`` selects msgpack, otherwise JSON.
        data: Output of an entity's ``to_dict``.
    """
    payload = {"version": FORMAT_VERSION, **data}
    p = Path(path).expanduser()
    p.parent.mkdir(parents=True, exist_ok=True)

    if p.suffix == ".msgpack":
        with open(p, "wb") as f:
            msgpack.pack(payload, f, use_bin_type=True)
    else:
        with open(p, "w") as f:
            json.dump(payload, f, indent=2)

    logger.debug("Checkpoint (%s) written to %s", data.get("kind", "?"), p)


def load_checkpoint(path: str, kind: Optional[str] = None) -> Dict[str, Any]:
    """Read a snapshot dict from ``path``.

    Args:
        path: Source file written by ``save_checkpoint``.
        kind: Expected ``kind`` tag; a mismatch raises ``ValueError``.
    """
    p = Path(path).expanduser()
    if p.suffix == ".msgpack":
        with open(p, "rb") as f:
            data = msgpack.unpack(f, raw=False)
    else:
        with open(p, "r") as f:
            data = json.load(f)

    if kind is not None and data.get("kind") != kind:
        raise ValueError(
            f"Checkpoint {p} holds {data.get('kind')!r}, expected {kind!r}"
        )
    return data
