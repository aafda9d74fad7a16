"""Deterministic per-member value generation."""

from __future__ import annotations

from typing import Optional

import numpy as np

SEED_BASE = 42
LOW = 0.0
HIGH = 100.0


def seed_for(rank: int, iteration: Optional[int] = None, base: int = SEED_BASE) -> int:
    # rank + 42, plus the iteration index when a run is repeated
    if iteration is None:
        return base + rank
    return base + rank + iteration


def generate_values(count: int, seed: int, low: float = LOW, high: float = HIGH) -> np.ndarray:
    """Return ``count`` uniform float64 values in ``[low, high)``."""
    rng = np.random.default_rng(seed)
    return rng.uniform(low, high, size=count)


def partial_sum(values: np.ndarray) -> float:
    return float(np.sum(values, dtype=np.float64))
