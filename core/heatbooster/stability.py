"""
Stability Detection

Decides whether recent temperature and fan history is steady enough for a
linear time-to-target extrapolation. Transients (mode change, fan step,
open door) and stale data both suppress the projection.
"""

import logging
from collections.abc import Sequence

import numpy as np

from .history import Sample

logger = logging.getLogger(__name__)

MAX_PAIRS = 5
PAIR_WINDOW_SECONDS = 120.0
TEMP_JUMP_THRESHOLD = 0.4  # °C between adjacent samples
FAN_JUMP_THRESHOLD = 25.0  # percentage points between adjacent samples
TEMP_STALE_SECONDS = 240.0


def _has_jump(samples: Sequence[Sample], threshold: float) -> bool:
    """Check the last MAX_PAIRS adjacent pairs for a fast, large change."""
    recent = list(samples)[-(MAX_PAIRS + 1):]
    if len(recent) < 2:
        return False

    timestamps = np.array([s.timestamp for s in recent], dtype=float)
    values = np.array([s.value for s in recent], dtype=float)

    dt = np.diff(timestamps)
    dv = np.abs(np.diff(values))

    return bool(np.any((dt <= PAIR_WINDOW_SECONDS) & (dv > threshold)))


def is_unstable(temp_history: Sequence[Sample], fan_history: Sequence[Sample], now: float) -> bool:
    """Return True if a projection should not be trusted right now.

    Args:
        temp_history: Room temperature samples, oldest first
        fan_history: Fan output samples, oldest first
        now: Current time in Unix seconds
    """
    temp_unstable = _has_jump(temp_history, TEMP_JUMP_THRESHOLD)

    if len(temp_history) == 0 or now - temp_history[-1].timestamp > TEMP_STALE_SECONDS:
        temp_unstable = True

    fan_unstable = _has_jump(fan_history, FAN_JUMP_THRESHOLD)

    if temp_unstable or fan_unstable:
        logger.debug(f"Unstable readings (temperature: {temp_unstable}, fan: {fan_unstable})")
    return temp_unstable or fan_unstable
