"""
Trend Estimation

Estimates how fast the room is warming and how long it will take to reach
the target temperature.

The measured rate is noisy and lags, so it is weighted by the current fan
effort and by the heater-to-room differential (a proxy for available
thermal head):

    raw_rate     = (last_room - first_room) / dt_minutes
    heat_support = clamp((heater - room) / 20, 0, 1)
    fan_factor   = 0.5 + clamp(fan, 0, 100) / 200
    rate         = raw_rate * fan_factor * (1 + heat_support)
"""

import logging
import math
from collections.abc import Sequence

from .history import Sample
from .models import ApplianceSnapshot, Projection, ProjectionKind
from .stability import is_unstable

logger = logging.getLogger(__name__)

HEAT_SUPPORT_SPAN = 20.0  # °C heater-to-room differential for full support
TARGET_REACHED_MARGIN = 0.2  # °C below target that counts as reached
PROXY_WARM_MARGIN = 0.8  # °C proxy above room that proves heat delivery
HEATER_RISING_SAMPLES = 3

NO_PROJECTION = Projection(ProjectionKind.NONE, "No projection")
WAITING_FOR_STABLE = Projection(ProjectionKind.WAITING, "Waiting for stable readings")


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def effective_rate(
    room_history: Sequence[Sample],
    heater_history: Sequence[Sample],
    fan_level: float,
) -> float:
    """Weighted warming rate in °C/min, NaN if it cannot be computed.

    Args:
        room_history: Room temperature samples, oldest first
        heater_history: Heater temperature samples, may be empty
        fan_level: Current fan output in percent, NaN if unknown
    """
    if len(room_history) < 2:
        return math.nan

    first, last = room_history[0], room_history[-1]
    dt_minutes = (last.timestamp - first.timestamp) / 60.0
    if dt_minutes <= 0:
        return math.nan

    raw_rate = (last.value - first.value) / dt_minutes

    heat_support = 0.0
    if len(heater_history) > 0 and math.isfinite(heater_history[-1].value):
        heat_support = _clamp((heater_history[-1].value - last.value) / HEAT_SUPPORT_SPAN, 0.0, 1.0)

    fan = _clamp(fan_level, 0.0, 100.0) if math.isfinite(fan_level) else 0.0
    fan_factor = 0.5 + fan / 200.0

    return raw_rate * fan_factor * (1.0 + heat_support)


def estimate_eta(room: float, target: float, rate: float) -> float:
    """Minutes until room reaches target at the given rate.

    Returns 0 when the target is already reached and NaN when the rate
    is unusable.
    """
    if not math.isfinite(rate) or rate <= 0:
        return math.nan

    remaining = target - room
    if remaining <= 0:
        return 0.0
    return remaining / rate


def heater_rising(heater_history: Sequence[Sample]) -> bool:
    """True if the heater temperature went up over its last few samples."""
    recent = list(heater_history)[-HEATER_RISING_SAMPLES:]
    if len(recent) < 2:
        return False
    return recent[-1].value > recent[0].value


def classify_delta(delta: float) -> str:
    """Colour class for the room-minus-target difference."""
    if not math.isfinite(delta):
        return "warn"
    if delta <= TARGET_REACHED_MARGIN:
        return "good"
    if delta <= 1.0:
        return "warn"
    return "bad"


def project_time_to_target(
    snapshot: ApplianceSnapshot,
    room_history: Sequence[Sample],
    fan_history: Sequence[Sample],
    heater_history: Sequence[Sample],
    now: float,
    auto_mode: str = "auto",
    off_mode: str = "off",
) -> Projection:
    """Apply the gating policy and project the time to target.

    Gates are evaluated in order and the first match wins.
    """
    if snapshot.mode == off_mode:
        return NO_PROJECTION

    room, target = snapshot.room, snapshot.target
    if not (math.isfinite(room) and math.isfinite(target)):
        return NO_PROJECTION

    if is_unstable(room_history, fan_history, now):
        return WAITING_FOR_STABLE

    if snapshot.mode != auto_mode:
        return NO_PROJECTION

    if room - target >= -TARGET_REACHED_MARGIN:
        return NO_PROJECTION

    if not math.isfinite(snapshot.fan) or snapshot.fan == 0:
        return NO_PROJECTION

    proxy = snapshot.proxy
    if math.isfinite(proxy) and proxy < room:
        return NO_PROJECTION

    proxy_warm = math.isfinite(proxy) and proxy - room > PROXY_WARM_MARGIN
    if not (heater_rising(heater_history) or proxy_warm):
        return NO_PROJECTION

    rate = effective_rate(room_history, heater_history, snapshot.fan)
    if not math.isfinite(rate) or rate <= 0:
        return NO_PROJECTION

    eta = estimate_eta(room, target, rate)
    if not math.isfinite(eta):
        return NO_PROJECTION

    minutes = max(0, math.floor(eta + 0.5))
    logger.debug(f"Projection: rate {rate:.3f} °C/min, {minutes} min to target")
    return Projection(ProjectionKind.ETA, f"≈ {minutes} min to target", minutes)
