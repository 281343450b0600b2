"""
Heatbooster Data Models

Signal catalogue, the appliance snapshot and projection results.
"""

import math
import re
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from .settings import ApplianceSettings

TEXT_PLACEHOLDER = "—"

_NUMBER_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


class SignalKind(Enum):
    """How a signal's value is represented."""

    MODE = "mode"
    NUMERIC = "numeric"
    TEXT = "text"


class ConnectionState(Enum):
    """Which transport currently keeps the snapshot fresh."""

    CONNECTING = "connecting"  # Before the first successful fetch
    LIVE = "live"  # Push transport open and delivering
    DEGRADED = "degraded"  # Poll fallback active


class ProjectionKind(Enum):
    """Outcome of the time-to-target gating policy."""

    NONE = "none"
    WAITING = "waiting"  # Readings not stable enough to extrapolate
    ETA = "eta"


@dataclass(frozen=True)
class Signal:
    """One named value exposed by the appliance."""

    key: str
    domain: str  # select, number, sensor, text_sensor
    object_id: str
    kind: SignalKind

    @property
    def event_id(self) -> str:
        """Id used by the appliance's event stream, e.g. 'sensor-raumtemperatur'."""
        return f"{self.domain}-{self.object_id}"

    @property
    def path(self) -> str:
        return f"{self.domain}/{self.object_id}"


# key -> (domain, kind)
SIGNAL_CATALOGUE = {
    "mode": ("select", SignalKind.MODE),
    "manual": ("number", SignalKind.NUMERIC),
    "room": ("sensor", SignalKind.NUMERIC),
    "target": ("sensor", SignalKind.NUMERIC),
    "fan": ("sensor", SignalKind.NUMERIC),
    "heater": ("sensor", SignalKind.NUMERIC),
    "proxy": ("sensor", SignalKind.NUMERIC),
    "status": ("text_sensor", SignalKind.TEXT),
}


def build_signals(settings: ApplianceSettings) -> dict[str, Signal]:
    """Create the configured signals, skipping optional ones without an id."""
    signals = {}
    for key, (domain, kind) in SIGNAL_CATALOGUE.items():
        object_id = settings.signal_ids.get(key)
        if object_id:
            signals[key] = Signal(key=key, domain=domain, object_id=object_id, kind=kind)
    return signals


def parse_number(raw: Any) -> float:
    """Parse a numeric reading the way a browser's parseFloat would.

    Accepts numbers and strings with a numeric prefix ("21.5 °C").
    Anything else, and non-finite results, yield NaN.
    """
    if isinstance(raw, bool) or raw is None:
        return math.nan
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        match = _NUMBER_PREFIX.match(raw)
        if not match:
            return math.nan
        value = float(match.group(1))
    else:
        return math.nan
    return value if math.isfinite(value) else math.nan


def parse_response(signal: Signal, body: dict[str, Any]) -> Any:
    """Extract a signal value from a REST or event payload.

    Numeric signals prefer ``state`` and fall back to ``value``; text and
    mode signals read ``state``. Missing fields yield an unknown value
    (NaN or None), never an error.
    """
    if signal.kind is SignalKind.NUMERIC:
        value = parse_number(body.get("state"))
        if math.isnan(value):
            value = parse_number(body.get("value"))
        return value

    state = body.get("state")
    if state is None or state == "":
        return None
    return str(state)


@dataclass
class ApplianceSnapshot:
    """Last known value of every signal plus connectivity."""

    mode: str = "off"
    manual: float = math.nan
    room: float = math.nan
    target: float = math.nan
    fan: float = math.nan
    heater: float = math.nan
    proxy: float = math.nan
    status: str = TEXT_PLACEHOLDER
    connected: bool = False

    @property
    def delta(self) -> float:
        """Room minus target temperature, NaN while either is unknown."""
        if math.isfinite(self.room) and math.isfinite(self.target):
            return self.room - self.target
        return math.nan

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly copy, unknown numerics as None."""
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, float) and not math.isfinite(value):
                data[key] = None
        return data


@dataclass(frozen=True)
class Projection:
    """Time-to-target projection shown next to the temperatures."""

    kind: ProjectionKind
    message: str
    minutes: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message, "minutes": self.minutes}


@dataclass
class StateChange:
    """Notification passed to state store listeners."""

    keys: list[str] = field(default_factory=list)
    connection_state: ConnectionState | None = None
