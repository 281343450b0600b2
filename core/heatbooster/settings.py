"""
Heatbooster Configuration Settings

Appliance address, transport timing, signal ids and history tuning.
Production settings come from the add-on's options.json, development
settings from the `options:` section of config.yaml.
"""

import json
import logging
import math
import os
import re
from dataclasses import dataclass, field
from urllib.parse import parse_qs, urlparse

import yaml

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://heizungsbooster.local"
OPTIONS_PATH = "/data/options.json"
CONFIG_PATH = os.path.join(os.path.dirname(__file__), "..", "..", "config.yaml")

# ESPHome object ids as published by the appliance firmware
DEFAULT_SIGNAL_IDS = {
    "mode": "betriebsmodus",
    "manual": "man_lueftergeschwindigkeit",
    "room": "raumtemperatur",
    "target": "solltemperatur",
    "fan": "luefterleistung",
    "heater": "heizkoerpertemperatur",
    "proxy": "konvektionstemperatur",
    "status": "k-faktor-anpassung",
}

OPTIONAL_SIGNALS = ("heater", "proxy")


def _camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    s1 = re.sub("(.)([A-Z][a-z]+)", r"\1_\2", name)
    return re.sub("([a-z0-9])([A-Z])", r"\1_\2", s1).lower()


def resolve_base_url(page_url: str | None = None, default: str = DEFAULT_BASE_URL) -> str:
    """Resolve the appliance base URL.

    A page URL such as ``http://dash/index.html?esp=http://10.1.3.62`` overrides
    the default through its ``esp`` query parameter. The trailing slash is
    stripped either way.

    Args:
        page_url: URL of the dashboard page, may be None
        default: Address used when no override is present

    Returns:
        Base URL without trailing slash
    """
    if page_url:
        esp = parse_qs(urlparse(page_url).query).get("esp")
        if esp and esp[0]:
            return esp[0].rstrip("/")
    return default.rstrip("/")


@dataclass
class SignalHistorySettings:
    """Recording parameters for one signal's history buffer."""

    capacity: int
    min_delta: float
    stale_after: float = 60.0  # seconds

    def __post_init__(self):
        if self.capacity < 1:
            raise ConfigurationError(f"History capacity must be >= 1, got {self.capacity}")
        if self.min_delta < 0 or self.stale_after < 0:
            raise ConfigurationError("History min_delta and stale_after must not be negative")


def _default_history() -> dict[str, SignalHistorySettings]:
    return {
        "room": SignalHistorySettings(capacity=30, min_delta=0.05),
        "target": SignalHistorySettings(capacity=10, min_delta=0.1),
        "fan": SignalHistorySettings(capacity=20, min_delta=1.0),
        "heater": SignalHistorySettings(capacity=20, min_delta=0.2),
        "proxy": SignalHistorySettings(capacity=20, min_delta=0.1),
    }


@dataclass
class ApplianceSettings:
    """Configuration for one appliance connection."""

    base_url: str = DEFAULT_BASE_URL
    poll_interval_seconds: float = 2.5
    request_timeout_seconds: float = 5.0
    stall_timeout_seconds: float = 30.0  # Read timeout on the event stream
    reconnect_interval_seconds: float = 30.0  # 0 disables push reconnects while degraded
    signal_ids: dict[str, str | None] = field(default_factory=lambda: dict(DEFAULT_SIGNAL_IDS))
    modes: list[str] = field(default_factory=lambda: ["off", "manual", "auto"])
    auto_mode: str = "auto"
    off_mode: str = "off"
    history: dict[str, SignalHistorySettings] = field(default_factory=_default_history)

    def __post_init__(self):
        self.base_url = self.base_url.rstrip("/")

        for name in ("poll_interval_seconds", "request_timeout_seconds", "stall_timeout_seconds"):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0:
                raise ConfigurationError(f"{name} must be positive, got {value}")
        if self.reconnect_interval_seconds < 0:
            raise ConfigurationError("reconnect_interval_seconds must not be negative")

        unknown = set(self.signal_ids) - set(DEFAULT_SIGNAL_IDS)
        if unknown:
            raise ConfigurationError(f"Unknown signal keys: {sorted(unknown)}")
        for key in DEFAULT_SIGNAL_IDS:
            if not self.signal_ids.get(key) and key not in OPTIONAL_SIGNALS:
                raise ConfigurationError(f"Signal '{key}' requires an object id")
            self.signal_ids.setdefault(key, None)

        if self.auto_mode not in self.modes or self.off_mode not in self.modes:
            raise ConfigurationError(
                f"Modes {self.modes} must include '{self.auto_mode}' and '{self.off_mode}'"
            )

    @classmethod
    def from_dict(cls, data: dict) -> "ApplianceSettings":
        """Create from dictionary."""
        converted = {_camel_to_snake(k): v for k, v in data.items()}

        if "signal_ids" in converted:
            converted["signal_ids"] = {**DEFAULT_SIGNAL_IDS, **converted["signal_ids"]}

        if "history" in converted:
            history = _default_history()
            for key, overrides in converted["history"].items():
                if key not in history:
                    raise ConfigurationError(f"No history is kept for signal '{key}'")
                base = history[key]
                overrides = {_camel_to_snake(k): v for k, v in overrides.items()}
                history[key] = SignalHistorySettings(
                    capacity=int(overrides.get("capacity", base.capacity)),
                    min_delta=float(overrides.get("min_delta", base.min_delta)),
                    stale_after=float(overrides.get("stale_after", base.stale_after)),
                )
            converted["history"] = history

        try:
            return cls(**converted)
        except TypeError as e:
            raise ConfigurationError(f"Invalid appliance settings: {e}")


def load_settings(page_url: str | None = None) -> ApplianceSettings:
    """Load settings from options.json (production) or config.yaml (development).

    The ``ESP_BASE`` environment variable, when set, replaces the configured
    base URL; a page URL carrying an ``esp`` parameter overrides both.
    """
    options = {}

    if os.path.exists(OPTIONS_PATH):
        with open(OPTIONS_PATH) as f:
            options = json.load(f).get("appliance", {})
            logger.info("Loaded appliance settings from options.json")
    elif os.path.exists(CONFIG_PATH):
        with open(CONFIG_PATH) as f:
            config = yaml.safe_load(f) or {}
            options = config.get("options", {}).get("appliance", {})
            logger.info("Loaded appliance settings from config.yaml")
    else:
        logger.warning("No configuration found, using default appliance settings")

    settings = ApplianceSettings.from_dict(options)

    env_base = os.environ.get("ESP_BASE")
    settings.base_url = resolve_base_url(page_url, default=env_base or settings.base_url)
    return settings
