"""
Appliance State Store

Holds the one live ApplianceSnapshot of a session. Only the sync layer
mutates it; everything else reads it freely. Mutation and reads share a
single event loop, so fields are simply last-write-wins.
"""

import logging
import math
from collections.abc import Callable
from typing import Any

from .models import (
    TEXT_PLACEHOLDER,
    ApplianceSnapshot,
    ConnectionState,
    Signal,
    SignalKind,
    StateChange,
    parse_response,
)

logger = logging.getLogger(__name__)

Listener = Callable[[StateChange], None]


class ApplianceStateStore:
    """Snapshot of last-known appliance values plus connection state."""

    def __init__(self, signals: dict[str, Signal]):
        self.signals = signals
        self.snapshot = ApplianceSnapshot()
        self.connection_state = ConnectionState.CONNECTING
        self._signals_by_event_id = {s.event_id: s for s in signals.values()}
        self._listeners: list[Listener] = []

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a callback invoked after every mutation.

        Returns:
            Function that removes the listener again
        """
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _notify(self, change: StateChange):
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception as e:
                logger.error(f"State listener failed: {e}", exc_info=True)

    def _coerce(self, signal: Signal, value: Any) -> Any:
        if signal.kind is SignalKind.MODE:
            return value or "off"
        if signal.kind is SignalKind.TEXT:
            return value or TEXT_PLACEHOLDER
        if value is None:
            return math.nan
        try:
            value = float(value)
        except (TypeError, ValueError):
            return math.nan
        return value if math.isfinite(value) else math.nan

    def _set(self, key: str, value: Any) -> bool:
        signal = self.signals.get(key)
        if signal is None:
            logger.debug(f"Ignoring value for unconfigured signal '{key}'")
            return False
        setattr(self.snapshot, key, self._coerce(signal, value))
        return True

    def apply_value(self, key: str, value: Any):
        """Overwrite one snapshot field."""
        if self._set(key, value):
            self._notify(StateChange(keys=[key]))

    def apply_values(self, values: dict[str, Any], connected: bool | None = None):
        """Overwrite several fields and notify once."""
        keys = [key for key, value in values.items() if self._set(key, value)]
        if connected is not None:
            self.snapshot.connected = connected
        self._notify(StateChange(keys=keys))

    def apply_event(self, payload: Any) -> bool:
        """Apply one push event payload ``{"id": "<domain>-<object_id>", ...}``.

        Returns:
            True if the payload named a known signal and was applied
        """
        if not isinstance(payload, dict) or not payload.get("id"):
            return False

        signal = self._signals_by_event_id.get(payload["id"])
        if signal is None:
            return False

        self.apply_value(signal.key, parse_response(signal, payload))
        return True

    def set_connected(self, connected: bool):
        if self.snapshot.connected != connected:
            self.snapshot.connected = connected
            self._notify(StateChange())

    def set_connection_state(self, state: ConnectionState):
        self.connection_state = state
        self._notify(StateChange(connection_state=state))
