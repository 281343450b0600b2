"""
Dashboard Tracker

Turns snapshot updates into what the dashboard shows: per-signal history
for the charts, the room-minus-target delta and the time-to-target
projection.
"""

import logging
import math
import time
from collections.abc import Callable
from typing import Any

from .history import SignalHistory
from .models import Projection, StateChange
from .settings import ApplianceSettings
from .state_store import ApplianceStateStore
from .trend import classify_delta, project_time_to_target

logger = logging.getLogger(__name__)


class DashboardTracker:
    """Feeds the state store into history buffers and the trend estimator."""

    def __init__(
        self,
        store: ApplianceStateStore,
        settings: ApplianceSettings,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.settings = settings
        self.clock = clock

        self.histories: dict[str, SignalHistory] = {
            key: SignalHistory(key, history_settings)
            for key, history_settings in settings.history.items()
            if key in store.signals
        }

        self._unsubscribe: Callable[[], None] | None = None

    def attach(self):
        """Start recording on every store update."""
        if self._unsubscribe is None:
            self._unsubscribe = self.store.add_listener(self._on_change)

    def detach(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_change(self, change: StateChange):
        self.update()

    def update(self, now: float | None = None):
        """Record current snapshot values into their histories."""
        now = self.clock() if now is None else now
        snapshot = self.store.snapshot
        for key, history in self.histories.items():
            history.record(getattr(snapshot, key), now)

    def _buffer(self, key: str):
        history = self.histories.get(key)
        return history.buffer if history else []

    def projection(self, now: float | None = None) -> Projection:
        """Current time-to-target projection."""
        now = self.clock() if now is None else now
        return project_time_to_target(
            self.store.snapshot,
            room_history=self._buffer("room"),
            fan_history=self._buffer("fan"),
            heater_history=self._buffer("heater"),
            now=now,
            auto_mode=self.settings.auto_mode,
            off_mode=self.settings.off_mode,
        )

    def state(self) -> dict[str, Any]:
        """Snapshot plus derived values for display."""
        snapshot = self.store.snapshot
        delta = snapshot.delta
        return {
            **snapshot.to_dict(),
            "connection_state": self.store.connection_state.value,
            "delta": round(delta, 2) if math.isfinite(delta) else None,
            "delta_class": classify_delta(delta),
        }

    def history(self, key: str) -> list[dict]:
        """Samples of one tracked signal.

        Raises:
            KeyError: If no history is kept for the signal
        """
        return self.histories[key].buffer.as_dicts()
