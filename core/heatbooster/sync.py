"""
Live State Synchronization

Keeps the ApplianceStateStore fresh through the appliance's event stream,
falling back to periodic polling while the stream is unavailable.

    CONNECTING --stream open--------------> LIVE
    CONNECTING --bootstrap/stream failed--> DEGRADED
    LIVE       --stream error/close/stall-> DEGRADED
    DEGRADED   --stream reopened----------> LIVE

Only one of {event stream, poll task} feeds the store at a time. Blocking
requests calls run in worker threads; every store mutation happens on the
event loop.
"""

import asyncio
import json
import logging
import math
from collections.abc import Callable
from typing import Any

from .appliance_client import ApplianceClient, EventStream
from .exceptions import HeatboosterError
from .models import ConnectionState, Signal
from .settings import ApplianceSettings
from .state_store import ApplianceStateStore

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    ConnectionState.CONNECTING: {ConnectionState.LIVE, ConnectionState.DEGRADED},
    ConnectionState.LIVE: {ConnectionState.DEGRADED},
    ConnectionState.DEGRADED: {ConnectionState.LIVE},
}


class SyncLayer:
    """
    Background service keeping the appliance snapshot up to date.

    Reads every signal once at startup, then subscribes to the event stream.
    When the stream fails the layer polls every `poll_interval_seconds` and
    retries the stream every `reconnect_interval_seconds`.
    """

    def __init__(
        self,
        client: ApplianceClient,
        store: ApplianceStateStore,
        settings: ApplianceSettings,
    ):
        self.client = client
        self.store = store
        self.settings = settings
        self.signals: dict[str, Signal] = store.signals

        self._push_task: asyncio.Task | None = None
        self._poll_task: asyncio.Task | None = None
        self._stream: EventStream | None = None
        self._write_tasks: set[asyncio.Task] = set()
        self._running = False

    @property
    def state(self) -> ConnectionState:
        return self.store.connection_state

    @property
    def running(self) -> bool:
        return self._running

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def start(self):
        """Bootstrap the snapshot and start the event stream subscription."""
        if self._running:
            logger.warning("Sync layer already running")
            return

        self._running = True
        logger.info(f"🔌 Sync layer starting for {self.settings.base_url}")

        if not await self._bootstrap():
            self._enter_degraded()

        self._push_task = asyncio.create_task(self._run_push())

    async def stop(self):
        """Cancel both transports and any pending writes."""
        if not self._running:
            return

        self._running = False
        tasks = [t for t in (self._push_task, self._poll_task, *self._write_tasks) if t]
        for task in tasks:
            task.cancel()
        self._close_stream()

        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._push_task = None
        self._poll_task = None
        logger.info("🔌 Sync layer stopped")

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _transition(self, new_state: ConnectionState) -> bool:
        old_state = self.state
        if new_state is old_state:
            return False
        if new_state not in ALLOWED_TRANSITIONS[old_state]:
            raise RuntimeError(f"Invalid connection transition {old_state.value} -> {new_state.value}")

        logger.info(f"Connection {old_state.value} -> {new_state.value}")
        self.store.set_connection_state(new_state)
        return True

    def _enter_live(self):
        self._transition(ConnectionState.LIVE)
        self._stop_polling()
        self.store.set_connected(True)

    def _enter_degraded(self):
        if self._transition(ConnectionState.DEGRADED):
            self.store.set_connected(False)
        self._start_polling()

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    async def _bootstrap(self) -> bool:
        """Read every signal once. All reads must succeed."""
        keys = list(self.signals)
        try:
            results = await asyncio.gather(
                *(asyncio.to_thread(self.client.read_signal, self.signals[key]) for key in keys)
            )
        except HeatboosterError as e:
            logger.warning(f"Initial read failed, falling back to polling: {e}")
            return False

        self.store.apply_values(dict(zip(keys, results)), connected=True)
        logger.info(f"Initial read of {len(keys)} signal(s) complete")
        return True

    # ------------------------------------------------------------------
    # Push transport
    # ------------------------------------------------------------------

    async def _run_push(self):
        """Open and consume the event stream, reconnecting while degraded."""
        while self._running:
            try:
                stream = await self._open_stream()
            except HeatboosterError as e:
                logger.warning(f"Event stream unavailable: {e}")
                self._enter_degraded()
            else:
                self._stream = stream
                self._enter_live()
                try:
                    await self._consume(stream)
                    logger.warning("Event stream closed by appliance")
                except HeatboosterError as e:
                    logger.warning(f"Event stream failed: {e}")
                finally:
                    self._close_stream()
                self._enter_degraded()

            if not self.settings.reconnect_interval_seconds:
                logger.info("Event stream reconnect disabled, staying on polling")
                return
            await asyncio.sleep(self.settings.reconnect_interval_seconds)

    async def _open_stream(self) -> EventStream:
        opening = asyncio.ensure_future(
            asyncio.to_thread(self.client.open_event_stream, self.settings.stall_timeout_seconds)
        )
        try:
            return await asyncio.shield(opening)
        except asyncio.CancelledError:
            # The worker thread keeps running; close whatever it opens
            opening.add_done_callback(_close_opened_stream)
            raise

    async def _consume(self, stream: EventStream):
        events = iter(stream)
        while True:
            event = await asyncio.to_thread(next, events, None)
            if event is None:
                return
            if event.event == "state":
                self._handle_state_event(event.data)

    def _handle_state_event(self, data: str):
        try:
            payload = json.loads(data)
        except ValueError:
            logger.debug(f"Dropping malformed event payload: {data!r}")
            return
        self.store.apply_event(payload)

    def _close_stream(self):
        if self._stream is not None:
            try:
                self._stream.close()
            except Exception as e:
                logger.debug(f"Error closing event stream: {e}")
            self._stream = None

    # ------------------------------------------------------------------
    # Poll fallback
    # ------------------------------------------------------------------

    def _start_polling(self):
        if self.polling or not self._running:
            return
        self._poll_task = asyncio.create_task(self._run_polling())

    def _stop_polling(self):
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None
            logger.info("Polling fallback stopped")

    async def _run_polling(self):
        interval = self.settings.poll_interval_seconds
        logger.info(f"Polling fallback started (every {interval}s)")

        loop = asyncio.get_running_loop()
        next_cycle = loop.time()
        while True:
            try:
                await self.poll_once()
            except Exception as e:
                logger.error(f"Error in poll cycle: {e}", exc_info=True)

            # Fixed period from cycle start; an overrun starts the next cycle at once
            next_cycle = max(next_cycle + interval, loop.time())
            await asyncio.sleep(next_cycle - loop.time())

    async def poll_once(self):
        """Read every signal in parallel; failed reads keep their old value."""
        await asyncio.gather(*(self._poll_signal(signal) for signal in self.signals.values()))
        self.store.set_connected(True)

    async def _poll_signal(self, signal: Signal):
        try:
            value = await asyncio.to_thread(self.client.read_signal, signal)
        except HeatboosterError as e:
            logger.debug(f"Poll read failed for {signal.key}: {e}")
            return

        if value is None or (isinstance(value, float) and math.isnan(value)):
            return
        self.store.apply_value(signal.key, value)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def set_mode(self, mode: str) -> None:
        """Ask the appliance to switch mode. The result arrives via push/poll."""
        if mode not in self.settings.modes:
            raise ValueError(f"Unknown mode '{mode}', expected one of {self.settings.modes}")
        self._send_command(self.client.set_option, self.signals["mode"], mode)

    def set_manual_fan(self, value: float) -> None:
        """Ask the appliance to change the manual fan target (percent)."""
        value = float(value)
        if not math.isfinite(value):
            raise ValueError(f"Manual fan target must be a finite number, got {value}")
        self._send_command(self.client.set_value, self.signals["manual"], value)

    def _send_command(self, func: Callable[..., None], *args: Any):
        task = asyncio.create_task(self._run_command(func, *args))
        self._write_tasks.add(task)
        task.add_done_callback(self._write_tasks.discard)

    async def _run_command(self, func: Callable[..., None], *args: Any):
        try:
            await asyncio.to_thread(func, *args)
        except HeatboosterError as e:
            logger.debug(f"Command {func.__name__} failed: {e}")


def _close_opened_stream(opening: asyncio.Future):
    if opening.cancelled() or opening.exception() is not None:
        return
    logger.debug("Closing event stream opened after shutdown")
    opening.result().close()
