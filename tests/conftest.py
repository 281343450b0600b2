# tests/conftest.py
"""Shared pytest fixtures for Heatbooster tests.

Provides fast transport settings and a healthy in-memory appliance so
the sync layer can be exercised without a network.
"""

import asyncio
import time

import pytest

from core.heatbooster.models import build_signals
from core.heatbooster.settings import ApplianceSettings
from core.heatbooster.state_store import ApplianceStateStore
from tests.fakes import FakeApplianceClient


# ----------------------------------------------------------------
# Configuration fixtures
# ----------------------------------------------------------------
@pytest.fixture
def settings() -> ApplianceSettings:
    """Settings with fast polling and push reconnects disabled."""
    return ApplianceSettings(
        base_url="http://appliance.test",
        poll_interval_seconds=0.01,
        stall_timeout_seconds=1.0,
        reconnect_interval_seconds=0,
    )


@pytest.fixture
def signals(settings):
    return build_signals(settings)


@pytest.fixture
def store(signals) -> ApplianceStateStore:
    return ApplianceStateStore(signals)


# ----------------------------------------------------------------
# Appliance fixtures
# ----------------------------------------------------------------
@pytest.fixture
def appliance_values() -> dict:
    """A healthy appliance in auto mode, warming towards 22 °C."""
    return {
        "mode": "auto",
        "manual": 40.0,
        "room": 20.0,
        "target": 22.0,
        "fan": 50.0,
        "heater": 45.0,
        "proxy": 24.0,
        "status": "k=1.02",
    }


@pytest.fixture
def fake_client(appliance_values) -> FakeApplianceClient:
    return FakeApplianceClient(values=appliance_values)


# ----------------------------------------------------------------
# Async helpers
# ----------------------------------------------------------------
@pytest.fixture
def wait_until():
    """Await a condition, failing the test after a timeout."""

    async def _wait_until(condition, timeout: float = 2.0):
        deadline = time.monotonic() + timeout
        while not condition():
            if time.monotonic() > deadline:
                pytest.fail("Condition not met before timeout")
            await asyncio.sleep(0.005)

    return _wait_until
