# tests/unit/core/test_models.py
"""Tests for signal definitions, value parsing and the snapshot."""

import math

import pytest

from core.heatbooster.models import (
    TEXT_PLACEHOLDER,
    ApplianceSnapshot,
    SignalKind,
    build_signals,
    parse_number,
    parse_response,
)
from core.heatbooster.settings import ApplianceSettings


class TestParseNumber:
    """Test browser-compatible numeric parsing."""

    @pytest.mark.parametrize("raw,expected", [
        (21.5, 21.5),
        (40, 40.0),
        ("21.5", 21.5),
        ("21.5 °C", 21.5),
        ("  -3.25abc", -3.25),
        (".5", 0.5),
        ("1e2 %", 100.0),
    ])
    def test_parses_numeric_prefix(self, raw, expected):
        assert parse_number(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "NA", "°C 21", True, [], {}, math.inf, math.nan])
    def test_unparseable_is_nan(self, raw):
        assert math.isnan(parse_number(raw))


class TestParseResponse:
    """Test extraction of values from REST and event payloads."""

    @pytest.fixture
    def signals(self):
        return build_signals(ApplianceSettings())

    def test_numeric_prefers_state(self, signals):
        body = {"id": "sensor-raumtemperatur", "state": "21.4 °C", "value": 21.37}

        assert parse_response(signals["room"], body) == 21.4

    def test_numeric_falls_back_to_value(self, signals):
        assert parse_response(signals["room"], {"value": 21.37}) == 21.37
        assert parse_response(signals["room"], {"state": "NA", "value": 21.37}) == 21.37

    def test_numeric_without_fields_is_unknown(self, signals):
        assert math.isnan(parse_response(signals["fan"], {"id": "sensor-luefterleistung"}))

    def test_text_reads_state(self, signals):
        assert parse_response(signals["status"], {"state": "k=1.05"}) == "k=1.05"
        assert parse_response(signals["mode"], {"state": "auto", "value": 2}) == "auto"

    def test_text_without_state_is_unknown(self, signals):
        assert parse_response(signals["status"], {}) is None
        assert parse_response(signals["mode"], {"state": ""}) is None


class TestSignals:
    """Test the configured signal catalogue."""

    def test_default_signals(self):
        signals = build_signals(ApplianceSettings())

        assert set(signals) == {"mode", "manual", "room", "target", "fan", "heater", "proxy", "status"}
        assert signals["mode"].event_id == "select-betriebsmodus"
        assert signals["manual"].path == "number/man_lueftergeschwindigkeit"
        assert signals["status"].kind is SignalKind.TEXT

    def test_optional_signals_can_be_disabled(self):
        settings = ApplianceSettings.from_dict({"signalIds": {"heater": None, "proxy": ""}})

        assert "heater" not in build_signals(settings)
        assert "proxy" not in build_signals(settings)


class TestSnapshot:
    """Test snapshot defaults and derived values."""

    def test_defaults_are_unknown(self):
        snapshot = ApplianceSnapshot()

        assert snapshot.mode == "off"
        assert math.isnan(snapshot.room)
        assert snapshot.status == TEXT_PLACEHOLDER
        assert snapshot.connected is False
        assert math.isnan(snapshot.delta)

    def test_delta_is_room_minus_target(self):
        assert ApplianceSnapshot(room=20.0, target=22.0).delta == -2.0

    def test_to_dict_replaces_nan(self):
        data = ApplianceSnapshot(room=20.0).to_dict()

        assert data["room"] == 20.0
        assert data["target"] is None
        assert data["mode"] == "off"
