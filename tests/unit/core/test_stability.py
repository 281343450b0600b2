# tests/unit/core/test_stability.py
"""Tests for the stability detector."""

from core.heatbooster.history import Sample
from core.heatbooster.stability import is_unstable


def samples(*points):
    return [Sample(float(t), float(v)) for t, v in points]


class TestTemperatureStability:
    """Test temperature jump and staleness detection."""

    def test_steady_history_is_stable(self):
        temps = samples((0, 20.0), (60, 20.1), (120, 20.2), (180, 20.3))

        assert is_unstable(temps, [], now=200) is False

    def test_fast_large_jump_is_unstable(self):
        """Test two points <120s apart differing by >0.4 °C.

        WHY: The linear-rate assumption breaks during transients.
        """
        temps = samples((0, 20.0), (60, 20.5))

        assert is_unstable(temps, [], now=70) is True

    def test_slow_large_change_is_stable(self):
        """Test that points more than 120s apart never flag on their own."""
        temps = samples((0, 20.0), (121, 21.0))

        assert is_unstable(temps, [], now=130) is False

    def test_jump_exactly_at_threshold_is_stable(self):
        temps = samples((0, 20.0), (30, 20.4))

        assert is_unstable(temps, [], now=40) is False

    def test_only_last_five_pairs_are_scanned(self):
        """Test that an old transient ages out of the scan window."""
        temps = samples((0, 18.0), (10, 20.0), (200, 20.1), (400, 20.2), (600, 20.3), (800, 20.4), (1000, 20.5))

        assert is_unstable(temps, [], now=1010) is False

    def test_jump_within_last_five_pairs_is_detected(self):
        temps = samples((200, 18.0), (210, 20.0), (400, 20.1), (600, 20.2), (800, 20.3), (1000, 20.4))

        assert is_unstable(temps, [], now=1010) is True

    def test_empty_history_is_unstable(self):
        assert is_unstable([], [], now=0) is True

    def test_stale_history_is_unstable(self):
        """Test that a latest sample older than 240s forces instability.

        WHY: Stale data is as untrustworthy as noisy data.
        """
        temps = samples((0, 20.0), (100, 20.1))

        assert is_unstable(temps, [], now=340) is False
        assert is_unstable(temps, [], now=341) is True


class TestFanStability:
    """Test fan step detection."""

    def test_fan_step_is_unstable(self):
        temps = samples((0, 20.0), (60, 20.1))
        fan = samples((0, 20.0), (30, 60.0))

        assert is_unstable(temps, fan, now=70) is True

    def test_small_fan_change_is_stable(self):
        temps = samples((0, 20.0), (60, 20.1))
        fan = samples((0, 40.0), (30, 60.0))

        assert is_unstable(temps, fan, now=70) is False

    def test_slow_fan_step_is_stable(self):
        temps = samples((0, 20.0), (200, 20.1))
        fan = samples((0, 20.0), (150, 80.0))

        assert is_unstable(temps, fan, now=210) is False
