"""
Heatbooster Custom Exceptions

Simple exception hierarchy for error handling.
"""


class HeatboosterError(Exception):
    """Base exception for Heatbooster."""

    pass


class ConfigurationError(HeatboosterError):
    """Configuration is invalid."""

    pass


class ApplianceConnectionError(HeatboosterError):
    """Cannot reach the appliance or the request failed."""

    pass


class SensorError(HeatboosterError):
    """Sensor data is unavailable or invalid."""

    pass
