"""Heatbooster live dashboard package."""

# Define public API
__all__ = [
    "ApplianceSettings",
    "load_settings",
    "ApplianceSnapshot",
    "ConnectionState",
    "ApplianceClient",
    "ApplianceStateStore",
    "SyncLayer",
    "DashboardTracker",
]

# Import settings
from .settings import ApplianceSettings, load_settings

# Import models
from .models import ApplianceSnapshot, ConnectionState

# Import appliance client
from .appliance_client import ApplianceClient

# Import live state
from .state_store import ApplianceStateStore
from .sync import SyncLayer
from .dashboard import DashboardTracker
