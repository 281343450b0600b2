"""
Heatbooster API Endpoints
"""

from fastapi import APIRouter, HTTPException
from loguru import logger
from pydantic import BaseModel, Field

from core.heatbooster.dashboard import DashboardTracker
from core.heatbooster.sync import SyncLayer

APP_VERSION = "0.1.0"

router = APIRouter()

# Set by app.py during startup
sync_layer: SyncLayer | None = None
tracker: DashboardTracker | None = None


class SetModeRequest(BaseModel):
    """Request body for switching the operating mode."""
    mode: str


class SetManualFanRequest(BaseModel):
    """Request body for the manual fan target."""
    value: float = Field(ge=0, le=100)


def _require_running() -> tuple[SyncLayer, DashboardTracker]:
    if sync_layer is None or tracker is None or not sync_layer.running:
        raise HTTPException(status_code=503, detail="Sync layer not running")
    return sync_layer, tracker


@router.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": "Heatbooster",
        "version": APP_VERSION,
        "connection_state": sync_layer.state.value if sync_layer else None,
    }


@router.get("/api/state")
async def get_state():
    """Current appliance snapshot with delta and connection state."""
    _, dashboard = _require_running()
    return dashboard.state()


@router.get("/api/projection")
async def get_projection():
    """Time-to-target projection."""
    _, dashboard = _require_running()
    return dashboard.projection().to_dict()


@router.get("/api/history/{signal}")
async def get_history(signal: str):
    """Recorded samples of one signal for charting."""
    _, dashboard = _require_running()
    try:
        samples = dashboard.history(signal)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"No history for signal: {signal}")
    return {"signal": signal, "samples": samples}


@router.post("/api/mode")
async def set_mode(request: SetModeRequest):
    """Switch operating mode. The new mode shows up once the appliance reports it."""
    layer, _ = _require_running()
    try:
        layer.set_mode(request.mode)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    logger.info(f"Requested mode change to '{request.mode}'")
    return {"status": "sent", "mode": request.mode}


@router.post("/api/manual-fan")
async def set_manual_fan(request: SetManualFanRequest):
    """Set the manual fan target in percent."""
    layer, _ = _require_running()
    layer.set_manual_fan(request.value)

    logger.info(f"Requested manual fan target {request.value}%")
    return {"status": "sent", "value": request.value}
