"""
Heatbooster Backend Application

FastAPI application serving the live appliance state to the dashboard.
"""

import os
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from backend import api, log_config  # noqa: F401
from backend.api import router as api_router
from core.heatbooster.appliance_client import ApplianceClient
from core.heatbooster.dashboard import DashboardTracker
from core.heatbooster.models import build_signals
from core.heatbooster.settings import load_settings
from core.heatbooster.state_store import ApplianceStateStore
from core.heatbooster.sync import SyncLayer


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan manager for startup/shutdown."""
    # Startup
    logger.info("Heatbooster starting")

    # DASHBOARD_URL may carry ?esp=<appliance> like the browser page does
    settings = load_settings(os.environ.get("DASHBOARD_URL"))
    logger.info(f"Appliance: {settings.base_url}")

    client = ApplianceClient(settings.base_url, timeout=settings.request_timeout_seconds)
    store = ApplianceStateStore(build_signals(settings))

    tracker = DashboardTracker(store, settings)
    tracker.attach()

    sync_layer = SyncLayer(client, store, settings)
    await sync_layer.start()

    # Make services available to API
    api.sync_layer = sync_layer
    api.tracker = tracker

    yield

    # Shutdown
    logger.info("Heatbooster shutting down")
    await sync_layer.stop()
    tracker.detach()
    client.close()
    api.sync_layer = None
    api.tracker = None


# Create FastAPI application
app = FastAPI(
    title="Heatbooster API",
    description="Live telemetry and time-to-target projection for the Heizungsbooster",
    version=api.APP_VERSION,
    lifespan=lifespan,
)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Handle all unhandled exceptions gracefully."""
    tb_str = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))

    logger.error(f"Unhandled exception: {exc}")
    logger.error(f"Request path: {request.url.path}")
    logger.error(f"Stack trace:\n{tb_str}")

    return JSONResponse(
        status_code=500,
        content={
            "detail": str(exc),
            "type": type(exc).__name__,
            "message": "Internal server error",
        },
    )


# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)


# For development
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8080)
