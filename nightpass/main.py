"""
FastAPI application for NightPass.
Serves health, readiness, stats and metrics; the bot transport runs separately.
"""
from fastapi import FastAPI

from nightpass.api.routes import health, stats
from nightpass.core.logging import configure_logging
from nightpass.utils.metrics import router as metrics_router


configure_logging()

app = FastAPI(
    title="NightPass API",
    description="Operational endpoints for the NightPass entitlement engine",
    version="1.0.0",
)

app.include_router(health.router, tags=["health"])
app.include_router(stats.router, tags=["stats"])
app.include_router(metrics_router)
