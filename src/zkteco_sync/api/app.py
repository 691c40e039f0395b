"""FastAPI application factory."""
from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from zkteco_sync import __version__
from zkteco_sync.api.middleware import RequestLoggingMiddleware
from zkteco_sync.api.routes import attendance, devices, sync, users
from zkteco_sync.config import get_settings


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Start scheduler on startup, stop on shutdown."""
    settings = get_settings()
    if settings.SCHEDULER_ENABLED:
        from zkteco_sync.core.scheduler import start_scheduler, stop_scheduler

        start_scheduler()
        yield
        stop_scheduler()
    else:
        yield


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="ZKTeco Sync API",
        description="Read device info, users and attendance from ZKTeco terminals and sync them",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging
    app.add_middleware(RequestLoggingMiddleware)

    # Routes
    app.include_router(devices.router, prefix="/api/v1", tags=["Devices"])
    app.include_router(users.router, prefix="/api/v1", tags=["Users"])
    app.include_router(attendance.router, prefix="/api/v1", tags=["Attendance"])
    app.include_router(sync.router, prefix="/api/v1", tags=["Sync"])

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "service": "zkteco-sync",
            "version": __version__,
            "timestamp": datetime.now().isoformat(),
        }

    @app.get("/metrics")
    async def metrics():
        from zkteco_sync.core.cache import get_cache
        from zkteco_sync.core.scheduler import get_scheduler
        from zkteco_sync.zk.pool import get_pool

        scheduler = get_scheduler()

        return {
            "service": "zkteco-sync",
            "version": __version__,
            "devices_configured": len(get_pool().device_keys()),
            "scheduler_running": scheduler is not None and scheduler.running,
            "device_info_cache": get_cache().get_status(),
            "timestamp": datetime.now().isoformat(),
        }

    return app
