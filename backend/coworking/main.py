# backend/coworking/main.py
"""
ASGI entry point: ``uvicorn coworking.main:app``.

The app serves the JSON API under ``/api``, Prometheus metrics at
``/metrics`` and uploaded images under ``/uploads``. Unless disabled, a
job worker thread runs for the lifetime of the process.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
import logging
import threading
from typing import AsyncIterator

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .core.config import settings
from .core.constants import API_DESCRIPTION, API_TITLE, API_VERSION, BRAND_NAME
from .errors import register_error_handlers
from .middleware.prometheus_middleware import PrometheusMiddleware
from .routes import admin, auth, bookings, health, payments, user, workspaces
from .tasks.background_jobs import background_jobs_worker_sync

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

API_ROUTERS = (
    auth.router,
    workspaces.router,
    bookings.router,
    payments.router,
    user.router,
    admin.router,
    health.router,
)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info(f"{BRAND_NAME} API starting ({settings.environment})")
    run_worker = settings.scheduler_enabled and not settings.is_testing
    stop = threading.Event()
    worker = (
        asyncio.create_task(asyncio.to_thread(background_jobs_worker_sync, stop))
        if run_worker
        else None
    )
    try:
        yield
    finally:
        logger.info(f"{BRAND_NAME} API stopping")
        stop.set()
        if worker is not None:
            try:
                await worker
            except Exception:
                logger.exception("Job worker exited with an error")


def create_app() -> FastAPI:
    application = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=API_VERSION,
        lifespan=app_lifespan,
    )
    register_error_handlers(application)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_middleware(PrometheusMiddleware)

    api = APIRouter(prefix="/api")
    for router in API_ROUTERS:
        api.include_router(router)
    application.include_router(api)
    application.include_router(health.metrics_router)

    # check_dir=False: the directory may not exist until the first upload
    application.mount(
        "/uploads",
        StaticFiles(directory=settings.upload_dir, check_dir=False),
        name="uploads",
    )
    return application


app = create_app()
