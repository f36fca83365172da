"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the repository and services, registers routers, and runs startup
initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from backend.controllers.notification_controller import router as notification_router
from backend.controllers.routine_controller import router as routine_router
from backend.repository.routine_repository import RoutineRepository
from backend.services.arbitration_service import RoutineArbitrationService
from backend.services.notification_service import NotificationService
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Every service receives the same repository so the Ledger, Queue and
    notification sink share one snapshot. Dependencies live on app.state.
    """
    settings = settings or get_settings()

    # --- Repository (in-memory snapshot + optional SQLite mirror) ---
    repository = RoutineRepository(settings)

    # --- Services ---
    arbitration_service = RoutineArbitrationService(
        repository=repository,
        settings=settings,
    )
    notification_service = NotificationService(repository=repository)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.include_router(routine_router)
    app.include_router(notification_router)

    app.state.settings = settings
    app.state.repository = repository
    app.state.arbitration_service = arbitration_service
    app.state.notification_service = notification_service

    return app


def startup(app: FastAPI) -> None:
    """Create the mirror schema, restore saved state, and seed entities once."""
    settings: Settings = app.state.settings
    repository: RoutineRepository = app.state.repository

    repository.initialize_database()
    repository.load_from_database()
    if settings.seed_demo_data:
        repository.seed_demo_data()
    logger.info(
        "System startup completed | persistence=%s | conflict_policy=%s",
        repository.persistence_enabled,
        settings.conflict_policy,
    )


app = create_app()
