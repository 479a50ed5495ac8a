"""
app.py — FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires all services, registers routers, and runs startup initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from borrowdesk.controllers.booking_controller import router as booking_router
from borrowdesk.repository.data_repository import DataRepository
from borrowdesk.services.inventory_service import InventoryService
from borrowdesk.services.role_service import RolePolicyService
from borrowdesk.utils.clock import get_clock
from borrowdesk.utils.config import Settings, get_settings
from borrowdesk.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Instantiates all services with explicit dependency injection via app.state.
    """
    settings = settings or get_settings()

    # --- Repository (SQLite snapshot store) ---
    repository = DataRepository(settings)

    # --- Services ---
    role_service = RolePolicyService(repository=repository, settings=settings)
    inventory_service = InventoryService(
        repository=repository,
        role_service=role_service,
        settings=settings,
        clock=get_clock(),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.include_router(booking_router)

    app.state.settings = settings
    app.state.repository = repository
    app.state.role_service = role_service
    app.state.inventory_service = inventory_service

    return app


def _startup(app: FastAPI) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    Schema must exist before seeding, and stocks are loaded last so that
    elapsed repairs are finalized before the first request.
    """
    settings: Settings = app.state.settings
    repository: DataRepository = app.state.repository
    inventory_service: InventoryService = app.state.inventory_service

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    if settings.seed_demo_inventory:
        logger.info("Startup: seeding demo inventory (skipped if catalog not empty)")
        repository.seed_demo_inventory()

    logger.info("Startup: loading stocks")
    stocks = inventory_service.load_all()

    logger.info(
        "Startup complete: %s stock(s) loaded, today is %s",
        len(stocks),
        inventory_service.clock.today().isoformat(),
    )


# Module-level app object for uvicorn
app = create_app()
