"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from smart_dca.api import positions, system, vault
from smart_dca.config import settings
from smart_dca.container import Services, build_services
from smart_dca.engine.errors import StorageFailure
from smart_dca.services.sui_client import VaultError
from smart_dca.utils.logging import setup_logging

logger = logging.getLogger(__name__)


async def _vault_error(request: Request, exc: VaultError):
    logger.warning(f"Vault read failed on {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"detail": f"Vault unavailable: {exc}"})


async def _storage_failure(request: Request, exc: StorageFailure):
    logger.error(f"Storage failure on {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Storage unavailable"})


def create_app(services: Services | None = None, start_background: bool = True) -> FastAPI:
    """Build the app. start_background=False skips the scheduler and the Telegram bot."""
    services = services or build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown events."""
        setup_logging(services.settings.log_level)
        services.store.init()

        if start_background:
            services.scheduler.start()
            if services.bot:
                try:
                    await services.bot.start()
                except Exception as e:
                    logger.error(f"Telegram bot failed to start, continuing without it: {e}")
                    services.bot = None

        yield

        if services.bot:
            await services.bot.stop()
        services.scheduler.stop()
        await services.close()

    app = FastAPI(
        title="Smart DCA",
        description="DCA with yield on Sui: position lifecycle, scheduler and vault bookkeeping",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=services.settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(VaultError, _vault_error)
    app.add_exception_handler(StorageFailure, _storage_failure)

    # Mount routers
    app.include_router(positions.router)
    app.include_router(vault.router)
    app.include_router(system.router)
    return app


app = create_app()
