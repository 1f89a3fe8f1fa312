"""
pastelife - Main FastAPI application.
"""
import asyncio
import logging
from functools import partial
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from pastelife.config import Settings, settings as default_settings
from pastelife.database import PasteStore, create_store
from pastelife.errors import PasteError
from pastelife.ids import generate_id
from pastelife.routes import health, pastes
from pastelife.service import PasteService

logger = logging.getLogger(__name__)


async def sweep_expired(service: PasteService, interval: float):
    """Periodically delete dead pastes until cancelled."""
    while True:
        await asyncio.sleep(interval)
        try:
            await run_in_threadpool(service.purge_expired)
        except PasteError:
            logger.exception("Expired paste sweep failed")


def create_app(settings: Optional[Settings] = None, store: Optional[PasteStore] = None) -> FastAPI:
    """
    Build the application around an explicitly owned paste store.

    Args:
        settings: Settings to use; defaults to the environment-derived settings
        store: Store to inject; built from settings when omitted

    Returns:
        Configured FastAPI app
    """
    settings = settings or default_settings
    store = store or create_store(settings)

    app = FastAPI(
        title="pastelife",
        description="Short-lived text pastes with time and view limits",
        version="1.0.0",
        debug=settings.DEBUG,
    )
    app.state.settings = settings
    app.state.service = PasteService(
        store=store,
        base_url=settings.APP_DOMAIN,
        id_generator=partial(generate_id, settings.ID_LENGTH),
        max_attempts=settings.ID_MAX_ATTEMPTS,
    )

    # Add CORS middleware (optional, for cross-origin requests)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(pastes.router)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Invalid request bodies are client errors, answered with 400."""
        return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

    @app.on_event("startup")
    async def startup_event():
        """Startup event handler."""
        logger.info("pastelife application starting...")
        if store.using_fallback:
            logger.warning("DATABASE: Using IN-MEMORY storage (Redis not available)")
            logger.warning("   Data will NOT persist across server restarts!")
        else:
            logger.info(f"DATABASE: {type(store).__name__} ready")

        app.state.sweeper = None
        if settings.PURGE_INTERVAL_SECONDS > 0:
            logger.info(f"Sweeping expired pastes every {settings.PURGE_INTERVAL_SECONDS}s")
            app.state.sweeper = asyncio.create_task(
                sweep_expired(app.state.service, settings.PURGE_INTERVAL_SECONDS)
            )

    @app.on_event("shutdown")
    async def shutdown_event():
        """Shutdown event handler."""
        logger.info("pastelife application shutting down...")
        sweeper = getattr(app.state, "sweeper", None)
        if sweeper is not None:
            sweeper.cancel()
            try:
                await sweeper
            except asyncio.CancelledError:
                pass
        store.close()

    return app


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


configure_logging(default_settings.LOG_LEVEL)

# Module-level app for `uvicorn pastelife.main:app`
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "pastelife.main:app",
        host="0.0.0.0",
        port=8000,
        reload=default_settings.DEBUG,
    )
