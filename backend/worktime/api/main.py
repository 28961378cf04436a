import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..auth.jwt_handler import JWTHandler
from ..config import Settings
from ..database.connection import StoreContext, get_store_context
from ..errors import WorktimeError
from .routes import screenshots, sync, time_logs, timesheets

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the API application.

    The store context is created and started when the app starts and stopped
    when it shuts down. Settings are read from the environment when omitted.
    """
    settings = (settings or Settings.from_env()).validate_for_startup()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting up Worktime API ({settings.db_type} store, {settings.environment})...")
        context = StoreContext(settings)
        try:
            await context.start()
        except WorktimeError as e:
            logger.error(f"Failed to initialize store: {e}")
            raise
        app.state.store_context = context
        logger.info("Store initialized successfully")
        try:
            yield
        finally:
            logger.info("Shutting down Worktime API...")
            await context.stop()
            app.state.store_context = None

    app = FastAPI(
        title="Worktime API",
        description="Multi-tenant time tracking data layer with approval workflow and cloud sync reads.",
        version=API_VERSION,
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Time Logs", "description": "Time entry recording and listing"},
            {"name": "Timesheets", "description": "Manager approval workflow"},
            {"name": "Screenshots", "description": "Screenshot metadata"},
            {"name": "Sync", "description": "Plaintext reads for cloud synchronization"},
            {"name": "Health", "description": "Service status"},
        ],
    )
    app.state.settings = settings
    app.state.jwt_handler = JWTHandler.from_settings(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(WorktimeError)
    async def worktime_exception_handler(request: Request, exc: WorktimeError):
        if exc.internal:
            logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code,
                            content=exc.payload(expose_internal=not settings.is_production))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler for unhandled errors."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"}
        )

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """
        Health check endpoint.

        Reports the active store and whether it answers a trivial query.
        """
        context = get_store_context(request)
        try:
            await context.store.query("SELECT 1")
        except WorktimeError as e:
            logger.error(f"Health check failed: {e}")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Service unhealthy - store query failed"
            )
        return {"status": "healthy", "version": API_VERSION, "store": context.store.name}

    app.include_router(time_logs.router, prefix="/api/v1")
    app.include_router(timesheets.router, prefix="/api/v1")
    app.include_router(screenshots.router, prefix="/api/v1")
    app.include_router(sync.router, prefix="/api/v1")

    return app


def main() -> None:
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    uvicorn.run(
        "worktime.api.main:create_app",
        factory=True,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        log_level="info",
    )


if __name__ == "__main__":
    main()
