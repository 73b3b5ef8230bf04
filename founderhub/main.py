"""FastAPI application entry point."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from founderhub.auth.routes import router as auth_router
from founderhub.cloud.broker import reset_authorization_broker
from founderhub.cloud.routes import callback_router
from founderhub.cloud.routes import router as cloud_router
from founderhub.config import get_settings
from founderhub.database import close_db, init_db
from founderhub.drive.routes import router as drive_router
from founderhub.settings.routes import router as admin_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Startup
    logger.info("Starting application...")
    settings = get_settings()
    logger.info("App: %s, Environment: %s", settings.app_name, settings.app_env)

    logger.info("Initializing database...")
    await init_db()
    logger.info("Database initialized successfully")

    yield

    # Shutdown
    logger.info("Shutting down application...")

    # Abandon authorizations still waiting on a popup
    reset_authorization_broker()

    await close_db()
    logger.info("Database connections closed")


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description=(
            "Dashboard backend for startup founders. "
            "Connects Google Workspace accounts through a popup OAuth flow "
            "and keeps the resulting credentials per user."
        ),
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [settings.app_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request scheme behind a TLS-terminating proxy; the callback relay
    # compares the request origin with APP_ORIGIN
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=settings.forwarded_allow_ips)

    # Include routers
    app.include_router(auth_router)
    app.include_router(callback_router)
    app.include_router(cloud_router)
    app.include_router(drive_router)
    app.include_router(admin_router)

    @app.get("/", tags=["root"])
    async def root() -> dict:
        """Root endpoint with API information."""
        return {
            "name": settings.app_name,
            "version": "0.1.0",
            "status": "running",
            "docs_url": "/docs",
            "redoc_url": "/redoc",
        }

    @app.get("/health", tags=["health"])
    async def health_check() -> dict:
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


# Create application instance
app = create_app()

if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "founderhub.main:app",
        host=settings.host,
        port=settings.port,
        forwarded_allow_ips=settings.forwarded_allow_ips,
        reload=settings.debug,
    )
