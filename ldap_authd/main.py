"""FastAPI application entry point."""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ldap_authd.config import VERSION, Settings, get_settings
from ldap_authd.routes import auth, health

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    """Configure root logging to stdout."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application for the given settings."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting LDAP auth-check service...")
        logger.info(f"Server configured: {settings.host}:{settings.port}")
        logger.info(f"Auth endpoint: {settings.auth_endpoint}")
        logger.info(f"Directory timeout: {settings.ldap_timeout}s")

        yield

        logger.info("Shutting down LDAP auth-check service...")

    app = FastAPI(
        title="LDAP Auth Check",
        description="Auth subrequest endpoint verifying Basic credentials against LDAP",
        version=VERSION,
        lifespan=lifespan,
    )

    app.include_router(health.router)
    app.include_router(auth.create_router(settings))

    return app
