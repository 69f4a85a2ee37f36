"""Health check endpoint."""

import logging

from fastapi import APIRouter

from ldap_authd.config import VERSION
from ldap_authd.models import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Health check endpoint.
    Does not contact the directory.
    """
    logger.debug("Health check requested")

    return HealthResponse(status="ok", version=VERSION)
