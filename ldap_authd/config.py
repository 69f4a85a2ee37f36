"""Configuration module for the LDAP auth-check service."""

import logging
from functools import lru_cache

from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Server
    host: str = "localhost"
    port: int = 8888

    # Path the auth subrequest is sent to
    auth_endpoint: str = "/auth-proxy"

    # Realm announced in the WWW-Authenticate challenge
    realm: str = "Restricted"

    # Connect and receive timeout for every directory connection, in seconds
    ldap_timeout: float = 5.0

    # Bind as X-Ldap-BindDN before the user search instead of searching anonymously
    ldap_service_bind: bool = False

    # Logging
    log_level: str = "INFO"

    class Config:
        env_prefix = "LDAP_AUTHD_"
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
