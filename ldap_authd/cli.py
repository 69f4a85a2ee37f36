"""Command line entry point."""

import argparse
import logging

import uvicorn

from ldap_authd.config import Settings, get_settings
from ldap_authd.main import create_app

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None, defaults: Settings | None = None) -> argparse.Namespace:
    defaults = defaults or get_settings()

    parser = argparse.ArgumentParser(
        description="Auth subrequest service verifying Basic credentials against LDAP"
    )
    parser.add_argument(
        "--hostname",
        default=defaults.host,
        help="Host to bind",
    )
    parser.add_argument(
        "-p", "--port",
        type=int,
        default=defaults.port,
        help="Port to bind",
    )
    parser.add_argument(
        "--auth-endpoint",
        default=defaults.auth_endpoint,
        help="The endpoint the authentication service should respond on",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        default=defaults.log_level.upper(),
    )
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace, defaults: Settings | None = None) -> Settings:
    """Apply command line overrides on top of the environment settings."""
    defaults = defaults or get_settings()
    return defaults.model_copy(
        update={
            "host": args.hostname,
            "port": args.port,
            "auth_endpoint": args.auth_endpoint,
            "log_level": args.log_level,
        }
    )


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    settings = build_settings(args)

    app = create_app(settings)
    logger.info(f"Listening on {settings.host}:{settings.port}{settings.auth_endpoint}")

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
