"""Auth subrequest endpoint."""

import asyncio
import logging
from typing import Callable, Mapping

from fastapi import APIRouter, Request, Response, status
from starlette.types import Receive

from ldap_authd.config import Settings
from ldap_authd.credentials import extract_credentials, validate_auth_header
from ldap_authd.directory import DirectoryVerifier, extract_directory_config
from ldap_authd.errors import InvalidHeader, MissingHeader, VerifyFailure
from ldap_authd.models import Credentials, VerificationOutcome

logger = logging.getLogger(__name__)

VerifierFactory = Callable[..., DirectoryVerifier]


def unauthorized_response(realm: str) -> Response:
    """401 with the challenge that makes browsers show the login popup."""
    return Response(
        status_code=status.HTTP_401_UNAUTHORIZED,
        headers={"WWW-Authenticate": f'Basic realm="{realm}"'},
    )


def outcome_response(outcome: VerificationOutcome, realm: str) -> Response:
    """Map a verification outcome to the status the proxy acts on."""
    if outcome == VerificationOutcome.AUTHORIZED:
        return Response(status_code=status.HTTP_200_OK)
    if outcome == VerificationOutcome.BAD_CONFIGURATION:
        return Response(status_code=status.HTTP_400_BAD_REQUEST)
    # Not found and wrong password look the same to the caller
    return unauthorized_response(realm)


async def wait_for_disconnect(receive: Receive) -> None:
    """Return once the ASGI server reports that the client went away."""
    while True:
        message = await receive()
        if message["type"] == "http.disconnect":
            return


async def run_verification(
    verifier: DirectoryVerifier,
    credentials: Credentials,
    receive: Receive | None = None,
) -> None:
    """
    Run the blocking verification in a worker thread.

    The in-flight directory connection is aborted when the request task is
    cancelled or, with receive, when the client disconnects first.
    """
    verification = asyncio.ensure_future(asyncio.to_thread(verifier.verify, credentials))
    watcher = asyncio.ensure_future(wait_for_disconnect(receive)) if receive is not None else None
    try:
        if watcher is not None:
            await asyncio.wait({verification, watcher}, return_when=asyncio.FIRST_COMPLETED)
            if not verification.done():
                logger.info(f"Client of user {credentials.username} disconnected, closing ldap connection")
                verifier.abort()
        await verification
    except asyncio.CancelledError:
        logger.info(f"Request for user {credentials.username} cancelled, closing ldap connection")
        verifier.abort()
        verification.cancel()
        raise
    finally:
        if watcher is not None:
            watcher.cancel()


async def check_request(
    headers: Mapping[str, str],
    settings: Settings,
    verifier_factory: VerifierFactory = DirectoryVerifier,
    receive: Receive | None = None,
) -> VerificationOutcome:
    """
    Run the auth pipeline for one request.

    Header validation and decoding failures give INVALID_HEADER, missing
    directory headers give BAD_CONFIGURATION, and the directory verdict
    gives the rest. With receive, a client disconnect aborts the directory
    check.
    """
    auth_header = headers.get("Authorization")
    try:
        validate_auth_header(auth_header)
        credentials = extract_credentials(auth_header)
    except InvalidHeader as e:
        logger.debug(f"Rejecting request: {e}")
        return e.outcome

    try:
        directory_config = extract_directory_config(headers)
    except MissingHeader as e:
        # Should not happen if the proxy is configured correctly
        logger.warning(f"Bad request from proxy: {e}")
        return e.outcome

    verifier = verifier_factory(
        directory_config,
        timeout=settings.ldap_timeout,
        service_bind=settings.ldap_service_bind,
    )
    try:
        await run_verification(verifier, credentials, receive)
    except VerifyFailure as e:
        logger.warning(f"Verification failed for user {credentials.username}: {e}")
        return e.outcome

    return VerificationOutcome.AUTHORIZED


def create_router(settings: Settings) -> APIRouter:
    """Router serving the auth check on the configured endpoint path."""
    router = APIRouter(tags=["auth"])

    @router.get(settings.auth_endpoint)
    async def auth_check(request: Request) -> Response:
        """
        Auth subrequest check.

        - **200**: credentials confirmed by the directory
        - **400**: one or more X-Ldap-* headers missing
        - **401**: missing or invalid credentials
        """
        outcome = await check_request(request.headers, settings, receive=request.receive)
        logger.debug(f"Auth check outcome: {outcome.value}")
        return outcome_response(outcome, settings.realm)

    return router
