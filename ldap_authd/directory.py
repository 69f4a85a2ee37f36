"""Directory lookup-then-verify against an LDAP server."""

import logging
import math
import socket
from contextlib import contextmanager
from enum import Enum
from typing import Callable, Iterator, Mapping

import ldap3
from ldap3.core.exceptions import LDAPException
from ldap3.core.results import RESULT_SUCCESS
from ldap3.utils.conv import escape_filter_chars

from ldap_authd.errors import DirectoryDenied, DirectoryUnavailable, MissingHeader, VerifyFailure
from ldap_authd.models import Credentials, DirectoryConfig

logger = logging.getLogger(__name__)

USERNAME_PLACEHOLDER = "%(username)s"

ConnectionFactory = Callable[..., ldap3.Connection]


def extract_directory_config(headers: Mapping[str, str]) -> DirectoryConfig:
    """
    Read the five X-Ldap-* headers into a DirectoryConfig.
    Values are taken verbatim. Raises MissingHeader on the first absent one.
    """
    logger.debug("Extracting ldap options from request headers")

    values = {}
    for name, field_info in DirectoryConfig.model_fields.items():
        value = headers.get(field_info.alias)
        if value is None:
            raise MissingHeader(field_info.alias)
        values[name] = value

    return DirectoryConfig(**values)


def build_search_filter(template: str, username: str) -> str:
    """Substitute the escaped username into every placeholder of the template."""
    return template.replace(USERNAME_PLACEHOLDER, escape_filter_chars(username))


def open_connection(
    url: str,
    timeout: float,
    user: str | None = None,
    password: str | None = None,
) -> ldap3.Connection:
    """
    Create an unopened connection to the directory at url.
    ldap3 packs the receive timeout into SO_RCVTIMEO, which takes whole seconds.
    """
    server = ldap3.Server(url, connect_timeout=timeout)
    return ldap3.Connection(
        server,
        user=user,
        password=password,
        auto_bind=ldap3.AUTO_BIND_NONE,
        receive_timeout=math.ceil(timeout),
        raise_exceptions=False,
        read_only=True,
    )


class VerifierState(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    BINDING = "binding"
    BOUND = "bound"
    FAILED = "failed"
    DONE = "done"


class DirectoryVerifier:
    """
    Search-then-bind verification of one set of credentials.

    Phase 1 opens a connection, searches the subtree under the base DN for the
    user and takes the first entry's DN. Phase 2 opens a fresh connection and
    simple-binds as that DN with the caller's password. Each connection is
    closed when its phase ends, whatever the outcome.

    One instance serves one request.
    """

    def __init__(
        self,
        config: DirectoryConfig,
        timeout: float,
        service_bind: bool = False,
        connection_factory: ConnectionFactory | None = None,
    ):
        self._config = config
        self._timeout = timeout
        self._service_bind = service_bind
        self._connection_factory = connection_factory or open_connection
        self._active: ldap3.Connection | None = None
        self._aborted = False
        self.state = VerifierState.IDLE

    def verify(self, credentials: Credentials) -> str:
        """
        Confirm the credentials against the directory.
        Returns the DN of the verified user.

        Raises:
            DirectoryUnavailable: the search could not be performed.
            DirectoryDenied: no entry matched, or the bind was rejected.
        """
        try:
            self.state = VerifierState.SEARCHING
            user_dn = self._search(credentials.username)

            self.state = VerifierState.BINDING
            self._bind(user_dn, credentials.password)
            self.state = VerifierState.BOUND
        except VerifyFailure:
            self.state = VerifierState.FAILED
            raise

        self.state = VerifierState.DONE
        logger.info(f"Auth data for user {credentials.username} correct")
        return user_dn

    def abort(self) -> None:
        """
        Shut down the socket of the in-flight connection, if any.
        No connection is opened after an abort.
        """
        self._aborted = True
        connection = self._active
        if connection is None or connection.socket is None:
            return

        logger.debug("Aborting in-flight ldap connection")
        try:
            connection.socket.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            logger.debug(f"Socket already closed: {e}")

    def _search(self, username: str) -> str:
        search_filter = build_search_filter(self._config.filter_template, username)

        if self._service_bind:
            user = self._config.bind_dn
            password = self._config.bind_password.get_secret_value()
        else:
            user = password = None

        try:
            with self._connection(user=user, password=password) as connection:
                if self._service_bind and not connection.bind():
                    raise DirectoryUnavailable(
                        f"Service account bind rejected: {connection.result.get('description')}"
                    )

                logger.debug(f"Querying with filter {search_filter!r}")
                connection.search(
                    search_base=self._config.base_dn,
                    search_filter=search_filter,
                    search_scope=ldap3.SUBTREE,
                    attributes=[ldap3.NO_ATTRIBUTES],
                )
                result = connection.result
                entries = [
                    entry for entry in connection.response or []
                    if entry.get("type") == "searchResEntry"
                ]
        except LDAPException as e:
            raise DirectoryUnavailable(f"Directory search failed: {e}") from e

        if result.get("result") != RESULT_SUCCESS:
            raise DirectoryUnavailable(f"Directory search failed: {result.get('description')}")

        if not entries:
            logger.debug(f"No entry found for user {username}")
            raise DirectoryDenied("User not found with given filter")

        if len(entries) > 1:
            logger.debug(f"Filter matched {len(entries)} entries, using the first")

        return entries[0]["dn"]

    def _bind(self, user_dn: str, password: str) -> None:
        logger.debug(f"Checking if the password of '{user_dn}' is correct")

        # An empty simple bind is an anonymous bind
        if not password:
            raise DirectoryDenied("Password invalid")

        try:
            with self._connection(user=user_dn, password=password) as connection:
                bound = connection.bind()
                description = connection.result.get("description") if connection.result else None
        except LDAPException as e:
            logger.debug("Password for user is invalid")
            raise DirectoryDenied("Password invalid") from e

        if not bound:
            logger.debug(f"Password for user is invalid ({description})")
            raise DirectoryDenied("Password invalid")

    @contextmanager
    def _connection(self, user: str | None = None, password: str | None = None) -> Iterator[ldap3.Connection]:
        if self._aborted:
            raise DirectoryUnavailable("Verification aborted")

        connection = self._connection_factory(
            self._config.url, self._timeout, user=user, password=password
        )
        self._active = connection
        try:
            logger.debug("Starting ldap connection")
            connection.open()
            if self._aborted:
                raise DirectoryUnavailable("Verification aborted")
            yield connection
        finally:
            self._active = None
            self._close(connection)

    @staticmethod
    def _close(connection: ldap3.Connection) -> None:
        logger.debug("Closing ldap connection")
        try:
            connection.unbind()
        except (LDAPException, OSError) as e:
            logger.warning(f"Failed to close ldap connection: {e}")
