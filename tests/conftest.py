"""
Shared pytest fixtures.

FakeDirectory stands in for ldap3 connections: it answers searches with a
fixed list of entry DNs and accepts binds for a single password.
"""

import base64
import socket
from unittest.mock import MagicMock

import pytest

from ldap_authd.config import Settings
from ldap_authd.models import DirectoryConfig

USER_DN = "uid=mkapra,ou=people,dc=example,dc=org"
SERVICE_DN = "cn=reader,dc=example,dc=org"


def basic_header(username: str, password: str) -> str:
    token = base64.b64encode(f"{username}:{password}".encode()).decode()
    return f"Basic {token}"


class FakeDirectory:
    """Connection factory recording every connection it hands out."""

    def __init__(self, entries=None, password="test123"):
        self.entries = list(entries) if entries is not None else [USER_DN]
        self.password = password
        self.service_password = "readonly"
        self.search_result = 0
        self.search_error = None
        self.open_error = None
        self.bind_error = None
        self.unbind_error = None
        self.on_search = None
        self.on_bind = None
        self.on_unbind = None
        self.connections = []
        self.calls = []

    def __call__(self, url, timeout, user=None, password=None):
        self.calls.append({"url": url, "timeout": timeout, "user": user})

        connection = MagicMock(name=f"connection{len(self.connections)}")
        connection.user = user
        connection.password = password
        connection.result = None
        connection.response = None
        connection.socket = MagicMock(name="socket")
        connection.open.side_effect = self._open
        connection.search.side_effect = self._search(connection)
        connection.bind.side_effect = self._bind(connection)
        connection.unbind.side_effect = self._unbind

        self.connections.append(connection)
        return connection

    def _open(self, *args, **kwargs):
        if self.open_error is not None:
            raise self.open_error

    def _search(self, connection):
        def search(search_base, search_filter, search_scope, attributes):
            if self.on_search is not None:
                self.on_search(connection)
            if self.search_error is not None:
                raise self.search_error
            if self.search_result == 0:
                connection.response = [
                    {"type": "searchResEntry", "dn": dn, "attributes": {}}
                    for dn in self.entries
                ] + [{"type": "searchResRef", "uri": ["ldap://other.example.org/"]}]
                connection.result = {"result": 0, "description": "success"}
            else:
                connection.response = []
                connection.result = {"result": self.search_result, "description": "noSuchObject"}
            return bool(self.entries)
        return search

    def _bind(self, connection):
        def bind(*args, **kwargs):
            if self.on_bind is not None:
                self.on_bind(connection)
            if self.bind_error is not None:
                raise self.bind_error
            if connection.user == SERVICE_DN:
                ok = connection.password == self.service_password
            else:
                ok = connection.user in self.entries and connection.password == self.password
            connection.result = {
                "result": 0 if ok else 49,
                "description": "success" if ok else "invalidCredentials",
            }
            return ok
        return bind

    def _unbind(self, *args, **kwargs):
        if self.on_unbind is not None:
            self.on_unbind()
        if self.unbind_error is not None:
            raise self.unbind_error
        return True

    def binds(self):
        return [c for c in self.connections if c.bind.called]


@pytest.fixture
def fake_directory():
    return FakeDirectory()


@pytest.fixture
def directory_headers():
    return {
        "X-Ldap-URL": "ldap://ldap.example.org:389",
        "X-Ldap-BaseDN": "ou=people,dc=example,dc=org",
        "X-Ldap-BindDN": SERVICE_DN,
        "X-Ldap-BindPass": "readonly",
        "X-Ldap-Template": "(&(objectClass=person)(uid=%(username)s))",
    }


@pytest.fixture
def directory_config(directory_headers):
    return DirectoryConfig(**directory_headers)


@pytest.fixture
def settings():
    return Settings(ldap_timeout=2.0)


@pytest.fixture
def silent_directory_url():
    """URL of a local listener that completes the TCP handshake but never answers."""
    listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    listener.bind(("127.0.0.1", 0))
    listener.listen(8)
    host, port = listener.getsockname()
    yield f"ldap://{host}:{port}"
    listener.close()
