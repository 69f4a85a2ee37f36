"""Exceptions raised by the auth pipeline."""

from ldap_authd.models import VerificationOutcome


class AuthError(Exception):
    """Base class for every failed auth check."""

    outcome = VerificationOutcome.INVALID_HEADER


class InvalidHeader(AuthError):
    """Authorization header is missing or not a Basic header."""


class DecodeError(InvalidHeader):
    """Basic payload is not base64 encoded UTF-8 'username:password'."""


class MissingHeader(AuthError):
    """A required X-Ldap-* header was not sent by the proxy."""

    outcome = VerificationOutcome.BAD_CONFIGURATION

    def __init__(self, name: str):
        super().__init__(f"{name} header is missing")
        self.name = name


class VerifyFailure(AuthError):
    """The directory did not confirm the credentials."""

    outcome = VerificationOutcome.DIRECTORY_DENIED


class DirectoryDenied(VerifyFailure):
    """User not found, or the password was rejected."""


class DirectoryUnavailable(VerifyFailure):
    """Talking to the directory failed before a decision could be made."""

    outcome = VerificationOutcome.DIRECTORY_UNAVAILABLE
