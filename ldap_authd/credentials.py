"""Basic authentication header parsing."""

import base64
import binascii
import logging

from ldap_authd.errors import DecodeError, InvalidHeader
from ldap_authd.models import Credentials

logger = logging.getLogger(__name__)

BASIC_SCHEME = "basic"


def validate_auth_header(header: str | None) -> None:
    """
    Check that an Authorization header is present and names the Basic scheme.
    Raises InvalidHeader otherwise. Does not decode anything.
    """
    logger.debug("Validating authorization header")

    if header is None:
        raise InvalidHeader("Authorization header is missing")

    if BASIC_SCHEME not in header.lower():
        raise InvalidHeader("Authorization header has invalid format")


def extract_credentials(header: str) -> Credentials:
    """
    Decode 'Basic <base64(username:password)>' into Credentials.

    The decoded text is split on the first colon only, so the password may
    itself contain colons. Both halves are stripped of surrounding whitespace.

    Raises:
        DecodeError: scheme token missing, payload not base64, not UTF-8,
            no colon, or an empty username.
    """
    logger.debug("Extracting base64 string from authorization header")
    parts = header.split(None, 1)
    if len(parts) != 2 or parts[0].lower() != BASIC_SCHEME:
        raise DecodeError("Authorization header is not '<Basic> <payload>'")

    logger.debug("Decoding authentication string")
    try:
        decoded = base64.b64decode(parts[1].strip(), validate=True)
    except binascii.Error as e:
        raise DecodeError("Could not decode base64") from e

    try:
        text = decoded.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError("Authentication string is not valid UTF-8") from e

    logger.debug("Extracting username from decoded authentication string")
    username, separator, password = text.partition(":")
    if not separator:
        raise DecodeError("Authentication string has no 'username:password' separator")

    username = username.strip()
    if not username:
        raise DecodeError("Authentication string has an empty username")

    return Credentials(username=username, password=password.strip())
