"""Records passed between the steps of the auth pipeline."""

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, SecretStr


class VerificationOutcome(str, Enum):
    """Result tag of a single auth check."""

    AUTHORIZED = "authorized"
    INVALID_HEADER = "invalid_header"
    BAD_CONFIGURATION = "bad_configuration"
    DIRECTORY_DENIED = "directory_denied"
    DIRECTORY_UNAVAILABLE = "directory_unavailable"


@dataclass(frozen=True)
class Credentials:
    """Username and password decoded from a Basic Authorization header."""

    username: str
    password: str = field(repr=False)


class DirectoryConfig(BaseModel):
    """
    Directory connection parameters sent by the proxy.
    Field aliases are the request header names.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    url: str = Field(..., alias="X-Ldap-URL", description="Directory service address")
    base_dn: str = Field(..., alias="X-Ldap-BaseDN", description="Search base DN")
    bind_dn: str = Field(..., alias="X-Ldap-BindDN", description="Service account DN")
    bind_password: SecretStr = Field(..., alias="X-Ldap-BindPass", description="Service account password")
    filter_template: str = Field(
        ...,
        alias="X-Ldap-Template",
        description="Search filter with a %(username)s placeholder",
    )


class HealthResponse(BaseModel):
    """Response model for GET /health endpoint."""

    status: str
    version: str
