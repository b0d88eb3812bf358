"""Client configuration for the login flow.

Settings come from the environment (optionally seeded from a `.env` file by
the caller) and are validated up front so that no flow is attempted with an
incomplete configuration.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from pkcelogin.models.errors import ConfigurationError
from pkcelogin.models.security import ChallengeEncoding
from pkcelogin.models.tokens import ClientAuthMethod
from pkcelogin.services.security import parse_redirect_uri

DEFAULT_CUSTOMER_DISCOVERY_URL = (
    "https://{customer_id}.cloud.com/api/discovery/configurations"
)
DEFAULT_OPENID_CONFIGURATION_URL = (
    "https://accounts-internal.cloud.com/core/.well-known/openid-configuration"
)
DEFAULT_APPLICATION_ID_HEADER = "Citrix-ApplicationId"

# Environment variable for each setting
ENV_VARS = {
    "customer_id": "CUSTOMER_ID",
    "client_id": "CLIENT_ID",
    "client_secret": "CLIENT_SECRET",
    "redirect_uri": "REDIRECT_URI",
    "platform_application_id": "PLATFORM_APPLICATION_ID",
    "token_endpoint_auth_method": "TOKEN_ENDPOINT_AUTH_METHOD",
    "code_challenge_encoding": "CODE_CHALLENGE_ENCODING",
    "callback_timeout": "CALLBACK_TIMEOUT",
    "http_timeout": "HTTP_TIMEOUT",
}


class ClientConfig(BaseModel):
    """Validated settings for one native client."""

    model_config = ConfigDict(frozen=True)

    customer_id: str = Field(min_length=1)
    client_id: str = Field(min_length=1)
    redirect_uri: str = Field(min_length=1)
    platform_application_id: str = Field(min_length=1)
    client_secret: str | None = None

    # Resolved from client_secret when not set explicitly
    token_endpoint_auth_method: ClientAuthMethod = ClientAuthMethod.NONE
    code_challenge_encoding: ChallengeEncoding = ChallengeEncoding.BASE64URL

    http_timeout: float = Field(default=30.0, gt=0)
    callback_timeout: float = Field(default=300.0, gt=0)

    customer_discovery_url_template: str = DEFAULT_CUSTOMER_DISCOVERY_URL
    openid_configuration_url: str = DEFAULT_OPENID_CONFIGURATION_URL
    application_id_header: str = DEFAULT_APPLICATION_ID_HEADER

    @model_validator(mode="before")
    @classmethod
    def default_auth_method(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("token_endpoint_auth_method"):
            data = dict(data)
            data["token_endpoint_auth_method"] = (
                ClientAuthMethod.CLIENT_SECRET_POST
                if data.get("client_secret")
                else ClientAuthMethod.NONE
            )
        return data

    @field_validator("client_secret")
    @classmethod
    def empty_secret_is_none(cls, v: str | None) -> str | None:
        return v or None

    @field_validator("redirect_uri")
    @classmethod
    def validate_redirect_uri(cls, v: str) -> str:
        """Redirect URI must point at a loopback listener we can bind."""
        try:
            parse_redirect_uri(v)
        except ConfigurationError as e:
            raise ValueError(str(e)) from e
        return v

    @model_validator(mode="after")
    def validate_client_authentication(self) -> ClientConfig:
        if self.token_endpoint_auth_method.is_confidential and not self.client_secret:
            raise ValueError(
                f"{self.token_endpoint_auth_method.value} requires a client_secret"
            )
        return self

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ClientConfig:
        """Build configuration from environment variables.

        Args:
            environ: Mapping to read from, defaults to os.environ

        Returns:
            Validated client configuration

        Raises:
            ConfigurationError: If required settings are missing or invalid
        """
        if environ is None:
            environ = os.environ

        values = {
            name: environ[var]
            for name, var in ENV_VARS.items()
            if environ.get(var) not in (None, "")
        }

        try:
            return cls(**values)
        except ValidationError as e:
            problems = []
            for error in e.errors():
                name = str(error["loc"][0]) if error["loc"] else "configuration"
                problems.append(f"{ENV_VARS.get(name, name)}: {error['msg']}")
            raise ConfigurationError(
                f"Invalid configuration: {'; '.join(problems)}"
            ) from e
