"""Provider discovery primitive.

Resolves the endpoints and ACR values the login flow needs through two
chained lookups: the customer-scoped discovery document, then the provider's
well-known OpenID configuration.
"""

from __future__ import annotations

import logging
from typing import TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from pkcelogin.models.config import (
    DEFAULT_APPLICATION_ID_HEADER,
    DEFAULT_CUSTOMER_DISCOVERY_URL,
    DEFAULT_OPENID_CONFIGURATION_URL,
)
from pkcelogin.models.discovery import (
    CustomerDiscoveryDocument,
    OpenIDConfiguration,
    ProviderMetadata,
)
from pkcelogin.models.errors import (
    CustomerDiscoveryError,
    DiscoveryError,
    OpenIDConfigurationError,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class ProviderDiscovery:
    """Handles provider discovery for the native login flow.

    Implements the two-step discovery process:
    1. Customer discovery document - find ACR values and discovery endpoint
    2. Well-known OpenID configuration - find authorization and token endpoints

    Neither step is retried; retry policy belongs to the caller.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        customer_discovery_url_template: str = DEFAULT_CUSTOMER_DISCOVERY_URL,
        openid_configuration_url: str = DEFAULT_OPENID_CONFIGURATION_URL,
        application_id_header: str = DEFAULT_APPLICATION_ID_HEADER,
    ):
        """Initialize provider discovery.

        Args:
            timeout: HTTP request timeout in seconds
            customer_discovery_url_template: URL template with a
                `{customer_id}` placeholder
            openid_configuration_url: Provider-scoped well-known document URL
            application_id_header: Header carrying the application identifier
        """
        self.timeout = timeout
        self.customer_discovery_url_template = customer_discovery_url_template
        self.openid_configuration_url = openid_configuration_url
        self.application_id_header = application_id_header
        self._http_client = httpx.AsyncClient(timeout=timeout)

    async def resolve(self, customer_id: str, application_id: str) -> ProviderMetadata:
        """Resolve provider metadata for a customer.

        Args:
            customer_id: Customer identifier used in the discovery URL
            application_id: Platform application identifier sent as a header

        Returns:
            Complete provider metadata

        Raises:
            DiscoveryError: If either discovery step fails
        """
        customer_document = await self._fetch_customer_configuration(
            customer_id, application_id
        )
        settings = customer_document.client_settings

        openid_configuration = await self._fetch_openid_configuration()
        methods = openid_configuration.code_challenge_methods_supported
        if methods is not None and "S256" not in methods:
            logger.warning(
                f"Provider does not advertise S256 PKCE support (advertises {methods})"
            )

        metadata = ProviderMetadata(
            customer_id=customer_id,
            application_id=application_id,
            acr_values=settings.acr_values,
            discovery_endpoint=settings.oidc_configuration.oidc_discovery_endpoint,
            authorization_endpoint=openid_configuration.authorization_endpoint,
            token_endpoint=openid_configuration.token_endpoint,
        )

        logger.info(f"Resolved provider metadata for customer {customer_id}")
        return metadata

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._http_client.aclose()

    def _build_customer_discovery_url(self, customer_id: str) -> str:
        return self.customer_discovery_url_template.format(customer_id=customer_id)

    async def _fetch_customer_configuration(
        self, customer_id: str, application_id: str
    ) -> CustomerDiscoveryDocument:
        """Fetch and parse the customer-scoped discovery document.

        Raises:
            CustomerDiscoveryError: If fetch or parsing fails
        """
        url = self._build_customer_discovery_url(customer_id)
        logger.debug(f"Fetching customer discovery document from: {url}")

        try:
            response = await self._http_client.get(
                url, headers={self.application_id_header: application_id}
            )
        except httpx.HTTPError as e:
            raise CustomerDiscoveryError(
                f"HTTP error fetching customer discovery document from {url}: {e}"
            ) from e

        return self._parse_document(
            response, url, CustomerDiscoveryDocument, CustomerDiscoveryError
        )

    async def _fetch_openid_configuration(self) -> OpenIDConfiguration:
        """Fetch and parse the provider's well-known OpenID configuration.

        Raises:
            OpenIDConfigurationError: If fetch or parsing fails
        """
        url = self.openid_configuration_url
        logger.debug(f"Fetching OpenID configuration from: {url}")

        try:
            response = await self._http_client.get(url)
        except httpx.HTTPError as e:
            raise OpenIDConfigurationError(
                f"HTTP error fetching OpenID configuration from {url}: {e}"
            ) from e

        return self._parse_document(
            response, url, OpenIDConfiguration, OpenIDConfigurationError
        )

    def _parse_document(
        self,
        response: httpx.Response,
        url: str,
        model: type[ModelT],
        error_class: type[DiscoveryError],
    ) -> ModelT:
        """Validate a discovery response into its model.

        Args:
            response: HTTP response from a discovery endpoint
            url: URL the response came from
            model: Pydantic model describing the expected document
            error_class: DiscoveryError subclass naming the step

        Raises:
            DiscoveryError: On non-200 status, malformed JSON or a missing or
                non-string field
        """
        if response.status_code != 200:
            raise error_class(f"Unexpected status {response.status_code} from {url}")

        try:
            return model.model_validate_json(response.text)
        except ValidationError as e:
            error = e.errors()[0]
            if error["type"] == "json_invalid":
                raise error_class(f"Malformed JSON from {url}: {error['msg']}") from e

            field = ".".join(str(part) for part in error["loc"]) or None
            raise error_class(
                f"Invalid discovery document from {url}: "
                f"{field or 'document'} - {error['msg']}",
                field=field,
            ) from e
