"""Tests for provider discovery.

Covers the two chained lookups:
- Customer discovery document (ACR values, discovery endpoint)
- Well-known OpenID configuration (authorization and token endpoints)
- Error reporting per step and field
"""

import logging
from unittest.mock import AsyncMock

import httpx
import pytest

from pkcelogin.models.discovery import ProviderMetadata
from pkcelogin.models.errors import (
    ConfigurationError,
    CustomerDiscoveryError,
    DiscoveryError,
    OpenIDConfigurationError,
)
from pkcelogin.primitives.discovery import ProviderDiscovery

CUSTOMER_DOCUMENT = {
    "clientSettings": {
        "acr_values": "openid-acr",
        "oidcConfiguration": {"oidc_discovery_endpoint": "https://p/d"},
        "other": "ignored",
    }
}
OPENID_CONFIGURATION = {
    "issuer": "https://accounts.example.com/core",
    "authorization_endpoint": "https://accounts.example.com/core/connect/authorize",
    "token_endpoint": "https://accounts.example.com/core/connect/token",
}


class TestResolve:
    def setup_method(self):
        # Arrange
        self.discovery = ProviderDiscovery(
            customer_discovery_url_template=(
                "https://{customer_id}.example.com/discovery"
            ),
            openid_configuration_url=(
                "https://accounts.example.com/.well-known/openid-configuration"
            ),
            application_id_header="X-Application-Id",
        )
        self.discovery._http_client = AsyncMock()

    async def test_resolves_metadata_from_both_documents(self):
        # Arrange
        self.discovery._http_client.get.side_effect = [
            httpx.Response(200, json=CUSTOMER_DOCUMENT),
            httpx.Response(200, json=OPENID_CONFIGURATION),
        ]

        # Act
        metadata = await self.discovery.resolve("acme", "app-123")

        # Assert
        assert metadata == ProviderMetadata(
            customer_id="acme",
            application_id="app-123",
            acr_values="openid-acr",
            discovery_endpoint="https://p/d",
            authorization_endpoint=OPENID_CONFIGURATION["authorization_endpoint"],
            token_endpoint=OPENID_CONFIGURATION["token_endpoint"],
        )

        # Verify both requests
        first, second = self.discovery._http_client.get.call_args_list
        assert first.args[0] == "https://acme.example.com/discovery"
        assert first.kwargs["headers"] == {"X-Application-Id": "app-123"}
        assert (
            second.args[0]
            == "https://accounts.example.com/.well-known/openid-configuration"
        )
        assert "headers" not in second.kwargs

    async def test_warns_when_s256_not_advertised(self, caplog):
        # Arrange
        configuration = {
            **OPENID_CONFIGURATION,
            "code_challenge_methods_supported": ["plain"],
        }
        self.discovery._http_client.get.side_effect = [
            httpx.Response(200, json=CUSTOMER_DOCUMENT),
            httpx.Response(200, json=configuration),
        ]

        # Act
        with caplog.at_level(logging.WARNING):
            metadata = await self.discovery.resolve("acme", "app-123")

        # Assert - still usable, the provider may support S256 anyway
        assert metadata.token_endpoint == OPENID_CONFIGURATION["token_endpoint"]
        assert "S256" in caplog.text

    async def test_no_warning_when_s256_advertised(self, caplog):
        # Arrange
        configuration = {
            **OPENID_CONFIGURATION,
            "code_challenge_methods_supported": ["plain", "S256"],
        }
        self.discovery._http_client.get.side_effect = [
            httpx.Response(200, json=CUSTOMER_DOCUMENT),
            httpx.Response(200, json=configuration),
        ]

        # Act
        with caplog.at_level(logging.WARNING):
            await self.discovery.resolve("acme", "app-123")

        # Assert
        assert "S256" not in caplog.text

    async def test_missing_acr_values_raises_discovery_error(self):
        # Arrange
        document = {
            "clientSettings": {
                "oidcConfiguration": {"oidc_discovery_endpoint": "https://p/d"}
            }
        }
        self.discovery._http_client.get.side_effect = [
            httpx.Response(200, json=document)
        ]

        # Act & Assert
        with pytest.raises(DiscoveryError) as exc_info:
            await self.discovery.resolve("acme", "app-123")

        assert isinstance(exc_info.value, CustomerDiscoveryError)
        assert exc_info.value.step == "customer_configuration"
        assert exc_info.value.field == "clientSettings.acr_values"
        # Second step never attempted
        assert self.discovery._http_client.get.await_count == 1

    async def test_non_string_discovery_endpoint_raises(self):
        # Arrange
        document = {
            "clientSettings": {
                "acr_values": "openid-acr",
                "oidcConfiguration": {"oidc_discovery_endpoint": 42},
            }
        }
        self.discovery._http_client.get.side_effect = [
            httpx.Response(200, json=document)
        ]

        # Act & Assert
        with pytest.raises(CustomerDiscoveryError) as exc_info:
            await self.discovery.resolve("acme", "app-123")

        assert (
            exc_info.value.field
            == "clientSettings.oidcConfiguration.oidc_discovery_endpoint"
        )

    async def test_non_200_customer_document_raises(self):
        # Arrange
        self.discovery._http_client.get.side_effect = [
            httpx.Response(404, json={"error": "not_found"})
        ]

        # Act & Assert
        with pytest.raises(CustomerDiscoveryError) as exc_info:
            await self.discovery.resolve("acme", "app-123")

        assert "404" in str(exc_info.value)
        assert exc_info.value.field is None

    async def test_malformed_json_raises(self):
        # Arrange
        self.discovery._http_client.get.side_effect = [
            httpx.Response(200, text="<html>not json</html>")
        ]

        # Act & Assert
        with pytest.raises(CustomerDiscoveryError) as exc_info:
            await self.discovery.resolve("acme", "app-123")

        assert "Malformed JSON" in str(exc_info.value)

    async def test_transport_error_raises(self):
        # Arrange
        self.discovery._http_client.get.side_effect = httpx.ConnectError(
            "connection refused"
        )

        # Act & Assert
        with pytest.raises(CustomerDiscoveryError) as exc_info:
            await self.discovery.resolve("acme", "app-123")

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    async def test_missing_token_endpoint_raises_openid_configuration_error(self):
        # Arrange
        configuration = dict(OPENID_CONFIGURATION)
        del configuration["token_endpoint"]
        self.discovery._http_client.get.side_effect = [
            httpx.Response(200, json=CUSTOMER_DOCUMENT),
            httpx.Response(200, json=configuration),
        ]

        # Act & Assert
        with pytest.raises(OpenIDConfigurationError) as exc_info:
            await self.discovery.resolve("acme", "app-123")

        assert exc_info.value.step == "openid_configuration"
        assert exc_info.value.field == "token_endpoint"

    async def test_openid_configuration_server_error_raises(self):
        # Arrange
        self.discovery._http_client.get.side_effect = [
            httpx.Response(200, json=CUSTOMER_DOCUMENT),
            httpx.Response(503, text="unavailable"),
        ]

        # Act & Assert
        with pytest.raises(OpenIDConfigurationError):
            await self.discovery.resolve("acme", "app-123")


class TestProviderMetadata:
    def test_empty_field_is_configuration_error(self):
        with pytest.raises(ConfigurationError) as exc_info:
            ProviderMetadata(
                customer_id="acme",
                application_id="app-123",
                acr_values="",
                discovery_endpoint="https://p/d",
                authorization_endpoint="https://auth.example.com/authorize",
                token_endpoint="https://auth.example.com/token",
            )

        assert "acr_values" in str(exc_info.value)
