"""Complete native login orchestration.

Coordinates discovery, authorization, and token exchange to provide a
complete OIDC + PKCE login for a CLI application.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from pkcelogin.models.config import ClientConfig
from pkcelogin.models.errors import (
    AuthorizationError,
    ConfigurationError,
    DiscoveryError,
    ListenerError,
    OAuth2Error,
    TokenError,
)
from pkcelogin.models.tokens import TokenSet
from pkcelogin.primitives.discovery import ProviderDiscovery
from pkcelogin.primitives.pkce import PKCEManager
from pkcelogin.services.browser import BrowserLauncher
from pkcelogin.services.flow import AuthorizationOrchestrator
from pkcelogin.services.tokens import TokenExchangeClient

logger = logging.getLogger(__name__)


class FlowStage(str, Enum):
    """Stage of the login flow, used to report where it failed."""

    CONFIGURATION = "configuration"
    DISCOVERY = "discovery"
    AUTHORIZATION = "authorization"
    TOKEN_EXCHANGE = "token_exchange"


@dataclass(frozen=True)
class FlowOutcome:
    """Result of a login attempt with a human-readable diagnostic."""

    success: bool
    tokens: TokenSet | None = None
    stage: FlowStage | None = None
    diagnostic: str | None = None

    def __bool__(self) -> bool:
        return self.success


def stage_for_error(error: OAuth2Error) -> FlowStage:
    """Map an error to the flow stage that raised it."""
    if isinstance(error, ConfigurationError):
        return FlowStage.CONFIGURATION
    if isinstance(error, DiscoveryError):
        return FlowStage.DISCOVERY
    if isinstance(error, (AuthorizationError, ListenerError)):
        return FlowStage.AUTHORIZATION
    if isinstance(error, TokenError):
        return FlowStage.TOKEN_EXCHANGE
    return FlowStage.AUTHORIZATION


class OAuth2Client:
    """Native OIDC login client.

    Orchestrates the full flow from discovery through token exchange. Tokens
    are returned to the caller and never stored.
    """

    def __init__(
        self,
        config: ClientConfig,
        launcher: BrowserLauncher | None = None,
    ):
        """Initialize the login client.

        Args:
            config: Validated client configuration
            launcher: Presents the authorization URL, defaults to the system
                browser
        """
        self.config = config

        # Initialize service components
        self.discovery = ProviderDiscovery(
            timeout=config.http_timeout,
            customer_discovery_url_template=config.customer_discovery_url_template,
            openid_configuration_url=config.openid_configuration_url,
            application_id_header=config.application_id_header,
        )
        self.orchestrator = AuthorizationOrchestrator(
            launcher=launcher,
            timeout=config.callback_timeout,
            pkce_manager=PKCEManager(encoding=config.code_challenge_encoding),
        )
        self.token_client = TokenExchangeClient(timeout=config.http_timeout)

    async def login(self) -> TokenSet:
        """Run the complete login flow.

        Performs:
        1. Resolve provider metadata
        2. Acquire an authorization code through the local listener
        3. Exchange the code for tokens

        Returns:
            TokenSet: Tokens for the authenticated user

        Raises:
            Various OAuth2Error subclasses if any stage fails
        """
        config = self.config
        logger.info(f"Starting login for customer {config.customer_id}")

        # 1. Discover provider metadata
        logger.debug("Resolving provider metadata")
        metadata = await self.discovery.resolve(
            config.customer_id, config.platform_application_id
        )

        # 2. Acquire authorization code
        logger.debug("Starting authorization flow")
        authorization = await self.orchestrator.run(
            metadata, config.client_id, config.redirect_uri
        )

        # 3. Exchange code for tokens
        logger.debug("Exchanging authorization code for tokens")
        token_set = await self.token_client.exchange(
            metadata,
            client_id=config.client_id,
            client_secret=config.client_secret,
            redirect_uri=authorization.redirect_uri,
            code=authorization.code,
            code_verifier=authorization.code_verifier,
            auth_method=config.token_endpoint_auth_method,
        )

        logger.info(f"Successfully logged in for customer {config.customer_id}")
        return token_set

    async def authenticate(self) -> FlowOutcome:
        """Run the login flow and report the outcome instead of raising.

        Returns:
            FlowOutcome: success flag, tokens, and the failing stage with a
                diagnostic message on failure
        """
        try:
            token_set = await self.login()
        except OAuth2Error as e:
            stage = stage_for_error(e)
            logger.error(f"Login failed during {stage.value}: {e}")
            return FlowOutcome(success=False, stage=stage, diagnostic=str(e))

        return FlowOutcome(success=True, tokens=token_set)

    def abort(self) -> None:
        """Abort a login that is waiting for the browser callback."""
        self.orchestrator.abort()

    async def close(self) -> None:
        """Close all service connections."""
        await self.discovery.close()
        await self.token_client.close()

    async def __aenter__(self) -> OAuth2Client:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
