"""Authorization code flow orchestration service.

Coordinates the authorization step: PKCE and state generation, the local
callback listener, the browser launch, and callback validation.
"""

from __future__ import annotations

import asyncio
import logging

from pkcelogin.models.discovery import ProviderMetadata
from pkcelogin.models.errors import (
    AuthorizationAbortedError,
    BrowserLaunchError,
    ListenerTimeoutError,
    NoCodeReturnedError,
    StateMismatchError,
)
from pkcelogin.models.flow import (
    AuthorizationCode,
    AuthorizationRequest,
    CallbackResult,
    FlowParameters,
)
from pkcelogin.models.security import AuthorizationState
from pkcelogin.primitives.pkce import PKCEManager
from pkcelogin.services.browser import BrowserLauncher, WebBrowserLauncher
from pkcelogin.services.callback import CallbackListener
from pkcelogin.services.security import (
    generate_state,
    parse_redirect_uri,
    validate_state,
)

logger = logging.getLogger(__name__)


class AuthorizationOrchestrator:
    """Drives one authorization code acquisition at a time.

    Handles the complete authorization step, including:
    - PKCE parameter and state generation
    - Starting and always stopping the local callback listener
    - Authorization URL construction and browser launch
    - Callback validation (CSRF protection)

    Runs on one orchestrator are serialized so that listener lifetimes on the
    same port never overlap.
    """

    def __init__(
        self,
        launcher: BrowserLauncher | None = None,
        timeout: float = 300.0,
        parameters: FlowParameters | None = None,
        pkce_manager: PKCEManager | None = None,
        graceful_timeout: float = 5.0,
        launch_grace: float = 1.0,
    ):
        """Initialize the orchestrator.

        Args:
            launcher: Presents the authorization URL to the user
            timeout: Seconds to wait for the provider callback
            parameters: Protocol constants for the authorization request
            pkce_manager: PKCE generator, defaults to base64url S256
            graceful_timeout: Seconds the listener gets to finish responses
            launch_grace: Seconds a still-running launch gets once the wait is
                over before it is cancelled
        """
        self.launcher = launcher or WebBrowserLauncher()
        self.timeout = timeout
        self.parameters = parameters or FlowParameters()
        self.graceful_timeout = graceful_timeout
        self.launch_grace = launch_grace
        self._pkce_manager = pkce_manager or PKCEManager()
        self._lock = asyncio.Lock()
        self._listener: CallbackListener | None = None

    def create_authorization_state(self) -> AuthorizationState:
        """Generate fresh state and PKCE parameters for one flow."""
        return AuthorizationState(
            state=generate_state(),
            pkce=self._pkce_manager.generate_parameters(),
        )

    def build_authorization_url(
        self,
        metadata: ProviderMetadata,
        client_id: str,
        redirect_uri: str,
        auth_state: AuthorizationState,
    ) -> str:
        request = AuthorizationRequest(
            authorization_endpoint=metadata.authorization_endpoint,
            client_id=client_id,
            redirect_uri=redirect_uri,
            acr_values=metadata.acr_values,
            code_challenge=auth_state.code_challenge,
            state=auth_state.state,
            parameters=self.parameters,
        )
        return request.build_authorization_url()

    async def run(
        self, metadata: ProviderMetadata, client_id: str, redirect_uri: str
    ) -> AuthorizationCode:
        """Acquire a validated authorization code.

        Args:
            metadata: Resolved provider metadata
            client_id: OAuth client identifier
            redirect_uri: Loopback URI the listener serves

        Returns:
            AuthorizationCode: Code plus the verifier needed for the exchange

        Raises:
            ConfigurationError: If redirect_uri can't be served locally
            ListenerBindError: If the listener can't bind (before any launch)
            ListenerTimeoutError: If no callback arrives in time
            NoCodeReturnedError: If the callback has an error or no code
            StateMismatchError: If the returned state doesn't match
            AuthorizationAbortedError: If abort() was called while waiting
        """
        async with self._lock:
            return await self._run(metadata, client_id, redirect_uri)

    def abort(self) -> None:
        """Abort the in-flight run, if any. Its listener is still stopped."""
        if self._listener is not None:
            logger.info("Aborting authorization flow")
            self._listener.cancel()

    async def _run(
        self, metadata: ProviderMetadata, client_id: str, redirect_uri: str
    ) -> AuthorizationCode:
        auth_state = self.create_authorization_state()
        host, port, path = parse_redirect_uri(redirect_uri)

        listener = CallbackListener(
            host, port, path, graceful_timeout=self.graceful_timeout
        )
        result_future = await listener.start()
        self._listener = listener

        launch_task: asyncio.Task | None = None
        try:
            auth_url = self.build_authorization_url(
                metadata, client_id, redirect_uri, auth_state
            )
            logger.info(f"Starting authorization flow for client {client_id}")

            # The launch may block until the browser exits, so the wait
            # runs alongside it
            launch_task = asyncio.create_task(self._launch_browser(auth_url))
            launch_task.add_done_callback(self._log_launch_failure)

            result = await self._wait_for_callback(result_future)
            code = self._validate_callback(result, auth_state)

            logger.info("Authorization code received and validated")
            return AuthorizationCode(
                code=code,
                code_verifier=auth_state.code_verifier,
                redirect_uri=redirect_uri,
                state=auth_state.state,
            )
        finally:
            self._listener = None
            await listener.stop()
            if launch_task is not None:
                await self._finish_launch(launch_task)

    async def _launch_browser(self, auth_url: str) -> None:
        try:
            await self.launcher.launch(auth_url)
        except BrowserLaunchError as e:
            logger.warning(
                f"Could not open the browser ({e}). "
                f"Open this URL to continue: {auth_url}"
            )

    async def _finish_launch(self, launch_task: asyncio.Task) -> None:
        """Give a running launch a short grace period, then cancel it."""
        if not launch_task.done():
            await asyncio.wait({launch_task}, timeout=self.launch_grace)
        if not launch_task.done():
            logger.debug("Browser launch still running, cancelling it")
            launch_task.cancel()
            await asyncio.wait({launch_task})

    @staticmethod
    def _log_launch_failure(launch_task: asyncio.Task) -> None:
        if launch_task.cancelled():
            return
        error = launch_task.exception()
        if error is not None:
            logger.error(f"Browser launch failed: {error!r}")

    async def _wait_for_callback(
        self, result_future: asyncio.Future[CallbackResult]
    ) -> CallbackResult:
        try:
            return await asyncio.wait_for(result_future, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise ListenerTimeoutError(
                f"No authorization callback received within {self.timeout} seconds"
            ) from e
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if result_future.cancelled() and not (current and current.cancelling()):
                raise AuthorizationAbortedError(
                    "Authorization flow aborted before a callback arrived"
                ) from None
            raise

    def _validate_callback(
        self, result: CallbackResult, auth_state: AuthorizationState
    ) -> str:
        """Check the callback and return its code.

        Raises:
            NoCodeReturnedError: If the callback has an error or no code
            StateMismatchError: If the returned state doesn't match
        """
        if result.is_error():
            # Still validate state for security, but report the provider error
            if result.returned_state is not None:
                validate_state(auth_state.state, result.returned_state)
            detail = (
                f" ({result.error_description})" if result.error_description else ""
            )
            raise NoCodeReturnedError(
                f"Authorization failed: {result.error}{detail}",
                error=result.error,
                error_description=result.error_description,
            )

        if result.code is None:
            raise NoCodeReturnedError("Callback did not include an authorization code")

        try:
            validate_state(auth_state.state, result.returned_state)
        except StateMismatchError:
            logger.error("Rejecting authorization code: state mismatch")
            raise

        return result.code
