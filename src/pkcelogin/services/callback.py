"""Local HTTP listener for the authorization redirect.

Runs a short-lived Starlette app under uvicorn on a loopback socket and hands
the first callback it sees to the orchestrator through a one-shot future.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from urllib.parse import parse_qsl

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.routing import Route

from pkcelogin.models.errors import ListenerBindError, ListenerError
from pkcelogin.models.flow import CallbackResult

logger = logging.getLogger(__name__)

AUTH_SUCCESS_MESSAGE = (
    "Authorization code received. You can close this window and return to "
    "the application."
)
MISSING_CODE_MESSAGE = "Missing code parameter"
MISSING_CODE_ERROR = "missing_code"


class CallbackListener:
    """Ephemeral HTTP server that captures the authorization redirect.

    The listener binds its socket before serving, so a busy port fails fast
    with ListenerBindError. The first request to the callback path resolves
    `result`; later requests are answered but never replace it.

    Usage:
        async with CallbackListener("127.0.0.1", 8080) as listener:
            callback = await listener.result
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 0,
        path: str = "/",
        graceful_timeout: float = 5.0,
    ) -> None:
        """Initialize the callback listener.

        Args:
            host: Loopback address to bind
            port: Port to bind, 0 picks a free one
            path: Path the provider redirects to
            graceful_timeout: Seconds to let in-flight responses finish on stop
        """
        self.host = host
        self.port = port
        self.path = path
        self.graceful_timeout = graceful_timeout

        self._app = Starlette(
            routes=[Route(path, self._handle_callback, methods=["GET", "POST"])]
        )
        self._server: uvicorn.Server | None = None
        self._server_task: asyncio.Task | None = None
        self._socket: socket.socket | None = None
        self._result: asyncio.Future[CallbackResult] | None = None
        self._stopped = False

    @property
    def result(self) -> asyncio.Future[CallbackResult]:
        """One-shot future resolved by the first callback request."""
        if self._result is None:
            raise ListenerError("Callback listener has not been started")
        return self._result

    @property
    def is_running(self) -> bool:
        return self._server_task is not None and not self._server_task.done()

    async def start(self) -> asyncio.Future[CallbackResult]:
        """Bind the socket and start serving in a background task.

        Returns:
            Future resolved with the captured CallbackResult

        Raises:
            ListenerBindError: If the address can't be bound
            ListenerError: If the listener was already started or the server
                exits during startup
        """
        if self._server_task is not None or self._stopped:
            raise ListenerError("Callback listener can only be started once")

        self._socket = self._bind_socket()
        self._result = asyncio.get_running_loop().create_future()

        config = uvicorn.Config(
            app=self._app,
            log_level="warning",
            log_config=None,
            access_log=False,
            lifespan="off",
            timeout_graceful_shutdown=self.graceful_timeout,
        )
        self._server = uvicorn.Server(config)
        self._server_task = asyncio.create_task(
            self._server.serve(sockets=[self._socket])
        )

        try:
            await self._wait_until_started()
        except BaseException:
            await self.stop()
            raise

        logger.info(
            f"Callback listener started on http://{self.host}:{self.port}{self.path}"
        )
        return self._result

    async def stop(self) -> None:
        """Shut the server down and release the port.

        In-flight responses get up to `graceful_timeout` seconds to finish.
        Safe to call more than once.
        """
        if self._stopped:
            return
        self._stopped = True

        if self._server is not None:
            self._server.should_exit = True

        try:
            if self._server_task is not None and not self._server_task.cancelled():
                try:
                    # Shielded so a cancelled caller doesn't cut shutdown short
                    await asyncio.shield(self._server_task)
                except Exception as e:
                    logger.warning(f"Callback listener exited with error: {e}")
        finally:
            if self._socket is not None:
                self._socket.close()
            if self._result is not None and not self._result.done():
                self._result.cancel()

        logger.debug(f"Callback listener on port {self.port} stopped")

    def cancel(self) -> None:
        """Abort waiting for a callback and ask the server to exit.

        Synchronous trigger; call stop() afterwards to wait for the port to
        be released.
        """
        if self._server is not None:
            self._server.should_exit = True
        if self._result is not None and not self._result.done():
            self._result.cancel()

    async def __aenter__(self) -> CallbackListener:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    def _bind_socket(self) -> socket.socket:
        """Create and bind the listening socket.

        Raises:
            ListenerBindError: If the address is in use or not available
        """
        family = socket.AF_INET6 if ":" in self.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, self.port))
        except OSError as e:
            sock.close()
            raise ListenerBindError(
                f"Failed to bind callback listener to {self.host}:{self.port}: {e}"
            ) from e

        self.port = sock.getsockname()[1]
        return sock

    async def _wait_until_started(self) -> None:
        while not self._server.started:
            if self._server_task.done():
                if self._server_task.cancelled():
                    raise ListenerError(
                        "Callback listener was cancelled during startup"
                    )
                raise ListenerError(
                    "Callback listener exited during startup: "
                    f"{self._server_task.exception()}"
                )
            await asyncio.sleep(0.01)

    async def _handle_callback(self, request: Request) -> Response:
        """Handle the provider redirect (query string or form_post body)."""
        params = dict(request.query_params)
        if request.method == "POST":
            body = await request.body()
            params.update(parse_qsl(body.decode("utf-8", errors="replace")))

        result = self._parse_callback(params)
        self._capture(result)

        if result.is_success():
            return PlainTextResponse(AUTH_SUCCESS_MESSAGE)

        if result.error == MISSING_CODE_ERROR:
            return PlainTextResponse(MISSING_CODE_MESSAGE, status_code=400)

        description = (
            f": {result.error_description}" if result.error_description else ""
        )
        return PlainTextResponse(
            f"Authorization failed ({result.error}){description}", status_code=400
        )

    def _parse_callback(self, params: dict[str, str]) -> CallbackResult:
        code = params.get("code")
        error = params.get("error")
        state = params.get("state")

        if error:
            return CallbackResult(
                error=error,
                error_description=params.get("error_description"),
                returned_state=state,
            )
        if not code:
            return CallbackResult(
                error=MISSING_CODE_ERROR,
                error_description=MISSING_CODE_MESSAGE,
                returned_state=state,
            )
        return CallbackResult(code=code, returned_state=state)

    def _capture(self, result: CallbackResult) -> bool:
        """Resolve the result future unless something already did."""
        if self._result is None or self._result.done():
            logger.debug("Ignoring callback, a result was already captured")
            return False

        self._result.set_result(result)
        if result.is_success():
            logger.info("Authorization callback received with code")
        else:
            logger.warning(
                f"Authorization callback received without code: {result.error}"
            )
        return True
