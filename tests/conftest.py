import asyncio
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from pkcelogin.models.discovery import ProviderMetadata


class CallbackDriver:
    """Launcher double that plays the provider redirect against the listener.

    Instead of opening a browser it reads redirect_uri and state from the
    authorization URL and sends the callback request itself.
    """

    def __init__(
        self,
        code: str | None = "XYZ",
        state: str | None = None,
        extra_params: dict[str, str] | None = None,
        method: str = "GET",
        raise_after: Exception | None = None,
        hang: bool = False,
    ):
        self.code = code
        self.state = state
        self.extra_params = extra_params or {}
        self.method = method
        self.raise_after = raise_after
        self.hang = hang
        self.cancelled = False
        self.launched_urls: list[str] = []
        self.responses: list[httpx.Response] = []

    @property
    def last_query(self) -> dict[str, list[str]]:
        return parse_qs(urlparse(self.launched_urls[-1]).query)

    async def launch(self, url: str) -> None:
        self.launched_urls.append(url)
        query = parse_qs(urlparse(url).query)
        redirect_uri = query["redirect_uri"][0]

        params = dict(self.extra_params)
        params["state"] = self.state if self.state is not None else query["state"][0]
        if self.code is not None:
            params["code"] = self.code

        async with httpx.AsyncClient(trust_env=False) as client:
            if self.method == "POST":
                response = await client.post(redirect_uri, data=params)
            else:
                response = await client.get(redirect_uri, params=params)
        self.responses.append(response)

        if self.raise_after is not None:
            raise self.raise_after

        if self.hang:
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                self.cancelled = True
                raise


class HangingLauncher:
    """Launcher double whose launch never returns, like a console browser."""

    def __init__(self):
        self.launched_urls: list[str] = []
        self.cancelled = False

    async def launch(self, url: str) -> None:
        self.launched_urls.append(url)
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise


class IdleLauncher:
    """Launcher double that never triggers a callback."""

    def __init__(self):
        self.launched_urls: list[str] = []

    async def launch(self, url: str) -> None:
        self.launched_urls.append(url)


@pytest.fixture
def make_driver():
    return CallbackDriver


@pytest.fixture
def idle_launcher():
    return IdleLauncher()


@pytest.fixture
def hanging_launcher():
    return HangingLauncher()


@pytest.fixture
def metadata():
    return ProviderMetadata(
        customer_id="acme",
        application_id="app-123",
        acr_values="openid-acr",
        discovery_endpoint="https://p/d",
        authorization_endpoint="https://auth.example.com/authorize",
        token_endpoint="https://auth.example.com/token",
    )


@pytest.fixture
def redirect_uri(unused_tcp_port):
    return f"http://127.0.0.1:{unused_tcp_port}/"
