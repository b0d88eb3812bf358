"""Browser launch strategies for the authorization step.

The orchestrator only needs something that can put the authorization URL in
front of the user. A failed launch is never fatal: the URL is logged so the
user can open it by hand.
"""

from __future__ import annotations

import asyncio
import logging
import webbrowser
from typing import Protocol

from pkcelogin.models.errors import BrowserLaunchError

logger = logging.getLogger(__name__)


class BrowserLauncher(Protocol):
    """Protocol for presenting the authorization URL to the user.

    Allows different strategies for browser interaction:
    - Default system browser
    - Manual (log the URL for the user to open)
    - Test doubles that drive the callback directly
    """

    async def launch(self, url: str) -> None:
        """Open the authorization URL.

        Raises:
            BrowserLaunchError: If the URL could not be opened
        """
        ...


class WebBrowserLauncher:
    """Opens the URL in the user's default browser."""

    async def launch(self, url: str) -> None:
        try:
            opened = await asyncio.to_thread(webbrowser.open, url)
        except webbrowser.Error as e:
            raise BrowserLaunchError(f"Failed to open browser: {e}") from e

        if not opened:
            raise BrowserLaunchError("No runnable browser found")

        logger.debug("Opened authorization URL in browser")


class ManualLauncher:
    """Logs the URL for environments without a browser."""

    async def launch(self, url: str) -> None:
        logger.warning(f"Open this URL in a browser to continue: {url}")
