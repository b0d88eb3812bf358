"""
Log in to the cloud identity provider from the command line.

Settings are read from the environment or a `.env` file:
CUSTOMER_ID, CLIENT_ID, REDIRECT_URI and PLATFORM_APPLICATION_ID are
required; CLIENT_SECRET, TOKEN_ENDPOINT_AUTH_METHOD, CODE_CHALLENGE_ENCODING
and CALLBACK_TIMEOUT are optional.

Run with: python -m pkcelogin.examples.login
"""

import asyncio
import logging
import sys

from dotenv import load_dotenv

from pkcelogin.models.config import ClientConfig
from pkcelogin.models.errors import ConfigurationError
from pkcelogin.oauth_client import FlowOutcome, FlowStage, OAuth2Client


async def main() -> FlowOutcome:
    try:
        config = ClientConfig.from_env()
    except ConfigurationError as e:
        return FlowOutcome(
            success=False, stage=FlowStage.CONFIGURATION, diagnostic=str(e)
        )

    async with OAuth2Client(config) as client:
        return await client.authenticate()


def run() -> int:
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    outcome = asyncio.run(main())
    if outcome.success:
        tokens = outcome.tokens
        expires_in = tokens.expires_in if tokens.expires_in is not None else "unknown"
        print(f"Logged in: {tokens.token_type} token, expires in {expires_in} seconds")
        return 0

    print(f"Login failed during {outcome.stage.value}: {outcome.diagnostic}")
    return 1


if __name__ == "__main__":
    sys.exit(run())
