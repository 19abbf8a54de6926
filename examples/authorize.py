"""Interactive authorization example for pysmarther.

Opens the browser on the Legrand login page, captures the authorization code
on a loopback listener, exchanges it for a token and saves the result so that
later runs can resume without user interaction.
"""

import asyncio
import json
import logging
import os
from pathlib import Path

from pysmarther import SmartherClient


async def main() -> None:
    """Run the authorization-code handshake and save the result."""
    logging.basicConfig(level=logging.INFO)

    auth_file = Path(os.getenv("SMARTHER_AUTH_FILE", "smarther_auth.json"))

    async with SmartherClient() as client:
        # The redirect URI registered for the application must match
        # http://127.0.0.1:23784/tokens
        info = await client.begin_handshake(
            client_id=os.environ["SMARTHER_CLIENT_ID"],
            client_secret=os.environ["SMARTHER_CLIENT_SECRET"],
            subscription_key=os.environ["SMARTHER_SUBSCRIPTION_KEY"],
        )

    auth_file.write_text(json.dumps(info.to_dict(), indent=2))
    print(f"Authorization saved to {auth_file}")


if __name__ == "__main__":
    asyncio.run(main())
