"""Point the Evolution API instance webhook at this service's /webhooks/evolution route."""

import asyncio
import sys

from order_notify.config import get_settings
from order_notify.infrastructure.evolution_api import EvolutionAPIClient


async def configure_webhook(webhook_url: str):
    settings = get_settings()
    client = EvolutionAPIClient(settings)

    if not client.is_configured:
        print("Evolution API not configured. Set EVOLUTION_API_URL, EVOLUTION_API_KEY and EVOLUTION_INSTANCE.")
        return 1

    print(f"Configuring webhook for instance: {client.instance}")
    print(f"Target Webhook URL: {webhook_url}")

    state = await client.check_instance_status()
    print(f"Instance state: {state}")

    try:
        result = await client.set_webhook(webhook_url)
    except Exception as e:
        print(f"Failed to set webhook: {e}")
        return 1

    print(f"Webhook configured: {result}")
    return 0


if __name__ == "__main__":
    default_url = f"{get_settings().APP_BASE_URL.rstrip('/')}/webhooks/evolution"
    url = sys.argv[1] if len(sys.argv) > 1 else default_url
    sys.exit(asyncio.run(configure_webhook(url)))
