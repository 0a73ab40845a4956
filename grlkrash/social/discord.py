"""
Discord announcements through a channel webhook.
"""

import logging

import requests

from .. import config

logger = logging.getLogger("Discord")

MAX_MESSAGE_LENGTH = 2000


class DiscordService:
    def __init__(self, webhook_url=None, username=None):
        self.webhook_url = webhook_url or config.DISCORD_WEBHOOK_URL
        self.username = username or config.AGENT_NAME
        self.enabled = bool(self.webhook_url)

        if not self.enabled:
            logger.info("📵 Discord not configured (optional)")

    def send(self, message, embeds=None):
        if not self.enabled:
            return False

        payload = {"content": message[:MAX_MESSAGE_LENGTH], "username": self.username}
        if embeds:
            payload["embeds"] = embeds

        try:
            response = requests.post(self.webhook_url, json=payload, timeout=10)
        except requests.RequestException as e:
            logger.warning(f"Discord error: {e}")
            return False

        # webhooks answer 204 No Content unless ?wait=true
        if response.status_code not in (200, 204):
            logger.warning(f"Discord send failed: {response.status_code}")
            return False
        return True
