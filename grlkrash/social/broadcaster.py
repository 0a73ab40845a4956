"""
SocialBroadcaster - one message, many platforms
===============================================
Every post goes through the RateLimitManager first. A platform that is
rate limited, disabled or failing never blocks the others.
"""

import logging

from ..errors import RateLimitExceeded
from ..logging_utils import log_activity

logger = logging.getLogger("Broadcaster")

POSTED = "posted"
RATE_LIMITED = "rate_limited"
DISABLED = "disabled"
ERROR = "error"
UNSUPPORTED = "unsupported"


class SocialBroadcaster:
    def __init__(self, rate_limits, twitter=None, telegram=None, discord=None):
        self.rate_limits = rate_limits
        self.clients = {
            name: client
            for name, client in (("twitter", twitter), ("telegram", telegram), ("discord", discord))
            if client is not None
        }

    def _post(self, platform, text):
        client = self.clients[platform]
        if platform == "twitter":
            return bool(client.post_text(text))
        return client.send(text)

    def create_campaign(self, message, platforms, content=None):
        """Post `message` to each platform. Returns {platform: status}."""
        text = message
        media_url = (content or {}).get("url")
        if media_url:
            text = f"{message}\n{media_url}"

        results = {}
        for platform in platforms:
            client = self.clients.get(platform)
            if client is None:
                results[platform] = UNSUPPORTED
                continue
            if not getattr(client, "enabled", True):
                results[platform] = DISABLED
                continue

            try:
                self.rate_limits.acquire(platform, "post")
            except RateLimitExceeded as e:
                logger.warning(f"⏳ {platform} rate limited until {e.reset_at}")
                results[platform] = RATE_LIMITED
                continue

            try:
                results[platform] = POSTED if self._post(platform, text) else ERROR
            except RateLimitExceeded as e:
                logger.warning(f"⏳ {platform} rejected the post as rate limited until {e.reset_at}")
                results[platform] = RATE_LIMITED
            except Exception as e:
                logger.error(f"❌ {platform} post failed: {e}")
                results[platform] = ERROR

        posted = [p for p, status in results.items() if status == POSTED]
        logger.info(f"📣 Campaign: {results}")
        if posted:
            log_activity("CAMPAIGN", f"{', '.join(posted)}: {message[:80]}")
        return results

    def create_teaser(self, content_url, platforms, message):
        return self.create_campaign(f"👀 TEASER: {message}", platforms, {"url": content_url})
