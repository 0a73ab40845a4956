"""
Telegram Bot API - announcements and operator alerts.

Failed calls answer {"ok": false, "description": ...}. A 429 carries
parameters.retry_after and surfaces as RateLimitExceeded so campaigns can
report the platform as rate limited. Markdown that Telegram refuses to
parse is sent again as plain text.
"""

import logging
from datetime import datetime, timedelta

import requests

from .. import config
from ..errors import RateLimitExceeded

logger = logging.getLogger("Telegram")

API_BASE = "https://api.telegram.org"
MAX_MESSAGE_LENGTH = 4096
ALERT_ICONS = {"info": "ℹ️", "warning": "⚠️", "critical": "🚨"}


def _error_body(response):
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


class TelegramService:
    def __init__(self, bot_token=None, chat_id=None, timeout=10):
        self.bot_token = bot_token or config.TELEGRAM_BOT_TOKEN
        self.chat_id = chat_id or config.TELEGRAM_CHAT_ID
        self.timeout = timeout
        self.enabled = bool(self.bot_token and self.chat_id)

        if not self.enabled:
            logger.info("📵 Telegram not configured (optional)")

    def _call(self, method, payload):
        url = f"{API_BASE}/bot{self.bot_token}/{method}"
        return requests.post(url, json=payload, timeout=self.timeout)

    def send(self, message, parse_mode="Markdown"):
        """Post to the chat. False on failure, RateLimitExceeded when Telegram throttles."""
        if not self.enabled:
            return False

        payload = {"chat_id": self.chat_id, "text": message[:MAX_MESSAGE_LENGTH]}
        if parse_mode:
            payload["parse_mode"] = parse_mode

        try:
            response = self._call("sendMessage", payload)
        except requests.RequestException as e:
            logger.warning(f"⚠️ Telegram unreachable: {e}")
            return False

        if response.status_code == 200:
            return True

        error = _error_body(response)
        description = error.get("description", "")
        if response.status_code == 429:
            retry_after = (error.get("parameters") or {}).get("retry_after")
            reset_at = datetime.now() + timedelta(seconds=int(retry_after)) if retry_after else None
            raise RateLimitExceeded("telegram", "post", reset_at=reset_at)
        if response.status_code == 400 and parse_mode and "parse entities" in description:
            logger.info("📝 Telegram could not parse the Markdown, resending as plain text")
            return self.send(message, parse_mode=None)

        logger.warning(f"⚠️ Telegram send failed ({response.status_code}): {description or 'no description'}")
        return False

    def notify(self, message):
        """Operator message. A rate limit drops it instead of raising."""
        try:
            return self.send(message)
        except RateLimitExceeded as e:
            logger.warning(f"⏳ Telegram rate limited until {e.reset_at}, dropped: {message[:60]}")
            return False

    def send_status(self, agent_name, stats):
        """Periodic status report for the operator chat."""
        tx = stats.get("transactions", {})
        msg = (
            f"🤖 *{agent_name} Status*\n\n"
            f"🔄 Cycles: {stats.get('cycles', 0)} "
            f"(❌ {stats.get('consecutive_failures', 0)} consecutive failures)\n"
            f"💹 Market cap: ${stats.get('market_cap', 0):,.0f}\n"
            f"🎧 Streams: {stats.get('streams', 0):,}\n"
            f"🏁 Milestones: {stats.get('milestones_completed', 0)}/{stats.get('milestones_total', 0)}\n"
            f"⛓️ Pending txs: {tx.get('pending', 0)}"
        )
        return self.notify(msg)

    def send_alert(self, level, message):
        icon = ALERT_ICONS.get(level, "📢")
        return self.notify(f"{icon} *{level.upper()}*\n{message}")
