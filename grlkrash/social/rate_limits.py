"""
Hourly / daily action counters per platform:action.

Emits:
    approaching_hourly_limit({platform, action, current, limit})
    approaching_daily_limit({platform, action, current, limit})
"""

import logging
from datetime import datetime, timedelta

from .. import config
from ..errors import RateLimitExceeded
from ..events import EventEmitter

logger = logging.getLogger("RateLimits")

WARNING_THRESHOLD = 0.8


def next_hour(now):
    return now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)


def next_midnight(now):
    return now.replace(hour=0, minute=0, second=0, microsecond=0) + timedelta(days=1)


class RateLimitManager(EventEmitter):
    def __init__(self, limits=None, clock=datetime.now):
        super().__init__()
        self.limits = dict(config.PLATFORM_LIMITS if limits is None else limits)
        self.clock = clock
        self._usage = {}

    @staticmethod
    def _key(platform, action):
        return f"{platform}:{action}"

    def _usage_for(self, key):
        now = self.clock()
        usage = self._usage.get(key)
        if usage is None:
            usage = {
                "hourly": {"count": 0, "reset_at": next_hour(now)},
                "daily": {"count": 0, "reset_at": next_midnight(now)},
            }
            self._usage[key] = usage
            return usage

        if now >= usage["hourly"]["reset_at"]:
            usage["hourly"] = {"count": 0, "reset_at": next_hour(now)}
        if now >= usage["daily"]["reset_at"]:
            usage["daily"] = {"count": 0, "reset_at": next_midnight(now)}
        return usage

    def check_limit(self, platform, action):
        """True if one more `action` on `platform` is allowed right now."""
        key = self._key(platform, action)
        limit = self.limits.get(key)
        if not limit:
            return True

        usage = self._usage_for(key)
        return (
            usage["hourly"]["count"] < limit["per_hour"]
            and usage["daily"]["count"] < limit["per_day"]
        )

    def increment_usage(self, platform, action):
        key = self._key(platform, action)
        limit = self.limits.get(key)
        if not limit:
            return

        usage = self._usage_for(key)
        usage["hourly"]["count"] += 1
        usage["daily"]["count"] += 1

        for bucket, cap in (("hourly", limit["per_hour"]), ("daily", limit["per_day"])):
            current = usage[bucket]["count"]
            if current >= cap * WARNING_THRESHOLD:
                logger.warning(f"⚠️ {key} at {current}/{cap} ({bucket})")
                self.emit(f"approaching_{bucket}_limit", {
                    "platform": platform,
                    "action": action,
                    "current": current,
                    "limit": cap,
                })

    def get_remaining_limits(self, platform, action):
        key = self._key(platform, action)
        limit = self.limits.get(key)
        if not limit or key not in self._usage:
            now = self.clock()
            return {
                "hourly": {"remaining": float("inf"), "reset_at": now},
                "daily": {"remaining": float("inf"), "reset_at": now},
            }

        usage = self._usage_for(key)
        return {
            "hourly": {
                "remaining": max(0, limit["per_hour"] - usage["hourly"]["count"]),
                "reset_at": usage["hourly"]["reset_at"],
            },
            "daily": {
                "remaining": max(0, limit["per_day"] - usage["daily"]["count"]),
                "reset_at": usage["daily"]["reset_at"],
            },
        }

    def acquire(self, platform, action):
        """Check and count one action. Raises RateLimitExceeded when blocked."""
        if not self.check_limit(platform, action):
            remaining = self.get_remaining_limits(platform, action)
            blocked = [b for b in ("hourly", "daily") if remaining[b]["remaining"] <= 0]
            reset_at = max(remaining[b]["reset_at"] for b in blocked) if blocked else None
            raise RateLimitExceeded(platform, action, reset_at=reset_at)
        self.increment_usage(platform, action)

    def snapshot(self):
        """Remaining counts for every configured key that has been used."""
        return {
            key: self.get_remaining_limits(*key.split(":", 1))
            for key in list(self._usage)
        }

    def cleanup(self):
        self._usage.clear()
        self.remove_all_listeners()
