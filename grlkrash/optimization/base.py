"""
Hashtag optimizer with a trending cache.
"""

import logging
import time

from ..events import EventEmitter

logger = logging.getLogger("Optimizer")

CACHE_DURATION = 30 * 60
DEFAULT_MAX_HASHTAGS = 3

PLATFORM_LENGTH_LIMITS = {
    "twitter": 280,
    "discord": 2000,
    "telegram": 4096,
    "instagram": 2200,
    "tiktok": 2200,
    "youtube": 5000,
}


def get_relevant_hashtags(trending, content_type=None, audience=None):
    """Content type and audience first, then trending tags that mention either."""
    relevant = []

    def add(tag):
        if tag not in relevant:
            relevant.append(tag)

    if content_type:
        add(content_type.lower())
    for group in audience or []:
        add(group.lower())

    needles = [n.lower() for n in ([content_type] if content_type else []) + list(audience or [])]
    for tag in trending:
        if any(needle in tag.lower() for needle in needles):
            add(tag)
    return relevant


class ContentOptimizer(EventEmitter):
    """
    Emits:
        optimization_error({error, text})
    """

    def __init__(self, fetcher=None, clock=time.time):
        super().__init__()
        self.fetcher = fetcher
        self.clock = clock
        self.trending = {}
        self.last_cache_update = 0.0

    def should_update_cache(self):
        return self.clock() - self.last_cache_update > CACHE_DURATION

    def update_trending_cache(self):
        if self.fetcher is None:
            return
        self.trending = {
            platform: list(tags)
            for platform, tags in (self.fetcher() or {}).items()
        }
        self.last_cache_update = self.clock()
        logger.info(f"🔥 Trending cache refreshed ({sum(map(len, self.trending.values()))} tags)")

    def optimize_content(self, text, platform, options=None):
        """Append relevant hashtags that still fit the platform limit."""
        options = options or {}
        try:
            if self.should_update_cache():
                self.update_trending_cache()

            tags = get_relevant_hashtags(
                self.trending.get(platform, []),
                options.get("content_type"),
                options.get("target_audience"),
            )
            limit = PLATFORM_LENGTH_LIMITS.get(platform)
            max_tags = options.get("max_hashtags", DEFAULT_MAX_HASHTAGS)

            optimized = text
            added = 0
            for tag in tags:
                if added >= max_tags:
                    break
                hashtag = "#" + tag.lstrip("#").replace(" ", "")
                if hashtag.lower() in optimized.lower():
                    continue
                candidate = f"{optimized} {hashtag}"
                if limit and len(candidate) > limit:
                    continue
                optimized = candidate
                added += 1
            return optimized
        except Exception as e:
            logger.error(f"❌ Error optimizing content: {e}")
            self.emit("optimization_error", {"error": e, "text": text})
            return text

    def cleanup(self):
        self.trending.clear()
        self.remove_all_listeners()
