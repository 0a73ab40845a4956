"""
Twitter/X client (tweepy). v2 Client for tweets, v1.1 API for media upload.
"""

import logging
from datetime import datetime

import tweepy

from .. import config
from ..errors import RateLimitExceeded

logger = logging.getLogger("Twitter")

MAX_TWEET_LENGTH = 280


def _reset_from(error):
    response = getattr(error, "response", None)
    if response is None:
        return None
    reset = response.headers.get("x-rate-limit-reset")
    return datetime.fromtimestamp(int(reset)) if reset else None


class TwitterService:
    def __init__(self, client=None, api=None):
        self.client = client
        self.api = api

        if self.client is None and config.TWITTER_API_KEY and config.TWITTER_ACCESS_TOKEN:
            self.client = tweepy.Client(
                bearer_token=config.TWITTER_BEARER_TOKEN,
                consumer_key=config.TWITTER_API_KEY,
                consumer_secret=config.TWITTER_API_SECRET,
                access_token=config.TWITTER_ACCESS_TOKEN,
                access_token_secret=config.TWITTER_ACCESS_SECRET,
            )
            auth = tweepy.OAuth1UserHandler(
                config.TWITTER_API_KEY,
                config.TWITTER_API_SECRET,
                config.TWITTER_ACCESS_TOKEN,
                config.TWITTER_ACCESS_SECRET,
            )
            self.api = tweepy.API(auth)

        self.enabled = self.client is not None
        self._user_id = None
        if not self.enabled:
            logger.info("📵 Twitter not configured (optional)")

    def _create(self, **kwargs):
        kwargs["text"] = kwargs["text"][:MAX_TWEET_LENGTH]
        try:
            response = self.client.create_tweet(**kwargs)
        except tweepy.TooManyRequests as e:
            raise RateLimitExceeded("twitter", "post", reset_at=_reset_from(e)) from e
        tweet_id = response.data["id"]
        logger.info(f"🐦 Tweet posted: {tweet_id}")
        return tweet_id

    def post_text(self, text):
        return self._create(text=text)

    def post_image(self, text, image_path, in_reply_to=None):
        media = self.api.media_upload(filename=str(image_path))
        kwargs = {"text": text, "media_ids": [media.media_id]}
        if in_reply_to:
            kwargs["in_reply_to_tweet_id"] = in_reply_to
        return self._create(**kwargs)

    def reply(self, tweet_id, text):
        return self._create(text=text, in_reply_to_tweet_id=tweet_id)

    def like(self, tweet_id):
        try:
            self.client.like(tweet_id)
        except tweepy.TooManyRequests as e:
            raise RateLimitExceeded("twitter", "like", reset_at=_reset_from(e)) from e
        return True

    def get_mentions(self, since_id=None, max_results=10):
        """Recent mentions as dicts: id, text, author_id, username."""
        if self._user_id is None:
            self._user_id = self.client.get_me().data.id

        kwargs = {
            "max_results": max_results,
            "expansions": ["author_id"],
            "user_fields": ["username"],
        }
        if since_id:
            kwargs["since_id"] = since_id

        try:
            response = self.client.get_users_mentions(self._user_id, **kwargs)
        except tweepy.TooManyRequests as e:
            raise RateLimitExceeded("twitter", "mentions", reset_at=_reset_from(e)) from e

        users = {u.id: u.username for u in (response.includes or {}).get("users", [])}
        return [
            {
                "id": m.id,
                "text": m.text,
                "author_id": m.author_id,
                "username": users.get(m.author_id, "anon"),
            }
            for m in (response.data or [])
        ]
