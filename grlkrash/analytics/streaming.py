"""
Streaming numbers for the MORE track.

Spotify's Web API has no play counts, so totals come from a JSON feed
(STREAM_COUNT_URL -> {"total_streams": N}); Spotify supplies the track URL
and popularity.
"""

import logging
import time

import requests

from .. import config

logger = logging.getLogger("Streaming")

SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"
SPOTIFY_TRACK_URL = "https://api.spotify.com/v1/tracks/{track_id}"


class StreamingAnalyticsService:
    def __init__(self, track_id=None, client_id=None, client_secret=None,
                 stream_count_url=None, clock=time.time):
        self.track_id = track_id or config.SPOTIFY_TRACK_ID
        self.client_id = client_id or config.SPOTIFY_CLIENT_ID
        self.client_secret = client_secret or config.SPOTIFY_CLIENT_SECRET
        self.stream_count_url = stream_count_url or config.STREAM_COUNT_URL
        self.clock = clock
        self._token = None
        self._token_expires = 0.0

    @property
    def spotify_enabled(self):
        return bool(self.client_id and self.client_secret and self.track_id)

    def _access_token(self):
        if self._token and self.clock() < self._token_expires:
            return self._token

        response = requests.post(
            SPOTIFY_TOKEN_URL,
            data={"grant_type": "client_credentials"},
            auth=(self.client_id, self.client_secret),
            timeout=15,
        )
        response.raise_for_status()
        data = response.json()
        self._token = data["access_token"]
        # refresh a minute early
        self._token_expires = self.clock() + int(data.get("expires_in", 3600)) - 60
        return self._token

    def get_track_info(self):
        if not self.spotify_enabled:
            return {"track_url": None, "popularity": None}

        response = requests.get(
            SPOTIFY_TRACK_URL.format(track_id=self.track_id),
            headers={"Authorization": f"Bearer {self._access_token()}"},
            timeout=15,
        )
        response.raise_for_status()
        track = response.json()
        return {
            "track_url": (track.get("external_urls") or {}).get("spotify"),
            "popularity": track.get("popularity"),
        }

    def get_total_streams(self):
        if not self.stream_count_url:
            logger.debug("No STREAM_COUNT_URL configured")
            return 0
        response = requests.get(self.stream_count_url, timeout=15)
        response.raise_for_status()
        return int(response.json().get("total_streams", 0))

    def get_track_metrics(self):
        metrics = {"total_streams": self.get_total_streams(), **self.get_track_info()}
        logger.info(f"🎧 Streams: {metrics['total_streams']:,}")
        return metrics
