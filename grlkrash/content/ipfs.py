"""
IPFS content over public HTTP gateways.
"""

import logging

import requests

from .. import config
from ..errors import ContentNotFound

logger = logging.getLogger("IPFS")


class IPFSContentService:
    def __init__(self, gateways=None, cache_size=100, timeout=15):
        self.gateways = [gw.rstrip("/") for gw in (gateways or config.IPFS_GATEWAYS)]
        self.cache_size = cache_size
        self.timeout = timeout
        self._cache = {}

    def url_for(self, cid, gateway=None):
        return f"{gateway or self.gateways[0]}/ipfs/{cid}"

    def _remember(self, cid, data):
        self._cache[cid] = data
        while len(self._cache) > self.cache_size:
            # dicts keep insertion order, so the first key is the oldest
            del self._cache[next(iter(self._cache))]

    def get_content(self, cid):
        """Raw bytes for `cid`, trying each gateway in order."""
        if cid in self._cache:
            return self._cache[cid]

        for gateway in self.gateways:
            url = self.url_for(cid, gateway)
            try:
                response = requests.get(url, timeout=self.timeout)
            except requests.RequestException as e:
                logger.warning(f"⚠️ {gateway} failed for {cid}: {e}")
                continue
            if response.status_code == 200:
                self._remember(cid, response.content)
                return response.content
            logger.warning(f"⚠️ {gateway} returned {response.status_code} for {cid}")

        raise ContentNotFound(f"{cid} not available on any gateway")

    def get_content_metrics(self, cid):
        """{cid, url, size, content_type} from the first gateway that answers, or None."""
        for gateway in self.gateways:
            url = self.url_for(cid, gateway)
            try:
                response = requests.head(url, timeout=self.timeout, allow_redirects=True)
            except requests.RequestException as e:
                logger.warning(f"⚠️ HEAD {url} failed: {e}")
                continue
            if response.status_code == 200:
                size = response.headers.get("Content-Length")
                return {
                    "cid": cid,
                    "url": url,
                    "size": int(size) if size else None,
                    "content_type": response.headers.get("Content-Type"),
                }
        return None
