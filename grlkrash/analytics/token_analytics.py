"""
TokenAnalyticsService - $MORE market data
=========================================
Pair data from the DexScreener public API, cached for five minutes.

Usage:
    analytics = TokenAnalyticsService(config.MORE_TOKEN_ADDRESS)
    metrics = analytics.get_token_metrics()
    campaign = analytics.should_execute_promotional_campaign()
"""

import logging
import time

import requests

from .. import config

logger = logging.getLogger("TokenStats")

CACHE_SECONDS = 5 * 60
MARKET_CAP_LEVELS = (100_000, 500_000, 1_000_000, 5_000_000)


def _float(value):
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class TokenAnalyticsService:
    def __init__(self, token_address=None, chain=None, base_url=None, clock=time.time):
        self.token_address = token_address or config.MORE_TOKEN_ADDRESS
        self.chain = chain
        self.base_url = (base_url or config.DEXSCREENER_URL).rstrip("/")
        self.clock = clock
        self._cached = None
        self._cached_at = 0.0

    def _fetch_pair(self):
        url = f"{self.base_url}/{self.token_address}"
        response = requests.get(url, timeout=15)
        response.raise_for_status()
        pairs = response.json().get("pairs") or []
        if self.chain:
            pairs = [p for p in pairs if p.get("chainId") == self.chain]
        if not pairs:
            raise LookupError(f"No DEX pairs found for {self.token_address}")
        return max(pairs, key=lambda p: _float((p.get("liquidity") or {}).get("usd")))

    def get_token_metrics(self, force_refresh=False):
        if not force_refresh and self._cached and self.clock() - self._cached_at < CACHE_SECONDS:
            return self._cached

        pair = self._fetch_pair()
        self._cached = {
            "price": _float(pair.get("priceUsd")),
            "market_cap": _float(pair.get("marketCap") or pair.get("fdv")),
            "volume_24h": _float((pair.get("volume") or {}).get("h24")),
            "liquidity": _float((pair.get("liquidity") or {}).get("usd")),
            "price_change_24h": _float((pair.get("priceChange") or {}).get("h24")),
            "holders": int(pair.get("holders") or 0),
        }
        self._cached_at = self.clock()
        logger.info(
            f"📈 $MORE ${self._cached['price']:.6f} | mcap ${self._cached['market_cap']:,.0f} "
            f"| 24h {self._cached['price_change_24h']:+.1f}%"
        )
        return self._cached

    def get_market_cap(self):
        return self.get_token_metrics()["market_cap"]

    def _history_from_metrics(self, metrics):
        # Without a price series, rebuild the 24h endpoints from the current change
        price = metrics["price"]
        change = metrics["price_change_24h"]
        if not price or change <= -100:
            return [price, price]
        return [price / (1 + change / 100), price]

    def analyze_market_trend(self, price_history=None):
        """{direction, strength, confidence, timeframe} from first vs last price."""
        if not price_history:
            price_history = self._history_from_metrics(self.get_token_metrics())

        first, last = price_history[0], price_history[-1]
        change = ((last - first) / first) * 100 if first else 0.0

        if change > 1:
            direction = "up"
        elif change < -1:
            direction = "down"
        else:
            direction = "stable"

        return {
            "direction": direction,
            "strength": min(abs(change) / 10, 1),
            "confidence": 0.8,
            "timeframe": "24h",
        }

    def should_execute_promotional_campaign(self, price_history=None):
        metrics = self.get_token_metrics()
        trend = self.analyze_market_trend(price_history)

        if trend["direction"] == "up" and trend["strength"] > 0.7:
            return {
                "should": True,
                "reason": "Strong upward momentum - capitalize on positive sentiment",
                "suggested_budget": min(metrics["volume_24h"] * 0.01, 1000),
            }

        if trend["direction"] == "down" and trend["strength"] > 0.5:
            return {
                "should": True,
                "reason": "Market correction - increase visibility to stabilize price",
                "suggested_budget": min(metrics["volume_24h"] * 0.02, 1500),
            }

        return {
            "should": False,
            "reason": "Market conditions don't warrant promotional campaign at this time",
        }

    def monitor_milestones(self, levels=MARKET_CAP_LEVELS):
        market_cap = self.get_market_cap()
        reached = []
        next_level = {"milestone": None, "remaining": float("inf")}

        for level in sorted(levels):
            if market_cap >= level:
                reached.append(f"Market cap ${level:,}")
            else:
                next_level = {"milestone": f"Market cap ${level:,}", "remaining": level - market_cap}
                break

        return {"reached": reached, "next": next_level}
