"""
MilestoneReleaseService - market cap & stream triggers
======================================================
Watches $MORE market cap and MORE stream counts. When a threshold is met
the milestone's content is released, teased or promoted, its reward action
(if any) is executed on-chain and the promotion goes out to every platform.

Each milestone fires at most once: completion is written to
`<brain>/milestones.json`. Steps already done for a milestone that failed
halfway are not repeated on the next check.

Emits:
    milestone_completed({id, type, market_cap, streaming_count, content})
    milestone_error({milestone, error})
"""

import copy
import logging
import threading
import time

from .. import config
from ..errors import AgentError, ContentNotFound
from ..events import EventEmitter
from ..logging_utils import log_activity
from ..storage import brain_store

logger = logging.getLogger("Milestones")

COMMUNITY_REWARDS = {"streaming_multiplier": 0.1, "max_reward_rate": 0.2, "min_stake_amount": 1000}
NFT_MINTING = {"max_supply": 10_000, "mint_price": 1000}
NFT_BONUS_STREAMS = 200_000

RELEASE_PLATFORMS = ["twitter", "discord", "telegram"]


class MilestoneReleaseService(EventEmitter):
    CHECK_INTERVAL = 300

    def __init__(self, broadcaster, token_analytics=None, streaming=None, ipfs=None,
                 token_contract=None, milestones=None, store=None, clock=time.time):
        super().__init__()
        self.broadcaster = broadcaster
        self.token_analytics = token_analytics
        self.streaming = streaming
        self.ipfs = ipfs
        self.token_contract = token_contract
        self.milestones = copy.deepcopy(config.DEFAULT_MILESTONES if milestones is None else milestones)
        self.store = store or brain_store(config.BRAIN_DIR, "milestones")
        self.clock = clock
        self.state = self.store.load(default={}) or {}
        self.last_context = None

    def _entry(self, milestone_id):
        return self.state.setdefault(milestone_id, {"completed_at": None, "steps": []})

    def is_completed(self, milestone):
        return bool(self.state.get(milestone["id"], {}).get("completed_at"))

    def _read_metrics(self):
        market_cap = self.token_analytics.get_market_cap() if self.token_analytics else 0
        streaming = (
            self.streaming.get_track_metrics() if self.streaming
            else {"total_streams": 0, "track_url": None}
        )
        self.last_context = {"market_cap": market_cap, "streaming_metrics": streaming}
        return self.last_context

    def pending_milestones(self, context):
        market_cap = context["market_cap"]
        streams = context["streaming_metrics"].get("total_streams", 0)
        open_ = [m for m in self.milestones if not self.is_completed(m)]
        by_cap = [m for m in open_ if m.get("market_cap") and market_cap >= m["market_cap"]]
        by_streams = [m for m in open_ if m.get("streaming_count") and streams >= m["streaming_count"]]
        return by_cap + by_streams

    def check_milestones(self):
        """Run every due milestone. Returns the ids completed by this check."""
        try:
            context = self._read_metrics()
        except Exception as e:
            logger.error(f"❌ Could not read milestone metrics: {e}")
            return []

        completed = []
        for milestone in self.pending_milestones(context):
            try:
                self.execute_milestone(milestone, context)
            except Exception as e:
                logger.error(f"❌ Milestone {milestone['id']} failed: {e}")
                self.emit("milestone_error", {"milestone": milestone, "error": e})
                continue

            self._entry(milestone["id"])["completed_at"] = self.clock()
            self.store.save(self.state)
            completed.append(milestone["id"])
        return completed

    def _step(self, milestone, name, fn):
        entry = self._entry(milestone["id"])
        if name in entry["steps"]:
            return
        fn()
        entry["steps"].append(name)
        self.store.save(self.state)

    def execute_milestone(self, milestone, context):
        content_meta = None
        cid = milestone["content"].get("ipfs_hash")
        if cid:
            if self.ipfs is None:
                raise AgentError("IPFS service not configured")
            content_meta = self.ipfs.get_content_metrics(cid)
            if not content_meta:
                raise ContentNotFound(f"{cid} not found in IPFS")

        action = milestone["action"]
        if action == "release":
            self._step(milestone, "release", lambda: self._release(milestone, content_meta))
        elif action == "tease":
            self._step(milestone, "tease", lambda: self._tease(milestone, content_meta))
        elif action == "promote":
            self._step(milestone, "promote", lambda: self._promote(milestone, context))
        else:
            raise AgentError(f"Unknown milestone action: {action}")

        reward = milestone.get("reward_action")
        if reward:
            self._step(milestone, "reward", lambda: self.execute_reward_action(reward, context))

        promotion = milestone.get("promotion")
        if promotion:
            if milestone["content"]["type"] == "announcement":
                campaign_content = {"type": "text", "message": milestone["content"].get("message")}
            else:
                campaign_content = {
                    "type": milestone["content"]["type"],
                    "url": content_meta["url"] if content_meta else None,
                }
            self._step(milestone, "promotion", lambda: self.broadcaster.create_campaign(
                promotion["message"], promotion["platforms"], campaign_content
            ))

        streams = context["streaming_metrics"].get("total_streams")
        logger.info(f"🏁 Milestone {milestone['id']} completed")
        log_activity("MILESTONE", f"{milestone['id']} (mcap ${context['market_cap']:,.0f}, streams {streams})")
        self.emit("milestone_completed", {
            "id": milestone["id"],
            "type": action,
            "market_cap": context["market_cap"],
            "streaming_count": streams,
            "content": milestone["content"],
        })

    def _release(self, milestone, content_meta):
        self.broadcaster.create_campaign(
            "🎵 MORE - Official Release is out now!",
            RELEASE_PLATFORMS,
            {"type": milestone["content"]["type"], "url": content_meta["url"] if content_meta else None},
        )

    def _tease(self, milestone, content_meta):
        promotion = milestone.get("promotion") or {}
        self.broadcaster.create_teaser(
            content_meta["url"] if content_meta else None,
            promotion.get("platforms") or ["twitter", "discord"],
            promotion.get("message") or milestone["content"].get("message", ""),
        )

    def _promote(self, milestone, context):
        message = milestone["content"].get("message") or milestone.get("promotion", {}).get("message", "")
        self.broadcaster.create_campaign(
            message,
            RELEASE_PLATFORMS,
            {"type": "text", "url": context["streaming_metrics"].get("track_url")},
        )

    def execute_reward_action(self, action, context):
        if self.token_contract is None:
            raise AgentError(f"Cannot run {action}: no token contract configured")

        if action == "enable_community_rewards":
            return self.token_contract.enable_community_rewards(**COMMUNITY_REWARDS)

        if action == "enable_nft_minting":
            streams = context["streaming_metrics"].get("total_streams", 0)
            bonus = 0.5 if streams > NFT_BONUS_STREAMS else 0.2
            return self.token_contract.enable_nft_minting(streaming_bonus=bonus, **NFT_MINTING)

        raise AgentError(f"Unknown reward action: {action}")

    def status(self):
        rows = []
        for m in self.milestones:
            entry = self.state.get(m["id"], {})
            rows.append({
                "id": m["id"],
                "action": m["action"],
                "market_cap": m.get("market_cap"),
                "streaming_count": m.get("streaming_count"),
                "completed": bool(entry.get("completed_at")),
                "completed_at": entry.get("completed_at"),
                "steps": list(entry.get("steps", [])),
            })
        return rows

    def run_forever(self, interval=None, stop=None):
        interval = interval or self.CHECK_INTERVAL
        stop = stop or threading.Event()
        logger.info(f"👀 Milestone monitor every {interval}s")
        while not stop.is_set():
            self.check_milestones()
            stop.wait(interval)
