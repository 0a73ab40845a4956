"""
GRLKRASHai - the 24/7 marketing agent
=====================================
Wires the configured services together and runs the main loop:

1. Answer Twitter mentions (meme / shill / create / ignore)
2. Work through the community engagement queue
3. Check market cap & stream milestones
4. Settle expired governance proposals
5. Report status to Telegram every few cycles

Subsystems without credentials stay disabled; the rest keep running.

Usage:
    agent = GRLKRASHAgent()
    agent.run()
"""

import logging
import time

from . import __version__, config
from .analytics import StreamingAnalyticsService, TokenAnalyticsService
from .automation import MilestoneReleaseService
from .chain import ContractService, LedgerService, LocalSigner, MemoryCrystalContract, TokenContract
from .community import CommunityEngagementService
from .content import ContentGenerator, IPFSContentService
from .content.generator import IGNORE, POST_MEME, meme_path
from .errors import RateLimitExceeded
from .governance import GovernanceManager, VotingSecurityService
from .logging_utils import log_activity
from .optimization import ContentOptimizer
from .social import DiscordService, RateLimitManager, SocialBroadcaster, TelegramService, TwitterService
from .storage import brain_store

logger = logging.getLogger("GRLKRASHai")

MAX_ERRORS_IN_ROW = 5
HISTORY_LIMIT = 200

CONTENT_TYPES = {"POST_MEME": "meme", "POST_SHILL": "MORE", "POST_TEXT": "art"}


def build_signer():
    """Ledger if USE_LEDGER, else the PRIVATE_KEY wallet, else None (read-only)."""
    if config.USE_LEDGER:
        ledger = LedgerService(derivation_path=config.LEDGER_PATH)
        if ledger.connect():
            return ledger
        logger.warning("🔐 Ledger unavailable, on-chain writes disabled")
        return None
    if config.PRIVATE_KEY:
        return LocalSigner(config.PRIVATE_KEY)
    logger.info("🔐 No signer configured, on-chain writes disabled")
    return None


class GRLKRASHAgent:
    def __init__(self, components=None, clock=time.time, sleep=time.sleep):
        c = components or {}
        self.clock = clock
        self.sleep = sleep

        def pick(name, factory):
            return c[name] if name in c else factory()

        # Chain
        self.signer = pick("signer", build_signer)
        self.contracts = pick("contracts", lambda: (
            ContractService(signer=self.signer) if config.MORE_TOKEN_ADDRESS else None
        ))
        self.token = pick("token", lambda: (
            TokenContract(self.contracts, config.MORE_TOKEN_ADDRESS) if self.contracts else None
        ))
        self.crystals = pick("crystals", lambda: (
            MemoryCrystalContract(self.contracts, config.MEMORY_CRYSTAL_ADDRESS)
            if self.contracts and config.MEMORY_CRYSTAL_ADDRESS else None
        ))

        # Social
        self.rate_limits = pick("rate_limits", RateLimitManager)
        self.twitter = pick("twitter", TwitterService)
        self.telegram = pick("telegram", TelegramService)
        self.discord = pick("discord", DiscordService)
        self.broadcaster = pick("broadcaster", lambda: SocialBroadcaster(
            self.rate_limits, twitter=self.twitter, telegram=self.telegram, discord=self.discord
        ))

        # Content
        self.content = pick("content", lambda: ContentGenerator() if config.OPENAI_API_KEY else None)
        self.optimizer = pick("optimizer", ContentOptimizer)
        self.ipfs = pick("ipfs", IPFSContentService)

        # Analytics / automation
        self.token_analytics = pick("token_analytics", lambda: (
            TokenAnalyticsService() if config.MORE_TOKEN_ADDRESS else None
        ))
        self.streaming = pick("streaming", StreamingAnalyticsService)
        self.milestones = pick("milestones", lambda: MilestoneReleaseService(
            self.broadcaster,
            token_analytics=self.token_analytics,
            streaming=self.streaming,
            ipfs=self.ipfs,
            token_contract=self.token,
        ))

        # Community / governance
        self.community = pick("community", lambda: CommunityEngagementService(
            executor=self.execute_community_action
        ))
        self.security = pick("security", lambda: VotingSecurityService(
            token_contract=self.token, nft_contract=self.crystals
        ))
        self.governance = pick("governance", lambda: GovernanceManager(
            self.security, token_contract=self.token
        ))

        # State
        self.state_store = pick("state_store", lambda: brain_store(config.BRAIN_DIR, "agent_state"))
        self.history_store = pick("history_store", lambda: brain_store(config.BRAIN_DIR, "cycles"))
        self.state = self.state_store.load(default={}) or {}
        self.history = self.history_store.load(default=[]) or []
        self.cycle = self.state.get("cycle", 0)
        self.errors_in_row = 0
        self.last_milestone_check = 0.0

        self._wire_events()
        logger.info(f"🤖 {config.AGENT_NAME} v{__version__} ready | services: {self.services()}")

    # --- Wiring ---

    def _wire_events(self):
        self.milestones.on("milestone_completed", lambda info: self.telegram.send_alert(
            "info", f"🏁 Milestone *{info['id']}* completed"
        ))
        self.milestones.on("milestone_error", lambda info: self.telegram.send_alert(
            "warning", f"Milestone *{info['milestone']['id']}* failed: {info['error']}"
        ))
        self.security.on("suspicious_activity_threshold_reached", lambda info: self.telegram.send_alert(
            "warning", f"🚩 {info['user_id']} flagged {info['count']} times, voting blocked"
        ))
        self.rate_limits.on("approaching_daily_limit", lambda info: self.telegram.send_alert(
            "warning", f"{info['platform']}:{info['action']} at {info['current']}/{info['limit']} today"
        ))
        if isinstance(self.signer, LedgerService):
            self.signer.on("disconnected", lambda: self.telegram.send_alert(
                "critical", "🔐 Ledger disconnected, on-chain actions will fail"
            ))

    def services(self):
        return {
            "twitter": bool(self.twitter and self.twitter.enabled),
            "telegram": bool(self.telegram and self.telegram.enabled),
            "discord": bool(self.discord and self.discord.enabled),
            "openai": self.content is not None,
            "chain_reads": self.contracts is not None,
            "chain_writes": bool(self.contracts and self.contracts.manager),
            "token_analytics": self.token_analytics is not None,
            "spotify": bool(self.streaming and self.streaming.spotify_enabled),
        }

    @property
    def transactions(self):
        return self.contracts.manager if self.contracts else None

    # --- Mentions ---

    def handle_mention(self, mention):
        """Decide on a mention and reply. Returns the Decision."""
        decision = self.content.process_mention(mention["text"], mention.get("username", "anon"))

        if decision.action == IGNORE:
            self.community.queue_community_action("twitter", "like", mention["id"])
            return decision

        text = self.optimizer.optimize_content(
            decision.content, "twitter", {"content_type": CONTENT_TYPES.get(decision.action)}
        )
        self.rate_limits.acquire("twitter", "post")

        if decision.action == POST_MEME:
            image = meme_path(decision.image_key)
            if image.exists():
                self.twitter.post_image(text, image, in_reply_to=mention["id"])
            else:
                logger.warning(f"🖼️ {image} missing, replying without the meme")
                self.twitter.reply(mention["id"], text)
        else:
            self.twitter.reply(mention["id"], text)

        log_activity("REPLY", f"@{mention.get('username')} {decision.action}")
        return decision

    def execute_community_action(self, action):
        if action.platform == "twitter" and self.twitter and self.twitter.enabled:
            if action.type == "like":
                self.twitter.like(action.target_id)
                return
            if action.type == "comment" and action.content:
                self.rate_limits.acquire("twitter", "post")
                self.twitter.reply(action.target_id, action.content)
                return
        logger.info(f"🤝 {action.type} on {action.platform} for {action.target_id} (log only)")

    def poll_mentions(self):
        if not (self.twitter and self.twitter.enabled and self.content):
            return 0

        mentions = self.twitter.get_mentions(since_id=self.state.get("last_mention_id"))
        handled = 0
        # API returns newest first
        for mention in sorted(mentions, key=lambda m: int(m["id"])):
            try:
                self.handle_mention(mention)
            except RateLimitExceeded as e:
                logger.warning(f"⏳ Twitter rate limited until {e.reset_at}, stopping replies")
                break
            except Exception as e:
                logger.error(f"❌ Mention {mention['id']} failed: {e}")
            else:
                handled += 1
            self.state["last_mention_id"] = str(mention["id"])
        self.state_store.save(self.state)
        return handled

    # --- Loop ---

    def _step(self, summary, name, fn):
        try:
            summary[name] = fn()
        except Exception as e:
            logger.error(f"🔥 {name} failed: {e}")
            summary["errors"].append(f"{name}: {e}")

    def run_cycle(self):
        self.cycle += 1
        now = self.clock()
        summary = {"cycle": self.cycle, "time": now, "errors": []}
        logger.info(f"📡 Cycle #{self.cycle}")

        self._step(summary, "mentions", self.poll_mentions)
        self._step(summary, "community", self.community.process_action_queue)

        if now - self.last_milestone_check >= config.MILESTONE_CHECK_SECONDS:
            self.last_milestone_check = now
            self._step(summary, "milestones", self.milestones.check_milestones)

        self._step(summary, "finalized", self.governance.finalize_expired)

        if self.cycle % config.STATUS_REPORT_EVERY == 0:
            self._step(summary, "status_report", self.send_status_report)

        summary["ok"] = not summary["errors"]
        self.history.append(summary)
        self.history = self.history[-HISTORY_LIMIT:]
        self.history_store.save(self.history)
        self.state["cycle"] = self.cycle
        self.state_store.save(self.state)
        return summary

    def stats(self):
        context = self.milestones.last_context or {}
        milestones = self.milestones.status()
        manager = self.transactions
        return {
            "cycles": self.cycle,
            "consecutive_failures": self.errors_in_row,
            "market_cap": context.get("market_cap", 0),
            "streams": (context.get("streaming_metrics") or {}).get("total_streams", 0),
            "milestones_completed": sum(1 for m in milestones if m["completed"]),
            "milestones_total": len(milestones),
            "transactions": {"pending": len(manager.pending) if manager else 0},
        }

    def send_status_report(self):
        sent = self.telegram.send_status(config.AGENT_NAME, self.stats())
        logger.info("📊 Status report sent")
        return sent

    def run(self, interval=None, max_cycles=None):
        """Loop until interrupted. Returns False if stopped by repeated failures."""
        interval = interval or config.CYCLE_INTERVAL_SECONDS
        logger.info(f"🚀 Starting loop (every {interval}s)")
        self.telegram.send_alert("info", f"*{config.AGENT_NAME}* is online 🟢")

        cycles_run = 0
        while True:
            try:
                summary = self.run_cycle()
                self.errors_in_row = 0 if summary["ok"] else self.errors_in_row + 1
            except KeyboardInterrupt:
                break
            except Exception as e:
                logger.error(f"🔥 Loop error: {e}")
                self.errors_in_row += 1

            if self.errors_in_row >= MAX_ERRORS_IN_ROW:
                logger.critical(f"🛑 {MAX_ERRORS_IN_ROW} consecutive failed cycles. Shutting down.")
                self.telegram.send_alert(
                    "critical", f"{config.AGENT_NAME} shutting down: {MAX_ERRORS_IN_ROW} consecutive errors"
                )
                return False

            cycles_run += 1
            if max_cycles and cycles_run >= max_cycles:
                return True

            try:
                logger.info(f"⏳ Sleeping {interval}s...")
                self.sleep(interval)
            except KeyboardInterrupt:
                break

        logger.info("🛑 Shutdown requested")
        self.telegram.send_alert("info", f"*{config.AGENT_NAME}* going offline 🔴")
        return True
