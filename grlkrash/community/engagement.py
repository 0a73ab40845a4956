"""
Community action queue with per-platform engagement metrics.

Emits:
    action_queued(action)
    action_executed(action, success)
    metrics_updated(platform, metrics)
    challenge_generated(platform, prompt)
    error(exception, context)
"""

import logging
import random
import time
from dataclasses import asdict, dataclass, field

from .. import config
from ..events import EventEmitter
from ..storage import brain_store

logger = logging.getLogger("Community")

ACTION_TYPES = ("comment", "like", "share", "follow", "challenge")
MAX_QUEUE_SIZE = 100

CHALLENGE_TEMPLATES = [
    'Show us your best {sentiment} moves to "MORE"! 🎵 #MOREchallenge',
    'Create your own version of "MORE" and let\'s see what you got! 🎤 #MOREremix',
    "Duet with GRLKRASH and become part of the MORE community! 🎶 #MOREduet",
]


@dataclass
class CommunityAction:
    type: str
    platform: str
    target_id: str
    content: str = None
    priority: float = 0.0
    timestamp: float = field(default_factory=time.time)


def default_metrics():
    return {
        "interactions": 0,
        "response_rate": 1.0,
        "sentiment": 0.5,
        "challenge_participation": 0,
        "community_growth": 0,
    }


def log_only_executor(action):
    logger.info(f"🤝 {action.type} on {action.platform} for {action.target_id}")


class CommunityEngagementService(EventEmitter):
    def __init__(self, executor=None, store=None, rng=None):
        super().__init__()
        self.executor = executor or log_only_executor
        self.store = store or brain_store(config.BRAIN_DIR, "community_metrics")
        self.rng = rng or random.Random()
        self.queue = []
        self.metrics = self.store.load(default={}) or {}

    def get_metrics(self, platform):
        return dict(self.metrics.get(platform) or default_metrics())

    def calculate_priority(self, platform, action_type):
        metrics = self.get_metrics(platform)
        base = 0.8 if action_type == "challenge" else 0.5
        return base * (metrics["sentiment"] + metrics["response_rate"])

    def queue_community_action(self, platform, action_type, target_id, content=None):
        if action_type not in ACTION_TYPES:
            raise ValueError(f"Unknown community action: {action_type}")

        action = CommunityAction(
            type=action_type,
            platform=platform,
            target_id=str(target_id),
            content=content,
            priority=self.calculate_priority(platform, action_type),
        )
        self.queue.append(action)
        # stable sort keeps FIFO order among equal priorities
        self.queue.sort(key=lambda a: a.priority, reverse=True)
        del self.queue[MAX_QUEUE_SIZE:]

        self.emit("action_queued", action)
        return action

    def process_action_queue(self):
        """Drain the queue. Returns (succeeded, failed)."""
        succeeded = failed = 0
        while self.queue:
            action = self.queue.pop(0)
            try:
                self.executor(action)
            except Exception as e:
                logger.error(f"❌ {action.type} on {action.platform} failed: {e}")
                self.update_metrics(action.platform, False)
                self.emit("error", e, "process_action_queue")
                self.emit("action_executed", action, False)
                failed += 1
                continue

            self.update_metrics(action.platform, True)
            self.emit("action_executed", action, True)
            succeeded += 1
        return succeeded, failed

    def update_metrics(self, platform, success):
        current = self.get_metrics(platform)
        gained = 1 if success else 0
        updated = {
            **current,
            "interactions": current["interactions"] + gained,
            "response_rate": (current["interactions"] + gained) / (current["interactions"] + 1),
            "sentiment": (
                min(1.0, current["sentiment"] + 0.1) if success
                else max(0.0, current["sentiment"] - 0.05)
            ),
        }
        self.metrics[platform] = updated
        self.store.save(self.metrics)
        self.emit("metrics_updated", platform, updated)
        return updated

    def generate_challenge_prompt(self, platform):
        sentiment = "excited" if self.get_metrics(platform)["sentiment"] > 0.7 else "engaging"
        prompt = self.rng.choice(CHALLENGE_TEMPLATES).format(sentiment=sentiment)
        self.emit("challenge_generated", platform, prompt)
        return prompt

    def queue_snapshot(self):
        return [asdict(a) for a in self.queue]

    def cleanup(self):
        self.queue.clear()
        self.metrics.clear()
        self.remove_all_listeners()
