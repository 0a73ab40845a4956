"""
ApprovalWorkflow - gate for automatic content changes
=====================================================
An optimized variant only replaces the original when predictions are
confident, the change is not risky and the expected gain is worth it.
A rejection puts that piece of content on a 24h cool-down.

Emits:
    decision_recorded({platform, content_id, approved, reason})
"""

import logging
import time

from ..events import EventEmitter

logger = logging.getLogger("Approval")

COOLDOWN = 24 * 60 * 60
RISK_LEVELS = {"low": 0, "medium": 1, "high": 2}
DRAMATIC_CHANGE = 0.5
DEFAULT_IMPACT = 0.1
MAX_TWEET_LENGTH = 280

DEFAULT_CRITERIA = {
    "min_confidence": 0.7,
    "max_risk_level": "medium",
    "min_predicted_improvement": 0.1,
    "required_metrics": ["engagement", "reach", "conversion"],
    "platform_specific": {
        "twitter": {
            "additional_checks": ["sentiment", "viral_potential", "tweet_length"],
            "restricted_changes": ["user_mentions", "sensitive_content"],
        },
        "instagram": {
            "additional_checks": ["visual_appeal", "hashtag_relevance"],
            "restricted_changes": ["filtered_content", "excessive_hashtags"],
        },
        "youtube": {
            "additional_checks": ["retention_rate", "click_through_rate"],
            "restricted_changes": ["thumbnail_misleading", "title_clickbait"],
        },
        "tiktok": {
            "additional_checks": ["trend_alignment", "sound_usage"],
            "restricted_changes": ["copyrighted_music", "restricted_effects"],
        },
    },
}


def predict_metric_change(before, after):
    """Relative change for numbers (clamped to +/-1), a flat 10% for anything else."""
    numeric = (int, float)
    if isinstance(before, numeric) and isinstance(after, numeric) and not isinstance(before, bool):
        if before == 0:
            return DEFAULT_IMPACT if after else 0.0
        return max(-1.0, min(1.0, (after - before) / abs(before)))
    return DEFAULT_IMPACT


def _change_entry(field, before, after):
    change = predict_metric_change(before, after)
    return {
        "field": field,
        "before": before,
        "after": after,
        "impact": [
            {"metric": "engagement", "predicted_change": change, "confidence": 0.8},
            {"metric": "reach", "predicted_change": change, "confidence": 0.75},
        ],
    }


def analyze_changes(original, optimized, path=""):
    """Recursive diff of two nested values, one entry per changed leaf."""
    if type(original) is not type(optimized):
        return [_change_entry(path, original, optimized)]

    if isinstance(original, dict):
        changes = []
        for key in list(dict.fromkeys([*original, *optimized])):
            sub = f"{path}.{key}" if path else str(key)
            changes += analyze_changes(original.get(key), optimized.get(key), sub)
        return changes

    if original != optimized:
        return [_change_entry(path, original, optimized)]
    return []


def _tweet_length(proposal):
    optimized = proposal["optimized"]
    if not isinstance(optimized, dict) or "text" not in optimized:
        return True
    return len(optimized["text"]) <= MAX_TWEET_LENGTH


class ApprovalWorkflow(EventEmitter):
    def __init__(self, criteria=None, checks=None, clock=time.time):
        super().__init__()
        self.criteria = {**DEFAULT_CRITERIA, **(criteria or {})}
        # name -> fn(proposal) -> bool; checks without a validator pass
        self.checks = {"tweet_length": _tweet_length, **(checks or {})}
        self.clock = clock
        self.history = {}

    def _platform_rules(self, platform):
        return (self.criteria.get("platform_specific") or {}).get(platform) or {}

    def assess_risks(self, platform, changes, predictions):
        factors = []
        level = "low"

        def raise_to(new):
            nonlocal level
            if RISK_LEVELS[new] > RISK_LEVELS[level]:
                level = new

        restricted = self._platform_rules(platform).get("restricted_changes", [])
        if any(r in change["field"] for change in changes for r in restricted):
            factors.append("Contains restricted changes")
            raise_to("high")

        if predictions.get("confidence", 0) < self.criteria["min_confidence"]:
            factors.append("Low prediction confidence")
            raise_to("medium")

        if any(abs(i["predicted_change"]) > DRAMATIC_CHANGE for c in changes for i in c["impact"]):
            factors.append("Contains dramatic changes")
            raise_to("medium")

        return {"level": level, "factors": factors}

    def generate_proposal(self, platform, content_id, original, optimized, predictions):
        changes = analyze_changes(original, optimized)
        return {
            "platform": platform,
            "content_id": content_id,
            "original": original,
            "optimized": optimized,
            "changes": changes,
            "predicted_performance": predictions,
            "risk_assessment": self.assess_risks(platform, changes, predictions),
        }

    def has_recent_failure(self, platform, content_id):
        cutoff = self.clock() - COOLDOWN
        return any(
            not h["approved"] and h["timestamp"] > cutoff
            for h in self.history.get(f"{platform}:{content_id}", [])
        )

    def evaluate_against_criteria(self, proposal):
        predicted = proposal["predicted_performance"]
        criteria = self.criteria

        if predicted.get("confidence", 0) < criteria["min_confidence"]:
            return False, "Insufficient confidence in predictions"

        level = proposal["risk_assessment"]["level"]
        if RISK_LEVELS[level] > RISK_LEVELS[criteria["max_risk_level"]]:
            return False, f"Risk level ({level}) exceeds maximum allowed ({criteria['max_risk_level']})"

        metrics = criteria["required_metrics"]
        average = sum(predicted.get(m, 0) for m in metrics) / len(metrics)
        if average < criteria["min_predicted_improvement"]:
            return False, "Insufficient predicted improvement"

        checks = self._platform_rules(proposal["platform"]).get("additional_checks", [])
        failed = [c for c in checks if c in self.checks and not self.checks[c](proposal)]
        if failed:
            return False, f"Failed platform-specific checks: {', '.join(failed)}"

        return True, "Meets all approval criteria"

    def evaluate_optimization(self, platform, content_id, original, optimized, predictions):
        """Returns {approved, reason, proposal}."""
        proposal = self.generate_proposal(platform, content_id, original, optimized, predictions)

        if self.has_recent_failure(platform, content_id):
            return {
                "approved": False,
                "reason": "Recent optimization failure, waiting for cool-down period",
                "proposal": proposal,
            }

        approved, reason = self.evaluate_against_criteria(proposal)
        self.record_decision(platform, content_id, approved, reason)
        return {"approved": approved, "reason": reason, "proposal": proposal}

    def record_decision(self, platform, content_id, approved, reason):
        self.history.setdefault(f"{platform}:{content_id}", []).append({
            "timestamp": self.clock(),
            "approved": approved,
            "reason": reason,
            "performance": None,
        })
        logger.info(f"{'✅' if approved else '🚫'} {platform}:{content_id} - {reason}")
        self.emit("decision_recorded", {
            "platform": platform,
            "content_id": content_id,
            "approved": approved,
            "reason": reason,
        })

    def update_performance(self, platform, content_id, performance):
        entries = self.history.get(f"{platform}:{content_id}")
        if entries:
            entries[-1]["performance"] = performance

    def cleanup(self):
        self.history.clear()
        self.remove_all_listeners()
