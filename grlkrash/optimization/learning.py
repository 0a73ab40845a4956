"""
Per-post linear performance model.

Features are nested dicts flattened to dotted keys; each `platform:content_id`
gets its own weights, per-category biases and 30 days of history.
"""

import logging
import time

from ..events import EventEmitter

logger = logging.getLogger("Learning")

LEARNING_RATE = 0.01
MIN_CONFIDENCE = 0.6
HISTORY_WINDOW = 30 * 24 * 60 * 60
CONFIDENCE_SAMPLE = 10
MIN_FACTOR_IMPACT = 0.1
MAX_FACTORS = 10


def _number(value):
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return 0
    return 0


def flatten_features(features, prefix=""):
    """{"a": {"b": 2, "tags": ["x"]}} -> {"a.b": 2, "a.tags.length": 1, "a.tags.0": 1}"""
    flat = {}
    for key, value in features.items():
        name = f"{prefix}.{key}" if prefix else key
        if isinstance(value, dict):
            flat.update(flatten_features(value, name))
        elif isinstance(value, (list, tuple)):
            flat[f"{name}.length"] = len(value)
            for i, item in enumerate(value):
                is_number = isinstance(item, (int, float)) and not isinstance(item, bool)
                flat[f"{name}.{i}"] = item if is_number else 1
        else:
            flat[name] = _number(value)
    return flat


def calculate_outcome(metrics):
    return (
        metrics.get("engagement", 0) * 0.4
        + metrics.get("reach", 0) * 0.3
        + metrics.get("conversion", 0) * 0.3
    )


class LearningOptimizer(EventEmitter):
    def __init__(self, clock=time.time):
        super().__init__()
        self.clock = clock
        self.models = {}

    def get_model(self, platform, content_id):
        key = f"{platform}:{content_id}"
        if key not in self.models:
            self.models[key] = {"weights": {}, "biases": {}, "history": [], "confidence": MIN_CONFIDENCE}
        return self.models[key]

    @staticmethod
    def predict(model, features):
        prediction = sum(
            model["weights"].get(name, 0) * value
            for name, value in flatten_features(features).items()
        )
        prediction += sum(model["biases"].get(category, 0) for category in features)
        return prediction

    def train_model(self, platform, content_id, features, metrics):
        model = self.get_model(platform, content_id)
        outcome = calculate_outcome(metrics)
        now = self.clock()

        model["history"].append({"features": features, "outcome": outcome, "timestamp": now})
        model["history"] = [h for h in model["history"] if h["timestamp"] > now - HISTORY_WINDOW]

        # each update sees the previous ones
        for name, value in flatten_features(features).items():
            error = outcome - self.predict(model, features)
            model["weights"][name] = model["weights"].get(name, 0) + LEARNING_RATE * error * value

        for category in features:
            error = outcome - self.predict(model, features)
            model["biases"][category] = model["biases"].get(category, 0) + LEARNING_RATE * error

        model["confidence"] = self.calculate_confidence(model)
        logger.debug(f"📚 {platform}:{content_id} outcome={outcome:.3f} confidence={model['confidence']:.2f}")
        self.emit("model_trained", {"key": f"{platform}:{content_id}", "confidence": model["confidence"]})
        return model

    def calculate_confidence(self, model):
        history = model["history"]
        if len(history) < CONFIDENCE_SAMPLE:
            return MIN_CONFIDENCE

        recent = history[-CONFIDENCE_SAMPLE:]
        mean_error = sum(abs(self.predict(model, h["features"]) - h["outcome"]) for h in recent) / len(recent)
        return max(MIN_CONFIDENCE, 1 - mean_error / 2)

    def predict_performance(self, platform, content_id, features):
        model = self.get_model(platform, content_id)

        factors = []
        for name, value in flatten_features(features).items():
            impact = abs(model["weights"].get(name, 0) * value)
            if impact > MIN_FACTOR_IMPACT:
                factors.append({"factor": name, "weight": impact})
        factors.sort(key=lambda f: f["weight"], reverse=True)

        return {
            "score": self.predict(model, features),
            "confidence": model["confidence"],
            "factors": factors[:MAX_FACTORS],
        }

    def cleanup(self):
        self.models.clear()
        self.remove_all_listeners()
