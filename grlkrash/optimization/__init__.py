from .approval import ApprovalWorkflow
from .base import ContentOptimizer, get_relevant_hashtags
from .learning import LearningOptimizer, flatten_features

__all__ = [
    "ApprovalWorkflow",
    "ContentOptimizer",
    "LearningOptimizer",
    "flatten_features",
    "get_relevant_hashtags",
]
