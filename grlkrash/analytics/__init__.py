from .streaming import StreamingAnalyticsService
from .token_analytics import TokenAnalyticsService

__all__ = ["StreamingAnalyticsService", "TokenAnalyticsService"]
