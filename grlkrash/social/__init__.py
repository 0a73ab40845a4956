from .broadcaster import SocialBroadcaster
from .discord import DiscordService
from .rate_limits import RateLimitManager
from .telegram import TelegramService
from .twitter import TwitterService

__all__ = [
    "DiscordService",
    "RateLimitManager",
    "SocialBroadcaster",
    "TelegramService",
    "TwitterService",
]
