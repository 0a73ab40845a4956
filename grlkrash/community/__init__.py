from .engagement import CommunityAction, CommunityEngagementService

__all__ = ["CommunityAction", "CommunityEngagementService"]
