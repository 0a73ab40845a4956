from .milestones import MilestoneReleaseService

__all__ = ["MilestoneReleaseService"]
