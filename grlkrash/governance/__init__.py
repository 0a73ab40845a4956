from .manager import GovernanceManager
from .security import VotingSecurityService

__all__ = ["GovernanceManager", "VotingSecurityService"]
