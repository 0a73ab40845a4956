"""Exception types raised across the agent."""


class AgentError(Exception):
    """Base class for all agent errors."""


# --- Chain ---

class TransactionError(AgentError):
    pass


class TransactionTimeout(TransactionError, TimeoutError):
    def __init__(self, tx_hash, timeout):
        super().__init__(f"Transaction {tx_hash} not mined after {timeout}s")
        self.tx_hash = tx_hash
        self.timeout = timeout


class MaxRetriesExceeded(TransactionError):
    pass


class LedgerNotConnected(AgentError):
    pass


class SigningRejected(AgentError):
    """The user refused the request on the hardware wallet."""


# --- Social / content ---

class RateLimitExceeded(AgentError):
    def __init__(self, platform, action, reset_at=None):
        super().__init__(f"Rate limit reached for {platform}:{action}")
        self.platform = platform
        self.action = action
        self.reset_at = reset_at


class ContentNotFound(AgentError):
    pass


# --- Governance / API ---

class GovernanceError(AgentError):
    pass


class ProposalNotFound(GovernanceError):
    pass


class NotEligible(GovernanceError):
    pass


class IdentityError(GovernanceError):
    pass


class AuthError(AgentError):
    pass
