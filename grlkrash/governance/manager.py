"""
GovernanceManager - community proposals and votes
=================================================
Proposals run for seven days and settle early once quorum (10% of supply)
is reached. Passed proposals are handed to an optional executor.

The agent daemon and the API server share governance.json, so every public
call first merges what the other process wrote, keyed by proposal id.

Emits:
    proposal_created({proposal_id, proposer})
    vote_cast({proposal_id, voter, support, voting_power})
    proposal_finalized({proposal_id, status, votes_for, votes_against})
    proposal_executed({proposal_id})
    proposal_execution_failed({proposal_id, error})
"""

import functools
import logging
import math
import threading
import time

from .. import config
from ..errors import GovernanceError, IdentityError, NotEligible, ProposalNotFound
from ..events import EventEmitter
from ..logging_utils import log_activity
from ..storage import brain_store

logger = logging.getLogger("Governance")

DAY = 24 * 60 * 60
MINIMUM_PROPOSAL_TOKENS = 1000
VOTING_PERIOD = 7 * DAY
QUORUM_FRACTION = 0.1
BASE_VOTING_POWER = 1
STREAK_WINDOW = 7 * DAY
STREAK_STEP = 0.1
MAX_STREAK_BONUS = 0.5
RAPID_VOTE_WINDOW = 5 * 60
RAPID_VOTE_LIMIT = 3

ACTIVE = "active"
PASSED = "passed"
FAILED = "failed"
EXECUTED = "executed"

STATUS_RANK = {ACTIVE: 0, PASSED: 1, FAILED: 1, EXECUTED: 2}


def _further_along(local, stored):
    """Whichever copy of a proposal has progressed more. Ties keep `local`."""
    local_rank = STATUS_RANK.get(local["status"], 0)
    stored_rank = STATUS_RANK.get(stored["status"], 0)
    if local_rank != stored_rank:
        return local if local_rank > stored_rank else stored
    local_total = local["votes_for"] + local["votes_against"]
    stored_total = stored["votes_for"] + stored["votes_against"]
    return stored if stored_total > local_total else local


def synced(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            self._sync()
            return method(self, *args, **kwargs)
    return wrapper


class GovernanceManager(EventEmitter):
    def __init__(self, security, token_contract=None, executor=None, store=None, clock=time.time):
        super().__init__()
        self.security = security
        self.token_contract = token_contract
        self.executor = executor
        self.store = store or brain_store(config.BRAIN_DIR, "governance")
        self.clock = clock
        self._lock = threading.RLock()

        self.proposals = {}
        self.next_proposal_id = 1
        self.vote_activity = {}
        self._sync()

    def _sync(self):
        state = self.store.load(default={}) or {}
        for stored in state.get("proposals", []):
            local = self.proposals.get(stored["id"])
            self.proposals[stored["id"]] = stored if local is None else _further_along(local, stored)
        self.next_proposal_id = max(
            self.next_proposal_id,
            state.get("next_id", 1),
            max(self.proposals, default=0) + 1,
        )
        for user_id, times in state.get("vote_activity", {}).items():
            self.vote_activity[user_id] = sorted(set(self.vote_activity.get(user_id, [])) | set(times))

    def _save(self):
        self._sync()
        self.store.save({
            "next_id": self.next_proposal_id,
            "proposals": list(self.proposals.values()),
            "vote_activity": self.vote_activity,
        })

    def calculate_quorum(self):
        if self.token_contract is None:
            return 0
        return math.floor(self.token_contract.total_supply() * QUORUM_FRACTION)

    @synced
    def create_proposal(self, user_id, title, description, execution_data=""):
        if not self.security.get_identity(user_id):
            raise IdentityError("Identity verification required to create proposals")

        power = self.security.calculate_voting_power(user_id)
        if power < MINIMUM_PROPOSAL_TOKENS:
            raise NotEligible("Insufficient voting power to create proposal")

        now = self.clock()
        proposal = {
            "id": self.next_proposal_id,
            "title": title,
            "description": description,
            "proposer": user_id,
            "start_time": now,
            "end_time": now + VOTING_PERIOD,
            "status": ACTIVE,
            "votes_for": 0,
            "votes_against": 0,
            "minimum_quorum": self.calculate_quorum(),
            "execution_data": execution_data,
        }
        self.next_proposal_id += 1
        self.proposals[proposal["id"]] = proposal
        self._save()

        logger.info(f"🗳️ Proposal #{proposal['id']} by {user_id}: {title}")
        log_activity("PROPOSAL", f"#{proposal['id']} {title}")
        self.emit("proposal_created", {"proposal_id": proposal["id"], "proposer": user_id})
        return dict(proposal)

    def _require(self, proposal_id):
        proposal = self.proposals.get(proposal_id)
        if proposal is None:
            raise ProposalNotFound(f"Proposal {proposal_id} not found")
        return proposal

    @synced
    def cast_vote(self, user_id, proposal_id, support):
        proposal = self._require(proposal_id)

        reason = self.security.eligibility(user_id, proposal_id)
        if reason:
            raise NotEligible(f"Not eligible to vote: {reason}")

        if proposal["status"] != ACTIVE:
            raise GovernanceError("Proposal is not active")
        now = self.clock()
        if now > proposal["end_time"]:
            raise GovernanceError("Voting period has ended")

        power = self.security.calculate_voting_power(user_id)
        if support:
            proposal["votes_for"] += power
        else:
            proposal["votes_against"] += power

        self.security.record_vote(user_id, proposal_id)
        self.vote_activity.setdefault(user_id, []).append(now)
        self._save()

        logger.info(f"🗳️ {user_id} voted {'FOR' if support else 'AGAINST'} #{proposal_id} ({power:,.2f})")
        self.emit("vote_cast", {
            "proposal_id": proposal_id,
            "voter": user_id,
            "support": support,
            "voting_power": power,
        })

        self._check_suspicious(user_id, proposal)
        self.check_proposal_status(proposal_id)
        return dict(proposal)

    def _check_suspicious(self, user_id, proposal):
        if proposal["proposer"] == user_id:
            self.security.flag_suspicious_activity(user_id)

        now = self.clock()
        recent = [t for t in self.vote_activity.get(user_id, []) if now - t < RAPID_VOTE_WINDOW]
        if len(recent) > RAPID_VOTE_LIMIT:
            self.security.flag_suspicious_activity(user_id)

    @synced
    def check_proposal_status(self, proposal_id):
        proposal = self.proposals.get(proposal_id)
        if not proposal or proposal["status"] != ACTIVE:
            return None

        total = proposal["votes_for"] + proposal["votes_against"]
        if self.clock() < proposal["end_time"] and total < proposal["minimum_quorum"]:
            return None

        proposal["status"] = PASSED if proposal["votes_for"] > proposal["votes_against"] else FAILED
        self._save()

        logger.info(f"🏁 Proposal #{proposal_id} {proposal['status']}")
        self.emit("proposal_finalized", {
            "proposal_id": proposal_id,
            "status": proposal["status"],
            "votes_for": proposal["votes_for"],
            "votes_against": proposal["votes_against"],
        })

        if proposal["status"] == PASSED:
            self.execute_proposal(proposal_id)
        return proposal["status"]

    @synced
    def execute_proposal(self, proposal_id):
        proposal = self.proposals.get(proposal_id)
        if not proposal or proposal["status"] != PASSED:
            return False

        try:
            if self.executor is not None:
                self.executor(dict(proposal))
        except Exception as e:
            logger.error(f"❌ Failed to execute proposal #{proposal_id}: {e}")
            self.emit("proposal_execution_failed", {"proposal_id": proposal_id, "error": e})
            return False

        proposal["status"] = EXECUTED
        self._save()
        log_activity("PROPOSAL_EXECUTED", f"#{proposal_id}")
        self.emit("proposal_executed", {"proposal_id": proposal_id})
        return True

    @synced
    def finalize_expired(self):
        """Settle active proposals whose voting period is over. Returns their ids."""
        now = self.clock()
        expired = [p["id"] for p in self.proposals.values() if p["status"] == ACTIVE and now >= p["end_time"]]
        for proposal_id in expired:
            self.check_proposal_status(proposal_id)
        return expired

    def streak_multiplier(self, user_id):
        history = sorted(self.vote_activity.get(user_id, []), reverse=True)
        streak = 0
        for current, previous in zip(history, history[1:]):
            if current - previous > STREAK_WINDOW:
                break
            streak += 1
        return min(streak * STREAK_STEP, MAX_STREAK_BONUS)

    def voting_power_breakdown(self, user_id):
        identity = self.security.get_identity(user_id)
        wallet = identity["wallet_address"] if identity else None
        balance = self.security.token_balance(wallet) if wallet else 0
        nft_bonus = self.security.nft_bonus(wallet) if wallet else 0
        multiplier = self.streak_multiplier(user_id)
        return {
            "base_votes": BASE_VOTING_POWER,
            "token_balance": balance,
            "multiplier": multiplier,
            "nft_bonus": nft_bonus,
            "total_power": math.floor((BASE_VOTING_POWER + balance) * (1 + multiplier + nft_bonus)),
        }

    @synced
    def get_proposal(self, proposal_id):
        proposal = self.proposals.get(proposal_id)
        return dict(proposal) if proposal else None

    @synced
    def get_active_proposals(self):
        active = [dict(p) for p in self.proposals.values() if p["status"] == ACTIVE]
        return sorted(active, key=lambda p: (p["start_time"], p["id"]), reverse=True)

    def cleanup(self):
        with self._lock:
            self.proposals.clear()
            self.vote_activity.clear()
        self.remove_all_listeners()
