"""
VotingSecurityService - who may vote, and how much
==================================================
Wallet identities are proven with a signed challenge (EIP-191). Voting
power scales the holder's $MORE balance by social/KYC verification, holding
time and Memory Crystal holdings.

Emits:
    suspicious_activity_threshold_reached({user_id, count})
"""

import functools
import logging
import secrets
import threading
import time

from .. import config
from ..chain.signers import recover_signer
from ..errors import IdentityError
from ..events import EventEmitter
from ..storage import brain_store

logger = logging.getLogger("VoteSecurity")

DAY = 24 * 60 * 60
MIN_HOLDING_TIME = 7 * DAY
MAX_HOLDING_BONUS_TIME = 180 * DAY
MAX_HOLDING_BONUS = 0.5
SOCIAL_BONUS = 0.2
KYC_BONUS = 0.3
NFT_BONUS_MULTIPLIER = 0.1
SUSPICIOUS_ACTIVITY_THRESHOLD = 5
CHALLENGE_TTL = 10 * 60


def locked(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


class VotingSecurityService(EventEmitter):
    def __init__(self, token_contract=None, nft_contract=None, store=None, clock=time.time):
        super().__init__()
        self.token_contract = token_contract
        self.nft_contract = nft_contract
        self.store = store or brain_store(config.BRAIN_DIR, "governance_identities")
        self.clock = clock
        self._challenges = {}
        self._lock = threading.RLock()

        state = self.store.load(default={}) or {}
        self.identities = state.get("identities", {})
        self.voting_history = {u: set(ids) for u, ids in state.get("voting_history", {}).items()}
        self.suspicious_activity = state.get("suspicious_activity", {})

    @locked
    def _save(self):
        self.store.save({
            "identities": self.identities,
            "voting_history": {u: sorted(ids) for u, ids in self.voting_history.items()},
            "suspicious_activity": self.suspicious_activity,
        })

    # --- Identity ---

    @locked
    def issue_challenge(self, user_id, wallet):
        """Message the user must personal-sign with `wallet`."""
        message = f"Verify wallet ownership for governance: {secrets.token_hex(16)}"
        self._challenges[user_id] = {"wallet": wallet, "message": message, "issued_at": self.clock()}
        return message

    @locked
    def verify_identity(self, user_id, wallet, signature, discord_id=None, telegram_id=None):
        challenge = self._challenges.pop(user_id, None)
        if not challenge or challenge["wallet"].lower() != wallet.lower():
            raise IdentityError("No pending challenge for this wallet")
        if self.clock() - challenge["issued_at"] > CHALLENGE_TTL:
            raise IdentityError("Challenge expired, request a new one")

        try:
            recovered = recover_signer(challenge["message"], signature)
        except Exception as e:
            raise IdentityError(f"Invalid signature: {e}") from e
        if recovered.lower() != wallet.lower():
            raise IdentityError("Wallet verification failed")

        for other_id, identity in self.identities.items():
            if other_id != user_id and identity["wallet_address"].lower() == wallet.lower():
                raise IdentityError("Wallet already associated with another account")

        previous = self.identities.get(user_id, {})
        same_wallet = previous.get("wallet_address", "").lower() == wallet.lower()
        self.identities[user_id] = {
            "wallet_address": wallet,
            "discord_id": discord_id,
            "telegram_id": telegram_id,
            "social_verified": bool(same_wallet and previous.get("social_verified")),
            "kyc_verified": bool(same_wallet and previous.get("kyc_verified")),
            "verification_timestamp": self.clock(),
        }
        self._save()
        logger.info(f"🪪 {user_id} verified as {wallet}")
        return self.identities[user_id]

    def get_identity(self, user_id):
        return self.identities.get(user_id)

    @locked
    def _set_flag(self, user_id, flag):
        identity = self.identities.get(user_id)
        if not identity:
            return False
        identity[flag] = True
        self._save()
        return True

    def verify_social(self, user_id):
        return self._set_flag(user_id, "social_verified")

    def verify_kyc(self, user_id):
        return self._set_flag(user_id, "kyc_verified")

    # --- Power ---

    def token_balance(self, wallet):
        return self.token_contract.balance_of(wallet) if self.token_contract else 0

    def holding_time(self, wallet):
        """Seconds since the wallet first received $MORE (0 if never)."""
        if self.token_contract is None:
            return 0
        first = self.token_contract.first_received_at(wallet)
        if first is None:
            return 0
        return max(0, self.clock() - first)

    def holding_time_bonus(self, wallet):
        return min(self.holding_time(wallet) / MAX_HOLDING_BONUS_TIME, MAX_HOLDING_BONUS)

    def nft_bonus(self, wallet):
        count = self.nft_contract.balance_of(wallet) if self.nft_contract else 0
        return count * NFT_BONUS_MULTIPLIER

    def calculate_voting_power(self, user_id):
        identity = self.identities.get(user_id)
        if not identity:
            return 0

        wallet = identity["wallet_address"]
        modifiers = (
            (SOCIAL_BONUS if identity.get("social_verified") else 0)
            + (KYC_BONUS if identity.get("kyc_verified") else 0)
            + self.holding_time_bonus(wallet)
            + self.nft_bonus(wallet)
        )
        return self.token_balance(wallet) * (1 + modifiers)

    # --- Eligibility ---

    def eligibility(self, user_id, proposal_id):
        """None if `user_id` may vote on `proposal_id`, otherwise the reason."""
        if proposal_id in self.voting_history.get(user_id, set()):
            return "Already voted on this proposal"

        identity = self.identities.get(user_id)
        if not identity:
            return "Identity not verified"

        if self.holding_time(identity["wallet_address"]) < MIN_HOLDING_TIME:
            return "Tokens held for less than 7 days"

        if self.suspicious_activity.get(user_id, 0) >= SUSPICIOUS_ACTIVITY_THRESHOLD:
            return "Account flagged for suspicious activity"

        return None

    def can_vote(self, user_id, proposal_id):
        return self.eligibility(user_id, proposal_id) is None

    @locked
    def record_vote(self, user_id, proposal_id):
        self.voting_history.setdefault(user_id, set()).add(proposal_id)
        self._save()

    @locked
    def flag_suspicious_activity(self, user_id):
        count = self.suspicious_activity.get(user_id, 0) + 1
        self.suspicious_activity[user_id] = count
        self._save()

        logger.warning(f"🚩 Suspicious activity from {user_id} ({count})")
        if count >= SUSPICIOUS_ACTIVITY_THRESHOLD:
            self.emit("suspicious_activity_threshold_reached", {"user_id": user_id, "count": count})
        return count

    def cleanup(self):
        self.identities.clear()
        self.voting_history.clear()
        self.suspicious_activity.clear()
        self._challenges.clear()
        self.remove_all_listeners()
