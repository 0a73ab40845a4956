"""
ContractService - ABI calls through the TransactionManager
==========================================================
Reads go straight to the node. Writes are built with web3, then signed,
broadcast and monitored by the TransactionManager, retried on nonce
collisions.

Usage:
    service = ContractService(private_key=os.getenv("PRIVATE_KEY"))
    token = TokenContract(service, config.MORE_TOKEN_ADDRESS)
    print(token.balance_of(wallet))
"""

import logging

from web3 import Web3

from .. import config
from ..errors import TransactionError
from ..retry import is_nonce_error, retry
from .abi import MEMORY_CRYSTAL_ABI, MORE_TOKEN_ABI
from .signers import LocalSigner
from .transactions import TransactionManager

logger = logging.getLogger("Contracts")

BPS = 10_000


def to_bps(rate):
    """0.025 -> 250"""
    return int(round(rate * BPS))


class ContractService:
    def __init__(self, rpc_url=None, private_key=None, signer=None, w3=None,
                 chain_id=None, manager=None):
        self.w3 = w3 or Web3(Web3.HTTPProvider(rpc_url or config.RPC_URL))
        if signer is None and private_key:
            signer = LocalSigner(private_key)
        self.signer = signer
        self.chain_id = chain_id or config.CHAIN_ID
        if manager is None and signer is not None:
            manager = TransactionManager(self.w3, signer, self.chain_id)
        self.manager = manager

    def contract(self, address, abi):
        return self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    def _function(self, address, abi, method, args):
        return getattr(self.contract(address, abi).functions, method)(*args)

    def call(self, address, abi, method, *args):
        return self._function(address, abi, method, args).call()

    def estimate_gas(self, address, abi, method, *args, value=0):
        sender = self.signer.address if self.signer else None
        params = {"value": value}
        if sender:
            params["from"] = sender
        return self._function(address, abi, method, args).estimate_gas(params)

    def execute_transaction(self, address, abi, method, *args, value=0):
        """Build `method(*args)` and submit it. Returns the receipt; raises if it reverted."""
        if self.manager is None:
            raise TransactionError("No signer configured (set PRIVATE_KEY or USE_LEDGER)")

        tx = self._function(address, abi, method, args).build_transaction({
            "from": self.signer.address,
            "value": value,
            "gasPrice": self.manager.get_optimal_gas_price(),
            "chainId": self.chain_id,
        })
        logger.info(f"📝 {method}{tuple(args)} -> {address}")

        receipt = retry(3, lambda: self.manager.submit_transaction(tx), delay=1, retry_if=is_nonce_error)
        if receipt.get("status") == 0:
            tx_hash = receipt.get("transactionHash")
            raise TransactionError(f"{method} reverted ({Web3.to_hex(tx_hash) if tx_hash else 'unknown tx'})")
        return receipt


class TokenContract:
    """The $MORE token."""

    def __init__(self, service, address, abi=MORE_TOKEN_ABI):
        self.service = service
        self.address = address
        self.abi = abi
        self._decimals = None

    def _call(self, method, *args):
        return self.service.call(self.address, self.abi, method, *args)

    def decimals(self):
        if self._decimals is None:
            self._decimals = int(self._call("decimals"))
        return self._decimals

    def balance_of_units(self, wallet):
        return int(self._call("balanceOf", Web3.to_checksum_address(wallet)))

    def balance_of(self, wallet):
        return self.balance_of_units(wallet) / 10 ** self.decimals()

    def total_supply(self):
        return int(self._call("totalSupply")) / 10 ** self.decimals()

    def enable_community_rewards(self, streaming_multiplier, max_reward_rate, min_stake_amount):
        return self.service.execute_transaction(
            self.address, self.abi, "enableCommunityRewards",
            to_bps(streaming_multiplier), to_bps(max_reward_rate),
            int(min_stake_amount * 10 ** self.decimals()),
        )

    def enable_nft_minting(self, max_supply, mint_price, streaming_bonus):
        return self.service.execute_transaction(
            self.address, self.abi, "enableNFTMinting",
            int(max_supply), int(mint_price * 10 ** self.decimals()), to_bps(streaming_bonus),
        )

    def first_received_at(self, wallet, from_block=0):
        """Timestamp of the earliest inbound Transfer to `wallet`, or None."""
        contract = self.service.contract(self.address, self.abi)
        logs = contract.events.Transfer().get_logs(
            from_block=from_block,
            argument_filters={"to": Web3.to_checksum_address(wallet)},
        )
        if not logs:
            return None
        first = min(logs, key=lambda log: (log["blockNumber"], log["logIndex"]))
        block = self.service.w3.eth.get_block(first["blockNumber"])
        return int(block["timestamp"])


class MemoryCrystalContract:
    """Memory Crystal NFTs (holdings only)."""

    def __init__(self, service, address, abi=MEMORY_CRYSTAL_ABI):
        self.service = service
        self.address = address
        self.abi = abi

    def balance_of(self, wallet):
        return int(self.service.call(self.address, self.abi, "balanceOf", Web3.to_checksum_address(wallet)))
