"""
TransactionManager - Nonce, Gas & Resubmission
==============================================
Signs, broadcasts and watches transactions until they are mined.

A broadcast that fails is retried from scratch (fresh nonce, fresh gas price)
up to MAX_RETRIES times. A broadcast that stalls is replaced: same nonce,
gas price x1.2, re-signed and re-broadcast. Every hash sent for a nonce is
polled, so whichever copy the network mines is the one returned.

Usage:
    manager = TransactionManager(w3, LocalSigner(key))
    receipt = manager.submit_transaction({"to": addr, "data": data})
"""

import logging
import time
from dataclasses import dataclass, field

from web3 import Web3
from web3.exceptions import TransactionNotFound

from ..errors import AgentError, MaxRetriesExceeded, TransactionError, TransactionTimeout

logger = logging.getLogger("TxManager")

SELF_TRANSFER_GAS = 21000


@dataclass
class PendingTransaction:
    nonce: int
    gas_price: int
    tx: dict
    hashes: list = field(default_factory=list)
    retries: int = 0
    last_check: float = 0.0

    def to_dict(self):
        return {
            "nonce": self.nonce,
            "hashes": list(self.hashes),
            "gas_price": self.gas_price,
            "retries": self.retries,
            "last_check": self.last_check,
        }


def _gwei(wei):
    return Web3.from_wei(wei, "gwei")


class TransactionManager:
    MAX_RETRIES = 3
    RETRY_DELAY = 15  # seconds
    POLL_INTERVAL = 5
    TIMEOUT = 300
    GAS_BUMP_PERCENT = 120

    def __init__(self, w3, signer, chain_id=None, clock=time.time, sleep=time.sleep):
        self.w3 = w3
        self.signer = signer
        self._chain_id = chain_id
        self.clock = clock
        self.sleep = sleep
        # keyed by the first hash broadcast for the nonce
        self._pending = {}

    @property
    def chain_id(self):
        if self._chain_id is None:
            self._chain_id = self.w3.eth.chain_id
        return self._chain_id

    @property
    def pending(self):
        return [p.to_dict() for p in list(self._pending.values())]

    def get_optimal_gas_price(self):
        return int(self.w3.eth.gas_price or 0)

    def get_receipt(self, tx_hash):
        try:
            return self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None

    def _prepare(self, tx):
        address = self.signer.address
        prepared = {
            k: v for k, v in tx.items()
            if k not in ("from", "maxFeePerGas", "maxPriorityFeePerGas")
        }
        prepared["nonce"] = self.w3.eth.get_transaction_count(address, "pending")
        prepared["gasPrice"] = self.get_optimal_gas_price()
        prepared["value"] = prepared.get("value") or 0
        prepared.setdefault("chainId", self.chain_id)
        if not prepared.get("gas"):
            prepared["gas"] = self.w3.eth.estimate_gas({**prepared, "from": address})
        return prepared

    def _sign(self, tx):
        raw = self.signer.sign_transaction(tx)
        return raw, Web3.to_hex(Web3.keccak(raw))

    def submit_transaction(self, tx):
        """Sign, broadcast and wait for `tx`. Returns the receipt."""
        last_error = None

        for attempt in range(1, self.MAX_RETRIES + 1):
            prepared = self._prepare(tx)
            raw, tx_hash = self._sign(prepared)
            self._pending[tx_hash] = PendingTransaction(
                nonce=prepared["nonce"],
                gas_price=prepared["gasPrice"],
                tx=prepared,
                hashes=[tx_hash],
                last_check=self.clock(),
            )

            try:
                self.w3.eth.send_raw_transaction(raw)
            except Exception as e:
                self._pending.pop(tx_hash, None)
                last_error = e
                logger.warning(f"⚠️ Broadcast attempt {attempt}/{self.MAX_RETRIES} failed: {e}")
                if attempt < self.MAX_RETRIES:
                    self.sleep(self.RETRY_DELAY)
                continue

            logger.info(
                f"🚀 Broadcast {tx_hash} (nonce {prepared['nonce']}, "
                f"{_gwei(prepared['gasPrice'])} gwei)"
            )
            return self.monitor_transaction(tx_hash)

        logger.error(f"❌ Broadcast failed after {self.MAX_RETRIES} attempts: {last_error}")
        raise MaxRetriesExceeded(f"Broadcast failed after {self.MAX_RETRIES} attempts") from last_error

    def monitor_transaction(self, tx_hash, timeout=None):
        """Poll until any hash for this nonce has a receipt, resubmitting on stalls."""
        timeout = timeout or self.TIMEOUT
        start = self.clock()

        while self.clock() - start < timeout:
            record = self._pending.get(tx_hash)
            hashes = list(record.hashes) if record else [tx_hash]

            for h in hashes:
                receipt = self.get_receipt(h)
                if receipt is None:
                    continue
                self._pending.pop(tx_hash, None)
                if receipt.get("status") == 0:
                    logger.warning(f"❌ {h} reverted in block {receipt.get('blockNumber')}")
                else:
                    logger.info(f"✅ {h} mined in block {receipt.get('blockNumber')}")
                return receipt

            if record and self.clock() - record.last_check >= self.RETRY_DELAY:
                self.check_and_resubmit(tx_hash)

            self.sleep(self.POLL_INTERVAL)

        logger.error(f"⏰ {tx_hash} not mined after {timeout}s")
        raise TransactionTimeout(tx_hash, timeout)

    def check_and_resubmit(self, tx_hash):
        """Broadcast a gas-bumped replacement for a stalled nonce. Returns the new hash or None."""
        record = self._pending.get(tx_hash)
        if record is None or record.retries >= self.MAX_RETRIES:
            return None

        record.retries += 1
        record.last_check = self.clock()
        record.gas_price = record.gas_price * self.GAS_BUMP_PERCENT // 100
        replacement = {**record.tx, "nonce": record.nonce, "gasPrice": record.gas_price}

        try:
            raw, new_hash = self._sign(replacement)
        except AgentError as e:
            logger.warning(f"⚠️ Could not sign replacement for nonce {record.nonce}: {e}")
            return None

        try:
            self.w3.eth.send_raw_transaction(raw)
        except Exception as e:
            # usually "nonce too low": the original landed and the poll will see it
            logger.warning(f"⚠️ Replacement for nonce {record.nonce} rejected: {e}")
            return None

        record.tx = replacement
        record.hashes.append(new_hash)
        logger.info(
            f"🔁 Resubmitted nonce {record.nonce} as {new_hash} "
            f"({_gwei(record.gas_price)} gwei, retry {record.retries}/{self.MAX_RETRIES})"
        )
        return new_hash

    def cancel_stuck(self):
        """Replace the lowest stuck nonce with a 0-value self transfer. Returns the hash or None."""
        address = self.signer.address
        latest = self.w3.eth.get_transaction_count(address, "latest")
        pending = self.w3.eth.get_transaction_count(address, "pending")
        logger.info(f"📊 Nonce latest={latest} pending={pending}")

        if pending <= latest:
            logger.info("✅ No stuck transactions")
            return None

        gas_price = self.get_optimal_gas_price() * self.GAS_BUMP_PERCENT // 100
        tx = {
            "to": address,
            "value": 0,
            "gas": SELF_TRANSFER_GAS,
            "gasPrice": gas_price,
            "nonce": latest,
            "chainId": self.chain_id,
        }
        raw, tx_hash = self._sign(tx)
        try:
            self.w3.eth.send_raw_transaction(raw)
        except Exception as e:
            raise TransactionError(f"Cancel for nonce {latest} rejected: {e}") from e

        for key, record in list(self._pending.items()):
            if record.nonce == latest:
                del self._pending[key]

        logger.info(f"🧹 Sent cancel {tx_hash} for nonce {latest} ({_gwei(gas_price)} gwei)")
        return tx_hash
