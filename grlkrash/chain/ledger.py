"""
LedgerService - Hardware Wallet Signer
======================================
Signs transactions and personal messages on a Ledger device so the agent's
treasury key never touches disk.

Emits:
    connected(info)   - {"address": ...}
    disconnected()
    error(exception)

Usage:
    ledger = LedgerService()
    if ledger.connect():
        manager = TransactionManager(w3, ledger)
"""

import logging

from ..errors import LedgerNotConnected, SigningRejected
from ..events import EventEmitter

logger = logging.getLogger("Ledger")

DERIVATION_PATH = "44'/60'/0'/0/0"
DEFAULT_CHAIN_ID = 84532  # Base Sepolia


class LedgerService(EventEmitter):
    def __init__(self, backend=None, derivation_path=DERIVATION_PATH):
        super().__init__()
        self.backend = backend
        self.derivation_path = derivation_path
        self.connected = False
        self._address = None

    def _get_backend(self):
        if self.backend is None:
            from .ledger_backend import LedgerethBackend
            self.backend = LedgerethBackend()
        return self.backend

    def connect(self):
        """Open the device and read the account. Safe to call repeatedly."""
        if self.connected:
            return True

        opened = False
        try:
            backend = self._get_backend()
            backend.open()
            opened = True
            self._address = backend.get_address(self.derivation_path)
            self.connected = True
        except Exception as e:
            logger.error(f"❌ Failed to connect to Ledger: {e}")
            self._address = None
            if opened:
                self._close_quietly()
            self.emit("error", e)
            return False

        logger.info(f"🔐 Ledger connected: {self._address}")
        self.emit("connected", {"address": self._address})
        return True

    def disconnect(self):
        if not self.connected:
            return

        try:
            self.backend.close()
        except Exception as e:
            logger.error(f"⚠️ Error disconnecting from Ledger: {e}")
            self.emit("error", e)
            return
        self._mark_disconnected()

    def _close_quietly(self):
        try:
            self.backend.close()
        except Exception as e:
            logger.warning(f"⚠️ Could not close Ledger after failed connect: {e}")

    def reconnect(self):
        self.disconnect()
        return self.connect()

    def _mark_disconnected(self):
        self.connected = False
        self._address = None
        self.emit("disconnected")

    def _require_connection(self):
        if not self.connected:
            raise LedgerNotConnected("Ledger not connected")

    @property
    def address(self):
        return self.get_address()

    def get_address(self):
        self._require_connection()
        if not self._address:
            raise LedgerNotConnected("Address not available")
        return self._address

    def is_connected(self):
        return self.connected

    def sign_transaction(self, tx):
        """Sign `tx` on the device and return the raw signed transaction bytes."""
        self._require_connection()

        transaction = {k: v for k, v in tx.items() if k != "from"}
        transaction["value"] = transaction.get("value") or 0
        transaction["data"] = transaction.get("data") or "0x"
        transaction["chainId"] = transaction.get("chainId") or DEFAULT_CHAIN_ID

        logger.info(f"✍️ Confirm transaction (nonce {transaction.get('nonce')}) on the Ledger...")
        try:
            return self.backend.sign_transaction(self.derivation_path, transaction)
        except SigningRejected:
            logger.warning("🛑 Transaction rejected on device")
            raise
        except LedgerNotConnected:
            self._mark_disconnected()
            raise

    def sign_message(self, text):
        """Personal-sign `text`. Returns 0x-prefixed r || s || v."""
        self._require_connection()
        try:
            v, r, s = self.backend.sign_personal_message(self.derivation_path, text)
        except LedgerNotConnected:
            self._mark_disconnected()
            raise
        signature = r.to_bytes(32, "big") + s.to_bytes(32, "big") + bytes([v])
        return "0x" + signature.hex()

    def verify_address(self):
        """Re-derive the address from the device and compare with the cached one."""
        self._require_connection()
        try:
            return self.backend.get_address(self.derivation_path).lower() == self._address.lower()
        except Exception as e:
            logger.error(f"❌ Address verification failed: {e}")
            return False
