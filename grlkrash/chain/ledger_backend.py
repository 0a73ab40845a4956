"""
Ledger device I/O through ledgereth (USB HID).
"""

import logging

from hexbytes import HexBytes
from ledgereth import create_transaction, get_account_by_path, sign_message
from ledgereth.comms import init_dongle
from ledgereth.exceptions import LedgerCancel, LedgerNotFound

from ..errors import LedgerNotConnected, SigningRejected

logger = logging.getLogger("Ledger")


class LedgerethBackend:
    def __init__(self):
        self.dongle = None

    def open(self):
        try:
            self.dongle = init_dongle()
        except LedgerNotFound as e:
            raise LedgerNotConnected("No Ledger device found") from e

    def close(self):
        if self.dongle is not None:
            self.dongle.close()
            self.dongle = None

    def get_address(self, path):
        try:
            return get_account_by_path(path, dongle=self.dongle).address
        except LedgerNotFound as e:
            raise LedgerNotConnected("Ledger device went away") from e

    def sign_transaction(self, path, tx):
        try:
            signed = create_transaction(
                destination=tx.get("to"),
                amount=int(tx.get("value", 0)),
                gas=int(tx["gas"]),
                nonce=int(tx["nonce"]),
                data=bytes(HexBytes(tx.get("data") or b"")),
                gas_price=int(tx.get("gasPrice", 0)),
                max_priority_fee_per_gas=int(tx.get("maxPriorityFeePerGas", 0)),
                max_fee_per_gas=int(tx.get("maxFeePerGas", 0)),
                chain_id=int(tx["chainId"]),
                sender_path=path,
                dongle=self.dongle,
            )
        except LedgerCancel as e:
            raise SigningRejected("Transaction rejected on Ledger device") from e
        except LedgerNotFound as e:
            raise LedgerNotConnected("Ledger device went away") from e
        return bytes(HexBytes(signed.raw_transaction()))

    def sign_personal_message(self, path, text):
        """Returns (v, r, s)."""
        try:
            signed = sign_message(text, sender_path=path, dongle=self.dongle)
        except LedgerCancel as e:
            raise SigningRejected("Message signing rejected on Ledger device") from e
        except LedgerNotFound as e:
            raise LedgerNotConnected("Ledger device went away") from e
        return signed.v, signed.r, signed.s
