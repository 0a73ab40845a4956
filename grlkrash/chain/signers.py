"""
Local key signer plus EIP-191 recovery.

Any object with `address`, `sign_transaction(tx) -> bytes` and
`sign_message(text) -> str` can sign for the TransactionManager; the
LedgerService is the hardware alternative.
"""

from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3


class LocalSigner:
    def __init__(self, private_key):
        self.account = Account.from_key(private_key)
        self.address = self.account.address

    def sign_transaction(self, tx):
        unsigned = {k: v for k, v in tx.items() if k != "from"}
        signed = self.account.sign_transaction(unsigned)
        return bytes(signed.raw_transaction)

    def sign_message(self, text):
        signed = self.account.sign_message(encode_defunct(text=text))
        return Web3.to_hex(signed.signature)


def recover_signer(message, signature):
    """Address that produced `signature` over the personal message `message`."""
    return Account.recover_message(encode_defunct(text=message), signature=signature)
