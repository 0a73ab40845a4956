from .contracts import ContractService, MemoryCrystalContract, TokenContract
from .ledger import LedgerService
from .signers import LocalSigner, recover_signer
from .transactions import TransactionManager

__all__ = [
    "ContractService",
    "LedgerService",
    "LocalSigner",
    "MemoryCrystalContract",
    "TokenContract",
    "TransactionManager",
    "recover_signer",
]
