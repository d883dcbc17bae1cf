"""
Ledger Integration Layer.

Provides abstracted access to Solana ledger queries and direct transaction submission.
"""

from bundler.ledger.interface import (
    AccountSnapshot,
    LedgerConnectionError,
    LedgerInterface,
    TokenBalance,
    TransactionStatus,
)
from bundler.ledger.rpc import SolanaRpcLedger

__all__ = [
    "AccountSnapshot",
    "LedgerConnectionError",
    "LedgerInterface",
    "SolanaRpcLedger",
    "TokenBalance",
    "TransactionStatus",
]
