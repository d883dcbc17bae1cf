"""
Transaction module.

Handles sealing groups into signed transactions.
"""

from bundler.tx.signer import SigningError, TransactionSigner

__all__ = [
    "SigningError",
    "TransactionSigner",
]
