"""
Abstract interface for ledger access.

Defines the contract for blockchain queries that all ledger adapters must implement.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence

from solana.constants import LAMPORTS_PER_SOL

from bundler.core.errors import BundlerError
from bundler.core.group import Anchor

# getMultipleAccounts accepts at most this many keys per call
MAX_ACCOUNTS_PER_QUERY = 100


class TransactionStatus(str, Enum):
    """Status of a transaction signature on the ledger."""
    NOT_FOUND = "not_found"     # Unknown or below the required commitment
    CONFIRMED = "confirmed"     # Landed at the required commitment
    FAILED = "failed"           # Landed with an error


@dataclass(frozen=True)
class AccountSnapshot:
    """Point-in-time view of an account."""
    address: str
    lamports: int
    owner: str
    executable: bool = False
    data_length: int = 0

    @property
    def sol(self) -> float:
        return self.lamports / LAMPORTS_PER_SOL

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "lamports": self.lamports,
            "sol": self.sol,
            "owner": self.owner,
            "executable": self.executable,
            "data_length": self.data_length,
        }


@dataclass(frozen=True)
class TokenBalance:
    """SPL token account balance in base units."""
    address: str
    amount: int
    decimals: int

    @property
    def ui_amount(self) -> float:
        return self.amount / (10 ** self.decimals)

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "amount": self.amount,
            "decimals": self.decimals,
            "ui_amount": self.ui_amount,
        }


class LedgerInterface(ABC):
    """
    Abstract interface for ledger access.

    This interface defines every ledger operation needed by the bundler:
    - Fresh blockhash (anchor) retrieval
    - Signature status queries
    - Account snapshots and token balances
    - Direct transaction submission
    """

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish connection to the RPC node.

        Raises:
            LedgerConnectionError: If connection cannot be established
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connection to the RPC node."""
        pass

    @abstractmethod
    async def get_fresh_anchor(self) -> Anchor:
        """
        Get a recent blockhash.

        Returns:
            Anchor stamped with the time it was fetched
        """
        pass

    @abstractmethod
    async def get_transaction_status(self, signature: str) -> TransactionStatus:
        """
        Get the status of a transaction.

        Args:
            signature: Base58 transaction signature

        Returns:
            NOT_FOUND, CONFIRMED or FAILED
        """
        pass

    @abstractmethod
    async def get_account_snapshot(self, address: str) -> Optional[AccountSnapshot]:
        """
        Get an account.

        Args:
            address: Base58 account address

        Returns:
            Snapshot if the account exists, None otherwise
        """
        pass

    @abstractmethod
    async def get_token_balance(self, address: str) -> Optional[TokenBalance]:
        """
        Get an SPL token account balance.

        Args:
            address: Base58 token account address

        Returns:
            Balance if the token account exists, None otherwise
        """
        pass

    @abstractmethod
    async def send_raw_transaction(self, raw: bytes) -> str:
        """
        Send a signed transaction straight to the node.

        Args:
            raw: Serialized signed transaction

        Returns:
            Transaction signature
        """
        pass

    async def get_transaction_statuses(
        self,
        signatures: Sequence[str],
    ) -> Dict[str, TransactionStatus]:
        """
        Get statuses for several signatures.

        Adapters that can query in bulk should override this.
        """
        return {sig: await self.get_transaction_status(sig) for sig in signatures}

    async def get_account_snapshots(
        self,
        addresses: Sequence[str],
    ) -> List[Optional[AccountSnapshot]]:
        """
        Get several accounts, in input order.

        Adapters that can query in bulk should override this.
        """
        return [await self.get_account_snapshot(address) for address in addresses]


class LedgerConnectionError(BundlerError):
    """Raised when the RPC node cannot be reached or returns an error."""
    pass
