"""
Solana JSON-RPC adapter for ledger access.

Provides ledger queries through a Solana RPC node.
"""

import time
from typing import Dict, List, Optional, Sequence

import httpx
import structlog
from solana.exceptions import SolanaRpcException
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solana.rpc.core import RPCException
from solana.rpc.types import TxOpts
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction_status import TransactionConfirmationStatus

from bundler.config import BundlerConfig, CommitmentLevel
from bundler.core.group import Anchor
from bundler.ledger.interface import (
    MAX_ACCOUNTS_PER_QUERY,
    AccountSnapshot,
    LedgerConnectionError,
    LedgerInterface,
    TokenBalance,
    TransactionStatus,
)

logger = structlog.get_logger(__name__)

# getSignatureStatuses accepts at most this many signatures per call
MAX_SIGNATURES_PER_QUERY = 256

_COMMITMENT_RANK = {
    CommitmentLevel.PROCESSED: 0,
    CommitmentLevel.CONFIRMED: 1,
    CommitmentLevel.FINALIZED: 2,
}

_CONFIRMATION_LEVELS = [
    (TransactionConfirmationStatus.Processed, CommitmentLevel.PROCESSED),
    (TransactionConfirmationStatus.Confirmed, CommitmentLevel.CONFIRMED),
    (TransactionConfirmationStatus.Finalized, CommitmentLevel.FINALIZED),
]

_RPC_ERRORS = (SolanaRpcException, RPCException, httpx.HTTPError)


def _confirmation_level(status) -> CommitmentLevel:
    """Map an RPC signature status onto a commitment level."""
    if status.confirmation_status is None:
        # Nodes omit the field for rooted transactions
        return CommitmentLevel.FINALIZED if status.confirmations is None else CommitmentLevel.PROCESSED
    for rpc_level, level in _CONFIRMATION_LEVELS:
        if status.confirmation_status == rpc_level:
            return level
    return CommitmentLevel.PROCESSED


class SolanaRpcLedger(LedgerInterface):
    """
    Solana RPC adapter.

    Implements the LedgerInterface on top of solana-py's AsyncClient.
    """

    def __init__(self, config: BundlerConfig, client: Optional[AsyncClient] = None):
        """
        Initialize the RPC adapter.

        Args:
            config: Bundler configuration
            client: Pre-built AsyncClient (created on connect if not provided)
        """
        self.config = config
        self.endpoint = config.rpc_endpoint
        self._client = client

    @property
    def commitment(self) -> Commitment:
        return Commitment(self.config.commitment.value)

    async def connect(self) -> None:
        """Create the RPC client and check the node is reachable."""
        if self._client is not None:
            return

        client = AsyncClient(
            self.endpoint,
            commitment=self.commitment,
            timeout=self.config.rpc_timeout_seconds,
        )

        if not await client.is_connected():
            await client.close()
            raise LedgerConnectionError(f"RPC node not reachable: {self.endpoint}")

        self._client = client
        logger.info("rpc_connected", endpoint=self.endpoint)

    async def disconnect(self) -> None:
        """Close the RPC client."""
        if self._client:
            await self._client.close()
            self._client = None
            logger.info("rpc_disconnected")

    async def _ensure_client(self) -> AsyncClient:
        if not self._client:
            await self.connect()
        return self._client

    async def get_fresh_anchor(self) -> Anchor:
        """Get the latest blockhash."""
        client = await self._ensure_client()
        try:
            resp = await client.get_latest_blockhash(self.commitment)
        except _RPC_ERRORS as e:
            logger.error("rpc_blockhash_failed", error=str(e))
            raise LedgerConnectionError(f"getLatestBlockhash failed: {e}") from e

        anchor = Anchor(
            blockhash=resp.value.blockhash,
            last_valid_block_height=resp.value.last_valid_block_height,
            fetched_at=time.monotonic(),
        )
        logger.debug("anchor_fetched", blockhash=str(anchor.blockhash))
        return anchor

    async def get_transaction_status(self, signature: str) -> TransactionStatus:
        """Get the status of one transaction."""
        statuses = await self.get_transaction_statuses([signature])
        return statuses[signature]

    async def get_transaction_statuses(
        self,
        signatures: Sequence[str],
    ) -> Dict[str, TransactionStatus]:
        """Get statuses for several transactions with getSignatureStatuses."""
        client = await self._ensure_client()
        required = _COMMITMENT_RANK[self.config.commitment]
        results: Dict[str, TransactionStatus] = {}

        for start in range(0, len(signatures), MAX_SIGNATURES_PER_QUERY):
            chunk = list(signatures[start:start + MAX_SIGNATURES_PER_QUERY])
            try:
                resp = await client.get_signature_statuses(
                    [Signature.from_string(sig) for sig in chunk]
                )
            except _RPC_ERRORS as e:
                logger.error("rpc_status_failed", error=str(e))
                raise LedgerConnectionError(f"getSignatureStatuses failed: {e}") from e

            for sig, status in zip(chunk, resp.value):
                if status is None:
                    results[sig] = TransactionStatus.NOT_FOUND
                elif status.err is not None:
                    results[sig] = TransactionStatus.FAILED
                elif _COMMITMENT_RANK[_confirmation_level(status)] >= required:
                    results[sig] = TransactionStatus.CONFIRMED
                else:
                    results[sig] = TransactionStatus.NOT_FOUND

        return results

    async def get_account_snapshot(self, address: str) -> Optional[AccountSnapshot]:
        """Get one account."""
        snapshots = await self.get_account_snapshots([address])
        return snapshots[0]

    async def get_account_snapshots(
        self,
        addresses: Sequence[str],
    ) -> List[Optional[AccountSnapshot]]:
        """Get several accounts with getMultipleAccounts, 100 per call."""
        client = await self._ensure_client()
        snapshots: List[Optional[AccountSnapshot]] = []

        for start in range(0, len(addresses), MAX_ACCOUNTS_PER_QUERY):
            chunk = list(addresses[start:start + MAX_ACCOUNTS_PER_QUERY])
            try:
                resp = await client.get_multiple_accounts(
                    [Pubkey.from_string(a) for a in chunk]
                )
            except _RPC_ERRORS as e:
                logger.error("rpc_accounts_failed", count=len(chunk), error=str(e))
                raise LedgerConnectionError(f"getMultipleAccounts failed: {e}") from e

            for address, account in zip(chunk, resp.value):
                if account is None:
                    snapshots.append(None)
                    continue
                snapshots.append(AccountSnapshot(
                    address=address,
                    lamports=account.lamports,
                    owner=str(account.owner),
                    executable=account.executable,
                    data_length=len(account.data),
                ))

        logger.debug("accounts_fetched", count=len(addresses))
        return snapshots

    async def get_token_balance(self, address: str) -> Optional[TokenBalance]:
        """Get a token account balance with getTokenAccountBalance."""
        if await self.get_account_snapshot(address) is None:
            return None

        client = await self._ensure_client()
        try:
            resp = await client.get_token_account_balance(Pubkey.from_string(address))
        except _RPC_ERRORS as e:
            logger.error("rpc_token_balance_failed", address=address, error=str(e))
            raise LedgerConnectionError(f"getTokenAccountBalance failed: {e}") from e

        return TokenBalance(
            address=address,
            amount=int(resp.value.amount),
            decimals=resp.value.decimals,
        )

    async def send_raw_transaction(self, raw: bytes) -> str:
        """Send a signed transaction to the node."""
        client = await self._ensure_client()
        try:
            resp = await client.send_raw_transaction(
                raw,
                opts=TxOpts(skip_preflight=True, preflight_commitment=self.commitment),
            )
        except _RPC_ERRORS as e:
            logger.error("rpc_send_failed", error=str(e))
            raise LedgerConnectionError(f"sendTransaction failed: {e}") from e

        signature = str(resp.value)
        logger.info("tx_sent", signature=signature)
        return signature
