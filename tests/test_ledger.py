"""
Test suite for the Solana RPC ledger adapter.

The solana-py AsyncClient is replaced with an AsyncMock so no node is needed.
"""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction_status import TransactionConfirmationStatus

from bundler.config import CommitmentLevel
from bundler.ledger.interface import LedgerConnectionError, TransactionStatus
from bundler.ledger.rpc import SolanaRpcLedger

from tests.conftest import make_hash


# ============================================================================
# Helper Functions
# ============================================================================

def make_signature(index: int = 0) -> str:
    """Generate a valid base58 signature string."""
    return str(Keypair().sign_message(f"message-{index}".encode()))


def signature_status(err=None, confirmation_status=None, confirmations=0) -> MagicMock:
    status = MagicMock()
    status.err = err
    status.confirmation_status = confirmation_status
    status.confirmations = confirmations
    return status


def account(lamports: int, data: bytes = b"") -> MagicMock:
    acc = MagicMock()
    acc.lamports = lamports
    acc.owner = Pubkey.default()
    acc.executable = False
    acc.data = data
    return acc


@pytest.fixture
def rpc_client() -> AsyncMock:
    """Create a mock AsyncClient."""
    return AsyncMock()


@pytest.fixture
def ledger(test_config, rpc_client) -> SolanaRpcLedger:
    return SolanaRpcLedger(test_config, client=rpc_client)


# ============================================================================
# Test Anchors
# ============================================================================

class TestFreshAnchor:
    """Tests for blockhash retrieval."""

    @pytest.mark.asyncio
    async def test_get_fresh_anchor(self, ledger, rpc_client):
        """Test the latest blockhash becomes an anchor."""
        resp = MagicMock()
        resp.value.blockhash = make_hash(9)
        resp.value.last_valid_block_height = 4242
        rpc_client.get_latest_blockhash.return_value = resp

        anchor = await ledger.get_fresh_anchor()

        assert anchor.blockhash == make_hash(9)
        assert anchor.last_valid_block_height == 4242
        assert anchor.age() >= 0

    @pytest.mark.asyncio
    async def test_rpc_failure_wrapped(self, ledger, rpc_client):
        """Test transport errors surface as LedgerConnectionError."""
        rpc_client.get_latest_blockhash.side_effect = httpx.ConnectError("refused")

        with pytest.raises(LedgerConnectionError):
            await ledger.get_fresh_anchor()


# ============================================================================
# Test Signature Statuses
# ============================================================================

class TestTransactionStatuses:
    """Tests for signature status mapping."""

    @pytest.mark.asyncio
    async def test_status_mapping(self, ledger, rpc_client):
        """Test RPC statuses map onto NOT_FOUND, CONFIRMED and FAILED."""
        sigs = [make_signature(i) for i in range(5)]
        resp = MagicMock()
        resp.value = [
            None,
            signature_status(confirmation_status=TransactionConfirmationStatus.Confirmed),
            signature_status(confirmation_status=TransactionConfirmationStatus.Finalized),
            signature_status(err="InstructionError", confirmation_status=TransactionConfirmationStatus.Confirmed),
            signature_status(confirmation_status=TransactionConfirmationStatus.Processed),
        ]
        rpc_client.get_signature_statuses.return_value = resp

        statuses = await ledger.get_transaction_statuses(sigs)

        assert [statuses[s] for s in sigs] == [
            TransactionStatus.NOT_FOUND,
            TransactionStatus.CONFIRMED,
            TransactionStatus.CONFIRMED,
            TransactionStatus.FAILED,
            TransactionStatus.NOT_FOUND,
        ]

        requested = rpc_client.get_signature_statuses.call_args.args[0]
        assert requested == [Signature.from_string(s) for s in sigs]

    @pytest.mark.asyncio
    async def test_finalized_commitment_required(self, test_config, rpc_client):
        """Test a confirmed transaction is still pending under finalized commitment."""
        config = test_config.model_copy(update={"commitment": CommitmentLevel.FINALIZED})
        ledger = SolanaRpcLedger(config, client=rpc_client)
        sig = make_signature()
        resp = MagicMock()
        resp.value = [signature_status(confirmation_status=TransactionConfirmationStatus.Confirmed)]
        rpc_client.get_signature_statuses.return_value = resp

        assert await ledger.get_transaction_status(sig) == TransactionStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_rooted_status_without_level(self, ledger, rpc_client):
        """Test a rooted transaction without confirmation status counts as confirmed."""
        sig = make_signature()
        resp = MagicMock()
        resp.value = [signature_status(confirmation_status=None, confirmations=None)]
        rpc_client.get_signature_statuses.return_value = resp

        assert await ledger.get_transaction_status(sig) == TransactionStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_status_failure_wrapped(self, ledger, rpc_client):
        """Test status query failures surface as LedgerConnectionError."""
        rpc_client.get_signature_statuses.side_effect = httpx.ReadTimeout("timeout")

        with pytest.raises(LedgerConnectionError):
            await ledger.get_transaction_statuses([make_signature()])


# ============================================================================
# Test Account Snapshots
# ============================================================================

class TestAccountSnapshots:
    """Tests for account retrieval."""

    @pytest.mark.asyncio
    async def test_snapshots_chunked(self, ledger, rpc_client):
        """Test more than 100 addresses are fetched in several calls, in order."""
        addresses = [str(Pubkey.new_unique()) for _ in range(150)]

        async def get_multiple_accounts(keys):
            resp = MagicMock()
            resp.value = [account(1_000_000_000) for _ in keys]
            return resp

        rpc_client.get_multiple_accounts.side_effect = get_multiple_accounts

        snapshots = await ledger.get_account_snapshots(addresses)

        assert len(snapshots) == 150
        assert [s.address for s in snapshots] == addresses
        calls = rpc_client.get_multiple_accounts.call_args_list
        assert [len(c.args[0]) for c in calls] == [100, 50]
        assert snapshots[0].sol == 1.0

    @pytest.mark.asyncio
    async def test_missing_account(self, ledger, rpc_client):
        """Test a missing account yields None."""
        resp = MagicMock()
        resp.value = [None]
        rpc_client.get_multiple_accounts.return_value = resp

        assert await ledger.get_account_snapshot(str(Pubkey.new_unique())) is None

    @pytest.mark.asyncio
    async def test_snapshot_fields(self, ledger, rpc_client):
        """Test snapshot fields come from the account."""
        address = str(Pubkey.new_unique())
        resp = MagicMock()
        resp.value = [account(5_000, data=b"\x00" * 165)]
        rpc_client.get_multiple_accounts.return_value = resp

        snapshot = await ledger.get_account_snapshot(address)

        assert snapshot.to_dict() == {
            "address": address,
            "lamports": 5_000,
            "sol": 5_000 / 1_000_000_000,
            "owner": str(Pubkey.default()),
            "executable": False,
            "data_length": 165,
        }


# ============================================================================
# Test Token Balances
# ============================================================================

class TestTokenBalance:
    """Tests for token account balances."""

    @pytest.mark.asyncio
    async def test_token_balance(self, ledger, rpc_client):
        """Test the raw amount and decimals come from getTokenAccountBalance."""
        address = str(Pubkey.new_unique())
        accounts = MagicMock()
        accounts.value = [account(2_039_280, data=b"\x00" * 165)]
        rpc_client.get_multiple_accounts.return_value = accounts
        balance = MagicMock()
        balance.value.amount = "1500"
        balance.value.decimals = 6
        rpc_client.get_token_account_balance.return_value = balance

        result = await ledger.get_token_balance(address)

        assert result.amount == 1500
        assert result.decimals == 6
        assert result.ui_amount == 0.0015
        assert result.to_dict()["address"] == address
        assert rpc_client.get_token_account_balance.call_args.args[0] == Pubkey.from_string(address)

    @pytest.mark.asyncio
    async def test_missing_token_account(self, ledger, rpc_client):
        """Test a token account that does not exist yields None."""
        accounts = MagicMock()
        accounts.value = [None]
        rpc_client.get_multiple_accounts.return_value = accounts

        assert await ledger.get_token_balance(str(Pubkey.new_unique())) is None
        rpc_client.get_token_account_balance.assert_not_called()

    @pytest.mark.asyncio
    async def test_token_balance_failure_wrapped(self, ledger, rpc_client):
        accounts = MagicMock()
        accounts.value = [account(2_039_280)]
        rpc_client.get_multiple_accounts.return_value = accounts
        rpc_client.get_token_account_balance.side_effect = httpx.ConnectError("refused")

        with pytest.raises(LedgerConnectionError):
            await ledger.get_token_balance(str(Pubkey.new_unique()))


# ============================================================================
# Test Direct Submission
# ============================================================================

class TestSendRawTransaction:
    """Tests for direct submission."""

    @pytest.mark.asyncio
    async def test_send_raw_transaction(self, ledger, rpc_client):
        """Test the signature returned by the node is passed back."""
        sig = Keypair().sign_message(b"tx")
        resp = MagicMock()
        resp.value = sig
        rpc_client.send_raw_transaction.return_value = resp

        assert await ledger.send_raw_transaction(b"\x01\x02") == str(sig)

        opts = rpc_client.send_raw_transaction.call_args.kwargs["opts"]
        assert opts.skip_preflight is True

    @pytest.mark.asyncio
    async def test_send_failure_wrapped(self, ledger, rpc_client):
        """Test send failures surface as LedgerConnectionError."""
        rpc_client.send_raw_transaction.side_effect = httpx.ConnectError("refused")

        with pytest.raises(LedgerConnectionError):
            await ledger.send_raw_transaction(b"\x01")

    @pytest.mark.asyncio
    async def test_disconnect_closes_client(self, ledger, rpc_client):
        """Test disconnect closes the client once."""
        await ledger.disconnect()
        await ledger.disconnect()

        rpc_client.close.assert_awaited_once()
