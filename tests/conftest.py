"""
Pytest configuration and shared fixtures for the test suite.
"""

import asyncio
from typing import Dict, List, Optional, Sequence

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from bundler.config import BundlerConfig, Network, SubmissionMode
from bundler.core.group import Anchor, Group
from bundler.core.operation import Operation
from bundler.ledger.interface import (
    AccountSnapshot,
    LedgerInterface,
    TokenBalance,
    TransactionStatus,
)
from bundler.relay.interface import RelayInterface
from bundler.tx.signer import TransactionSigner


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def test_config() -> BundlerConfig:
    """Create a test configuration with short timeouts."""
    return BundlerConfig(
        network=Network.LOCAL,
        submission_mode=SubmissionMode.BUNDLE,
        max_ops_per_group=8,
        max_groups_per_bundle=5,
        tip_sol=0.001,
        confirmation_timeout_seconds=0.5,
        poll_interval_seconds=0.01,
        anchor_staleness_seconds=45.0,
        max_retry=3,
        backoff_base_seconds=1.0,
        log_level="DEBUG",
    )


@pytest.fixture
def direct_config(test_config) -> BundlerConfig:
    """Test configuration in direct submission mode."""
    return test_config.model_copy(update={"submission_mode": SubmissionMode.DIRECT})


# ============================================================================
# Test Data Generators
# ============================================================================

def make_hash(index: int = 0) -> Hash:
    """Generate a deterministic blockhash."""
    return Hash(bytes([index % 256]) * 32)


def make_anchor(index: int = 0, fetched_at: float = 0.0) -> Anchor:
    """Generate a deterministic anchor."""
    return Anchor(blockhash=make_hash(index), last_valid_block_height=1000 + index, fetched_at=fetched_at)


def make_operations(payer: Pubkey, count: int, lamports: int = 1_000) -> List[Operation]:
    """Generate `count` transfers from payer to fresh recipients."""
    return [
        Operation.transfer(payer, Pubkey.new_unique(), lamports + i, label=f"op:{i}")
        for i in range(count)
    ]


@pytest.fixture
def payer_keypair() -> Keypair:
    """Fee payer keypair."""
    return Keypair()


@pytest.fixture
def payer(payer_keypair) -> Pubkey:
    return payer_keypair.pubkey()


@pytest.fixture
def signer(test_config, payer_keypair) -> TransactionSigner:
    """Signer holding the payer key."""
    return TransactionSigner(test_config, [payer_keypair])


@pytest.fixture
def sample_operations(payer) -> List[Operation]:
    """Seventeen transfers paid by the payer."""
    return make_operations(payer, 17)


@pytest.fixture
def anchored_group(payer) -> Group:
    """An anchored, unsigned group with three transfers."""
    group = Group(payer=payer, operations=make_operations(payer, 3))
    group.set_anchor(make_anchor(1))
    return group


# ============================================================================
# Recording Sleep
# ============================================================================

class RecordingSleep:
    """Awaitable sleep that records delays instead of waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


# ============================================================================
# Mock Ledger
# ============================================================================

class MockLedger(LedgerInterface):
    """
    Mock ledger for testing.

    Signatures confirm once they have been polled more than
    `confirm_after_polls` times; None means they never confirm.
    """

    def __init__(self):
        self.confirm_after_polls: Optional[int] = 0
        self.status_overrides: Dict[str, TransactionStatus] = {}
        self.status_error: Optional[Exception] = None
        self.accounts: Dict[str, AccountSnapshot] = {}
        self.token_balances: Dict[str, TokenBalance] = {}
        self.sent_transactions: List[VersionedTransaction] = []
        self.poll_counts: Dict[str, int] = {}
        self.anchor_calls = 0
        self._connected = False

    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False

    async def get_fresh_anchor(self) -> Anchor:
        self.anchor_calls += 1
        return make_anchor(self.anchor_calls)

    async def get_transaction_status(self, signature: str) -> TransactionStatus:
        if self.status_error is not None:
            raise self.status_error
        self.poll_counts[signature] = self.poll_counts.get(signature, 0) + 1

        if signature in self.status_overrides:
            return self.status_overrides[signature]
        if self.confirm_after_polls is None:
            return TransactionStatus.NOT_FOUND
        if self.poll_counts[signature] > self.confirm_after_polls:
            return TransactionStatus.CONFIRMED
        return TransactionStatus.NOT_FOUND

    async def get_account_snapshot(self, address: str) -> Optional[AccountSnapshot]:
        return self.accounts.get(address)

    async def get_token_balance(self, address: str) -> Optional[TokenBalance]:
        return self.token_balances.get(address)

    async def send_raw_transaction(self, raw: bytes) -> str:
        tx = VersionedTransaction.from_bytes(raw)
        self.sent_transactions.append(tx)
        return str(tx.signatures[0])


@pytest.fixture
def mock_ledger() -> MockLedger:
    """Create a mock ledger."""
    return MockLedger()


# ============================================================================
# Mock Relay
# ============================================================================

class MockRelay(RelayInterface):
    """
    Mock relay for testing.

    Each call to send_bundle pops the next entry of `failures`; an
    exception entry is raised, None lets the call succeed.
    """

    def __init__(self):
        self.bundles: List[List[bytes]] = []
        self.failures: List[Optional[Exception]] = []
        self.tip_accounts: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._connected = False

    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False

    async def send_bundle(self, transactions: Sequence[bytes]) -> str:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            if self.failures:
                failure = self.failures.pop(0)
                if failure is not None:
                    raise failure
            self.bundles.append(list(transactions))
            return f"bundle-{len(self.bundles)}"
        finally:
            self.in_flight -= 1

    async def get_tip_accounts(self) -> List[str]:
        return list(self.tip_accounts)


@pytest.fixture
def mock_relay() -> MockRelay:
    """Create a mock relay."""
    return MockRelay()
