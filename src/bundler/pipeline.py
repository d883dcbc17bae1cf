"""
Bundle pipeline orchestrator.

Coordinates all components to turn a list of operations into confirmed bundles.
"""

import asyncio
import random
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Sequence

import structlog
from solders.pubkey import Pubkey

from bundler.config import BundlerConfig, SubmissionMode
from bundler.core.batcher import Batcher
from bundler.core.errors import ConfirmationTimeout
from bundler.core.fees import FeeAttacher
from bundler.core.group import Anchor, BundleSet, SubmissionRecord
from bundler.core.operation import Operation
from bundler.engine.poller import ConfirmationPoller, PollOutcome
from bundler.engine.retry import Attempt, RetryCoordinator
from bundler.engine.submitter import BundleSubmitter
from bundler.ledger.interface import LedgerInterface
from bundler.ledger.rpc import SolanaRpcLedger
from bundler.relay.interface import RelayInterface
from bundler.relay.jito import JitoRelay
from bundler.tx.signer import TransactionSigner

logger = structlog.get_logger(__name__)


@dataclass
class PipelineResult:
    """Outcome of a successful pipeline run."""
    records: List[SubmissionRecord] = field(default_factory=list)
    attempts: int = 1
    elapsed_seconds: float = 0.0

    @property
    def representative_ids(self) -> List[str]:
        return [r.representative_id for r in self.records]

    def to_dict(self) -> dict:
        return {
            "attempts": self.attempts,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "records": [r.to_dict() for r in self.records],
        }


class BundleAttempt(Attempt[List[SubmissionRecord]]):
    """One build, tip, seal, submit and confirm cycle over a fixed operation list."""

    def __init__(
        self,
        pipeline: "BundlePipeline",
        operations: Sequence[Operation],
        payer: Optional[Pubkey] = None,
    ):
        self.pipeline = pipeline
        self.operations = list(operations)
        self.payer = payer

    async def attempt(self, attempt_number: int) -> List[SubmissionRecord]:
        return await self.pipeline.run_attempt(self.operations, self.payer, attempt_number)


class BundlePipeline:
    """
    Main bundling orchestrator.

    Coordinates all components:
    - Partitioning operations into groups and bundle sets
    - Tip attachment
    - Anchoring and signing
    - Submission and confirmation polling
    - Retry with exponential backoff

    Usage:
        ```python
        async with BundlePipeline(config, signer=signer) as pipeline:
            result = await pipeline.execute(operations)
        ```
    """

    def __init__(
        self,
        config: BundlerConfig,
        signer: TransactionSigner,
        ledger: Optional[LedgerInterface] = None,
        relay: Optional[RelayInterface] = None,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the pipeline.

        Args:
            config: Bundler configuration
            signer: Keyring used to seal groups
            ledger: Custom ledger interface (RPC adapter if not provided)
            relay: Custom relay interface (Jito adapter if not provided)
            rng: Random source for tip account selection
            sleep: Awaitable sleep used for retry backoff
            clock: Monotonic clock used for anchor staleness checks
        """
        self.config = config
        self.signer = signer
        self.ledger = ledger or SolanaRpcLedger(config)

        if relay is None and config.submission_mode == SubmissionMode.BUNDLE:
            relay = JitoRelay(config)
        self.relay = relay

        self.batcher = Batcher(config)
        self.fee_attacher = FeeAttacher(config, rng=rng)
        self.submitter = BundleSubmitter(config, relay=self.relay, ledger=self.ledger)
        self.poller = ConfirmationPoller(config, self.ledger)
        self._sleep = sleep
        self._clock = clock

        self._initialized = False

        # Callbacks
        self._on_bundle_submitted: Optional[Callable[[SubmissionRecord], None]] = None
        self._on_confirmed: Optional[Callable[[List[SubmissionRecord]], None]] = None

    @property
    def is_bundle_mode(self) -> bool:
        return self.config.submission_mode == SubmissionMode.BUNDLE

    async def initialize(self) -> None:
        """Connect the ledger and the relay."""
        if self._initialized:
            return

        await self.ledger.connect()
        if self.relay is not None:
            await self.relay.connect()

        self._initialized = True
        logger.info("pipeline_initialized", mode=self.config.submission_mode.value)

    async def shutdown(self) -> None:
        """Disconnect the ledger and the relay."""
        if self.relay is not None:
            await self.relay.disconnect()
        await self.ledger.disconnect()

        self._initialized = False
        logger.info("pipeline_shutdown")

    async def __aenter__(self) -> "BundlePipeline":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()

    async def execute(
        self,
        operations: Sequence[Operation],
        payer: Optional[Pubkey] = None,
    ) -> PipelineResult:
        """
        Submit operations and wait for them to confirm, retrying on failure.

        Args:
            operations: Operations in execution order
            payer: Fee payer for every group (first signer of each group if omitted)

        Returns:
            PipelineResult for the attempt that confirmed

        Raises:
            InvalidCapacity / DuplicateTip / SigningError: Caller errors, not retried
            RetryExhausted: If every attempt failed. When its outcome_unknown is
                true the last bundles may still land; reconcile against the ledger.
        """
        if not self._initialized:
            await self.initialize()

        if not operations:
            return PipelineResult(records=[], attempts=0)

        started = self._clock()
        coordinator = RetryCoordinator(self.config, sleep=self._sleep)
        records = await coordinator.run(BundleAttempt(self, operations, payer))

        result = PipelineResult(
            records=records,
            attempts=coordinator.attempts_made,
            elapsed_seconds=self._clock() - started,
        )
        logger.info(
            "pipeline_succeeded",
            operations=len(operations),
            bundles=len(records),
            attempts=result.attempts,
        )
        return result

    async def run_attempt(
        self,
        operations: Sequence[Operation],
        payer: Optional[Pubkey] = None,
        attempt_number: int = 0,
    ) -> List[SubmissionRecord]:
        """
        Run one attempt from scratch.

        Groups, tips and anchors are rebuilt every time; nothing from a
        previous attempt is reused.

        Raises:
            ConfirmationTimeout: If the submitted bundles did not confirm in time
        """
        groups = self.batcher.build_groups(operations, payer=payer)
        bundle_sets = self.batcher.build_bundle_sets(groups)

        if self.is_bundle_mode:
            for bundle_set in bundle_sets:
                self.fee_attacher.attach(bundle_set)

        for bundle_set in bundle_sets:
            await self._seal(bundle_set)

        logger.info(
            "attempt_started",
            attempt=attempt_number + 1,
            operations=len(operations),
            groups=len(groups),
            bundle_sets=len(bundle_sets),
        )

        records = await self.submitter.submit(bundle_sets)
        for record in records:
            if self._on_bundle_submitted:
                self._on_bundle_submitted(record)

        outcome = await self.poller.wait(records)
        if outcome == PollOutcome.TIMED_OUT:
            raise ConfirmationTimeout(
                f"{len(records)} bundle(s) not confirmed within "
                f"{self.config.confirmation_timeout_seconds}s",
                records=records,
            )

        if self._on_confirmed:
            self._on_confirmed(records)
        return records

    async def _seal(self, bundle_set: BundleSet) -> None:
        """Anchor and sign every group of a bundle set."""
        anchor = await self._fresh_anchor()
        for group in bundle_set.groups:
            if anchor.is_stale(self.config.anchor_staleness_seconds, now=self._clock()):
                logger.info("anchor_refreshed", age_seconds=round(anchor.age(self._clock()), 2))
                anchor = await self._fresh_anchor()
            group.set_anchor(anchor)
            self.signer.seal(group)

    async def _fresh_anchor(self) -> Anchor:
        anchor = await self.ledger.get_fresh_anchor()
        # Restamp with our clock so staleness checks compare like with like
        return Anchor(
            blockhash=anchor.blockhash,
            last_valid_block_height=anchor.last_valid_block_height,
            fetched_at=self._clock(),
        )

    # Callback registration

    def on_bundle_submitted(self, callback: Callable[[SubmissionRecord], None]) -> None:
        """Register callback for bundle submission events."""
        self._on_bundle_submitted = callback

    def on_confirmed(self, callback: Callable[[List[SubmissionRecord]], None]) -> None:
        """Register callback for confirmation events."""
        self._on_confirmed = callback
