"""
Bundle Submitter - sends sealed bundle sets and records their ids.
"""

import asyncio
from typing import List, Optional, Sequence

import structlog

from bundler.config import BundlerConfig, SubmissionMode
from bundler.core.errors import SealedGroupError
from bundler.core.group import BundleSet, SubmissionRecord
from bundler.ledger.interface import LedgerInterface
from bundler.relay.interface import RelayInterface

logger = structlog.get_logger(__name__)


class BundleSubmitter:
    """
    Submits sealed bundle sets.

    In bundle mode every bundle set is one relay call; independent bundle
    sets are posted concurrently, so their relative landing order is not
    guaranteed. In direct mode each transaction goes to the RPC node in order.

    Failures are surfaced to the caller, never retried here.
    """

    def __init__(
        self,
        config: BundlerConfig,
        relay: Optional[RelayInterface] = None,
        ledger: Optional[LedgerInterface] = None,
    ):
        """
        Initialize the submitter.

        Args:
            config: Bundler configuration
            relay: Relay used in bundle mode
            ledger: Ledger used in direct mode
        """
        self.config = config
        self.relay = relay
        self.ledger = ledger

        if config.submission_mode == SubmissionMode.BUNDLE and relay is None:
            raise ValueError("Bundle mode requires a relay")
        if config.submission_mode == SubmissionMode.DIRECT and ledger is None:
            raise ValueError("Direct mode requires a ledger")

    async def submit(self, bundle_sets: Sequence[BundleSet]) -> List[SubmissionRecord]:
        """
        Submit bundle sets.

        Args:
            bundle_sets: Sealed bundle sets

        Returns:
            One SubmissionRecord per bundle set, in input order

        Raises:
            SealedGroupError: If a bundle set is not sealed
            RelayUnreachable / RelayRejected: On relay failure (bundle mode)
            LedgerConnectionError: On RPC failure (direct mode)
        """
        for bundle_set in bundle_sets:
            if not bundle_set.is_sealed:
                raise SealedGroupError(f"Bundle set {bundle_set.bundle_set_id[:8]} is not sealed")

        if self.config.submission_mode == SubmissionMode.DIRECT:
            return [await self._submit_direct(bs) for bs in bundle_sets]

        results = await asyncio.gather(
            *(self._submit_bundle(bs) for bs in bundle_sets),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            logger.error(
                "bundle_submission_failed",
                failed=len(errors),
                succeeded=len(results) - len(errors),
                error=str(errors[0]),
            )
            raise errors[0]

        return list(results)

    async def _submit_bundle(self, bundle_set: BundleSet) -> SubmissionRecord:
        """Post one bundle set to the relay."""
        bundle_id = await self.relay.send_bundle(bundle_set.serialized())

        record = SubmissionRecord(
            bundle_set_id=bundle_set.bundle_set_id,
            correlation_id=bundle_id,
            representative_id=bundle_set.representative_id,
            transaction_ids=bundle_set.transaction_ids,
            mode=SubmissionMode.BUNDLE,
        )
        logger.info(
            "bundle_submitted",
            bundle_set_id=bundle_set.bundle_set_id[:8] + "...",
            bundle_id=bundle_id,
            representative_id=record.representative_id,
            transactions=bundle_set.size,
        )
        return record

    async def _submit_direct(self, bundle_set: BundleSet) -> SubmissionRecord:
        """Send each transaction of a bundle set to the RPC node."""
        signatures = []
        for group in bundle_set.groups:
            signatures.append(await self.ledger.send_raw_transaction(group.serialize()))

        record = SubmissionRecord(
            bundle_set_id=bundle_set.bundle_set_id,
            correlation_id=signatures[0],
            representative_id=signatures[0],
            transaction_ids=signatures,
            mode=SubmissionMode.DIRECT,
        )
        logger.info(
            "transactions_sent_direct",
            bundle_set_id=bundle_set.bundle_set_id[:8] + "...",
            transactions=len(signatures),
        )
        return record
