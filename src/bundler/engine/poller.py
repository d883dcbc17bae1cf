"""
Confirmation Poller - waits for submitted bundles to land.
"""

import asyncio
from enum import Enum
from typing import Optional, Sequence, Set

import structlog

from bundler.config import BundlerConfig
from bundler.core.group import SubmissionRecord
from bundler.ledger.interface import LedgerInterface, TransactionStatus

logger = structlog.get_logger(__name__)


class PollOutcome(str, Enum):
    """Terminal state of a polling run."""
    CONFIRMED = "confirmed"
    TIMED_OUT = "timed_out"


class ConfirmationPoller:
    """
    Polls the ledger until every representative signature is confirmed.

    NOT_FOUND and FAILED both count as "not yet confirmed"; only the timeout
    ends an unsuccessful run. The timeout is an asyncio timer around the
    polling coroutine, so cancelling an outer task cancels polling too.
    Ledger errors propagate.
    """

    def __init__(self, config: BundlerConfig, ledger: LedgerInterface):
        """
        Initialize the poller.

        Args:
            config: Bundler configuration
            ledger: Ledger to query
        """
        self.config = config
        self.ledger = ledger

    async def wait(
        self,
        records: Sequence[SubmissionRecord],
        timeout: Optional[float] = None,
    ) -> PollOutcome:
        """
        Wait for records to confirm.

        Args:
            records: Submitted bundles
            timeout: Seconds to wait (configured timeout if omitted)

        Returns:
            CONFIRMED if every signature confirmed in time, TIMED_OUT otherwise
        """
        timeout = self.config.confirmation_timeout_seconds if timeout is None else timeout
        pending: Set[str] = set()
        for record in records:
            pending.update(record.confirmation_ids)

        try:
            await asyncio.wait_for(self._poll(pending), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "confirmation_timeout",
                timeout_seconds=timeout,
                unconfirmed=sorted(pending),
            )
            return PollOutcome.TIMED_OUT

        logger.info("bundles_confirmed", bundles=len(records))
        return PollOutcome.CONFIRMED

    async def _poll(self, pending: Set[str]) -> None:
        """Query until `pending` is empty, removing ids as they confirm."""
        while pending:
            statuses = await self.ledger.get_transaction_statuses(sorted(pending))

            for signature, status in statuses.items():
                if status == TransactionStatus.CONFIRMED:
                    pending.discard(signature)
                    logger.debug("signature_confirmed", signature=signature)
                elif status == TransactionStatus.FAILED:
                    logger.debug("signature_failed", signature=signature)

            if pending:
                await asyncio.sleep(self.config.poll_interval_seconds)
