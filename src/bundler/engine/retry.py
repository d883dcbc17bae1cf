"""
Retry Coordinator - bounded retry with exponential backoff.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Generic, Optional, Tuple, Type, TypeVar

import structlog

from bundler.config import BundlerConfig
from bundler.core.errors import ConfirmationTimeout, RetryExhausted
from bundler.ledger.interface import LedgerConnectionError
from bundler.relay.interface import RelayError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Failures worth another attempt; anything else is a caller error
RETRYABLE_ERRORS: Tuple[Type[Exception], ...] = (
    RelayError,
    LedgerConnectionError,
    ConfirmationTimeout,
)


class Attempt(ABC, Generic[T]):
    """
    One retryable unit of work.

    Implementations must rebuild all of their state on every call.
    """

    @abstractmethod
    async def attempt(self, attempt_number: int) -> T:
        """
        Run the work once.

        Args:
            attempt_number: 0 for the first try, 1 for the first retry, ...
        """
        pass


class RetryCoordinator:
    """
    Runs an Attempt up to max_retry times.

    The delay before attempt i (counting from 0) is backoff_base * 2**i.
    Success returns immediately; exhaustion raises RetryExhausted.
    """

    def __init__(
        self,
        config: BundlerConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        retry_on: Tuple[Type[Exception], ...] = RETRYABLE_ERRORS,
    ):
        """
        Initialize the coordinator.

        Args:
            config: Bundler configuration
            sleep: Awaitable sleep used for backoff
            retry_on: Exception types that trigger another attempt
        """
        self.config = config
        self.max_retry = config.max_retry
        self.backoff_base = config.backoff_base_seconds
        self._sleep = sleep
        self._retry_on = retry_on
        self.attempts_made = 0

    def delay_for(self, attempt_number: int) -> float:
        """Backoff delay before the given attempt."""
        return self.backoff_base * (2 ** attempt_number)

    async def run(self, work: Attempt[T]) -> T:
        """
        Run `work` until it succeeds or attempts run out.

        Raises:
            RetryExhausted: If every attempt failed with a retryable error
        """
        attempt_number = 0
        last_error: Optional[Exception] = None

        while attempt_number < self.max_retry:
            if attempt_number > 0:
                delay = self.delay_for(attempt_number)
                logger.info(
                    "retry_backoff",
                    attempt=attempt_number + 1,
                    max_attempts=self.max_retry,
                    delay_seconds=delay,
                )
                await self._sleep(delay)

            self.attempts_made = attempt_number + 1
            try:
                result = await work.attempt(attempt_number)
            except self._retry_on as e:
                last_error = e
                logger.warning(
                    "attempt_failed",
                    attempt=attempt_number + 1,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                attempt_number += 1
                continue

            if attempt_number > 0:
                logger.info("attempt_succeeded", attempt=attempt_number + 1)
            return result

        logger.error(
            "retries_exhausted",
            attempts=self.max_retry,
            outcome_unknown=isinstance(last_error, ConfirmationTimeout),
        )
        raise RetryExhausted(self.max_retry, last_error) from last_error
