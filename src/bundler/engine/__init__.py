"""
Submission engine.

Sends sealed bundles, waits for them to confirm, and retries failed attempts.
"""

from bundler.engine.poller import ConfirmationPoller, PollOutcome
from bundler.engine.retry import Attempt, RetryCoordinator
from bundler.engine.submitter import BundleSubmitter

__all__ = [
    "Attempt",
    "BundleSubmitter",
    "ConfirmationPoller",
    "PollOutcome",
    "RetryCoordinator",
]
