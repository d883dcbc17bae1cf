"""
Core bundler components.

This module contains the operation, group and bundle set models together
with the pure batching and tip attachment steps.
"""

from bundler.core.batcher import Batcher, partition
from bundler.core.errors import (
    BundlerError,
    ConfirmationTimeout,
    DuplicateTip,
    InvalidCapacity,
    RetryExhausted,
    SealedGroupError,
)
from bundler.core.fees import FeeAttacher
from bundler.core.group import Anchor, BundleSet, Group, GroupStatus, SubmissionRecord
from bundler.core.operation import Operation

__all__ = [
    "Anchor",
    "Batcher",
    "BundleSet",
    "BundlerError",
    "ConfirmationTimeout",
    "DuplicateTip",
    "FeeAttacher",
    "Group",
    "GroupStatus",
    "InvalidCapacity",
    "Operation",
    "RetryExhausted",
    "SealedGroupError",
    "SubmissionRecord",
    "partition",
]
