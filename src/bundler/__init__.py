"""
Solana Bundler

Packs Solana instructions into transactions, submits them to a block-engine
relay as tipped atomic bundles, and waits for them to confirm, retrying
failed attempts with exponential backoff.
"""

__version__ = "0.1.0"

from bundler.core.operation import Operation
from bundler.core.group import BundleSet, Group, SubmissionRecord
from bundler.pipeline import BundlePipeline, PipelineResult

__all__ = [
    "BundlePipeline",
    "BundleSet",
    "Group",
    "Operation",
    "PipelineResult",
    "SubmissionRecord",
]
