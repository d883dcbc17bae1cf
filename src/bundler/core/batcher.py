"""
Batcher - partitions operations into groups and groups into bundle sets.

Everything here is pure: the same input always yields the same shape of output.
"""

from typing import List, Optional, Sequence, TypeVar

import structlog
from solders.pubkey import Pubkey

from bundler.config import BundlerConfig
from bundler.core.errors import InvalidCapacity
from bundler.core.group import BundleSet, Group
from bundler.core.operation import Operation

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def partition(items: Sequence[T], capacity: int) -> List[List[T]]:
    """
    Split items into consecutive chunks of at most `capacity`.

    Produces ceil(n / capacity) chunks, preserving order, with nothing
    dropped or duplicated.

    Raises:
        InvalidCapacity: If capacity is not positive
    """
    if capacity <= 0:
        raise InvalidCapacity(capacity)
    return [list(items[i:i + capacity]) for i in range(0, len(items), capacity)]


class Batcher:
    """
    Turns an ordered list of operations into bundle sets.

    Usage:
        ```python
        batcher = Batcher(config)
        groups = batcher.build_groups(operations, payer=payer.pubkey())
        bundle_sets = batcher.build_bundle_sets(groups)
        ```
    """

    def __init__(self, config: BundlerConfig):
        """
        Initialize the batcher.

        Args:
            config: Bundler configuration
        """
        self.config = config

    def partition(self, operations: Sequence[Operation], capacity: Optional[int] = None) -> List[List[Operation]]:
        """Partition operations, defaulting to the configured group capacity."""
        if capacity is None:
            capacity = self.config.max_ops_per_group
        return partition(operations, capacity)

    def build_groups(
        self,
        operations: Sequence[Operation],
        payer: Optional[Pubkey] = None,
        capacity: Optional[int] = None,
    ) -> List[Group]:
        """
        Build groups from operations.

        Args:
            operations: Operations in the order they must execute
            payer: Fee payer for every group. When omitted, each group is paid
                by the first signer of its first operation.
            capacity: Maximum operations per group (configured value if omitted)

        Returns:
            Ordered list of open groups
        """
        groups = []
        for chunk in self.partition(operations, capacity):
            group_payer = payer or self._default_payer(chunk)
            groups.append(Group(payer=group_payer, operations=chunk))

        logger.debug(
            "groups_built",
            operations=len(operations),
            groups=len(groups),
            sizes=[g.size for g in groups],
        )
        return groups

    def build_bundle_sets(self, groups: Sequence[Group]) -> List[BundleSet]:
        """Chunk groups into bundle sets of at most max_groups_per_bundle."""
        bundle_sets = [
            BundleSet(groups=chunk)
            for chunk in partition(groups, self.config.max_groups_per_bundle)
        ]
        logger.debug("bundle_sets_built", groups=len(groups), bundle_sets=len(bundle_sets))
        return bundle_sets

    @staticmethod
    def _default_payer(chunk: List[Operation]) -> Pubkey:
        for op in chunk:
            if op.signers:
                return op.signers[0]
        raise ValueError("Cannot infer a payer: no operation in the group has a signer")
