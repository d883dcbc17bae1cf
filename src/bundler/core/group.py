"""
Group and bundle set models.

A Group becomes exactly one signed transaction; a BundleSet is the list
of groups handed to the relay in one request.
"""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from solders.hash import Hash
from solders.instruction import Instruction
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from bundler.config import SubmissionMode
from bundler.core.errors import SealedGroupError
from bundler.core.operation import Operation


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Anchor:
    """
    A recent blockhash and the moment it was fetched.

    Attributes:
        blockhash: Recent blockhash embedded into transactions
        last_valid_block_height: Last block height at which the blockhash is accepted
        fetched_at: time.monotonic() reading taken when the blockhash was fetched
    """

    blockhash: Hash
    last_valid_block_height: int = 0
    fetched_at: float = field(default_factory=time.monotonic)

    def age(self, now: Optional[float] = None) -> float:
        """Seconds elapsed since the anchor was fetched."""
        now = time.monotonic() if now is None else now
        return max(0.0, now - self.fetched_at)

    def is_stale(self, window_seconds: float, now: Optional[float] = None) -> bool:
        """Check whether the anchor is older than the staleness window."""
        return self.age(now) > window_seconds


class GroupStatus(str, Enum):
    """Status of a group."""
    OPEN = "open"             # Operations may still be added
    ANCHORED = "anchored"     # Blockhash set, waiting to be signed
    SEALED = "sealed"         # Signed and serialized


@dataclass
class Group:
    """
    An ordered run of operations sharing one payer and one anchor.

    Attributes:
        payer: Fee payer of the transaction
        operations: Operations in instruction order
        anchor: Blockhash the transaction is signed against
        transaction: Signed transaction, set once by mark_sealed
        status: Current status
    """

    payer: Pubkey
    operations: List[Operation] = field(default_factory=list)
    group_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    anchor: Optional[Anchor] = None
    transaction: Optional[VersionedTransaction] = None
    status: GroupStatus = GroupStatus.OPEN

    @property
    def size(self) -> int:
        """Number of operations in this group."""
        return len(self.operations)

    @property
    def is_sealed(self) -> bool:
        return self.status == GroupStatus.SEALED

    @property
    def instructions(self) -> List[Instruction]:
        return [op.instruction for op in self.operations]

    @property
    def required_signers(self) -> List[Pubkey]:
        """Payer first, then every operation signer once, in order of appearance."""
        signers = [self.payer]
        for op in self.operations:
            for signer in op.signers:
                if signer not in signers:
                    signers.append(signer)
        return signers

    def _ensure_open(self) -> None:
        if self.is_sealed:
            raise SealedGroupError(f"Group {self.group_id[:8]} is already sealed")

    def prepend(self, operation: Operation) -> None:
        """Insert an operation as the first instruction."""
        self._ensure_open()
        self.operations.insert(0, operation)

    def append(self, operation: Operation) -> None:
        """Add an operation as the last instruction."""
        self._ensure_open()
        self.operations.append(operation)

    def set_anchor(self, anchor: Anchor) -> None:
        """Attach the blockhash this group will be signed against."""
        self._ensure_open()
        self.anchor = anchor
        self.status = GroupStatus.ANCHORED

    def mark_sealed(self, transaction: VersionedTransaction) -> None:
        """Record the signed transaction. Allowed exactly once."""
        self._ensure_open()
        if self.anchor is None:
            raise SealedGroupError(f"Group {self.group_id[:8]} has no anchor")
        self.transaction = transaction
        self.status = GroupStatus.SEALED

    @property
    def signature(self) -> Optional[str]:
        """Primary (fee payer) signature, base58 encoded."""
        if self.transaction is None:
            return None
        return str(self.transaction.signatures[0])

    def serialize(self) -> bytes:
        """Wire bytes of the sealed transaction."""
        if self.transaction is None:
            raise SealedGroupError(f"Group {self.group_id[:8]} is not sealed")
        return bytes(self.transaction)

    def __repr__(self) -> str:
        return f"Group(id={self.group_id[:8]}..., status={self.status.value}, size={self.size})"


@dataclass
class BundleSet:
    """
    Groups submitted to the relay together.

    Exactly one tip operation is attached to the last group before sealing.
    Atomic inclusion is the relay's promise, not something enforced here.
    """

    groups: List[Group] = field(default_factory=list)
    bundle_set_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    tip: Optional[Operation] = None

    @property
    def size(self) -> int:
        return len(self.groups)

    @property
    def last_group(self) -> Group:
        if not self.groups:
            raise ValueError("Bundle set has no groups")
        return self.groups[-1]

    @property
    def has_tip(self) -> bool:
        return self.tip is not None

    @property
    def is_sealed(self) -> bool:
        return bool(self.groups) and all(g.is_sealed for g in self.groups)

    @property
    def operation_count(self) -> int:
        return sum(g.size for g in self.groups)

    @property
    def representative_id(self) -> Optional[str]:
        """Primary signature of the first group, used to poll the whole bundle."""
        if not self.groups:
            return None
        return self.groups[0].signature

    @property
    def transaction_ids(self) -> List[str]:
        return [g.signature for g in self.groups if g.signature]

    def serialized(self) -> List[bytes]:
        """Wire bytes of every group, in order."""
        return [g.serialize() for g in self.groups]

    def __repr__(self) -> str:
        return (
            f"BundleSet(id={self.bundle_set_id[:8]}..., groups={self.size}, "
            f"tipped={self.has_tip})"
        )


@dataclass
class SubmissionRecord:
    """
    Result of submitting one bundle set.

    Attributes:
        bundle_set_id: The submitted bundle set
        correlation_id: Relay bundle id (the representative signature in direct mode)
        representative_id: Signature polled to confirm the bundle
        transaction_ids: Every transaction signature in the bundle
        mode: How the bundle was submitted
    """

    bundle_set_id: str
    correlation_id: str
    representative_id: str
    transaction_ids: List[str] = field(default_factory=list)
    mode: SubmissionMode = SubmissionMode.BUNDLE
    submitted_at: datetime = field(default_factory=_utcnow)

    @property
    def confirmation_ids(self) -> List[str]:
        """Signatures to poll: the representative for bundles, all of them otherwise."""
        if self.mode == SubmissionMode.DIRECT:
            return list(self.transaction_ids) or [self.representative_id]
        return [self.representative_id]

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "bundle_set_id": self.bundle_set_id,
            "correlation_id": self.correlation_id,
            "representative_id": self.representative_id,
            "transaction_ids": list(self.transaction_ids),
            "mode": self.mode.value,
            "submitted_at": self.submitted_at.isoformat(),
        }
