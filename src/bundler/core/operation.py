"""
Operation model.

An instruction payload plus the identities that must sign it.
"""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from solders.instruction import Instruction
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer


@dataclass(frozen=True)
class Operation:
    """
    A single instruction to be packed into a transaction.

    Attributes:
        instruction: The Solana instruction
        signers: Identities that must sign any transaction carrying it
        label: Free-form tag used in logs
    """

    instruction: Instruction
    signers: Tuple[Pubkey, ...] = ()
    label: str = ""

    @classmethod
    def from_instruction(
        cls,
        instruction: Instruction,
        label: str = "",
        signers: Optional[Sequence[Pubkey]] = None,
    ) -> "Operation":
        """
        Create an Operation, deriving signers from the instruction's account metas.

        Args:
            instruction: Instruction to wrap
            label: Tag used in logs
            signers: Explicit signer list (derived if not given)

        Returns:
            New Operation instance
        """
        if signers is None:
            signers = []
            for meta in instruction.accounts:
                if meta.is_signer and meta.pubkey not in signers:
                    signers.append(meta.pubkey)
        return cls(instruction=instruction, signers=tuple(signers), label=label)

    @classmethod
    def transfer(
        cls,
        payer: Pubkey,
        recipient: Pubkey,
        lamports: int,
        label: str = "transfer",
    ) -> "Operation":
        """Create a system-program SOL transfer."""
        if lamports < 0:
            raise ValueError(f"Transfer amount must not be negative, got {lamports}")
        ix = transfer(TransferParams(from_pubkey=payer, to_pubkey=recipient, lamports=lamports))
        return cls.from_instruction(ix, label=label)

    @property
    def program_id(self) -> Pubkey:
        return self.instruction.program_id

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "label": self.label,
            "program_id": str(self.program_id),
            "signers": [str(s) for s in self.signers],
            "accounts": len(self.instruction.accounts),
        }
