"""
Abstract interface for bundle relays.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from bundler.core.errors import BundlerError


class RelayInterface(ABC):
    """
    Abstract interface for a bundle relay.

    A relay accepts an ordered list of signed transactions and returns a
    correlation id for the bundle.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection to the relay."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the connection to the relay."""
        pass

    @abstractmethod
    async def send_bundle(self, transactions: Sequence[bytes]) -> str:
        """
        Submit a bundle.

        Args:
            transactions: Serialized signed transactions, in execution order

        Returns:
            Relay-assigned bundle id

        Raises:
            RelayUnreachable: If the relay cannot be reached
            RelayRejected: If the relay refuses the bundle or answers garbage
        """
        pass

    @abstractmethod
    async def get_tip_accounts(self) -> List[str]:
        """Get the tip accounts the relay currently accepts."""
        pass


class RelayError(BundlerError):
    """Base class for relay failures."""
    pass


class RelayUnreachable(RelayError):
    """Raised when the relay cannot be reached."""
    pass


class RelayRejected(RelayError):
    """Raised when the relay answers with an error or a malformed response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
