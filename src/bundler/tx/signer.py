"""
Transaction Signer - seals groups into signed transactions.

Manages the keyring and provides transaction signing.
"""

import json
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import base58
import structlog
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from bundler.config import BundlerConfig
from bundler.core.errors import BundlerError
from bundler.core.group import Group

logger = structlog.get_logger(__name__)


class SigningError(BundlerError):
    """Raised when a group cannot be signed."""
    pass


class TransactionSigner:
    """
    Signs groups with keys from an in-memory keyring.

    Supports loading keys from:
    - solana-keygen JSON files (array of 64 integers)
    - Base58-encoded secret keys (for environment variable configuration)
    - Keypair objects
    """

    def __init__(self, config: BundlerConfig, keypairs: Optional[Iterable[Keypair]] = None):
        """
        Initialize the transaction signer.

        Args:
            config: Bundler configuration
            keypairs: Keypairs to start the keyring with
        """
        self.config = config
        self._keys: Dict[Pubkey, Keypair] = {}
        self._payer: Optional[Pubkey] = None
        for keypair in keypairs or []:
            self.add_keypair(keypair)

    def add_keypair(self, keypair: Keypair) -> Pubkey:
        """Add a keypair; the first key added becomes the default payer."""
        pubkey = keypair.pubkey()
        self._keys[pubkey] = keypair
        if self._payer is None:
            self._payer = pubkey
        return pubkey

    def load_key_from_file(self, key_path: str) -> Pubkey:
        """
        Load a keypair from a solana-keygen JSON file.

        Args:
            key_path: Path to the keypair file
        """
        path = Path(key_path)
        if not path.exists():
            raise FileNotFoundError(f"Keypair file not found: {key_path}")

        secret = json.loads(path.read_text())
        pubkey = self.add_keypair(Keypair.from_bytes(bytes(secret)))
        logger.info("keypair_loaded", path=key_path, pubkey=str(pubkey))
        return pubkey

    def load_key_from_base58(self, secret: str) -> Pubkey:
        """
        Load a keypair from a base58-encoded secret key.

        Args:
            secret: Base58 secret key (64 bytes decoded)
        """
        pubkey = self.add_keypair(Keypair.from_bytes(base58.b58decode(secret)))
        logger.info("keypair_loaded_from_base58", pubkey=str(pubkey))
        return pubkey

    def load_from_config(self) -> None:
        """Load the payer and any extra keypair files from configuration."""
        if self.config.payer_private_key:
            self._payer = self.load_key_from_base58(self.config.payer_private_key)
        for key_path in self.config.keypair_paths:
            self.load_key_from_file(key_path)
        if not self._keys:
            raise ValueError("No signing key configured")

    @property
    def payer(self) -> Optional[Pubkey]:
        """Default fee payer."""
        return self._payer

    @property
    def pubkeys(self) -> List[Pubkey]:
        return list(self._keys)

    @property
    def is_loaded(self) -> bool:
        """Check if any key is loaded."""
        return bool(self._keys)

    def has_key(self, pubkey: Pubkey) -> bool:
        return pubkey in self._keys

    def seal(self, group: Group) -> VersionedTransaction:
        """
        Sign a group and mark it sealed.

        The message is compiled against the group's anchor and signed by
        exactly the signer keys the compiled message requires.

        Args:
            group: Anchored, unsealed group

        Returns:
            Signed transaction
        """
        if group.anchor is None:
            raise SigningError(f"Group {group.group_id[:8]} has no anchor")

        message = MessageV0.try_compile(
            group.payer,
            group.instructions,
            [],
            group.anchor.blockhash,
        )
        required = list(message.account_keys[:message.header.num_required_signatures])

        missing = [str(pk) for pk in required if pk not in self._keys]
        if missing:
            raise SigningError(f"Missing signing keys for: {', '.join(missing)}")

        tx = VersionedTransaction(message, [self._keys[pk] for pk in required])
        group.mark_sealed(tx)

        logger.debug(
            "group_sealed",
            group_id=group.group_id[:8] + "...",
            signature=group.signature,
            signers=len(required),
        )
        return tx


def generate_test_signer(config: BundlerConfig, count: int = 1) -> TransactionSigner:
    """
    Create a signer holding `count` fresh random keypairs.

    WARNING: Do not use in production. The keys are not persisted.
    """
    signer = TransactionSigner(config, [Keypair() for _ in range(count)])
    logger.warning("test_signer_generated", payer=str(signer.payer), keys=count)
    return signer
