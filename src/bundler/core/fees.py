"""
Fee attacher - adds the relay tip to a bundle set.
"""

import random
from typing import List, Optional

import structlog
from solders.pubkey import Pubkey

from bundler.config import BundlerConfig
from bundler.core.errors import DuplicateTip, SealedGroupError
from bundler.core.group import BundleSet
from bundler.core.operation import Operation

logger = structlog.get_logger(__name__)


class FeeAttacher:
    """
    Prepends one tip transfer to the last group of a bundle set.

    The recipient is drawn uniformly at random from the configured pool of
    tip accounts; the payer is the last group's fee payer.
    """

    def __init__(self, config: BundlerConfig, rng: Optional[random.Random] = None):
        """
        Initialize the fee attacher.

        Args:
            config: Bundler configuration
            rng: Random source for tip account selection
        """
        self.config = config
        self._rng = rng or random.Random()
        self._tip_accounts: List[Pubkey] = [Pubkey.from_string(a) for a in config.tip_accounts]

    @property
    def tip_accounts(self) -> List[Pubkey]:
        return list(self._tip_accounts)

    def choose_tip_account(self) -> Pubkey:
        """Pick a tip recipient."""
        return self._rng.choice(self._tip_accounts)

    def attach(self, bundle_set: BundleSet, lamports: Optional[int] = None) -> Operation:
        """
        Attach the tip to a bundle set.

        Args:
            bundle_set: Bundle set to tip, not yet sealed
            lamports: Tip amount (configured tip if omitted)

        Returns:
            The tip operation

        Raises:
            DuplicateTip: If the bundle set already carries a tip
            SealedGroupError: If the last group is already sealed
            ValueError: If the bundle set is empty
        """
        if bundle_set.has_tip:
            raise DuplicateTip(f"Bundle set {bundle_set.bundle_set_id[:8]} already has a tip")

        last = bundle_set.last_group
        if last.is_sealed:
            raise SealedGroupError(f"Cannot tip sealed group {last.group_id[:8]}")

        amount = self.config.tip_lamports if lamports is None else lamports
        recipient = self.choose_tip_account()
        tip = Operation.transfer(last.payer, recipient, amount, label="tip")

        last.prepend(tip)
        bundle_set.tip = tip

        logger.debug(
            "tip_attached",
            bundle_set_id=bundle_set.bundle_set_id[:8] + "...",
            tip_account=str(recipient),
            lamports=amount,
        )
        return tip
