"""
Operation builders for funding wallets.
"""

import random
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Sequence, Union

import structlog
from solana.constants import LAMPORTS_PER_SOL
from solders.pubkey import Pubkey
from spl.token.constants import TOKEN_PROGRAM_ID
from spl.token.instructions import (
    TransferCheckedParams,
    create_associated_token_account,
    get_associated_token_address,
    transfer_checked,
)

from bundler.core.operation import Operation
from bundler.ledger.interface import LedgerInterface

logger = structlog.get_logger(__name__)

Address = Union[str, Pubkey]

# Paired token amounts differ from the even share by this fraction
TOKEN_JITTER_RANGE = (0.05, 0.1)


def sol_to_lamports(amount_sol: Union[float, str, Decimal]) -> int:
    """Convert SOL to lamports without float rounding drift."""
    lamports = Decimal(str(amount_sol)) * LAMPORTS_PER_SOL
    return int(lamports.to_integral_value())


def _as_pubkey(address: Address) -> Pubkey:
    return address if isinstance(address, Pubkey) else Pubkey.from_string(address)


def build_sol_disperse(
    payer: Pubkey,
    wallets: Sequence[Address],
    amount_sol: float,
    first_wallet_bonus_sol: float = 0.0,
) -> List[Operation]:
    """
    Build one SOL transfer per wallet.

    Args:
        payer: Wallet sending the funds
        wallets: Recipient addresses, in order
        amount_sol: Amount each wallet receives
        first_wallet_bonus_sol: Extra amount for the first wallet (typically the dev wallet)

    Returns:
        Transfer operations, one per wallet
    """
    if amount_sol < 0 or first_wallet_bonus_sol < 0:
        raise ValueError("Transfer amounts must not be negative")

    operations = []
    for index, wallet in enumerate(wallets):
        amount = sol_to_lamports(amount_sol)
        if index == 0:
            amount += sol_to_lamports(first_wallet_bonus_sol)
        operations.append(
            Operation.transfer(payer, _as_pubkey(wallet), amount, label=f"disperse:{index}")
        )
    return operations


def split_counts(total: int, parts: int) -> List[int]:
    """Spread `total` recipients over `parts` senders; earlier senders take the remainder."""
    if parts <= 0:
        raise ValueError(f"Need at least one sender, got {parts}")
    base, extra = divmod(total, parts)
    return [base + (1 if i < extra else 0) for i in range(parts)]


def paired_amounts(share: int, count: int, rng: random.Random) -> List[int]:
    """
    Amounts scattered around `share`.

    Even positions get share minus a random 5-10% offset, the following odd
    position gets share plus the same offset, so every pair sums to 2 * share.
    """
    amounts = []
    offset = 0
    for position in range(count):
        if position % 2 == 0:
            offset = int(share * rng.uniform(*TOKEN_JITTER_RANGE))
            amounts.append(share - offset)
        else:
            amounts.append(share + offset)
    return amounts


@dataclass
class TokenDisperse:
    """
    Operations distributing a token from main wallets to child wallets.

    Account creations must land before the transfers; submit them first.
    """

    mint: Pubkey
    account_creations: List[Operation] = field(default_factory=list)
    transfers: List[Operation] = field(default_factory=list)
    amounts: List[int] = field(default_factory=list)

    @property
    def operations(self) -> List[Operation]:
        return self.account_creations + self.transfers

    @property
    def total_amount(self) -> int:
        return sum(self.amounts)


async def build_token_disperse(
    ledger: LedgerInterface,
    mint: Address,
    main_wallets: Sequence[Address],
    child_wallets: Sequence[Address],
    rng: Optional[random.Random] = None,
) -> TokenDisperse:
    """
    Build token transfers from main wallets to child wallets.

    Children are split across main wallets in order. A main wallet with n
    children sends each of them about balance / (n + 1), keeping one share
    for itself. Child token accounts that do not exist yet are created,
    paid by the sending main wallet.

    Args:
        ledger: Ledger used for balances and account existence
        mint: Token mint
        main_wallets: Wallets holding the tokens, all of which must sign
        child_wallets: Recipients, in order
        rng: Random source for amount jitter

    Returns:
        TokenDisperse with creations and transfers in order

    Raises:
        ValueError: If there is no main wallet or a main wallet has no token account
    """
    rng = rng or random.Random()
    mint = _as_pubkey(mint)
    mains = [_as_pubkey(w) for w in main_wallets]
    children = [_as_pubkey(w) for w in child_wallets]

    counts = split_counts(len(children), len(mains))
    child_accounts = [get_associated_token_address(child, mint) for child in children]
    existing = await ledger.get_account_snapshots([str(a) for a in child_accounts])

    plan = TokenDisperse(mint=mint)
    created = set()
    start = 0
    for owner, count in zip(mains, counts):
        if count == 0:
            continue

        source = get_associated_token_address(owner, mint)
        balance = await ledger.get_token_balance(str(source))
        if balance is None:
            raise ValueError(f"Wallet {owner} has no token account for {mint}")

        share = balance.amount // (count + 1)
        for position, amount in enumerate(paired_amounts(share, count, rng)):
            index = start + position
            child, account = children[index], child_accounts[index]

            if existing[index] is None and account not in created:
                created.add(account)
                plan.account_creations.append(Operation.from_instruction(
                    create_associated_token_account(payer=owner, owner=child, mint=mint),
                    label=f"create-ata:{index}",
                ))

            plan.transfers.append(Operation.from_instruction(
                transfer_checked(TransferCheckedParams(
                    program_id=TOKEN_PROGRAM_ID,
                    source=source,
                    mint=mint,
                    dest=account,
                    owner=owner,
                    amount=amount,
                    decimals=balance.decimals,
                    signers=[],
                )),
                label=f"disperse-token:{index}",
            ))
            plan.amounts.append(amount)

        logger.debug(
            "token_share_planned",
            owner=str(owner),
            balance=balance.amount,
            recipients=count,
            sent=sum(plan.amounts[-count:]),
        )
        start += count

    logger.info(
        "token_disperse_built",
        mint=str(mint),
        recipients=len(children),
        accounts_created=len(plan.account_creations),
        total_amount=plan.total_amount,
    )
    return plan
