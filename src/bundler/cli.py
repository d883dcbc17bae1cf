"""
Command-line interface for the Solana bundler.

Provides commands for funding wallets and inspecting ledger state.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

import structlog
from solana.constants import LAMPORTS_PER_SOL
from solders.pubkey import Pubkey
from solders.signature import Signature
from spl.token.instructions import get_associated_token_address

from bundler import __version__
from bundler.config import BundlerConfig, Network, SubmissionMode
from bundler.core.errors import BundlerError, RetryExhausted
from bundler.core.operation import Operation
from bundler.ledger.rpc import SolanaRpcLedger
from bundler.pipeline import BundlePipeline, PipelineResult
from bundler.relay.jito import JitoRelay
from bundler.transfers import build_sol_disperse, build_token_disperse
from bundler.tx.signer import TransactionSigner


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """
    Configure structured logging on stderr.

    Command output goes to stdout, so logs never mix with it. JSON logs
    render exceptions as structured tracebacks; console logs are colored
    only on a terminal.
    """
    if json_format:
        renderer = structlog.processors.JSONRenderer()
        exc_processor = structlog.processors.dict_tracebacks
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
        exc_processor = structlog.processors.format_exc_info

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            exc_processor,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
        stream=sys.stderr,
    )


def load_wallets(path: str) -> List[str]:
    """
    Load wallet addresses from a file.

    Accepts a JSON array of addresses or one address per line
    (blank lines and lines starting with '#' are ignored).

    Raises:
        ValueError: If an entry is not a valid address
    """
    text = Path(path).read_text()
    if text.lstrip().startswith("["):
        wallets = [str(a) for a in json.loads(text)]
    else:
        wallets = [
            line.strip() for line in text.splitlines()
            if line.strip() and not line.strip().startswith("#")
        ]

    for wallet in wallets:
        try:
            Pubkey.from_string(wallet)
        except ValueError as e:
            raise ValueError(f"Invalid address in {path}: {wallet!r}") from e
    return wallets


def validate_signatures(signatures: Sequence[str]) -> None:
    """Raise ValueError for the first malformed signature."""
    for signature in signatures:
        try:
            Signature.from_string(signature)
        except ValueError as e:
            raise ValueError(f"Invalid transaction signature: {signature!r}") from e


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--network",
        choices=[n.value for n in Network],
        help="Solana cluster (default: from environment, else mainnet)",
    )
    common.add_argument(
        "--rpc-url",
        help="Custom RPC endpoint",
    )
    common.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: from environment, else INFO)",
    )
    common.add_argument(
        "--log-json",
        action="store_true",
        default=None,
        help="Output logs in JSON format",
    )

    signing = argparse.ArgumentParser(add_help=False)
    signing.add_argument(
        "--keypair",
        action="append",
        default=[],
        help="Keypair file; repeat for several, the first pays fees "
             "(default: BUNDLER_PAYER_PRIVATE_KEY and BUNDLER_KEYPAIR_PATHS)",
    )
    signing.add_argument(
        "--mode",
        choices=[m.value for m in SubmissionMode],
        help="Submit through the relay (bundle) or straight to the node (direct)",
    )

    parser = argparse.ArgumentParser(
        prog="solana-bundler",
        description="Submit Solana instructions as tipped relay bundles",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Disperse command
    disperse_parser = subparsers.add_parser(
        "disperse", parents=[common, signing], help="Fund wallets with SOL from the payer"
    )
    disperse_parser.add_argument(
        "--wallets",
        required=True,
        help="File with recipient addresses (JSON array or one per line)",
    )
    disperse_parser.add_argument(
        "--amount-sol",
        type=float,
        required=True,
        help="SOL sent to every wallet",
    )
    disperse_parser.add_argument(
        "--bonus-sol",
        type=float,
        default=0.0,
        help="Extra SOL for the first wallet (default: 0)",
    )

    # Token disperse command
    tokens_parser = subparsers.add_parser(
        "disperse-tokens",
        parents=[common, signing],
        help="Split the token balances of the loaded wallets across child wallets",
    )
    tokens_parser.add_argument("--mint", required=True, help="Token mint address")
    tokens_parser.add_argument(
        "--wallets",
        required=True,
        help="File with child wallet addresses (JSON array or one per line)",
    )

    # Status command
    status_parser = subparsers.add_parser(
        "status", parents=[common], help="Show transaction signature statuses"
    )
    status_parser.add_argument("signatures", nargs="+", help="Transaction signatures")

    # Balances command
    balances_parser = subparsers.add_parser(
        "balances", parents=[common], help="Show SOL and token balances"
    )
    balances_parser.add_argument("addresses", nargs="*", help="Account addresses")
    balances_parser.add_argument(
        "--wallets",
        help="File with addresses (JSON array or one per line)",
    )
    balances_parser.add_argument(
        "--mint",
        help="Also show the balance of this token",
    )

    # Tip accounts command
    tips_parser = subparsers.add_parser(
        "tip-accounts", parents=[common], help="List relay tip accounts"
    )
    tips_parser.add_argument(
        "--live",
        action="store_true",
        help="Ask the block engine instead of printing the configured pool",
    )

    return parser


def build_config(args: argparse.Namespace) -> BundlerConfig:
    """Build configuration from environment plus options given on the command line."""
    overrides = {}
    if getattr(args, "log_level", None):
        overrides["log_level"] = args.log_level
    if getattr(args, "log_json", None) is not None:
        overrides["log_json"] = args.log_json
    if getattr(args, "network", None):
        overrides["network"] = Network(args.network)
    if getattr(args, "rpc_url", None):
        overrides["rpc_url"] = args.rpc_url
    if getattr(args, "mode", None):
        overrides["submission_mode"] = SubmissionMode(args.mode)
    return BundlerConfig(**overrides)


def load_signer(args: argparse.Namespace, config: BundlerConfig) -> TransactionSigner:
    """Load keypairs from --keypair files, else from configuration."""
    signer = TransactionSigner(config)
    if args.keypair:
        for path in args.keypair:
            signer.load_key_from_file(path)
    else:
        signer.load_from_config()
    return signer


async def run_pipeline(
    pipeline: BundlePipeline,
    operations: Sequence[Operation],
    payer: Pubkey,
    step: str,
) -> Optional[PipelineResult]:
    """Execute operations and print the outcome; None on failure."""
    try:
        result = await pipeline.execute(operations, payer=payer)
    except RetryExhausted as e:
        print(f"{step}: failed after {e.attempts} attempt(s): {e.last_error}")
        if e.outcome_unknown:
            print("The last bundle may still land; check the signatures before retrying.")
        return None

    print(f"{step}: confirmed after {result.attempts} attempt(s)")
    for record in result.records:
        print(f"  Bundle: {record.correlation_id}")
        for signature in record.transaction_ids:
            print(f"    {signature}")
    return result


async def disperse(args: argparse.Namespace, config: BundlerConfig) -> int:
    """Fund wallets with SOL."""
    signer = load_signer(args, config)
    wallets = load_wallets(args.wallets)
    if not wallets:
        print("No wallets to fund.")
        return 1

    operations = build_sol_disperse(
        signer.payer,
        wallets,
        amount_sol=args.amount_sol,
        first_wallet_bonus_sol=args.bonus_sol,
    )

    print(f"Funding {len(wallets)} wallet(s) from {signer.payer}")
    print(f"Mode: {config.submission_mode.value}")
    print()

    async with BundlePipeline(config, signer=signer) as pipeline:
        result = await run_pipeline(pipeline, operations, signer.payer, "SOL transfers")
    return 0 if result else 1


async def disperse_tokens(args: argparse.Namespace, config: BundlerConfig) -> int:
    """Split main wallet token balances across child wallets."""
    signer = load_signer(args, config)
    wallets = load_wallets(args.wallets)
    if not wallets:
        print("No wallets to fund.")
        return 1

    print(f"Distributing {args.mint} from {len(signer.pubkeys)} wallet(s) to {len(wallets)} wallet(s)")
    print(f"Mode: {config.submission_mode.value}")
    print()

    async with BundlePipeline(config, signer=signer) as pipeline:
        plan = await build_token_disperse(pipeline.ledger, args.mint, signer.pubkeys, wallets)

        if plan.account_creations:
            created = await run_pipeline(
                pipeline, plan.account_creations, signer.payer, "Token account creation"
            )
            if not created:
                return 1

        result = await run_pipeline(pipeline, plan.transfers, signer.payer, "Token transfers")

    if result:
        print(f"Sent {plan.total_amount} base units in {len(plan.transfers)} transfer(s)")
    return 0 if result else 1


async def show_status(args: argparse.Namespace, config: BundlerConfig) -> int:
    """Print signature statuses."""
    validate_signatures(args.signatures)

    ledger = SolanaRpcLedger(config)
    await ledger.connect()
    try:
        statuses = await ledger.get_transaction_statuses(args.signatures)
    finally:
        await ledger.disconnect()

    for signature in args.signatures:
        print(f"{signature}  {statuses[signature].value}")
    return 0


async def show_balances(args: argparse.Namespace, config: BundlerConfig) -> int:
    """Print SOL balances, and token balances when a mint is given."""
    addresses = list(args.addresses)
    if args.wallets:
        addresses.extend(load_wallets(args.wallets))
    if not addresses:
        print("No addresses given.")
        return 1
    mint = Pubkey.from_string(args.mint) if args.mint else None

    ledger = SolanaRpcLedger(config)
    await ledger.connect()
    try:
        snapshots = await ledger.get_account_snapshots(addresses)
        token_balances = []
        if mint is not None:
            for address in addresses:
                account = get_associated_token_address(Pubkey.from_string(address), mint)
                token_balances.append(await ledger.get_token_balance(str(account)))
    finally:
        await ledger.disconnect()

    total = 0
    for index, (address, snapshot) in enumerate(zip(addresses, snapshots)):
        lamports = snapshot.lamports if snapshot else 0
        total += lamports
        line = f"{address}  {lamports / LAMPORTS_PER_SOL:.9f} SOL"
        if mint is not None:
            balance = token_balances[index]
            line += f"  {balance.ui_amount if balance else 0} tokens"
        print(line)
    print()
    print(f"Total: {total / LAMPORTS_PER_SOL:.9f} SOL across {len(addresses)} account(s)")
    return 0


async def show_tip_accounts(args: argparse.Namespace, config: BundlerConfig) -> int:
    """Print tip accounts."""
    if not args.live:
        accounts = config.tip_accounts
    else:
        relay = JitoRelay(config)
        await relay.connect()
        try:
            accounts = await relay.get_tip_accounts()
        finally:
            await relay.disconnect()

    for account in accounts:
        print(account)
    return 0


COMMANDS = {
    "disperse": disperse,
    "disperse-tokens": disperse_tokens,
    "status": show_status,
    "balances": show_balances,
    "tip-accounts": show_tip_accounts,
}


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    config = build_config(args)
    setup_logging(config.log_level, config.log_json)

    try:
        code = asyncio.run(COMMANDS[args.command](args, config))
    except (BundlerError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
