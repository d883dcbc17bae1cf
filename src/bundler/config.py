"""
Configuration management for the Solana bundler.

Supports configuration via environment variables and .env files.
"""

from enum import Enum
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from solana.constants import LAMPORTS_PER_SOL


class Network(str, Enum):
    """Solana clusters."""
    MAINNET = "mainnet"
    DEVNET = "devnet"
    LOCAL = "local"


class SubmissionMode(str, Enum):
    """How sealed transactions reach the cluster."""
    BUNDLE = "bundle"    # Through the block-engine relay, tipped
    DIRECT = "direct"    # One by one through the RPC node, untipped


class CommitmentLevel(str, Enum):
    """Ledger commitment levels, weakest first."""
    PROCESSED = "processed"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"


# Public Jito tip accounts
DEFAULT_TIP_ACCOUNTS = [
    "96gYZGLnJYVFmbjzopPSU6QiEV5fGqZNyN9nmNhvrZU5",
    "HFqU5x63VTqvQss8hp11i4wVV8bD44PvwucfZ2bU7gRe",
    "Cw8CFyM9FkoMi7K7Crf6HNQqf4uEMzpKw6QNghXLvLkY",
    "ADaUMid9yfUytqMBgopwjb2DTLSokTSzL1zt6iGPaS49",
    "DfXygSm4jCyNCybVYYK6DwvWqjKee8pbDmJGcLWNDXjh",
    "ADuUkR4vqLUMWXxW9gh6D6L8pMSawimctcNZ5pGwDcEt",
    "DttWaMuVvTiduZRnguLF7jNxTgiMBZ1hyAumKUiL2KRL",
    "3AVi9Tg9Uo68tJfuvoKvqKNWKkC5wPdSSdeBnizKZ6jT",
]

# The block engine rejects bundles with more transactions than this
RELAY_MAX_TRANSACTIONS = 5


class BundlerConfig(BaseSettings):
    """
    Configuration settings for the bundler.

    All settings can be configured via environment variables with the BUNDLER_ prefix.
    One instance is built by the caller and handed to every component.
    """

    model_config = SettingsConfigDict(
        env_prefix="BUNDLER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Network settings
    network: Network = Field(
        default=Network.MAINNET,
        description="Solana cluster to connect to"
    )
    rpc_url: Optional[str] = Field(
        default=None,
        description="Custom RPC endpoint (optional)"
    )
    rpc_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for a single RPC request"
    )
    commitment: CommitmentLevel = Field(
        default=CommitmentLevel.CONFIRMED,
        description="Commitment level a transaction must reach to count as confirmed"
    )

    # Submission settings
    submission_mode: SubmissionMode = Field(
        default=SubmissionMode.BUNDLE,
        description="Submit through the relay (bundle) or straight to the RPC node (direct)"
    )

    # Relay settings
    relay_url: str = Field(
        default="https://frankfurt.mainnet.block-engine.jito.wtf",
        description="Block engine base URL"
    )
    relay_bundle_path: str = Field(
        default="/api/v1/bundles",
        description="Bundle JSON-RPC path on the block engine"
    )
    relay_auth_token: Optional[str] = Field(
        default=None,
        description="Optional block engine auth token"
    )
    relay_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for a single relay request"
    )

    # Batching parameters
    max_ops_per_group: int = Field(
        default=8,
        ge=1,
        description="Maximum caller operations packed into one transaction"
    )
    max_groups_per_bundle: int = Field(
        default=RELAY_MAX_TRANSACTIONS,
        ge=1,
        le=RELAY_MAX_TRANSACTIONS,
        description="Maximum transactions in one bundle"
    )

    # Tip settings
    tip_sol: float = Field(
        default=0.001,
        gt=0,
        description="Tip paid to the relay per bundle, in SOL"
    )
    tip_accounts: List[str] = Field(
        default_factory=lambda: list(DEFAULT_TIP_ACCOUNTS),
        min_length=1,
        description="Pool of tip recipient addresses"
    )

    # Confirmation settings
    confirmation_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="How long to wait for a bundle to confirm"
    )
    poll_interval_seconds: float = Field(
        default=0.1,
        gt=0,
        description="Delay between ledger status polls"
    )
    anchor_staleness_seconds: float = Field(
        default=45.0,
        gt=0,
        description="Refetch the blockhash if older than this when signing"
    )

    # Retry settings
    max_retry: int = Field(
        default=3,
        ge=1,
        description="Maximum submission attempts"
    )
    backoff_base_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Base delay for exponential backoff between attempts"
    )

    # Wallet settings
    payer_private_key: Optional[str] = Field(
        default=None,
        description="Base58-encoded payer secret key"
    )
    keypair_paths: List[str] = Field(
        default_factory=list,
        description="solana-keygen JSON keypair files to load into the signer"
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format"
    )

    @property
    def rpc_endpoint(self) -> str:
        """Get the RPC URL based on network."""
        if self.rpc_url:
            return self.rpc_url

        network_urls = {
            Network.MAINNET: "https://api.mainnet-beta.solana.com",
            Network.DEVNET: "https://api.devnet.solana.com",
            Network.LOCAL: "http://127.0.0.1:8899",
        }
        return network_urls.get(self.network, "https://api.mainnet-beta.solana.com")

    @property
    def relay_bundle_url(self) -> str:
        """Full URL of the bundle endpoint."""
        return self.relay_url.rstrip("/") + self.relay_bundle_path

    @property
    def tip_lamports(self) -> int:
        """Tip amount in lamports."""
        return int(round(self.tip_sol * LAMPORTS_PER_SOL))
