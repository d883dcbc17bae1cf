"""
Jito block engine adapter.

Submits bundles through the block engine's JSON-RPC bundle endpoint.
"""

from typing import Any, List, Optional, Sequence

import base58
import httpx
import structlog

from bundler.config import RELAY_MAX_TRANSACTIONS, BundlerConfig
from bundler.relay.interface import RelayInterface, RelayRejected, RelayUnreachable

logger = structlog.get_logger(__name__)


class JitoRelay(RelayInterface):
    """
    Jito block engine adapter.

    Implements the RelayInterface over the block engine's HTTP JSON-RPC API.
    """

    def __init__(
        self,
        config: BundlerConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the relay adapter.

        Args:
            config: Bundler configuration
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.config = config
        self.base_url = config.relay_url.rstrip("/")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._request_id = 0

    @property
    def headers(self) -> dict:
        """Get request headers."""
        headers = {"Content-Type": "application/json"}
        if self.config.relay_auth_token:
            headers["x-jito-auth"] = self.config.relay_auth_token
        return headers

    async def connect(self) -> None:
        """Create the HTTP client."""
        if self._client is not None:
            return

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=self.config.relay_timeout_seconds,
            transport=self._transport,
        )
        logger.info("relay_connected", base_url=self.base_url)

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("relay_disconnected")

    async def _rpc(self, method: str, params: list) -> Any:
        """Make a JSON-RPC call against the bundle endpoint."""
        if not self._client:
            await self.connect()

        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }

        try:
            response = await self._client.post(self.config.relay_bundle_path, json=payload)
        except httpx.RequestError as e:
            logger.error("relay_request_error", method=method, error=str(e))
            raise RelayUnreachable(f"Relay request failed: {e}") from e

        if not response.is_success:
            logger.error(
                "relay_request_failed",
                method=method,
                status=response.status_code,
                error=response.text,
            )
            raise RelayRejected(
                f"Relay returned HTTP {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise RelayRejected(f"Relay returned invalid JSON: {response.text[:200]}") from e

        if not isinstance(data, dict):
            raise RelayRejected(f"Relay returned unexpected payload: {data!r}")

        if data.get("error"):
            error = data["error"]
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            logger.error("relay_rpc_error", method=method, error=message)
            raise RelayRejected(f"Relay rejected {method}: {message}", status_code=response.status_code)

        if "result" not in data:
            raise RelayRejected(f"Relay response has no result: {data!r}")

        return data["result"]

    async def send_bundle(self, transactions: Sequence[bytes]) -> str:
        """Submit a bundle of signed transactions."""
        if not transactions:
            raise ValueError("Cannot send an empty bundle")
        if len(transactions) > RELAY_MAX_TRANSACTIONS:
            raise ValueError(
                f"Bundle cannot exceed {RELAY_MAX_TRANSACTIONS} transactions, got {len(transactions)}"
            )

        encoded = [base58.b58encode(tx).decode("utf-8") for tx in transactions]
        bundle_id = await self._rpc("sendBundle", [encoded])

        if not isinstance(bundle_id, str) or not bundle_id:
            raise RelayRejected(f"Relay returned an invalid bundle id: {bundle_id!r}")

        logger.info("bundle_sent", bundle_id=bundle_id, transactions=len(encoded))
        return bundle_id

    async def get_tip_accounts(self) -> List[str]:
        """Get the tip accounts from the block engine."""
        accounts = await self._rpc("getTipAccounts", [])
        if not isinstance(accounts, list):
            raise RelayRejected(f"Relay returned invalid tip accounts: {accounts!r}")
        return [str(a) for a in accounts]
