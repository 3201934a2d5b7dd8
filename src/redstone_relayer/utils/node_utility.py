import asyncio
import logging
from collections.abc import Awaitable
from typing import Any, TypeVar

import httpx
from aptos_sdk.account import Account
from aptos_sdk.account_address import AccountAddress
from aptos_sdk.async_client import AccountNotFound, ApiError, RestClient
from aptos_sdk.transactions import RawTransaction, SignedTransaction

from ..config import NodeConfig
from ..exceptions import NodeError
from ..models import LedgerInfo, SimulationResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


class NodeUtility:
    """Utility for talking to a Movement/Aptos node over its REST API.

    Wraps the SDK ``RestClient`` and converts every transport or API failure
    into ``NodeError`` so callers see a single error type per boundary.
    """

    POLL_INTERVAL: float = 1.0

    def __init__(self, config: NodeConfig, client: RestClient | None = None) -> None:
        """
        Initialize the NodeUtility.

        Args:
            config: Node endpoint configuration
            client: Pre-built REST client (tests inject a fake one)
        """
        self.config: NodeConfig = config
        if client is None:
            client = RestClient(config.rest_url)
            # RestClient hardcodes a 60s timeout on its httpx client
            client.client.timeout = httpx.Timeout(float(config.request_timeout), pool=None)
        self.client: RestClient = client

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await awaitable
        except ApiError as e:
            raise NodeError(f"{operation} failed: {e}", status_code=e.status_code) from e
        except AccountNotFound as e:
            raise NodeError(f"{operation} failed: account {e} not found", status_code=404) from e
        except httpx.HTTPError as e:
            raise NodeError(f"{operation} failed: {e}") from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            # Malformed 2xx body (missing field, invalid JSON)
            raise NodeError(f"{operation} failed: malformed response ({e!r})") from e

    async def ledger_info(self) -> LedgerInfo:
        """Fetch chain id and block height from the node."""
        data: dict[str, Any] = await self._call("Ledger info", self.client.info())
        try:
            return LedgerInfo.from_response(data)
        except (KeyError, TypeError, ValueError) as e:
            raise NodeError(f"Malformed ledger info response: {data}") from e

    async def account_balance(self, address: AccountAddress) -> int:
        """Fetch the native coin balance of an account (in octas)."""
        return await self._call("Account balance", self.client.account_balance(address))

    async def sequence_number(self, address: AccountAddress) -> int:
        """Fetch the account's current on-chain sequence number.

        Reads the account resource directly: the SDK's
        ``account_sequence_number`` reports 0 for an unknown account, while a
        missing account must fail here with a 404 ``NodeError``.
        """

        async def _fetch() -> int:
            account: dict[str, Any] = await self.client.account(address)
            return int(account["sequence_number"])

        return await self._call("Sequence number", _fetch())

    async def account_modules(self, address: AccountAddress) -> list[dict[str, Any]]:
        """List the Move modules published under an address.

        Args:
            address: Account that owns the modules

        Returns:
            Module entries as returned by the node (bytecode and ABI)

        Raises:
            NodeError: If the request fails or the response is not a list
        """
        logger.debug(f"Fetching modules of {address}")
        modules: Any = await self._call("Account modules", self.client.account_modules(address))
        if not isinstance(modules, list):
            raise NodeError(f"Malformed account modules response: {modules!r}")
        return modules

    async def simulate(self, transaction: RawTransaction, sender: Account) -> SimulationResult:
        """Dry-run a transaction with gas estimation enabled.

        The SDK wraps the raw transaction in a zero-signature authenticator,
        the only form the simulate endpoint accepts.
        """
        response: Any = await self._call(
            "Simulation",
            self.client.simulate_transaction(transaction, sender, estimate_gas_usage=True),
        )
        try:
            return SimulationResult.from_response(response)
        except (IndexError, KeyError, TypeError, ValueError) as e:
            raise NodeError(f"Malformed simulation response: {response!r}") from e

    async def submit(self, signed_transaction: SignedTransaction) -> str:
        """Submit a signed transaction and return its hash."""
        return await self._call(
            "Submission", self.client.submit_bcs_transaction(signed_transaction)
        )

    async def wait_for_transaction(self, tx_hash: str) -> dict[str, Any]:
        """Poll until a transaction leaves the mempool and return it.

        Raises:
            NodeError: If the transaction is still pending after the request timeout
        """
        loop = asyncio.get_running_loop()
        deadline: float = loop.time() + self.config.request_timeout
        while await self._call("Transaction status", self.client.transaction_pending(tx_hash)):
            if loop.time() >= deadline:
                raise NodeError(f"Transaction {tx_hash} still pending after {self.config.request_timeout}s")
            await asyncio.sleep(self.POLL_INTERVAL)
        return await self._call("Transaction lookup", self.client.transaction_by_hash(tx_hash))

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.close()
