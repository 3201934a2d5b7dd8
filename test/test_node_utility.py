#!/usr/bin/env python3
"""Tests for NodeUtility.

The SDK REST client is replaced with an AsyncMock; error mapping against real
node responses goes through a RestClient backed by httpx.MockTransport.
"""

import unittest
from unittest.mock import AsyncMock, MagicMock

import httpx
from aptos_sdk.account_address import AccountAddress
from aptos_sdk.async_client import ApiError, ClientConfig, RestClient

from src.redstone_relayer.config import NodeConfig
from src.redstone_relayer.exceptions import NodeError
from src.redstone_relayer.models import LedgerInfo
from src.redstone_relayer.utils.node_utility import NodeUtility

ADDRESS = AccountAddress.from_str_relaxed("0x" + "ab" * 32)


def make_rest_client(handler, client_config: ClientConfig = ClientConfig()) -> RestClient:
    """Build a real RestClient whose HTTP traffic is answered by handler."""
    rest = RestClient("https://node.example/v1", client_config)
    headers = rest.client.headers
    rest.client = httpx.AsyncClient(transport=httpx.MockTransport(handler), headers=headers)
    return rest


def account_not_found(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        404,
        json={"error_code": "account_not_found", "message": "Account not found by Address"},
    )


class TestNodeUtility(unittest.IsolatedAsyncioTestCase):
    """Test cases for NodeUtility."""

    def setUp(self):
        """Set up test fixtures."""
        self.config = NodeConfig(rest_url="https://node.example/v1", request_timeout=5)
        self.client = AsyncMock()
        self.node = NodeUtility(self.config, client=self.client)

    async def test_ledger_info(self):
        self.client.info.return_value = {
            "chain_id": 177,
            "block_height": "100",
            "ledger_version": "2000",
        }

        info = await self.node.ledger_info()

        assert info == LedgerInfo(chain_id=177, block_height=100, ledger_version=2000)

    async def test_ledger_info_malformed(self):
        self.client.info.return_value = {"chain_id": 177}

        with self.assertRaises(NodeError):
            await self.node.ledger_info()

    async def test_api_error_wrapped(self):
        """SDK API errors become NodeError with the HTTP status."""
        self.client.account.side_effect = ApiError("account not found", 404)

        with self.assertRaises(NodeError) as ctx:
            await self.node.sequence_number(ADDRESS)

        assert ctx.exception.status_code == 404
        assert "Sequence number failed" in str(ctx.exception)

    async def test_transport_error_wrapped(self):
        self.client.account_balance.side_effect = httpx.ConnectError("connection refused")

        with self.assertRaises(NodeError) as ctx:
            await self.node.account_balance(ADDRESS)

        assert ctx.exception.status_code is None

    async def test_sequence_number(self):
        self.client.account.return_value = {"sequence_number": "12", "authentication_key": "0x00"}

        assert await self.node.sequence_number(ADDRESS) == 12
        self.client.account.assert_awaited_once_with(ADDRESS)

    async def test_sequence_number_unknown_account(self):
        """A missing account is a 404 NodeError, never sequence number 0."""
        node = NodeUtility(self.config, client=make_rest_client(account_not_found))

        with self.assertRaises(NodeError) as ctx:
            await node.sequence_number(ADDRESS)

        assert ctx.exception.status_code == 404
        await node.close()

    async def test_sequence_number_missing_field(self):
        self.client.account.return_value = {}

        with self.assertRaises(NodeError) as ctx:
            await self.node.sequence_number(ADDRESS)

        assert "malformed response" in str(ctx.exception)

    async def test_account_modules(self):
        """Modules are listed through the SDK client."""
        self.client.account_modules.return_value = [
            {"abi": {"name": "main"}},
            {"abi": {"name": "price_adapter"}},
        ]

        modules = await self.node.account_modules(ADDRESS)

        assert len(modules) == 2
        self.client.account_modules.assert_awaited_once_with(ADDRESS)

    async def test_account_modules_api_error(self):
        self.client.account_modules.side_effect = ApiError("not found", 404)

        with self.assertRaises(NodeError) as ctx:
            await self.node.account_modules(ADDRESS)

        assert ctx.exception.status_code == 404

    async def test_account_modules_unknown_account(self):
        """Module listing uses the SDK client's headers and maps its 404."""
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return account_not_found(request)

        client = make_rest_client(handler, ClientConfig(api_key="secret"))
        node = NodeUtility(self.config, client=client)

        with self.assertRaises(NodeError) as ctx:
            await node.account_modules(ADDRESS)

        assert ctx.exception.status_code == 404
        assert requests[0].url.path == f"/v1/accounts/{ADDRESS}/modules"
        assert requests[0].headers["Authorization"] == "Bearer secret"
        await node.close()

    async def test_account_modules_malformed(self):
        self.client.account_modules.return_value = {"error_code": "account_not_found"}

        with self.assertRaises(NodeError):
            await self.node.account_modules(ADDRESS)

    async def test_request_timeout_applied_to_client(self):
        """REQUEST_TIMEOUT bounds every SDK call, not only confirmation polling."""
        node = NodeUtility(NodeConfig(rest_url="https://node.example/v1", request_timeout=7))

        assert node.client.client.timeout == httpx.Timeout(7.0, pool=None)
        await node.close()

    async def test_simulate_uses_gas_estimation(self):
        self.client.simulate_transaction.return_value = [
            {"success": True, "vm_status": "Executed successfully", "gas_used": "7", "gas_unit_price": "100"}
        ]
        transaction = MagicMock()
        sender = MagicMock()

        result = await self.node.simulate(transaction, sender)

        assert result.success is True
        assert result.gas_used == 7
        self.client.simulate_transaction.assert_awaited_once_with(
            transaction, sender, estimate_gas_usage=True
        )

    async def test_simulate_malformed(self):
        self.client.simulate_transaction.return_value = []

        with self.assertRaises(NodeError):
            await self.node.simulate(MagicMock(), MagicMock())

    async def test_submit(self):
        self.client.submit_bcs_transaction.return_value = "0xhash"
        signed = MagicMock()

        assert await self.node.submit(signed) == "0xhash"
        self.client.submit_bcs_transaction.assert_awaited_once_with(signed)

    async def test_submit_malformed_response(self):
        """A 2xx body without the expected fields is a NodeError."""
        self.client.submit_bcs_transaction.side_effect = KeyError("hash")

        with self.assertRaises(NodeError) as ctx:
            await self.node.submit(MagicMock())

        assert "Submission failed: malformed response" in str(ctx.exception)

    async def test_wait_for_transaction(self):
        """Polls while pending, then returns the committed transaction."""
        self.client.transaction_pending.side_effect = [True, False]
        self.client.transaction_by_hash.return_value = {"success": True, "vm_status": "Executed successfully"}
        self.node.POLL_INTERVAL = 0

        transaction = await self.node.wait_for_transaction("0xhash")

        assert transaction["success"] is True
        assert self.client.transaction_pending.await_count == 2

    async def test_wait_for_transaction_timeout(self):
        self.client.transaction_pending.return_value = True
        self.node = NodeUtility(NodeConfig(request_timeout=1), client=self.client)
        self.node.POLL_INTERVAL = 0.2

        with self.assertRaises(NodeError) as ctx:
            await self.node.wait_for_transaction("0xhash")

        assert "still pending" in str(ctx.exception)

    async def test_close(self):
        await self.node.close()
        self.client.close.assert_awaited_once()
