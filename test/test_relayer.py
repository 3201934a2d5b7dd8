#!/usr/bin/env python3
"""End-to-end tests for PayloadRelayer with a fake node and payload source."""

import os
from unittest.mock import AsyncMock, patch

import pytest
from aptos_sdk.account import Account

from src.redstone_relayer.config import (
    AppConfig,
    InitializeConfig,
    RelayerConfig,
    TransactionConfig,
)
from src.redstone_relayer.exceptions import (
    ConfigurationError,
    ContractNotDeployedError,
    PayloadSourceError,
    SimulationFailedError,
)
from src.redstone_relayer.models import LedgerInfo, SimulationResult, make_feed_id
from src.redstone_relayer.payload_source import CliPayloadSource, PayloadSource
from src.redstone_relayer.relayer import PayloadRelayer

CONTRACT = "0x" + "ab" * 32
PRIVATE_KEY = "0x" + "1" * 64


class FakeNode:
    """Node double with incrementing sequence numbers and a call log."""

    def __init__(self, modules: int = 3, sequence_start: int = 0) -> None:
        self.modules = modules
        self.next_sequence = sequence_start
        self.calls: list[str] = []
        self.submitted = []
        self.closed = False

    async def ledger_info(self):
        self.calls.append("ledger_info")
        return LedgerInfo(chain_id=177, block_height=1000, ledger_version=5000)

    async def account_balance(self, address):
        self.calls.append("account_balance")
        return 150_000_000

    async def account_modules(self, address):
        self.calls.append("account_modules")
        return [{"abi": {"name": f"module_{i}"}} for i in range(self.modules)]

    async def sequence_number(self, address):
        self.calls.append("sequence_number")
        value = self.next_sequence
        self.next_sequence += 1
        return value

    async def simulate(self, transaction, sender):
        self.calls.append("simulate")
        return SimulationResult(success=True, vm_status="Executed successfully", gas_used=10, gas_unit_price=100)

    async def submit(self, signed_transaction):
        self.calls.append("submit")
        self.submitted.append(signed_transaction)
        return f"0x{len(self.submitted):064x}"

    async def close(self):
        self.closed = True


class FakePayloadSource(PayloadSource):
    """Returns a fixed payload and records requested symbols."""

    def __init__(self, payload: bytes = b"\x01\x02\x03") -> None:
        self.payload = payload
        self.requested: list[str] = []

    async def fetch_payload(self, feed_symbol: str) -> bytes:
        self.requested.append(feed_symbol)
        return self.payload


def make_config(initialize: bool = False, feed_symbol: str = "BTC") -> AppConfig:
    return AppConfig(
        private_key=PRIVATE_KEY,
        relayer=RelayerConfig(contract_address=CONTRACT),
        transaction=TransactionConfig(),
        initialize_params=InitializeConfig(),
        feed_symbol=feed_symbol,
        initialize=initialize,
    )


def make_relayer(config: AppConfig, node: FakeNode, source: PayloadSource | None = None) -> PayloadRelayer:
    return PayloadRelayer(
        config,
        node=node,
        account=Account.load_key(PRIVATE_KEY),
        payload_source=source or FakePayloadSource(),
    )


class TestPayloadRelayer:
    """Test suite for PayloadRelayer."""

    def test_defaults_built_from_config(self):
        """Without injected collaborators the CLI source and key are used."""
        relayer = PayloadRelayer(make_config(), node=FakeNode())

        assert isinstance(relayer.payload_source, CliPayloadSource)
        assert relayer.account.address() == Account.load_key(PRIVATE_KEY).address()

    def test_from_env(self):
        env = {"MOVEMENT_PRIVATE_KEY": PRIVATE_KEY, "CONTRACT_ADDRESS": CONTRACT}
        with patch.dict(os.environ, env, clear=True):
            relayer = PayloadRelayer.from_env()

        assert relayer.config.relayer.contract_address == CONTRACT
        assert relayer.config.initialize is False

    def test_from_env_missing_key(self):
        with patch.dict(os.environ, {"CONTRACT_ADDRESS": CONTRACT}, clear=True):
            with pytest.raises(ConfigurationError):
                PayloadRelayer.from_env()

    @pytest.mark.asyncio
    async def test_run_without_initialize(self):
        """Only the process-payload path runs when INITIALIZE is absent."""
        node = FakeNode()
        source = FakePayloadSource()
        relayer = make_relayer(make_config(initialize=False), node, source)

        report = await relayer.run()

        assert report.initialize is None
        assert len(node.submitted) == 1
        entry = node.submitted[0].transaction.payload.value
        assert entry.function == "process_redstone_payload"
        assert source.requested == ["BTC"]
        assert node.calls == [
            "ledger_info", "account_balance", "account_modules",
            "sequence_number", "simulate", "submit",
        ]

    @pytest.mark.asyncio
    async def test_run_with_initialize(self):
        """Initialize runs first, then the relay, each with a fresh sequence number."""
        node = FakeNode(sequence_start=7)
        relayer = make_relayer(make_config(initialize=True), node)

        report = await relayer.run()

        functions = [tx.transaction.payload.value.function for tx in node.submitted]
        assert functions == ["initialize", "process_redstone_payload"]
        assert report.initialize is not None
        assert report.initialize.sequence_number == 7
        assert report.relay.submission.sequence_number == 8
        assert node.calls[3:] == [
            "sequence_number", "simulate", "submit",
            "sequence_number", "simulate", "submit",
        ]

    @pytest.mark.asyncio
    async def test_relay_feed_report(self):
        node = FakeNode()
        relayer = make_relayer(make_config(), node, FakePayloadSource(b"\xaa" * 10))

        report = await relayer.relay_feed("ETH")

        assert report.feed_symbol == "ETH"
        assert report.feed_id == make_feed_id("ETH")
        assert report.payload_size == 10
        entry = node.submitted[0].transaction.payload.value
        assert entry.args[0] == b"\x20" + make_feed_id("ETH")
        assert entry.args[1] == b"\x0a" + b"\xaa" * 10

    @pytest.mark.asyncio
    async def test_contract_not_deployed(self):
        """Fewer than two modules aborts before any transaction."""
        node = FakeNode(modules=1)
        relayer = make_relayer(make_config(initialize=True), node)

        with pytest.raises(ContractNotDeployedError, match="found 1"):
            await relayer.run()

        assert node.submitted == []
        assert "sequence_number" not in node.calls

    @pytest.mark.asyncio
    async def test_payload_source_failure_aborts(self):
        node = FakeNode()
        source = FakePayloadSource()
        source.fetch_payload = AsyncMock(side_effect=PayloadSourceError("tool failed"))
        relayer = make_relayer(make_config(), node, source)

        with pytest.raises(PayloadSourceError):
            await relayer.run()

        assert node.submitted == []

    @pytest.mark.asyncio
    async def test_failed_initialize_simulation_stops_run(self):
        """A doomed initialize is not submitted and the relay does not run."""
        node = FakeNode()
        node.simulate = AsyncMock(
            return_value=SimulationResult(success=False, vm_status="E_ALREADY_INITIALIZED", gas_used=0, gas_unit_price=100)
        )
        source = FakePayloadSource()
        relayer = make_relayer(make_config(initialize=True), node, source)

        with pytest.raises(SimulationFailedError, match="E_ALREADY_INITIALIZED"):
            await relayer.run()

        assert node.submitted == []
        assert source.requested == []

    @pytest.mark.asyncio
    async def test_context_manager_closes_node(self):
        node = FakeNode()
        async with make_relayer(make_config(), node):
            pass

        assert node.closed is True
