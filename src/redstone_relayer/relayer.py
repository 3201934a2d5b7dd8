"""
RedStone payload relayer.

This module wires configuration, node access, the payload source, the
transaction builder and the submitter together for one relayer run.
"""

import logging
from types import TracebackType

from aptos_sdk.account import Account

from .config import AppConfig
from .exceptions import ConfigurationError, ContractNotDeployedError
from .models import RelayReport, RunReport, SubmissionResult, make_feed_id
from .payload_source import CliPayloadSource, PayloadSource
from .transaction_builder import TransactionBuilder
from .transaction_submitter import TransactionSubmitter
from .utils.node_utility import NodeUtility

logger = logging.getLogger(__name__)

OCTAS_PER_COIN: int = 10**8


class PayloadRelayer:
    """
    Relays one RedStone payload to the connector contract.

    A run reports ledger diagnostics, checks that the contract is deployed,
    optionally initializes it, and relays the configured feed.
    """

    # The connector package publishes more than one module
    MIN_MODULE_COUNT: int = 2

    def __init__(
        self,
        config: AppConfig,
        node: NodeUtility | None = None,
        account: Account | None = None,
        payload_source: PayloadSource | None = None,
    ) -> None:
        """
        Initialize the relayer.

        Args:
            config: Relayer configuration
            node: Node access utility (built from config when omitted)
            account: Signing account (loaded from config.private_key when omitted)
            payload_source: Payload source (the CLI tool when omitted)
        """
        self.config = config
        self.node = node or NodeUtility(config.node)
        self.account = account or self._load_account(config.private_key)
        self.payload_source = payload_source or CliPayloadSource(config.payload)

        self.builder = TransactionBuilder(config.relayer, config.initialize_params)
        self.submitter = TransactionSubmitter(self.node, self.account, config.transaction)

        logger.info(f"Relayer initialized for account {self.account.address()}")

    @staticmethod
    def _load_account(private_key: str) -> Account:
        try:
            return Account.load_key(private_key)
        except Exception as e:
            raise ConfigurationError(f"Invalid private key: {e}") from e

    @classmethod
    def from_env(cls) -> "PayloadRelayer":
        """
        Create a PayloadRelayer from environment variables.

        Raises:
            ConfigurationError: If required environment variables are missing
        """
        config = AppConfig.from_env()
        config.log_config()
        return cls(config)

    async def log_diagnostics(self) -> None:
        """Log chain id, block height and account balance for the operator."""
        info = await self.node.ledger_info()
        logger.info(f"Chain: {info.chain_id}; block height: {info.block_height}")

        if info.chain_id != self.config.transaction.chain_id:
            logger.warning(
                f"Node reports chain id {info.chain_id} but transactions are "
                f"signed for chain id {self.config.transaction.chain_id}"
            )

        address = self.account.address()
        balance = await self.node.account_balance(address)
        logger.info(f"Account address: {address}")
        logger.info(f"Balance: {balance} octas ({balance / OCTAS_PER_COIN:.4f} MOVE)")

    async def verify_contract_deployed(self) -> int:
        """
        Check that the connector modules exist under the contract address.

        Returns:
            Number of modules found

        Raises:
            ContractNotDeployedError: If fewer than MIN_MODULE_COUNT modules exist
        """
        modules = await self.node.account_modules(self.config.relayer.address)
        if len(modules) < self.MIN_MODULE_COUNT:
            raise ContractNotDeployedError(
                f"Expected at least {self.MIN_MODULE_COUNT} modules under "
                f"{self.config.relayer.contract_address}, found {len(modules)}"
            )
        logger.info(f"Found {len(modules)} modules under {self.config.relayer.contract_address}")
        return len(modules)

    async def initialize(self) -> SubmissionResult:
        """Submit the one-time initialize call."""
        logger.info("Initializing connector contract...")
        result = await self.submitter.submit(self.builder.build_initialize_tx())
        logger.info(f"Initialize response: {result}")
        return result

    async def relay_feed(self, feed_symbol: str) -> RelayReport:
        """
        Fetch a fresh payload for a feed and submit it.

        Args:
            feed_symbol: Feed to relay, e.g. ``"BTC"``

        Returns:
            RelayReport for the submitted payload
        """
        feed_id = make_feed_id(feed_symbol)
        payload = await self.payload_source.fetch_payload(feed_symbol)
        logger.info(f"Feed ID: 0x{feed_id.hex()}")

        tx_payload = self.builder.build_process_feed_tx(feed_id, payload)
        submission = await self.submitter.submit(tx_payload)

        logger.info(f"Hash: {submission.tx_hash}")
        return RelayReport(
            feed_symbol=feed_symbol,
            feed_id=feed_id,
            payload_size=len(payload),
            submission=submission,
        )

    async def run(self) -> RunReport:
        """
        Main entry point for one relayer run.

        Returns:
            RunReport with the optional initialize result and the relay report
        """
        logger.info("Starting relayer run...")
        await self.log_diagnostics()
        await self.verify_contract_deployed()

        initialize_result: SubmissionResult | None = None
        if self.config.initialize:
            initialize_result = await self.initialize()

        relay = await self.relay_feed(self.config.feed_symbol)
        logger.info(f"✓ Relayed {relay.feed_symbol} payload ({relay.payload_size} bytes)")
        return RunReport(relay=relay, initialize=initialize_result)

    async def close(self) -> None:
        """Release network resources."""
        await self.node.close()

    async def __aenter__(self) -> "PayloadRelayer":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
