#!/usr/bin/env python3
"""Configuration management for the RedStone relayer.

This module provides type-safe configuration dataclasses with validation.
Configuration is loaded once from environment variables with documented
defaults and passed by value to the components that need it.
"""

import logging
import os
from dataclasses import dataclass, field
from urllib.parse import urlparse

from aptos_sdk.account_address import AccountAddress
from aptos_sdk.transactions import ModuleId
from web3 import Web3

from .exceptions import ConfigurationError

# Get logger for this module
logger = logging.getLogger(__name__)

DEFAULT_REST_URL: str = "https://testnet.porto.movementnetwork.xyz/v1"

# RedStone primary data service signers (EVM addresses)
DEFAULT_PRIMARY_SIGNERS: tuple[str, ...] = (
    "0x8bb8f32df04c8b654987daaed53d6b6091e3b774",
    "0xdeb22f54738d54976c4c0fe5ce6d408e40d88499",
    "0x51ce04be4b3e32572c4ec9135221d0691ba7d202",
    "0xdd682daec5a90dd295d14da4b0bec9281017b5be",
    "0x9c5ae89c4af6aa32ce58588dbaf90d18a855b6de",
)

FIFTEEN_HOURS: int = 60 * 60 * 15


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable."""
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


def _env_bool(name: str, default: bool = False) -> bool:
    """Read a boolean environment variable (1/true/yes/on)."""
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _parse_account_address(value: str, what: str) -> AccountAddress:
    try:
        return AccountAddress.from_str_relaxed(value)
    except Exception as e:
        raise ConfigurationError(f"Invalid {what}: {value} ({e})") from e


@dataclass(frozen=True, slots=True)
class NodeConfig:
    """Configuration for the node REST endpoint.

    Attributes:
        rest_url: HTTP(S) REST endpoint of the node (including ``/v1``)
        request_timeout: HTTP request timeout in seconds
    """

    rest_url: str = DEFAULT_REST_URL
    request_timeout: int = 30

    def __post_init__(self) -> None:
        """Validate node configuration."""
        if not self.rest_url:
            raise ConfigurationError("Node REST URL is required (MOVEMENT_RPC_URL)")

        parsed = urlparse(self.rest_url)
        if parsed.scheme not in ('http', 'https'):
            raise ConfigurationError(
                f"Invalid REST URL scheme: {parsed.scheme}. Expected http or https"
            )

        # The SDK appends paths itself
        object.__setattr__(self, 'rest_url', self.rest_url.rstrip('/'))

        if self.request_timeout <= 0:
            raise ConfigurationError(f"Request timeout must be positive, got {self.request_timeout}")
        if self.request_timeout > 120:
            raise ConfigurationError(f"Request timeout too long (max 120s), got {self.request_timeout}")


@dataclass(frozen=True, slots=True)
class RelayerConfig:
    """On-chain entry point used for normal operation.

    Attributes:
        contract_address: Address the connector package is published under
        module_name: Module holding the entry functions
        function_name: Entry function that consumes a payload
    """

    contract_address: str
    module_name: str = "main"
    function_name: str = "process_redstone_payload"

    def __post_init__(self) -> None:
        """Validate and normalize the entry point."""
        if not self.contract_address:
            raise ConfigurationError("Contract address is required (CONTRACT_ADDRESS)")

        address = _parse_account_address(self.contract_address, "contract address")
        object.__setattr__(self, 'contract_address', str(address))

        for name, value in (("module", self.module_name), ("function", self.function_name)):
            if not value or not value.isidentifier():
                raise ConfigurationError(f"Invalid {name} identifier: {value!r}")

    @property
    def address(self) -> AccountAddress:
        return AccountAddress.from_str_relaxed(self.contract_address)

    @property
    def module_id(self) -> ModuleId:
        return ModuleId(self.address, self.module_name)

    @property
    def function_id(self) -> str:
        return f"{self.contract_address}::{self.module_name}::{self.function_name}"


@dataclass(frozen=True, slots=True)
class TransactionConfig:
    """Fee and lifecycle parameters applied to every transaction.

    Attributes:
        chain_id: Chain the transaction is valid for
        gas_unit_price: Price paid per gas unit
        max_gas_amount: Upper bound on gas units
        expiration_ttl: Seconds from now until the transaction expires
        simulate: Dry-run every transaction before submitting it
        wait_for_confirmation: Wait for the transaction to be committed
    """

    chain_id: int = 177
    gas_unit_price: int = 100
    max_gas_amount: int = 10000
    expiration_ttl: int = 600
    simulate: bool = True
    wait_for_confirmation: bool = False

    def __post_init__(self) -> None:
        """Validate transaction parameters."""
        if not 0 < self.chain_id < 256:
            raise ConfigurationError(f"Chain ID must fit in a u8, got {self.chain_id}")
        if self.gas_unit_price <= 0:
            raise ConfigurationError(f"Gas unit price must be positive, got {self.gas_unit_price}")
        if self.max_gas_amount <= 0:
            raise ConfigurationError(f"Max gas amount must be positive, got {self.max_gas_amount}")
        if self.expiration_ttl <= 0:
            raise ConfigurationError(f"Expiration TTL must be positive, got {self.expiration_ttl}")


@dataclass(frozen=True, slots=True)
class InitializeConfig:
    """Arguments of the one-time ``initialize`` call.

    These are deployment specific: the authorized RedStone signers, how many
    of them must sign a payload, and the accepted timestamp windows.

    Attributes:
        signers: Authorized signer EVM addresses (checksummed)
        signer_count_threshold: Required number of distinct signatures
        max_timestamp_delay: Seconds a payload may lag behind block time
        max_timestamp_ahead: Seconds a payload may run ahead of block time
    """

    signers: tuple[str, ...] = DEFAULT_PRIMARY_SIGNERS
    signer_count_threshold: int = 3
    max_timestamp_delay: int = FIFTEEN_HOURS
    max_timestamp_ahead: int = FIFTEEN_HOURS

    def __post_init__(self) -> None:
        """Validate and checksum signer addresses."""
        if not self.signers:
            raise ConfigurationError("At least one signer is required (INITIALIZE_SIGNERS)")

        checksummed: list[str] = []
        for signer in self.signers:
            if not Web3.is_address(signer):
                raise ConfigurationError(f"Invalid signer address: {signer}")
            checksummed.append(Web3.to_checksum_address(signer))
        object.__setattr__(self, 'signers', tuple(checksummed))

        if not 0 < self.signer_count_threshold < 256:
            raise ConfigurationError(
                f"Signer count threshold must fit in a u8, got {self.signer_count_threshold}"
            )
        if self.signer_count_threshold > len(self.signers):
            raise ConfigurationError(
                f"Signer count threshold {self.signer_count_threshold} exceeds "
                f"number of signers {len(self.signers)}"
            )
        if self.max_timestamp_delay < 0 or self.max_timestamp_ahead < 0:
            raise ConfigurationError("Timestamp windows must be non-negative")

    @property
    def signer_bytes(self) -> list[bytes]:
        """Signer addresses as raw 20 byte values."""
        return [bytes(Web3.to_bytes(hexstr=signer)) for signer in self.signers]


@dataclass(frozen=True, slots=True)
class PayloadConfig:
    """Configuration for the external payload generator.

    Attributes:
        executable: Name or path of the payload tool
        signer_count: Number of signers requested from the tool
        timeout: Seconds to wait for the tool before killing it
    """

    executable: str = "redstone-payload-cli"
    signer_count: int = 3
    timeout: int = 60

    def __post_init__(self) -> None:
        """Validate payload tool configuration."""
        if not self.executable:
            raise ConfigurationError("Payload tool executable is required (PAYLOAD_CLI)")
        if self.signer_count <= 0:
            raise ConfigurationError(f"Signer count must be positive, got {self.signer_count}")
        if self.timeout <= 0:
            raise ConfigurationError(f"Payload timeout must be positive, got {self.timeout}")


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Main configuration for one relayer run.

    Attributes:
        private_key: Ed25519 signing key of the relaying account
        relayer: Entry point for payload processing
        node: Node endpoint configuration
        transaction: Fee and lifecycle parameters
        initialize_params: Arguments of the initialize call
        payload: External payload tool configuration
        feed_symbol: Feed relayed by this run
        initialize: Run the one-time initialize call before relaying
    """

    private_key: str
    relayer: RelayerConfig
    node: NodeConfig = field(default_factory=NodeConfig)
    transaction: TransactionConfig = field(default_factory=TransactionConfig)
    initialize_params: InitializeConfig = field(default_factory=InitializeConfig)
    payload: PayloadConfig = field(default_factory=PayloadConfig)
    feed_symbol: str = "BTC"
    initialize: bool = False

    def __post_init__(self) -> None:
        """Validate the signing key and feed symbol."""
        if not self.private_key:
            raise ConfigurationError("MOVEMENT_PRIVATE_KEY environment variable is required")

        # Accept bare hex, 0x-prefixed hex and the AIP-80 ed25519-priv- prefix
        key = self.private_key.removeprefix("ed25519-priv-").removeprefix("0x")
        if len(key) != 64:
            raise ConfigurationError(
                f"Invalid private key length. Expected 64 hex characters, got {len(key)}"
            )
        try:
            int(key, 16)
        except ValueError:
            raise ConfigurationError("Invalid private key format. Must be hexadecimal") from None

        if not self.feed_symbol:
            raise ConfigurationError("Feed symbol must not be empty (FEED_SYMBOL)")

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Load configuration from environment variables.

        Returns:
            AppConfig instance with loaded values

        Raises:
            ConfigurationError: If required environment variables are missing or invalid
        """
        private_key = os.environ.get("MOVEMENT_PRIVATE_KEY", "")
        if not private_key:
            raise ConfigurationError(
                "MOVEMENT_PRIVATE_KEY environment variable is required. "
                "This is the key of the account that pays for relaying."
            )

        contract_address = os.environ.get("CONTRACT_ADDRESS", "")
        if not contract_address:
            raise ConfigurationError(
                "CONTRACT_ADDRESS environment variable is required. "
                "This should be the RedStone connector package address."
            )

        relayer_config = RelayerConfig(
            contract_address=contract_address,
            module_name=os.environ.get("CONTRACT_MODULE", "main"),
            function_name=os.environ.get("PROCESS_FUNCTION", "process_redstone_payload"),
        )

        node_config = NodeConfig(
            rest_url=os.environ.get("MOVEMENT_RPC_URL", DEFAULT_REST_URL),
            request_timeout=_env_int("REQUEST_TIMEOUT", 30),
        )

        transaction_config = TransactionConfig(
            chain_id=_env_int("CHAIN_ID", 177),
            gas_unit_price=_env_int("GAS_UNIT_PRICE", 100),
            max_gas_amount=_env_int("MAX_GAS_AMOUNT", 10000),
            expiration_ttl=_env_int("TX_EXPIRATION_TTL", 600),
            wait_for_confirmation=_env_bool("WAIT_FOR_CONFIRMATION"),
        )

        signers_env = os.environ.get("INITIALIZE_SIGNERS", "")
        signers = (
            tuple(s.strip() for s in signers_env.split(",") if s.strip())
            if signers_env
            else DEFAULT_PRIMARY_SIGNERS
        )
        initialize_config = InitializeConfig(
            signers=signers,
            signer_count_threshold=_env_int("SIGNER_COUNT_THRESHOLD", 3),
            max_timestamp_delay=_env_int("MAX_TIMESTAMP_DELAY", FIFTEEN_HOURS),
            max_timestamp_ahead=_env_int("MAX_TIMESTAMP_AHEAD", FIFTEEN_HOURS),
        )

        payload_config = PayloadConfig(
            executable=os.environ.get("PAYLOAD_CLI", "redstone-payload-cli"),
            signer_count=_env_int("PAYLOAD_SIGNER_COUNT", 3),
            timeout=_env_int("PAYLOAD_TIMEOUT", 60),
        )

        return cls(
            private_key=private_key,
            relayer=relayer_config,
            node=node_config,
            transaction=transaction_config,
            initialize_params=initialize_config,
            payload=payload_config,
            feed_symbol=os.environ.get("FEED_SYMBOL", "BTC"),
            # Presence alone selects the initialize path
            initialize="INITIALIZE" in os.environ,
        )

    def log_config(self) -> None:
        """Log the configuration in a readable format for debugging."""
        logger.info("=" * 60)
        logger.info("RedStone Relayer Configuration")
        logger.info("=" * 60)

        logger.info("Node:")
        logger.info(f"  REST URL: {self.node.rest_url}")
        logger.info(f"  Request Timeout: {self.node.request_timeout} seconds")

        logger.info("Contract:")
        logger.info(f"  Entry Function: {self.relayer.function_id}")

        logger.info("Transactions:")
        logger.info(f"  Chain ID: {self.transaction.chain_id}")
        logger.info(f"  Gas Unit Price: {self.transaction.gas_unit_price}")
        logger.info(f"  Max Gas Amount: {self.transaction.max_gas_amount}")
        logger.info(f"  Simulate: {self.transaction.simulate}")
        logger.info(f"  Wait For Confirmation: {self.transaction.wait_for_confirmation}")

        logger.info("Relay:")
        logger.info(f"  Feed Symbol: {self.feed_symbol}")
        logger.info(f"  Payload Tool: {self.payload.executable} (signers={self.payload.signer_count})")
        logger.info(f"  Initialize: {'YES' if self.initialize else 'NO'}")
        if self.initialize:
            logger.info(f"  Signers: {len(self.initialize_params.signers)}")
            logger.info(f"  Threshold: {self.initialize_params.signer_count_threshold}")

        logger.info("  Private Key: [CONFIGURED]")
        logger.info("=" * 60)
