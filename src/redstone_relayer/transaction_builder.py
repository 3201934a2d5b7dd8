#!/usr/bin/env python3
"""Entry function payload construction for the RedStone connector.

Both builders are pure: the same inputs always produce byte-identical BCS
arguments, with no timestamp or nonce mixed into the encoding.
"""

import logging

from aptos_sdk.bcs import Serializer
from aptos_sdk.transactions import (
    EntryFunction,
    TransactionArgument,
    TransactionPayload,
)

from .config import InitializeConfig, RelayerConfig
from .exceptions import TransactionBuildError

logger = logging.getLogger(__name__)


class TransactionBuilder:
    """Builds entry function payloads for the connector module."""

    INITIALIZE_FUNCTION: str = "initialize"

    def __init__(self, relayer_config: RelayerConfig, initialize_config: InitializeConfig) -> None:
        """
        Initialize the TransactionBuilder.

        Args:
            relayer_config: Module and function consuming payloads
            initialize_config: Arguments of the one-time initialize call
        """
        self.relayer_config: RelayerConfig = relayer_config
        self.initialize_config: InitializeConfig = initialize_config

    def _entry_function(
        self, function: str, args: list[TransactionArgument]
    ) -> TransactionPayload:
        try:
            encoded: list[bytes] = [arg.encode() for arg in args]
        except Exception as e:
            raise TransactionBuildError(f"Failed to serialize arguments for {function}: {e}") from e

        return TransactionPayload(
            EntryFunction(self.relayer_config.module_id, function, [], encoded)
        )

    def build_process_feed_tx(self, feed_id: bytes, payload: bytes) -> TransactionPayload:
        """Build a call to the payload processing entry function.

        Args:
            feed_id: 32 byte feed identifier
            payload: Attestation bytes, passed through unmodified

        Returns:
            Entry function payload with ``(vector<u8>, vector<u8>)`` arguments

        Raises:
            TransactionBuildError: If either argument cannot be serialized
        """
        logger.debug(
            f"Building {self.relayer_config.function_id} "
            f"(feed_id={feed_id.hex()}, payload={len(payload)} bytes)"
        )
        return self._entry_function(
            self.relayer_config.function_name,
            [
                TransactionArgument(bytes(feed_id), Serializer.to_bytes),
                TransactionArgument(bytes(payload), Serializer.to_bytes),
            ],
        )

    def build_initialize_tx(self) -> TransactionPayload:
        """Build the one-time ``initialize`` call.

        Signers are encoded as ``vector<vector<u8>>`` of 20 byte EVM
        addresses, followed by the ``u8`` threshold and the two ``u64``
        timestamp windows. Double initialization is rejected on-chain.
        """
        params = self.initialize_config
        logger.debug(
            f"Building initialize with {len(params.signers)} signers, "
            f"threshold={params.signer_count_threshold}"
        )
        return self._entry_function(
            self.INITIALIZE_FUNCTION,
            [
                TransactionArgument(
                    params.signer_bytes,
                    Serializer.sequence_serializer(Serializer.to_bytes),
                ),
                TransactionArgument(params.signer_count_threshold, Serializer.u8),
                TransactionArgument(params.max_timestamp_delay, Serializer.u64),
                TransactionArgument(params.max_timestamp_ahead, Serializer.u64),
            ],
        )
