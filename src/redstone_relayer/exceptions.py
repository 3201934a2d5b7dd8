#!/usr/bin/env python3
"""Exception hierarchy for the RedStone relayer.

Every fallible boundary (environment lookup, node call, payload tool,
payload parsing) raises one of these so that callers decide whether to
retry, log or abort. Only the entry point turns them into an exit code.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import SimulationResult


class RelayerError(Exception):
    """Base class for all relayer failures."""


class ConfigurationError(RelayerError, ValueError):
    """Missing or invalid configuration (environment, key, address)."""


class NodeError(RelayerError):
    """The node could not be reached or returned an unusable response."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ContractNotDeployedError(RelayerError):
    """The target contract address does not hold the expected modules."""


class TransactionBuildError(RelayerError):
    """An entry function payload could not be serialized."""


class SimulationFailedError(RelayerError):
    """The node reports that the transaction would fail on-chain."""

    def __init__(self, message: str, simulation: "SimulationResult") -> None:
        super().__init__(message)
        self.simulation = simulation


class SubmissionError(RelayerError):
    """The signed transaction was rejected by the node."""

    def __init__(self, message: str, sequence_number: int | None = None) -> None:
        super().__init__(message)
        self.sequence_number = sequence_number


class PayloadSourceError(RelayerError):
    """The payload source could not produce attestation bytes."""


class PayloadParseError(PayloadSourceError):
    """The payload source produced output that is not a JSON byte array."""
