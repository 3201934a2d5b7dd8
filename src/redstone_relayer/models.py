#!/usr/bin/env python3
"""Data models for the RedStone relayer.

This module provides the feed identifier encoding and the immutable result
objects reported by the submitter and the relayer, so that callers get typed
values instead of printed text.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

FEED_ID_LENGTH: int = 32


def make_feed_id(symbol: str) -> bytes:
    """Encode a feed symbol as a fixed-size 32 byte identifier.

    The UTF-8 bytes of the symbol are followed by zero bytes. Symbols longer
    than 32 bytes are truncated to the last whole character that fits.

    Args:
        symbol: Feed symbol such as ``"BTC"``

    Returns:
        Exactly 32 bytes
    """
    raw: bytes = symbol.encode("utf-8")
    if len(raw) > FEED_ID_LENGTH:
        logger.warning(
            f"Feed symbol {symbol!r} is {len(raw)} bytes, truncating to {FEED_ID_LENGTH}"
        )
        # Cut on a character boundary so the id stays a UTF-8 prefix
        raw = raw[:FEED_ID_LENGTH].decode("utf-8", errors="ignore").encode("utf-8")
    return raw.ljust(FEED_ID_LENGTH, b"\x00")


class TransactionStatus(str, Enum):
    """Lifecycle status of a submitted transaction."""

    SUBMITTED = "submitted"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class LedgerInfo:
    """Snapshot of the node's ledger used for operator diagnostics."""

    chain_id: int
    block_height: int
    ledger_version: int

    @classmethod
    def from_response(cls, data: dict[str, Any]) -> "LedgerInfo":
        """Build from the node's ledger info JSON (values arrive as strings)."""
        return cls(
            chain_id=int(data["chain_id"]),
            block_height=int(data["block_height"]),
            ledger_version=int(data["ledger_version"]),
        )


@dataclass(frozen=True, slots=True)
class SimulationResult:
    """Outcome of a node-side dry run.

    Attributes:
        success: Whether the transaction would execute successfully
        vm_status: VM status string reported by the node
        gas_used: Estimated gas units
        gas_unit_price: Gas unit price used for the estimate
    """

    success: bool
    vm_status: str
    gas_used: int
    gas_unit_price: int

    @classmethod
    def from_response(cls, data: list[dict[str, Any]] | dict[str, Any]) -> "SimulationResult":
        """Build from the simulate endpoint response (a one element list)."""
        entry: dict[str, Any] = data[0] if isinstance(data, list) else data
        return cls(
            success=bool(entry.get("success", False)),
            vm_status=str(entry.get("vm_status", "")),
            gas_used=int(entry.get("gas_used", 0)),
            gas_unit_price=int(entry.get("gas_unit_price", 0)),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "success": self.success,
            "vm_status": self.vm_status,
            "gas_used": self.gas_used,
            "gas_unit_price": self.gas_unit_price,
        }


@dataclass(frozen=True, slots=True)
class SubmissionResult:
    """Result of submitting one transaction.

    Attributes:
        tx_hash: Transaction hash returned by the node
        sequence_number: Sequence number the transaction was signed with
        status: Lifecycle status at the time of reporting
        simulation: Simulation outcome, if the transaction was simulated
        vm_status: Final VM status, only known once committed
    """

    tx_hash: str
    sequence_number: int
    status: TransactionStatus
    simulation: SimulationResult | None = None
    vm_status: str | None = None

    def __str__(self) -> str:
        """Human-readable string representation."""
        return (
            f"SubmissionResult(hash={self.tx_hash[:10]}..., "
            f"seq={self.sequence_number}, status={self.status.value})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "tx_hash": self.tx_hash,
            "sequence_number": self.sequence_number,
            "status": self.status.value,
            "simulation": self.simulation.to_dict() if self.simulation else None,
            "vm_status": self.vm_status,
        }


@dataclass(frozen=True, slots=True)
class RelayReport:
    """End-to-end report for one relayed feed."""

    feed_symbol: str
    feed_id: bytes
    payload_size: int
    submission: SubmissionResult

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "feed_symbol": self.feed_symbol,
            "feed_id": "0x" + self.feed_id.hex(),
            "payload_size": self.payload_size,
            "submission": self.submission.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class RunReport:
    """Everything a single relayer run produced."""

    relay: RelayReport
    initialize: SubmissionResult | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "initialize": self.initialize.to_dict() if self.initialize else None,
            "relay": self.relay.to_dict(),
        }
