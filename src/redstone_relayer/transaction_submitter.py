#!/usr/bin/env python3
"""Transaction submission for the RedStone relayer.

This module turns an entry function payload into a submitted transaction:
fetch the sequence number, sign, optionally simulate, submit and report.
"""

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

from aptos_sdk.account import Account
from aptos_sdk.transactions import RawTransaction, SignedTransaction, TransactionPayload

from .config import TransactionConfig
from .exceptions import NodeError, SimulationFailedError, SubmissionError
from .models import SimulationResult, SubmissionResult, TransactionStatus

if TYPE_CHECKING:
    from .utils.node_utility import NodeUtility

logger = logging.getLogger(__name__)


class TransactionSubmitter:
    """Signs and submits transactions for a single account.

    Sequence numbers are never cached: each submission fetches the current
    value immediately before signing. Submissions are serialized by a lock
    so two transactions from this account never overlap between fetch and
    submission.
    """

    def __init__(
        self,
        node: "NodeUtility",
        account: Account,
        config: TransactionConfig,
    ) -> None:
        """
        Initialize the TransactionSubmitter.

        Args:
            node: Node access utility
            account: Signing account
            config: Fee and lifecycle parameters
        """
        self.node: NodeUtility = node
        self.account: Account = account
        self.config: TransactionConfig = config
        self._lock: asyncio.Lock = asyncio.Lock()

    def _build_raw_transaction(
        self, payload: TransactionPayload, sequence_number: int
    ) -> RawTransaction:
        return RawTransaction(
            self.account.address(),
            sequence_number,
            payload,
            self.config.max_gas_amount,
            self.config.gas_unit_price,
            int(time.time()) + self.config.expiration_ttl,
            self.config.chain_id,
        )

    async def submit(
        self, payload: TransactionPayload, simulate: bool | None = None
    ) -> SubmissionResult:
        """
        Submit a payload as a signed transaction.

        Args:
            payload: Entry function payload to execute
            simulate: Dry-run before submitting (defaults to config.simulate)

        Returns:
            SubmissionResult with hash, sequence number and status

        Raises:
            NodeError: If the sequence number cannot be fetched
            SimulationFailedError: If the dry run reports a failure
            SubmissionError: If the node rejects the transaction
        """
        if simulate is None:
            simulate = self.config.simulate

        async with self._lock:
            sequence_number: int = await self.node.sequence_number(self.account.address())
            logger.debug(f"Fetched sequence number {sequence_number} for {self.account.address()}")

            raw_transaction = self._build_raw_transaction(payload, sequence_number)
            signed_transaction = SignedTransaction(
                raw_transaction, self.account.sign_transaction(raw_transaction)
            )

            simulation: SimulationResult | None = None
            if simulate:
                simulation = await self.node.simulate(raw_transaction, self.account)
                logger.info(
                    f"Simulation: success={simulation.success}, "
                    f"vm_status={simulation.vm_status}, gas_used={simulation.gas_used}"
                )
                if not simulation.success:
                    raise SimulationFailedError(
                        f"Transaction would fail on-chain: {simulation.vm_status}",
                        simulation,
                    )

            try:
                tx_hash: str = await self.node.submit(signed_transaction)
            except NodeError as e:
                raise SubmissionError(
                    f"Submission with sequence number {sequence_number} failed: {e}",
                    sequence_number=sequence_number,
                ) from e

            logger.info(f"✓ Transaction submitted: {tx_hash} (sequence number {sequence_number})")

            result = SubmissionResult(
                tx_hash=tx_hash,
                sequence_number=sequence_number,
                status=TransactionStatus.SUBMITTED,
                simulation=simulation,
            )

            if self.config.wait_for_confirmation:
                result = await self._confirm(result)

            return result

    async def _confirm(self, result: SubmissionResult) -> SubmissionResult:
        """Wait for a submitted transaction and report its final status."""
        transaction: dict[str, Any] = await self.node.wait_for_transaction(result.tx_hash)
        vm_status = str(transaction.get("vm_status", ""))

        if transaction.get("success"):
            logger.info(f"✓ Transaction {result.tx_hash} committed in version {transaction.get('version')}")
            status = TransactionStatus.COMMITTED
        else:
            logger.error(f"✗ Transaction {result.tx_hash} failed: {vm_status}")
            status = TransactionStatus.FAILED

        return SubmissionResult(
            tx_hash=result.tx_hash,
            sequence_number=result.sequence_number,
            status=status,
            simulation=result.simulation,
            vm_status=vm_status,
        )
