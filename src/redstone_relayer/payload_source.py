#!/usr/bin/env python3
"""Sources of signed RedStone payloads.

A payload source turns a feed symbol into attestation bytes. The relayer only
depends on ``PayloadSource``; the command line generator is one
implementation of it.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any

from .config import PayloadConfig
from .exceptions import PayloadParseError, PayloadSourceError

logger = logging.getLogger(__name__)


class PayloadSource(ABC):
    """Abstract source of attestation payloads."""

    @abstractmethod
    async def fetch_payload(self, feed_symbol: str) -> bytes:
        """Return signed payload bytes for a feed.

        Raises:
            PayloadSourceError: If no payload can be produced
        """


def parse_payload_output(output: str) -> bytes:
    """Parse a JSON array of byte values into bytes.

    Raises:
        PayloadParseError: If the output is not a JSON array of 0..255 integers
    """
    try:
        values: Any = json.loads(output)
    except json.JSONDecodeError as e:
        raise PayloadParseError(f"Payload output is not valid JSON: {e}") from e

    if not isinstance(values, list):
        raise PayloadParseError(f"Expected a JSON array of bytes, got {type(values).__name__}")

    try:
        # bool is an int subclass but never a byte value
        if any(isinstance(v, bool) for v in values):
            raise TypeError("boolean in byte array")
        return bytes(values)
    except (TypeError, ValueError) as e:
        raise PayloadParseError(f"Payload array contains non-byte values: {e}") from e


class CliPayloadSource(PayloadSource):
    """Fetches payloads by running the ``redstone-payload-cli`` tool.

    The tool is invoked as ``<executable> <symbol> -s <signers> -b`` and must
    print the payload as a JSON byte array on stdout.
    """

    def __init__(self, config: PayloadConfig) -> None:
        self.config: PayloadConfig = config

    def command(self, feed_symbol: str) -> list[str]:
        return [
            self.config.executable,
            feed_symbol,
            "-s",
            str(self.config.signer_count),
            "-b",
        ]

    async def fetch_payload(self, feed_symbol: str) -> bytes:
        """
        Run the payload tool for a feed symbol.

        Args:
            feed_symbol: Feed to fetch, e.g. ``"BTC"``

        Returns:
            Payload bytes exactly as produced by the tool

        Raises:
            PayloadSourceError: If the tool is missing, times out or exits non-zero
            PayloadParseError: If stdout is not a JSON byte array
        """
        cmd: list[str] = self.command(feed_symbol)
        logger.debug(f"Running payload tool: {' '.join(cmd)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise PayloadSourceError(
                f"Payload tool not found: {self.config.executable}"
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.config.timeout
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise PayloadSourceError(
                f"Payload tool timed out after {self.config.timeout}s for {feed_symbol}"
            ) from None

        if process.returncode != 0:
            error_output: str = stderr.decode("utf-8", errors="replace").strip()
            logger.error(f"Payload tool exited with {process.returncode}: {error_output}")
            raise PayloadSourceError(
                f"{self.config.executable} failed with exit code {process.returncode}: {error_output}"
            )

        payload: bytes = parse_payload_output(stdout.decode("utf-8", errors="replace"))
        logger.info(f"Fetched {len(payload)} byte payload for {feed_symbol}")
        return payload
