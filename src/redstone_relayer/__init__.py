"""
RedStone Relayer package.

Relays signed RedStone price payloads to the connector contract on Movement.
"""

from .config import AppConfig, RelayerConfig
from .models import RelayReport, SubmissionResult, make_feed_id
from .payload_source import CliPayloadSource, PayloadSource
from .relayer import PayloadRelayer

__all__ = [
    "AppConfig",
    "RelayerConfig",
    "PayloadRelayer",
    "PayloadSource",
    "CliPayloadSource",
    "RelayReport",
    "SubmissionResult",
    "make_feed_id",
]
__version__ = "0.1.0"
