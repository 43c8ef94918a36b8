"""
Sucker Relayer package.

Automated prove and finalize service for sucker withdrawals from an OP Stack L2.
"""

from .config import RelayerConfig
from .message_classifier import MessageClassifier, classify
from .models import CrossChainMessage, MessagePriority, SettlementStatus
from .relayer import SuckerRelayer

__all__ = [
    "RelayerConfig",
    "SuckerRelayer",
    "MessageClassifier",
    "classify",
    "CrossChainMessage",
    "MessagePriority",
    "SettlementStatus",
]
__version__ = "0.1.0"
