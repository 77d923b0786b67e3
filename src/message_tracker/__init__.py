"""
Message Tracker package.

Tracks delivery of cross-chain messages by polling a message status service,
with rate-limited block-explorer lookups for on-chain detail.
"""

from .chain_configs import ChainConfigStore
from .config import TrackerConfig
from .message_query import MessagePollSession, MessageSearchPollSession, SearchFilter
from .models import Message, MessageStatus, NormalizedLog
from .tracker import MessageTracker

__all__ = [
    "ChainConfigStore",
    "TrackerConfig",
    "MessageTracker",
    "MessagePollSession",
    "MessageSearchPollSession",
    "SearchFilter",
    "Message",
    "MessageStatus",
    "NormalizedLog",
]
__version__ = "0.1.0"
