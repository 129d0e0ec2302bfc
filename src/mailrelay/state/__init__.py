"""Persistence: JSON caches for fetched messages and conversation ids."""

from mailrelay.state.cache import ConversationIdCache, MessageCache

__all__ = [
    "ConversationIdCache",
    "MessageCache",
]
