"""
Message channel backends.

Provides the broker boundary used by the publisher and the consumer:
- Redis Streams with consumer groups
- An in-process broker for development and tests
"""
from .base import ChannelAdapter, ChannelMessage
from .memory import InMemoryBroker, InMemoryChannel
from .redis_stream import RedisStreamChannel

__all__ = [
    "ChannelAdapter",
    "ChannelMessage",
    "InMemoryBroker",
    "InMemoryChannel",
    "RedisStreamChannel",
]
